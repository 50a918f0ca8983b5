from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Team",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120, unique=True, verbose_name="队伍名称")),
                ("slug", models.SlugField(max_length=150, unique=True, verbose_name="队伍标识")),
                ("description", models.TextField(blank=True, verbose_name="简介")),
                ("color", models.CharField(default="#3b82f6", max_length=16, verbose_name="主题色")),
                ("emoji", models.CharField(blank=True, default="", max_length=16, verbose_name="图标")),
                ("total_xp", models.PositiveIntegerField(default=0, verbose_name="累计积分")),
                ("is_active", models.BooleanField(default=True, verbose_name="有效")),
                ("order_index", models.PositiveIntegerField(default=0, verbose_name="排序")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
            ],
            options={
                "verbose_name": "队伍",
                "verbose_name_plural": "队伍",
                "ordering": ["order_index", "name"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("total_xp__gte", 0)), name="team_total_xp_non_negative"),
                ],
            },
        ),
    ]
