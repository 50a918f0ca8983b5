import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("teams", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "source_type",
                    models.CharField(
                        choices=[
                            ("mission_submission", "任务提交"),
                            ("race_submission", "竞速名次"),
                            ("auction", "拍卖成交"),
                            ("challenge", "挑战积分"),
                        ],
                        max_length=32,
                        verbose_name="来源类型",
                    ),
                ),
                ("source_id", models.PositiveBigIntegerField(verbose_name="来源ID")),
                (
                    "target_type",
                    models.CharField(
                        choices=[("user", "参与者"), ("team", "队伍")], max_length=8, verbose_name="入账对象类型"
                    ),
                ),
                ("target_key", models.CharField(db_index=True, max_length=40, verbose_name="入账对象")),
                ("amount", models.PositiveIntegerField(verbose_name="入账积分")),
                ("balance_after", models.PositiveIntegerField(verbose_name="入账后累计")),
                ("note", models.CharField(blank=True, max_length=200, verbose_name="备注")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="入账时间")),
                (
                    "team",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_entries",
                        to="teams.team",
                        verbose_name="队伍",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_entries",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="参与者",
                    ),
                ),
            ],
            options={
                "verbose_name": "积分流水",
                "verbose_name_plural": "积分流水",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["source_type", "source_id"], name="credit_source_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("source_type", "source_id", "target_key"), name="credit_entry_once_per_source"
                    ),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="credit_entry_amount_positive"),
                ],
            },
        ),
    ]
