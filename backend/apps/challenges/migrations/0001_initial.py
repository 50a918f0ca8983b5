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
            name="Challenge",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200, verbose_name="标题")),
                ("description", models.TextField(blank=True, verbose_name="描述")),
                (
                    "challenge_type",
                    models.CharField(
                        choices=[
                            ("team_timed", "团队计时"),
                            ("individual_timed", "个人计时"),
                            ("team_task", "团队任务"),
                            ("individual_task", "个人任务"),
                        ],
                        max_length=20,
                        verbose_name="类型",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "未开始"),
                            ("active", "进行中"),
                            ("scoring", "计分中"),
                            ("completed", "已完成"),
                        ],
                        default="pending",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                (
                    "points_mode",
                    models.CharField(
                        choices=[("placement", "按名次"), ("top_n", "仅前 N 名"), ("fixed", "固定分")],
                        default="placement",
                        max_length=20,
                        verbose_name="计分模式",
                    ),
                ),
                ("points_distribution", models.JSONField(blank=True, default=dict, verbose_name="名次积分表")),
                ("fixed_points", models.PositiveIntegerField(default=0, verbose_name="固定分")),
                (
                    "top_n",
                    models.PositiveIntegerField(blank=True, help_text="为空时取积分表长度", null=True, verbose_name="前 N 名"),
                ),
                (
                    "score_direction",
                    models.CharField(
                        choices=[("desc", "得分越高越好"), ("asc", "得分越低越好")],
                        default="desc",
                        max_length=8,
                        verbose_name="得分方向",
                    ),
                ),
                (
                    "max_participants_per_team",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="每队参赛人数上限"),
                ),
                ("order_index", models.PositiveIntegerField(default=0, verbose_name="排序")),
                ("points_awarded_at", models.DateTimeField(blank=True, null=True, verbose_name="积分发放时间")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="创建人",
                    ),
                ),
            ],
            options={
                "verbose_name": "挑战",
                "verbose_name_plural": "挑战",
                "ordering": ["order_index", "id"],
            },
        ),
        migrations.CreateModel(
            name="ChallengeResult",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("time_ms", models.PositiveBigIntegerField(blank=True, null=True, verbose_name="用时(ms)")),
                ("score", models.IntegerField(blank=True, null=True, verbose_name="得分")),
                ("placement", models.PositiveIntegerField(blank=True, null=True, verbose_name="名次")),
                ("points_awarded", models.PositiveIntegerField(default=0, verbose_name="积分")),
                ("notes", models.TextField(blank=True, verbose_name="备注")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="录入时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "challenge",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="results",
                        to="challenges.challenge",
                        verbose_name="挑战",
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="challenge_results",
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
                        related_name="challenge_results",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="参赛者",
                    ),
                ),
            ],
            options={
                "verbose_name": "挑战成绩",
                "verbose_name_plural": "挑战成绩",
                "ordering": ["challenge_id", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("user__isnull", True)),
                        fields=("challenge", "team"),
                        name="challenge_result_once_per_team",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("user__isnull", False)),
                        fields=("challenge", "user"),
                        name="challenge_result_once_per_user",
                    ),
                ],
            },
        ),
    ]
