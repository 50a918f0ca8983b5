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
            name="Mission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200, verbose_name="标题")),
                ("description", models.TextField(blank=True, verbose_name="描述")),
                (
                    "mission_type",
                    models.CharField(
                        choices=[
                            ("qr_code", "二维码"),
                            ("photo", "照片"),
                            ("quiz", "测验"),
                            ("gps", "定位"),
                            ("manual", "人工确认"),
                        ],
                        max_length=20,
                        verbose_name="类型",
                    ),
                ),
                ("xp_reward", models.PositiveIntegerField(default=0, verbose_name="经验奖励")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "进行中"), ("inactive", "未启用")],
                        default="active",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                ("qr_code_value", models.CharField(blank=True, max_length=255, verbose_name="二维码内容")),
                ("location_name", models.CharField(blank=True, max_length=200, verbose_name="地点名称")),
                ("location_lat", models.FloatField(blank=True, null=True, verbose_name="纬度")),
                ("location_lng", models.FloatField(blank=True, null=True, verbose_name="经度")),
                ("location_radius", models.PositiveIntegerField(blank=True, null=True, verbose_name="判定半径")),
                ("quiz_data", models.JSONField(blank=True, default=dict, verbose_name="测验内容")),
                ("photo_requirements", models.TextField(blank=True, verbose_name="照片要求")),
                ("image_url", models.URLField(blank=True, verbose_name="封面")),
                ("start_date", models.DateTimeField(blank=True, null=True, verbose_name="开放时间")),
                ("end_date", models.DateTimeField(blank=True, null=True, verbose_name="截止时间")),
                ("required_level", models.PositiveIntegerField(default=1, verbose_name="所需等级")),
                (
                    "max_completions",
                    models.PositiveIntegerField(
                        blank=True, help_text="为空表示 1 次", null=True, verbose_name="完成次数上限"
                    ),
                ),
                ("is_race", models.BooleanField(default=False, verbose_name="竞速任务")),
                ("race_active", models.BooleanField(default=False, verbose_name="竞速进行中")),
                ("race_started_at", models.DateTimeField(blank=True, null=True, verbose_name="竞速开始时间")),
                ("race_points_distribution", models.JSONField(blank=True, default=dict, verbose_name="名次积分表")),
                ("race_placement_seq", models.PositiveIntegerField(default=0, verbose_name="已分配名次")),
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
                "verbose_name": "任务",
                "verbose_name_plural": "任务",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "待审核"), ("approved", "已通过"), ("rejected", "已驳回")],
                        default="pending",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                ("xp_awarded", models.PositiveIntegerField(default=0, verbose_name="获得奖励")),
                ("photo_url", models.URLField(blank=True, max_length=500, verbose_name="照片")),
                ("note", models.TextField(blank=True, verbose_name="说明")),
                ("gps_lat", models.FloatField(blank=True, null=True, verbose_name="提交纬度")),
                ("gps_lng", models.FloatField(blank=True, null=True, verbose_name="提交经度")),
                ("quiz_score", models.PositiveIntegerField(blank=True, null=True, verbose_name="测验得分")),
                ("quiz_time_ms", models.PositiveIntegerField(blank=True, null=True, verbose_name="答题用时(ms)")),
                ("race_placement", models.PositiveIntegerField(blank=True, null=True, verbose_name="竞速名次")),
                ("race_time_ms", models.PositiveBigIntegerField(blank=True, null=True, verbose_name="竞速用时(ms)")),
                ("admin_notes", models.TextField(blank=True, verbose_name="审核备注")),
                ("reviewed_at", models.DateTimeField(blank=True, null=True, verbose_name="审核时间")),
                (
                    "once_key",
                    models.CharField(
                        blank=True, editable=False, max_length=64, null=True, unique=True, verbose_name="一次性占用键"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="提交时间")),
                (
                    "mission",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="missions.mission",
                        verbose_name="任务",
                    ),
                ),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="审核人",
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="mission_submissions",
                        to="teams.team",
                        verbose_name="队伍",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mission_submissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="参与者",
                    ),
                ),
            ],
            options={
                "verbose_name": "任务提交",
                "verbose_name_plural": "任务提交",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["mission", "status"], name="submission_mission_status_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "pending")),
                        fields=("user", "mission"),
                        name="submission_single_pending",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("race_placement__isnull", False)),
                        fields=("mission", "race_placement"),
                        name="submission_unique_race_placement",
                    ),
                ],
            },
        ),
    ]
