from __future__ import annotations

from django.conf import settings
from django.db import models

# 模型定义：任务（含竞速任务）与参与者提交记录

User = settings.AUTH_USER_MODEL


class Mission(models.Model):
    """
    任务：
    - 类型决定判定方式：二维码/定位/测验自动判定，照片/人工需管理员审核
    - 竞速任务（is_race）额外带开关、开始时间、名次积分表与名次计数器
    """

    class MissionType(models.TextChoices):
        QR_CODE = "qr_code", "二维码"
        PHOTO = "photo", "照片"
        QUIZ = "quiz", "测验"
        GPS = "gps", "定位"
        MANUAL = "manual", "人工确认"

    class Status(models.TextChoices):
        ACTIVE = "active", "进行中"
        INACTIVE = "inactive", "未启用"

    class QuizMode(models.TextChoices):
        CLASSIC = "classic", "经典"
        SPEEDRUN = "speedrun", "竞速答题"

    #: 自动判定的类型：创建提交时即为终态
    AUTO_RESOLVED_TYPES = (MissionType.QR_CODE, MissionType.GPS, MissionType.QUIZ)
    #: 竞速任务只接受需人工审核的凭证
    RACE_TYPES = (MissionType.PHOTO, MissionType.MANUAL)

    title = models.CharField("标题", max_length=200)
    description = models.TextField("描述", blank=True)
    mission_type = models.CharField("类型", max_length=20, choices=MissionType.choices)
    xp_reward = models.PositiveIntegerField("经验奖励", default=0)
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.ACTIVE)
    # 二维码任务的期望值
    qr_code_value = models.CharField("二维码内容", max_length=255, blank=True)
    # 定位任务目标点与半径（米），半径为空时使用系统默认值
    location_name = models.CharField("地点名称", max_length=200, blank=True)
    location_lat = models.FloatField("纬度", null=True, blank=True)
    location_lng = models.FloatField("经度", null=True, blank=True)
    location_radius = models.PositiveIntegerField("判定半径", null=True, blank=True)
    # 测验：{"questions": [...], "passing_score": 60, "time_limit": 120, "mode": "classic"}
    quiz_data = models.JSONField("测验内容", default=dict, blank=True)
    photo_requirements = models.TextField("照片要求", blank=True)
    image_url = models.URLField("封面", blank=True)
    start_date = models.DateTimeField("开放时间", null=True, blank=True)
    end_date = models.DateTimeField("截止时间", null=True, blank=True)
    required_level = models.PositiveIntegerField("所需等级", default=1)
    max_completions = models.PositiveIntegerField("完成次数上限", null=True, blank=True, help_text="为空表示 1 次")
    # 竞速
    is_race = models.BooleanField("竞速任务", default=False)
    race_active = models.BooleanField("竞速进行中", default=False)
    race_started_at = models.DateTimeField("竞速开始时间", null=True, blank=True)
    race_points_distribution = models.JSONField("名次积分表", default=dict, blank=True)
    race_placement_seq = models.PositiveIntegerField("已分配名次", default=0)
    created_by = models.ForeignKey(
        User, verbose_name="创建人", related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "任务"
        verbose_name_plural = "任务"

    def __str__(self) -> str:
        return self.title

    @property
    def completion_limit(self) -> int:
        return self.max_completions or 1

    @property
    def is_auto_resolved(self) -> bool:
        return self.mission_type in self.AUTO_RESOLVED_TYPES and not self.is_race


class Submission(models.Model):
    """
    任务提交：
    - 自动判定类型创建即终态；照片/人工/竞速提交从 pending 经审核一次性迁移到 approved/rejected
    - once_key 唯一：测验的唯一一次作答、单次完成任务的通过记录都占用同一个键
    """

    class Status(models.TextChoices):
        PENDING = "pending", "待审核"
        APPROVED = "approved", "已通过"
        REJECTED = "rejected", "已驳回"

    user = models.ForeignKey(User, verbose_name="参与者", related_name="mission_submissions", on_delete=models.CASCADE)
    mission = models.ForeignKey(Mission, verbose_name="任务", related_name="submissions", on_delete=models.CASCADE)
    # 提交时所在队伍（竞速积分记在该队伍名下）
    team = models.ForeignKey(
        "teams.Team", verbose_name="队伍", related_name="mission_submissions", null=True, blank=True,
        on_delete=models.SET_NULL,
    )
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.PENDING)
    xp_awarded = models.PositiveIntegerField("获得奖励", default=0)
    photo_url = models.URLField("照片", max_length=500, blank=True)
    note = models.TextField("说明", blank=True)
    gps_lat = models.FloatField("提交纬度", null=True, blank=True)
    gps_lng = models.FloatField("提交经度", null=True, blank=True)
    quiz_score = models.PositiveIntegerField("测验得分", null=True, blank=True)
    quiz_time_ms = models.PositiveIntegerField("答题用时(ms)", null=True, blank=True)
    race_placement = models.PositiveIntegerField("竞速名次", null=True, blank=True)
    race_time_ms = models.PositiveBigIntegerField("竞速用时(ms)", null=True, blank=True)
    admin_notes = models.TextField("审核备注", blank=True)
    reviewed_by = models.ForeignKey(
        User, verbose_name="审核人", related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    reviewed_at = models.DateTimeField("审核时间", null=True, blank=True)
    once_key = models.CharField("一次性占用键", max_length=64, null=True, blank=True, unique=True, editable=False)
    created_at = models.DateTimeField("提交时间", auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "任务提交"
        verbose_name_plural = "任务提交"
        indexes = [models.Index(fields=["mission", "status"], name="submission_mission_status_idx")]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "mission"],
                condition=models.Q(status="pending"),
                name="submission_single_pending",
            ),
            models.UniqueConstraint(
                fields=["mission", "race_placement"],
                condition=models.Q(race_placement__isnull=False),
                name="submission_unique_race_placement",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}@{self.mission_id}:{self.status}"

    @staticmethod
    def build_once_key(mission_id: int, user_id: int) -> str:
        return f"{mission_id}:{user_id}"
