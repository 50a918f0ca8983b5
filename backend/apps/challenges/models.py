from __future__ import annotations

from django.conf import settings
from django.db import models

# 模型文件：定义挑战与挑战成绩的数据结构，不承载业务流程

User = settings.AUTH_USER_MODEL


class Challenge(models.Model):
    """
    挑战：
    - 类型决定按用时（升序）还是按得分排名，以及成绩记在队伍还是个人名下
    - 计分模式：名次积分表 / 仅前 N 名 / 完成即得固定分
    - 积分只发放一次，发放后状态为 completed，不再接受任何修改
    """

    class ChallengeType(models.TextChoices):
        TEAM_TIMED = "team_timed", "团队计时"
        INDIVIDUAL_TIMED = "individual_timed", "个人计时"
        TEAM_TASK = "team_task", "团队任务"
        INDIVIDUAL_TASK = "individual_task", "个人任务"

    class Status(models.TextChoices):
        PENDING = "pending", "未开始"
        ACTIVE = "active", "进行中"
        SCORING = "scoring", "计分中"
        COMPLETED = "completed", "已完成"

    class PointsMode(models.TextChoices):
        PLACEMENT = "placement", "按名次"
        TOP_N = "top_n", "仅前 N 名"
        FIXED = "fixed", "固定分"

    class ScoreDirection(models.TextChoices):
        DESC = "desc", "得分越高越好"
        ASC = "asc", "得分越低越好"

    TIMED_TYPES = (ChallengeType.TEAM_TIMED, ChallengeType.INDIVIDUAL_TIMED)
    INDIVIDUAL_TYPES = (ChallengeType.INDIVIDUAL_TIMED, ChallengeType.INDIVIDUAL_TASK)
    #: 可录入/修改成绩、可计算名次的状态
    EDITABLE_STATUSES = (Status.ACTIVE, Status.SCORING)

    title = models.CharField("标题", max_length=200)
    description = models.TextField("描述", blank=True)
    challenge_type = models.CharField("类型", max_length=20, choices=ChallengeType.choices)
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.PENDING)
    points_mode = models.CharField("计分模式", max_length=20, choices=PointsMode.choices, default=PointsMode.PLACEMENT)
    # {"1": 100, "2": 75, ...}
    points_distribution = models.JSONField("名次积分表", default=dict, blank=True)
    fixed_points = models.PositiveIntegerField("固定分", default=0)
    top_n = models.PositiveIntegerField("前 N 名", null=True, blank=True, help_text="为空时取积分表长度")
    score_direction = models.CharField(
        "得分方向", max_length=8, choices=ScoreDirection.choices, default=ScoreDirection.DESC
    )
    max_participants_per_team = models.PositiveIntegerField("每队参赛人数上限", null=True, blank=True)
    order_index = models.PositiveIntegerField("排序", default=0)
    points_awarded_at = models.DateTimeField("积分发放时间", null=True, blank=True)
    created_by = models.ForeignKey(
        User, verbose_name="创建人", related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["order_index", "id"]
        verbose_name = "挑战"
        verbose_name_plural = "挑战"

    def __str__(self) -> str:
        return self.title

    @property
    def is_timed(self) -> bool:
        return self.challenge_type in self.TIMED_TYPES

    @property
    def is_individual(self) -> bool:
        return self.challenge_type in self.INDIVIDUAL_TYPES


class ChallengeResult(models.Model):
    """
    挑战成绩：
    - 团队类型每队一条，个人类型每人一条（受每队人数上限约束）
    - placement / points_awarded 由名次计算写入，发放积分时按队伍汇总
    """

    challenge = models.ForeignKey(Challenge, verbose_name="挑战", related_name="results", on_delete=models.CASCADE)
    team = models.ForeignKey("teams.Team", verbose_name="队伍", related_name="challenge_results", on_delete=models.PROTECT)
    user = models.ForeignKey(
        User, verbose_name="参赛者", related_name="challenge_results", null=True, blank=True, on_delete=models.PROTECT
    )
    time_ms = models.PositiveBigIntegerField("用时(ms)", null=True, blank=True)
    score = models.IntegerField("得分", null=True, blank=True)
    placement = models.PositiveIntegerField("名次", null=True, blank=True)
    points_awarded = models.PositiveIntegerField("积分", default=0)
    notes = models.TextField("备注", blank=True)
    created_at = models.DateTimeField("录入时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["challenge_id", "id"]
        verbose_name = "挑战成绩"
        verbose_name_plural = "挑战成绩"
        constraints = [
            models.UniqueConstraint(
                fields=["challenge", "team"],
                condition=models.Q(user__isnull=True),
                name="challenge_result_once_per_team",
            ),
            models.UniqueConstraint(
                fields=["challenge", "user"],
                condition=models.Q(user__isnull=False),
                name="challenge_result_once_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.challenge_id}:{self.team_id}:{self.user_id or '-'}"
