"""
参与者模型

- 扩展 User：昵称、头像、所属队伍、累计经验与等级
- total_xp / level 为聚合值，只能经由 apps.ledger 的积分入账修改，不提供扣减
- is_staff 即管理员标记（审核、结算、发放积分）
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    参与者（Participant）：
    - 业务场景：完成任务、参加竞速/挑战、代表队伍出价
    - 功能：保存时自动补齐昵称
    """

    nickname = models.CharField("昵称", max_length=40, blank=True, help_text="默认等于用户名")
    avatar_url = models.URLField("头像", blank=True)
    team = models.ForeignKey(
        "teams.Team",
        verbose_name="所属队伍",
        related_name="members",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    total_xp = models.PositiveIntegerField("累计经验", default=0)
    level = models.PositiveIntegerField("等级", default=1)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta(AbstractUser.Meta):  # type: ignore[misc]
        ordering = ["-date_joined"]
        verbose_name = "参与者"
        verbose_name_plural = "参与者"
        constraints = [
            models.CheckConstraint(condition=models.Q(total_xp__gte=0), name="user_total_xp_non_negative"),
        ]

    def save(self, *args, **kwargs):
        if not self.nickname:
            self.nickname = self.username
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.nickname or self.username
