"""
积分账本模型

每一次非零入账写入一条不可变的 CreditEntry；
(source_type, source_id, target_key) 唯一约束保证同一来源对同一对象只入账一次
"""

from __future__ import annotations

from django.conf import settings
from django.db import models


class CreditEntry(models.Model):
    """
    积分入账流水：
    - target_key 为 user:<id> 或 team:<id>
    - balance_after 为入账后对象的累计积分，便于对账
    """

    class SourceType(models.TextChoices):
        MISSION_SUBMISSION = "mission_submission", "任务提交"
        RACE_SUBMISSION = "race_submission", "竞速名次"
        AUCTION = "auction", "拍卖成交"
        CHALLENGE = "challenge", "挑战积分"

    class TargetType(models.TextChoices):
        USER = "user", "参与者"
        TEAM = "team", "队伍"

    source_type = models.CharField("来源类型", max_length=32, choices=SourceType.choices)
    source_id = models.PositiveBigIntegerField("来源ID")
    target_type = models.CharField("入账对象类型", max_length=8, choices=TargetType.choices)
    target_key = models.CharField("入账对象", max_length=40, db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="参与者",
        related_name="credit_entries",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
    )
    team = models.ForeignKey(
        "teams.Team",
        verbose_name="队伍",
        related_name="credit_entries",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
    )
    amount = models.PositiveIntegerField("入账积分")
    balance_after = models.PositiveIntegerField("入账后累计")
    note = models.CharField("备注", max_length=200, blank=True)
    created_at = models.DateTimeField("入账时间", auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "积分流水"
        verbose_name_plural = "积分流水"
        constraints = [
            models.UniqueConstraint(
                fields=["source_type", "source_id", "target_key"],
                name="credit_entry_once_per_source",
            ),
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="credit_entry_amount_positive"),
        ]
        indexes = [models.Index(fields=["source_type", "source_id"], name="credit_source_idx")]

    def __str__(self) -> str:
        return f"{self.target_key} +{self.amount} ({self.source_type}#{self.source_id})"

    @staticmethod
    def key_for(target_type: str, target_id: int) -> str:
        return f"{target_type}:{target_id}"
