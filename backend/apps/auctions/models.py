from __future__ import annotations

from django.conf import settings
from django.db import models

# 模型定义：拍卖（队伍竞拍单个物品）与出价记录

User = settings.AUTH_USER_MODEL


class Auction(models.Model):
    """
    拍卖：
    - 状态单向迁移 pending → active → {ended, cancelled}
    - current_price 只增不减，只通过条件更新推进
    - 成交后 winning_* 字段记录领先出价，获胜队伍获得 points_for_win
    """

    class Status(models.TextChoices):
        PENDING = "pending", "未开始"
        ACTIVE = "active", "进行中"
        ENDED = "ended", "已结束"
        CANCELLED = "cancelled", "已取消"

    #: 终态：不再接受任何迁移
    CLOSED_STATUSES = (Status.ENDED, Status.CANCELLED)

    item_name = models.CharField("拍品名称", max_length=200)
    item_description = models.TextField("拍品描述", blank=True)
    item_image_url = models.URLField("拍品图片", max_length=500, blank=True)
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.PENDING)
    starting_price = models.PositiveIntegerField("起拍价", default=0)
    min_bid_increment = models.PositiveIntegerField("最小加价幅度", default=10)
    current_price = models.PositiveIntegerField("当前价格", default=0)
    points_for_win = models.PositiveIntegerField("获胜积分", default=100)
    bid_count = models.PositiveIntegerField("出价次数", default=0)
    winning_team = models.ForeignKey(
        "teams.Team", verbose_name="获胜队伍", related_name="won_auctions", null=True, blank=True,
        on_delete=models.PROTECT,
    )
    winning_user = models.ForeignKey(
        User, verbose_name="获胜出价人", related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    winning_amount = models.PositiveIntegerField("成交价", null=True, blank=True)
    started_at = models.DateTimeField("开始时间", null=True, blank=True)
    ended_at = models.DateTimeField("结束时间", null=True, blank=True)
    created_by = models.ForeignKey(
        User, verbose_name="创建人", related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "拍卖"
        verbose_name_plural = "拍卖"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_price__gte=models.F("starting_price")),
                name="auction_price_not_below_start",
            ),
            models.CheckConstraint(condition=models.Q(min_bid_increment__gte=1), name="auction_increment_positive"),
        ]

    def __str__(self) -> str:
        return self.item_name

    @property
    def minimum_bid(self) -> int:
        return self.current_price + self.min_bid_increment


class Bid(models.Model):
    """
    出价：始终记在出价人所在队伍名下
    同一拍卖同一时刻至多一条 is_leading=True（条件唯一约束兜底）
    """

    auction = models.ForeignKey(Auction, verbose_name="拍卖", related_name="bids", on_delete=models.CASCADE)
    team = models.ForeignKey("teams.Team", verbose_name="队伍", related_name="auction_bids", on_delete=models.PROTECT)
    user = models.ForeignKey(User, verbose_name="出价人", related_name="auction_bids", on_delete=models.PROTECT)
    amount = models.PositiveIntegerField("出价")
    is_leading = models.BooleanField("领先", default=False)
    created_at = models.DateTimeField("出价时间", auto_now_add=True)

    class Meta:
        ordering = ["-amount", "-created_at"]
        verbose_name = "出价"
        verbose_name_plural = "出价"
        constraints = [
            models.UniqueConstraint(
                fields=["auction"],
                condition=models.Q(is_leading=True),
                name="bid_single_leader",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.auction_id}:{self.team_id}:{self.amount}"
