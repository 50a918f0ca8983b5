from __future__ import annotations

from django.db import models


class Team(models.Model):
    """
    队伍模型：
    - 由管理员创建并分配成员，拍卖出价、竞速与挑战积分都记在队伍名下
    - total_xp 为聚合值（成员经验 + 队伍赛事积分），只能经由积分入账原子累加
    """

    name = models.CharField("队伍名称", max_length=120, unique=True)
    slug = models.SlugField("队伍标识", max_length=150, unique=True)
    description = models.TextField("简介", blank=True)
    color = models.CharField("主题色", max_length=16, default="#3b82f6")
    emoji = models.CharField("图标", max_length=16, blank=True, default="")
    total_xp = models.PositiveIntegerField("累计积分", default=0)
    is_active = models.BooleanField("有效", default=True)
    order_index = models.PositiveIntegerField("排序", default=0)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["order_index", "name"]
        verbose_name = "队伍"
        verbose_name_plural = "队伍"
        constraints = [
            models.CheckConstraint(condition=models.Q(total_xp__gte=0), name="team_total_xp_non_negative"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def member_count(self) -> int:
        return self.members.filter(is_active=True).count()  # type: ignore[attr-defined]

    @property
    def avg_xp_per_member(self) -> int:
        count = self.member_count
        return self.total_xp // count if count else 0
