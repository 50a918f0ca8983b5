from __future__ import annotations

from django.db.models import Q, QuerySet

from apps.common.base.base_repo import BaseRepo
from .models import CreditEntry


class CreditEntryRepo(BaseRepo[CreditEntry]):
    """积分流水仓储：只追加，不更新不删除"""

    model = CreditEntry
    not_found_message = "积分流水不存在"

    def for_source(self, source_type: str, source_id: int) -> QuerySet[CreditEntry]:
        return self.filter(source_type=source_type, source_id=source_id)

    def history(self, *, user_id: int, team_id: int | None = None) -> QuerySet[CreditEntry]:
        """个人流水；传入 team_id 时合并队伍流水"""
        cond = Q(target_key=CreditEntry.key_for(CreditEntry.TargetType.USER, user_id))
        if team_id:
            cond |= Q(target_key=CreditEntry.key_for(CreditEntry.TargetType.TEAM, team_id))
        return self.filter().filter(cond).select_related("team", "user")

    def sum_for(self, target_key: str) -> int:
        return sum(self.filter(target_key=target_key).values_list("amount", flat=True))
