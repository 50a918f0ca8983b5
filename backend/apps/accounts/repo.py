"""账户模块的数据访问层"""

from __future__ import annotations

from django.db.models import Count, Q, QuerySet

from apps.common.base.base_repo import BaseRepo
from .models import User


class UserRepo(BaseRepo[User]):
    """
    参与者仓储：
    - 资料读取、队伍成员查询
    - 累计经验与等级只经由 increment / compare_and_set 修改
    """

    model = User
    not_found_message = "参与者不存在"

    def get_queryset(self) -> QuerySet[User]:
        return super().get_queryset().select_related("team")

    def with_completed_missions(self, queryset: QuerySet[User] | None = None) -> QuerySet[User]:
        """附带已通过的任务提交数（排行榜 / 队伍成员列表展示）"""
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.annotate(
            missions_completed=Count("mission_submissions", filter=Q(mission_submissions__status="approved"))
        )

    def team_members(self, team_id: int) -> QuerySet[User]:
        return self.with_completed_missions(self.filter(team_id=team_id, is_active=True)).order_by("-total_xp", "id")

    def set_level(self, user_id: int, level: int) -> None:
        """等级为派生字段：只在入账事务内按新的累计经验重算后写回"""
        self.model._default_manager.filter(pk=user_id).update(level=level)
