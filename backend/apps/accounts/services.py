"""
账户服务：个人资料与统计

参与者的经验/等级由 apps.ledger 入账维护，本模块只读
"""

from __future__ import annotations

from typing import Any

from django.db.models import Count, Q

from apps.common.base.base_service import BaseService
from apps.common.infra.logger import get_logger, logger_extra
from .levels import level_progress
from .models import User
from .repo import UserRepo
from .schemas import ProfileUpdateSchema

logger = get_logger(__name__)


def serialize_user(user: User, *, include_team: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": user.id,
        "username": user.username,
        "nickname": user.display_name,
        "avatar_url": user.avatar_url,
        "total_xp": user.total_xp,
        "level": user.level,
        "team_id": user.team_id,
        "is_admin": user.is_staff,
    }
    if include_team and user.team_id:
        team = user.team
        data["team"] = {"id": team.id, "name": team.name, "color": team.color, "emoji": team.emoji}
    return data


class ProfileService(BaseService[dict]):
    """
    个人主页：资料 + 等级进度 + 任务统计
    """

    atomic_enabled = False

    def __init__(self, user_repo: UserRepo | None = None):
        self.user_repo = user_repo or UserRepo()

    def perform(self, user: User) -> dict:
        fresh = self.user_repo.get_by_id(user.pk)
        stats = fresh.mission_submissions.aggregate(
            missions_completed=Count("id", filter=Q(status="approved")),
            missions_pending=Count("id", filter=Q(status="pending")),
            missions_rejected=Count("id", filter=Q(status="rejected")),
        )
        rank = self.user_repo.filter(is_active=True, is_staff=False, total_xp__gt=fresh.total_xp).count() + 1
        data = serialize_user(fresh)
        data["progress"] = level_progress(fresh.total_xp)
        data["stats"] = {**stats, "rank": rank}
        return data


class ProfileUpdateService(BaseService[User]):
    """
    修改昵称/头像；不涉及经验、等级与队伍
    """

    def __init__(self, user_repo: UserRepo | None = None):
        self.user_repo = user_repo or UserRepo()

    def perform(self, user: User, schema: ProfileUpdateSchema) -> User:
        data = schema.to_dict(exclude_none=True)
        updated = self.user_repo.update(user, data)
        logger.info("更新个人资料", extra=logger_extra({"user_id": user.id, "fields": sorted(data)}))
        return updated
