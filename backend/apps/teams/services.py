"""
队伍服务：
- 管理员创建/修改队伍、分配与移出成员
- 队伍列表与详情（成员数、人均经验、成员贡献）
- 队伍累计积分只经由 apps.ledger 入账，本模块不写 total_xp
"""

from __future__ import annotations

from typing import Any

from apps.accounts.models import User
from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import ConflictError, TeamNotMemberError, ValidationError
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_events import TEAM_ASSIGNED
from apps.common.ws_utils import broadcast_notify
from .models import Team
from .repo import TeamRepo
from .schemas import TeamCreateSchema, TeamMemberSchema, TeamUpdateSchema

logger = get_logger(__name__)


def serialize_team(team: Team, *, members: list[User] | None = None) -> dict[str, Any]:
    """队伍序列化：优先使用注解的成员数，避免逐条计数"""
    member_count = getattr(team, "active_member_count", None)
    if member_count is None:
        member_count = team.member_count
    payload: dict[str, Any] = {
        "id": team.id,
        "name": team.name,
        "slug": team.slug,
        "description": team.description,
        "color": team.color,
        "emoji": team.emoji,
        "total_xp": team.total_xp,
        "member_count": member_count,
        "avg_xp_per_member": team.total_xp // member_count if member_count else 0,
        "is_active": team.is_active,
    }
    if members is not None:
        payload["members"] = [
            {
                "id": m.id,
                "username": m.username,
                "nickname": m.display_name,
                "total_xp": m.total_xp,
                "level": m.level,
                "missions_completed": getattr(m, "missions_completed", None),
            }
            for m in members
        ]
    return payload


class TeamCreateService(BaseService[Team]):
    """
    创建队伍（管理员）：自动生成唯一 slug，名称不可重复
    """

    admin_only = True

    def __init__(self, team_repo: TeamRepo | None = None):
        self.team_repo = team_repo or TeamRepo()

    def perform(self, user: User, schema: TeamCreateSchema) -> Team:
        if self.team_repo.exists(name=schema.name):
            raise ConflictError(message="队伍名称已存在")
        team = self.team_repo.create(
            {
                "name": schema.name,
                "slug": self.team_repo.generate_slug(schema.name),
                "description": schema.description,
                "color": schema.color,
                "emoji": schema.emoji,
                "order_index": schema.order_index,
            }
        )
        logger.info("创建队伍", extra=logger_extra({"team_id": team.id, "admin_id": user.id}))
        return team


class TeamUpdateService(BaseService[Team]):
    """修改队伍资料（管理员）"""

    admin_only = True

    def __init__(self, team_repo: TeamRepo | None = None):
        self.team_repo = team_repo or TeamRepo()

    def perform(self, user: User, team_id: int, schema: TeamUpdateSchema) -> Team:
        team = self.team_repo.get_by_id(team_id)
        data = schema.to_dict(exclude_none=True)
        if "name" in data and self.team_repo.filter(name=data["name"]).exclude(pk=team.pk).exists():
            raise ConflictError(message="队伍名称已存在")
        team = self.team_repo.update(team, data)
        logger.info("修改队伍", extra=logger_extra({"team_id": team.id, "fields": sorted(data)}))
        return team


class TeamMemberAssignService(BaseService[User]):
    """
    分配成员（管理员）：
    - 参与者同一时间只属于一个队伍，改派直接覆盖
    - 已获得的个人经验不随队伍迁移，队伍积分只累计加入后的入账
    """

    admin_only = True

    def __init__(self, team_repo: TeamRepo | None = None, user_repo: UserRepo | None = None):
        self.team_repo = team_repo or TeamRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, user: User, team_id: int, schema: TeamMemberSchema) -> User:
        team = self.team_repo.get_by_id(team_id)
        if not team.is_active:
            raise ValidationError(message="队伍已停用，无法分配成员")
        member = self.user_repo.get_by_id(schema.user_id)
        if member.team_id == team.id:
            raise ConflictError(message="该参与者已在当前队伍中")
        previous_team_id = member.team_id
        member = self.user_repo.update(member, {"team": team})
        logger.info(
            "分配队伍成员",
            extra=logger_extra(
                {"team_id": team.id, "user_id": member.id, "previous_team_id": previous_team_id}
            ),
        )
        member_id = member.id
        self.after_commit(
            lambda: broadcast_notify(member_id, {"event": TEAM_ASSIGNED, "team_id": team.id, "team": team.name})
        )
        return member


class TeamMemberRemoveService(BaseService[User]):
    """移出成员（管理员）"""

    admin_only = True

    def __init__(self, user_repo: UserRepo | None = None):
        self.user_repo = user_repo or UserRepo()

    def perform(self, user: User, team_id: int, schema: TeamMemberSchema) -> User:
        member = self.user_repo.get_by_id(schema.user_id)
        if member.team_id != team_id:
            raise TeamNotMemberError()
        member = self.user_repo.update(member, {"team": None})
        logger.info("移出队伍成员", extra=logger_extra({"team_id": team_id, "user_id": member.id}))
        return member


class TeamDetailService(BaseService[dict]):
    """队伍详情：成员按经验降序，附带各自已完成任务数"""

    atomic_enabled = False

    def __init__(self, team_repo: TeamRepo | None = None, user_repo: UserRepo | None = None):
        self.team_repo = team_repo or TeamRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, team_id: int) -> dict:
        team = self.team_repo.get_by_id(team_id, queryset=self.team_repo.with_member_count())
        members = list(self.user_repo.team_members(team.id))
        return serialize_team(team, members=members)
