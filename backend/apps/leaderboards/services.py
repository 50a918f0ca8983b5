"""
排行榜：账本之上的只读投影

- 参与者榜：累计经验降序，同分按等级、已完成任务数、注册先后
- 队伍榜：累计积分降序，附带成员数与贡献最高的成员
- 结果写入 Redis 并设置 TTL；入账提交后清除缓存，读者允许短暂滞后
"""

from __future__ import annotations

from typing import Any

from django.db.models import Count, Q
from django.utils import timezone

from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger
from apps.common.utils.redis_keys import leaderboard_key
from apps.system.services import ConfigService
from apps.teams.repo import TeamRepo

logger = get_logger(__name__)

USERS = "users"
TEAMS = "teams"


def invalidate_leaderboards() -> None:
    """入账提交后调用：清除两张榜单的缓存"""
    redis_client.delete(leaderboard_key(USERS), leaderboard_key(TEAMS))


def _cache_ttl() -> int:
    return ConfigService().get_int("LEADERBOARD_CACHE_TTL", 30)


class UserLeaderboardService(BaseService[list[dict]]):
    """参与者经验排行（不含管理员）"""

    atomic_enabled = False

    def __init__(self, user_repo: UserRepo | None = None):
        self.user_repo = user_repo or UserRepo()

    def perform(self, limit: int = 50) -> list[dict]:
        # 缓存按构建时的截取长度记录，参与者不足 limit 时仍可命中
        cached = redis_client.get_json(leaderboard_key(USERS))
        if isinstance(cached, dict) and cached.get("limit", 0) >= limit:
            return cached.get("rows", [])[:limit]
        size = max(limit, 100)
        rows = self._build(size)
        redis_client.set_json(leaderboard_key(USERS), {"limit": size, "rows": rows}, ex=_cache_ttl())
        return rows[:limit]

    def _build(self, limit: int) -> list[dict]:
        qs = (
            self.user_repo.with_completed_missions(self.user_repo.filter(is_active=True, is_staff=False))
            .order_by("-total_xp", "-level", "-missions_completed", "date_joined", "id")[:limit]
        )
        rows: list[dict[str, Any]] = []
        for rank, user in enumerate(qs, start=1):
            rows.append(
                {
                    "rank": rank,
                    "user_id": user.id,
                    "nickname": user.display_name,
                    "avatar_url": user.avatar_url,
                    "total_xp": user.total_xp,
                    "level": user.level,
                    "missions_completed": user.missions_completed,
                    "team_id": user.team_id,
                    "team": user.team.name if user.team_id else None,
                }
            )
        return rows


class TeamLeaderboardService(BaseService[list[dict]]):
    """队伍积分排行，附带前三名贡献成员"""

    atomic_enabled = False
    top_contributors = 3

    def __init__(self, team_repo: TeamRepo | None = None, user_repo: UserRepo | None = None):
        self.team_repo = team_repo or TeamRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self) -> list[dict]:
        cached = redis_client.get_json(leaderboard_key(TEAMS))
        if cached is not None:
            return cached
        rows = self._build()
        redis_client.set_json(leaderboard_key(TEAMS), rows, ex=_cache_ttl())
        return rows

    def _build(self) -> list[dict]:
        teams = self.team_repo.active_teams().order_by("-total_xp", "order_index", "name")
        rows: list[dict[str, Any]] = []
        for rank, team in enumerate(teams, start=1):
            contributors = self.user_repo.filter(team_id=team.id, is_active=True).order_by("-total_xp", "id")[
                : self.top_contributors
            ]
            member_count = team.active_member_count
            rows.append(
                {
                    "rank": rank,
                    "team_id": team.id,
                    "name": team.name,
                    "color": team.color,
                    "emoji": team.emoji,
                    "total_xp": team.total_xp,
                    "member_count": member_count,
                    "avg_xp_per_member": team.total_xp // member_count if member_count else 0,
                    "top_contributors": [
                        {"user_id": u.id, "nickname": u.display_name, "total_xp": u.total_xp} for u in contributors
                    ],
                }
            )
        return rows


def build_snapshot(top: int) -> dict:
    """推送用快照：两张榜单前 N 名"""
    return {
        "users": UserLeaderboardService().execute(top),
        "teams": TeamLeaderboardService().execute()[:top],
        "generated_at": timezone.now().isoformat(),
        "top_limit": top,
    }
