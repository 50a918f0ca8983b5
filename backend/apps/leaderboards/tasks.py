from __future__ import annotations

from celery import shared_task

from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_events import LEADERBOARD_SNAPSHOT
from apps.common.ws_utils import allow_broadcast, broadcast_feed
from apps.system.services import ConfigService
from .services import build_snapshot

logger = get_logger(__name__)


@shared_task(name="leaderboards.push_snapshot")
def push_leaderboard_snapshot() -> bool:
    """周期推送排行榜快照到公共动态组；节流窗口内重复触发直接跳过"""
    config = ConfigService()
    interval = config.get_int("LEADERBOARD_PUSH_INTERVAL_SECONDS", 15)
    if not allow_broadcast(LEADERBOARD_SNAPSHOT, interval_seconds=interval):
        return False
    snapshot = build_snapshot(config.get_int("LEADERBOARD_PUSH_TOP", 10))
    broadcast_feed({"event": LEADERBOARD_SNAPSHOT, **snapshot})
    logger.info(
        "推送排行榜快照",
        extra=logger_extra({"users": len(snapshot["users"]), "teams": len(snapshot["teams"])}),
    )
    return True
