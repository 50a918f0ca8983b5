# -*- coding: utf-8 -*-
"""
WebSocket 工具：封装 Channels 组广播，避免调用方关心 channel layer 细节
- 统一附带自增序号 seq，便于前端按序处理/去重
- 分组：个人 user_<id>、队伍 team_<id>、公共动态 ledger
- 广播失败只记录日志，不影响已提交的业务
"""

from __future__ import annotations

import itertools
import time

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.redis_keys import ws_event_throttle_key

logger = get_logger(__name__)
_seq_generator = itertools.count(1)
_last_event_time: dict[str, float] = {}

FEED_GROUP = "ledger"


def user_group(user_id: int) -> str:
    return f"user_{user_id}"


def team_group(team_id: int) -> str:
    return f"team_{team_id}"


def _safe_group_send(group: str, payload: dict) -> None:
    """
    安全发送组消息：没有 channel layer 时直接跳过
    """
    layer = get_channel_layer()
    if layer is None:
        return
    try:
        async_to_sync(layer.group_send)(group, {"type": "broadcast", **payload})
    except Exception:
        logger.warning(
            "WebSocket 广播失败，已忽略",
            extra=logger_extra({"group": group, "event": payload.get("event")}),
            exc_info=True,
        )


def allow_broadcast(key: str, *, interval_seconds: int) -> bool:
    """
    简单节流：同一 key 在 interval_seconds 内仅发送一次
    - 优先 Redis SET NX；Redis 不可用时退化为进程内节流
    """
    if not redis_client.available():
        now = time.time()
        if now - _last_event_time.get(key, 0) < interval_seconds:
            return False
        _last_event_time[key] = now
        return True
    return redis_client.acquire_lock(ws_event_throttle_key(key), ex=interval_seconds)


def broadcast_notify(user_id: int, payload: dict) -> None:
    """向指定用户组广播事件"""
    _safe_group_send(user_group(user_id), {"seq": next(_seq_generator), **payload})


def broadcast_team(team_id: int, payload: dict) -> None:
    """向队伍组广播事件"""
    _safe_group_send(team_group(team_id), {"seq": next(_seq_generator), **payload})


def broadcast_feed(payload: dict) -> None:
    """向公共动态组广播事件（大屏/排行榜订阅）"""
    _safe_group_send(FEED_GROUP, {"seq": next(_seq_generator), **payload})
