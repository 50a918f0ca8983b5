# apps/common/utils/redis_keys.py

from __future__ import annotations

"""
Redis 键名集中管理，避免各模块随意拼接带来不一致
"""


def leaderboard_key(kind: str) -> str:
    """排行榜缓存键，kind 取 users / teams"""
    return f"ledger:leaderboard:{kind}"


def ws_event_throttle_key(key: str) -> str:
    """WebSocket 事件节流键"""
    return f"ws:event:{key}:throttle"
