"""
Redis 客户端封装：
- 统一读取 settings 中的 Redis 配置，提供 get/set/delete/json 存取与短锁
- Redis 只承载可丢失的数据（排行榜缓存、推送节流），不可用时记录警告并返回空值，
  由调用方回退到数据库
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

import redis
from django.conf import settings

from apps.common.infra.logger import get_logger, logger_extra

_logger = get_logger(__name__)

_pool: Optional[redis.ConnectionPool] = None


def _get_client() -> Optional[redis.Redis]:
    """
    获取 Redis 客户端；连接池创建失败时返回 None
    """
    global _pool
    if not getattr(settings, "REDIS_ENABLED", True):
        return None
    if _pool is None:
        try:
            _pool = redis.ConnectionPool(
                host=getattr(settings, "REDIS_HOST", "127.0.0.1"),
                port=int(getattr(settings, "REDIS_PORT", 6379)),
                db=int(getattr(settings, "REDIS_DB_CACHE", 0)),
                password=os.getenv("REDIS_PASSWORD") or None,
                decode_responses=True,
                socket_connect_timeout=float(os.getenv("REDIS_CONNECT_TIMEOUT", 0.2)),
                socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", 0.5)),
            )
        except Exception:
            _logger.warning("Redis 连接池初始化失败，已跳过缓存", exc_info=True)
            return None
    return redis.Redis(connection_pool=_pool)


def available() -> bool:
    """是否启用了 Redis（只看配置与连接池，不做网络探测）"""
    return _get_client() is not None


def set(key: str, value: Any, ex: Optional[int] = None) -> None:
    """设置键值，可选过期时间（秒）"""
    client = _get_client()
    if client is None:
        return
    try:
        client.set(key, value, ex=ex)
    except redis.RedisError:
        _logger.warning("Redis 写入失败，已跳过", extra=logger_extra({"key": key}))


def get(key: str) -> Optional[Any]:
    client = _get_client()
    if client is None:
        return None
    try:
        return client.get(key)
    except redis.RedisError:
        _logger.warning("Redis 读取失败，已跳过", extra=logger_extra({"key": key}))
        return None


def delete(*keys: str) -> None:
    """删除键，失败时跳过"""
    client = _get_client()
    if client is None or not keys:
        return
    try:
        client.delete(*keys)
    except redis.RedisError:
        _logger.warning("Redis 删除键失败，已跳过", extra=logger_extra({"keys": list(keys)}))


def acquire_lock(key: str, *, ex: Optional[int] = None) -> bool:
    """
    SET NX 获取短锁；Redis 不可用时返回 True，由调用方照常执行
    """
    client = _get_client()
    if client is None:
        return True
    try:
        return bool(client.set(key, "1", nx=True, ex=ex))
    except redis.RedisError:
        _logger.warning("Redis 加锁失败，按未加锁处理", extra=logger_extra({"key": key}))
        return True


def set_json(key: str, data: Any, ex: Optional[int] = None) -> None:
    set(key, json.dumps(data, ensure_ascii=False, default=str), ex=ex)


def get_json(key: str) -> Optional[Any]:
    """获取 JSON 数据并反序列化，失败返回 None"""
    raw = get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None
