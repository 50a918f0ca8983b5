from __future__ import annotations

from typing import Any

from django.conf import settings
from django.core.cache import cache

from apps.common.base.base_service import BaseService
from apps.common.infra.logger import get_logger, logger_extra
from .models import SystemConfig
from .repo import SystemConfigRepo

logger = get_logger(__name__)


class ConfigService(BaseService[SystemConfig]):
    """
    系统配置服务：竞赛规则参数的动态读取

    核心功能：
    1. 配置优先级：后台配置 > settings.py 默认值 > 传入默认值
    2. 自动初始化：migrate 后把 settings 中的默认值写入数据库，供管理员修改
    3. 缓存机制：Django cache 缓存 5 分钟，不可用时降级直接查库
    4. 配置变更：保存/删除 SystemConfig 时通过信号调用 invalidate()
    """

    cache_prefix = "system_config:"
    cache_timeout = 300

    # 支持后台覆盖的配置清单：key -> 类型/描述
    SUPPORTED_CONFIGS = {
        "LEVEL_THRESHOLDS": {
            "type": SystemConfig.ValueType.JSON,
            "desc": "等级经验门槛（JSON 数组，第 i 项为升到 i+1 级所需累计经验）",
        },
        "DEFAULT_GPS_RADIUS_METERS": {
            "type": SystemConfig.ValueType.INT,
            "desc": "定位任务默认判定半径（米）",
        },
        "DEFAULT_AUCTION_MIN_INCREMENT": {
            "type": SystemConfig.ValueType.INT,
            "desc": "拍卖默认最小加价幅度",
        },
        "DEFAULT_AUCTION_POINTS_FOR_WIN": {
            "type": SystemConfig.ValueType.INT,
            "desc": "拍卖默认获胜积分",
        },
        "DEFAULT_POINTS_DISTRIBUTION": {
            "type": SystemConfig.ValueType.JSON,
            "desc": "竞速/挑战默认名次积分表（JSON 对象，键为名次）",
        },
        "DEFAULT_CHALLENGE_FIXED_POINTS": {
            "type": SystemConfig.ValueType.INT,
            "desc": "挑战固定积分模式的默认分值",
        },
        "LEADERBOARD_CACHE_TTL": {
            "type": SystemConfig.ValueType.INT,
            "desc": "排行榜缓存时间（秒）",
        },
        "LEADERBOARD_PUSH_TOP": {
            "type": SystemConfig.ValueType.INT,
            "desc": "排行榜快照推送条目数量",
        },
        "LEADERBOARD_PUSH_INTERVAL_SECONDS": {
            "type": SystemConfig.ValueType.INT,
            "desc": "排行榜快照推送节流间隔（秒）",
        },
    }

    def __init__(self, repo: SystemConfigRepo | None = None):
        self.repo = repo or SystemConfigRepo()

    def _cache_key(self, key: str) -> str:
        return f"{self.cache_prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值：后台配置 > settings > default
        """
        cache_key = self._cache_key(key)
        try:
            if (cached := cache.get(cache_key)) is not None:
                return cached
        except Exception:  # noqa: BLE001
            logger.warning("缓存读取失败，降级到数据库查询", extra=logger_extra({"key": key}))

        cfg = self.repo.get_by_key(key)
        if cfg is not None and cfg.value != "":
            value = cfg.cast_value()
        else:
            value = getattr(settings, key, None)
            if value is None:
                value = default

        try:
            cache.set(cache_key, value, timeout=self.cache_timeout)
        except Exception:  # noqa: BLE001
            logger.warning("缓存写入失败", extra=logger_extra({"key": key}))
        return value

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("配置值不是整数，使用默认值", extra=logger_extra({"key": key, "value": value}))
            return default

    def ensure_supported_configs(self) -> None:
        """确保支持的配置项都存在记录，缺失时按 settings 默认值创建"""
        existing = self.repo.existing_map()
        to_create = []
        for key, meta in self.SUPPORTED_CONFIGS.items():
            value_type = meta["type"]
            cfg = existing.get(key)
            if cfg is not None:
                if cfg.value_type != value_type or cfg.description != meta["desc"]:
                    self.repo.update(cfg, {"value_type": value_type, "description": meta["desc"]})
                continue
            to_create.append(
                SystemConfig(
                    key=key,
                    value=SystemConfig.dump_value(getattr(settings, key, None), value_type),
                    value_type=value_type,
                    description=meta["desc"],
                )
            )
        if to_create:
            self.repo.model.objects.bulk_create(to_create)
        self.invalidate()

    def invalidate(self, key: str | None = None) -> None:
        """清理配置缓存；key 为空时清理全部支持项"""
        keys = [key] if key else list(self.SUPPORTED_CONFIGS)
        try:
            cache.delete_many([self._cache_key(k) for k in keys])
        except Exception:  # noqa: BLE001
            logger.warning("配置缓存清理失败", extra=logger_extra({"keys": keys}))

    def public_rules(self) -> dict[str, Any]:
        """对外公开的规则参数，供前端展示等级进度与积分说明"""
        return {key.lower(): self.get(key) for key in self.SUPPORTED_CONFIGS if not key.startswith("LEADERBOARD_")}

    def perform(self, *args, **kwargs):
        return None
