"""
统一限速封装（apps.common.throttles）

- 覆盖 DRF 默认限速行为，统一抛 RateLimitError，保留 wait 秒数
- 出价、任务提交按用户限速；速率配置见 settings.REST_FRAMEWORK.DEFAULT_THROTTLE_RATES
"""

from __future__ import annotations

from typing import Optional

from rest_framework.throttling import SimpleRateThrottle

from .exceptions import RateLimitError
from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)


class UserScopedRateThrottle(SimpleRateThrottle):
    """
    按用户限速的基类：未登录时按 IP
    key = throttle_<scope>_<ident>
    """

    scope = ""
    failure_message = "请求过于频繁，请稍后再试"

    def get_cache_key(self, request, view) -> Optional[str]:
        user = getattr(request, "user", None)
        ident = user.pk if user is not None and user.is_authenticated else self.get_ident(request)
        return f"throttle_{self.scope}_{ident}"

    def throttle_failure(self):
        wait = self.wait()
        logger.warning("限流触发", extra=logger_extra({"scope": self.scope, "wait": wait}))
        raise RateLimitError(message=self.failure_message, extra={"wait": wait})


class BidRateThrottle(UserScopedRateThrottle):
    """拍卖出价限速"""

    scope = "bid"
    failure_message = "出价过于频繁，请稍后再试"


class SubmissionRateThrottle(UserScopedRateThrottle):
    """任务提交限速"""

    scope = "mission_submit"
    failure_message = "提交过于频繁，请稍后再试"
