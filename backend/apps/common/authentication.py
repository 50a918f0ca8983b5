"""
统一 JWT 认证封装（apps.common.authentication）

- 兼容 SimpleJWT：从 Authorization: Bearer <token> 读取 access token
- 未提供凭证 → 返回 None（匿名，由权限类决定是否放行）
- 凭证无效/过期/用户失效 → AuthError(40100)，交由全局异常处理器统一格式化
- 认证成功后把用户写入请求上下文，后续日志自动带上用户标识
"""

from __future__ import annotations

from typing import Any, Optional

from rest_framework.request import Request
from rest_framework_simplejwt.authentication import JWTAuthentication as SimpleJWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed as SimpleJWTAuthFailed
from rest_framework_simplejwt.exceptions import InvalidToken

from .exceptions import AuthError
from .infra.logger import get_logger, logger_extra
from .utils.request_context import update_request_user

logger = get_logger(__name__)


class JWTAuthentication(SimpleJWTAuthentication):

    def authenticate(self, request: Request) -> Optional[tuple[Any, Any]]:
        header = self.get_header(request)
        if header is None:
            return None
        raw_token = self.get_raw_token(header)
        if raw_token is None:
            return None

        try:
            validated_token = self.get_validated_token(raw_token)
            user = self.get_user(validated_token)
        except InvalidToken as exc:
            logger.warning("认证失败：无效或过期的 JWT", extra=logger_extra({"reason": "invalid_token"}))
            raise AuthError(message="令牌无效或已过期，请重新登录") from exc
        except SimpleJWTAuthFailed as exc:
            logger.warning("认证失败：用户校验失败", extra=logger_extra({"reason": str(exc.detail)}))
            raise AuthError(message="认证失败，请重新登录") from exc

        update_request_user(user)
        return user, validated_token
