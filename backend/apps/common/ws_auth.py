# -*- coding: utf-8 -*-
"""
WebSocket JWT 鉴权中间件

- 解析握手中的 Authorization: Bearer <token> 或 query 参数 token=<token>
- 使用 SimpleJWT 校验 access token，注入 scope["user"]；未通过时保留会话认证得到的用户
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from apps.common.infra.logger import get_logger

logger = get_logger(__name__)


@database_sync_to_async
def _get_user(user_id) -> Optional[object]:
    return get_user_model().objects.filter(pk=user_id, is_active=True).first()


class JWTAuthMiddleware(BaseMiddleware):

    async def __call__(self, scope, receive, send):
        headers = dict(scope.get("headers") or [])
        token = None
        auth_header = headers.get(b"authorization", b"").decode()
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip()
        if not token:
            params = parse_qs(scope.get("query_string", b"").decode())
            token = params.get("token", [None])[0]

        if token:
            try:
                access = AccessToken(token)
            except TokenError:
                logger.info("WebSocket 握手携带的令牌无效")
            else:
                user = await _get_user(access.get("user_id"))
                if user is not None:
                    scope["user"] = user

        return await super().__call__(scope, receive, send)
