from __future__ import annotations

import contextvars
import uuid
from typing import Optional

request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
user_id_ctx: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar("user_id", default=None)
username_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("username", default="")
path_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("path", default="")
method_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("method", default="")
ip_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("ip", default="")

_ALL = {
    "request_id": (request_id_ctx, ""),
    "user_id": (user_id_ctx, None),
    "username": (username_ctx, ""),
    "path": (path_ctx, ""),
    "method": (method_ctx, ""),
    "ip": (ip_ctx, ""),
}


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def set_request_context(
    *,
    request_id: Optional[str] = None,
    user_id: Optional[int] = None,
    username: str = "",
    path: str = "",
    method: str = "",
    ip: str = "",
) -> None:
    request_id_ctx.set(request_id or generate_request_id())
    user_id_ctx.set(user_id)
    username_ctx.set(username or "")
    path_ctx.set(path or "")
    method_ctx.set(method or "")
    ip_ctx.set(ip or "")


def clear_request_context() -> None:
    for var, default in _ALL.values():
        var.set(default)


def get_request_context() -> dict:
    return {name: var.get(default) for name, (var, default) in _ALL.items()}


def update_request_user(user) -> None:
    """
    认证完成后补写用户信息（JWT 认证发生在中间件之后）
    """
    user_id_ctx.set(getattr(user, "id", None))
    username_ctx.set(getattr(user, "username", "") or "")
