"""
通用权限封装（apps.common.permissions）

- 参与者 = 已登录用户；管理员 = is_staff
- 出错时统一抛出 BizError 子类，由全局异常处理器统一包装响应
"""

from __future__ import annotations

from typing import Any

from rest_framework.permissions import SAFE_METHODS, BasePermission
from rest_framework.request import Request

from .exceptions import AuthError, PermissionDeniedError


def _ensure_authenticated(request: Request):
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise AuthError(message="请先登录后再执行此操作")
    return user


class AllowAny(BasePermission):
    """公开接口"""

    def has_permission(self, request: Request, view: Any) -> bool:
        return True


class IsAuthenticated(BasePermission):
    """
    需要已登录用户，出错时抛 BizError
    """

    def has_permission(self, request: Request, view: Any) -> bool:
        _ensure_authenticated(request)
        return True


class IsAdmin(BasePermission):
    """
    需要管理员权限（is_staff）：审核提交、结束拍卖、录入成绩、发放积分等
    """

    message = "仅管理员可以执行此操作"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = _ensure_authenticated(request)
        if user.is_staff:
            return True
        raise PermissionDeniedError(message=self.message)


class IsAdminOrReadOnly(BasePermission):
    """
    登录后只读放行，写操作需管理员
    """

    message = "仅管理员可以执行此操作"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = _ensure_authenticated(request)
        if request.method in SAFE_METHODS or user.is_staff:
            return True
        raise PermissionDeniedError(message=self.message)
