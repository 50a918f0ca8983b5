"""账户模块的 API 视图层

每个接口仅负责：
- 接收并校验参数（Schema）
- 调用对应业务 Service
- 使用统一响应封装成功结果
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.common import response
from apps.common.permissions import AllowAny, IsAuthenticated
from .schemas import ProfileUpdateSchema
from .services import ProfileService, ProfileUpdateService, serialize_user


class TokenObtainView(TokenObtainPairView):
    """
    签发 JWT（用户名 + 密码），包装为统一响应结构
    """

    permission_classes = [AllowAny]

    def post(self, request: Request, *args, **kwargs) -> Response:
        resp = super().post(request, *args, **kwargs)
        return response.success(resp.data, message="登录成功")


class TokenRefreshWrappedView(TokenRefreshView):
    permission_classes = [AllowAny]

    def post(self, request: Request, *args, **kwargs) -> Response:
        resp = super().post(request, *args, **kwargs)
        return response.success(resp.data)


class ProfileView(APIView):
    """
    个人主页：GET 查看资料/等级进度/任务统计，PATCH 修改昵称与头像
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="个人主页", responses=OpenApiTypes.OBJECT)
    def get(self, request: Request) -> Response:
        return response.success(ProfileService().execute(request.user))

    @extend_schema(summary="修改个人资料", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT)
    def patch(self, request: Request) -> Response:
        schema = ProfileUpdateSchema.from_dict(request.data, auto_validate=True)
        user = ProfileUpdateService().execute(request.user, schema)
        return response.success(serialize_user(user), message="资料已更新")
