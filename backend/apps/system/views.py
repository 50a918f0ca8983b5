from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.views import APIView

from apps.common import response
from apps.common.permissions import AllowAny
from .services import ConfigService


class PublicRulesView(APIView):
    """
    对外公开的规则参数：等级门槛、默认积分表等
    """

    permission_classes = [AllowAny]

    @extend_schema(summary="获取竞赛规则参数", responses=OpenApiTypes.OBJECT)
    def get(self, request, *args, **kwargs):
        return response.success(ConfigService().public_rules())
