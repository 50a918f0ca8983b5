from __future__ import annotations

from django.db import connection
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.permissions import AllowAny


class HealthCheckView(APIView):
    """
    健康检查接口：用于负载均衡/监控探活
    - 只做一次轻量的数据库连通性检查
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(summary="健康检查", request=None, responses=OpenApiTypes.OBJECT)
    def get(self, request: Request) -> Response:
        _ = request
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        return response.success({"status": "ok"})
