"""排行榜接口（只读，允许短暂滞后于账本）"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.base.base_schema import BaseSchema
from apps.common.permissions import IsAuthenticated
from .services import TeamLeaderboardService, UserLeaderboardService


class UserLeaderboardView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="参与者排行榜",
        parameters=[OpenApiParameter("limit", OpenApiTypes.INT, required=False)],
        responses=OpenApiTypes.OBJECT,
        tags=["leaderboards"],
    )
    def get(self, request: Request) -> Response:
        limit = BaseSchema.require_int("limit", request.query_params.get("limit", 50), minimum=1)
        return response.success(UserLeaderboardService().execute(min(limit, 200)))


class TeamLeaderboardView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(summary="队伍排行榜", responses=OpenApiTypes.OBJECT, tags=["leaderboards"])
    def get(self, request: Request) -> Response:
        return response.success(TeamLeaderboardService().execute())
