"""队伍模块 API 视图层"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.services import serialize_user
from apps.common import response
from apps.common.exceptions import TeamRequiredError
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly, IsAuthenticated
from .repo import TeamRepo
from .schemas import TeamCreateSchema, TeamMemberSchema, TeamUpdateSchema
from .services import (
    TeamCreateService,
    TeamDetailService,
    TeamMemberAssignService,
    TeamMemberRemoveService,
    TeamUpdateService,
    serialize_team,
)


class TeamListView(APIView):
    """队伍列表（登录可见）/ 创建队伍（管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    team_repo = TeamRepo()

    @extend_schema(summary="队伍列表", responses=OpenApiTypes.OBJECT, tags=["teams"])
    def get(self, request: Request) -> Response:
        teams = self.team_repo.active_teams().order_by("order_index", "name")
        paginator = StandardPagination()
        page_items = paginator.paginate_queryset(teams, request)
        return paginator.get_paginated_response([serialize_team(team) for team in page_items])

    @extend_schema(summary="创建队伍", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["teams"])
    def post(self, request: Request) -> Response:
        schema = TeamCreateSchema.from_dict(request.data)
        team = TeamCreateService().execute(request.user, schema)
        return response.created(serialize_team(team), message="队伍已创建")


class TeamDetailView(APIView):
    """队伍详情 / 修改队伍资料"""

    permission_classes = [IsAdminOrReadOnly]

    @extend_schema(summary="队伍详情", responses=OpenApiTypes.OBJECT, tags=["teams"])
    def get(self, request: Request, team_id: int) -> Response:
        return response.success(TeamDetailService().execute(team_id))

    @extend_schema(summary="修改队伍", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["teams"])
    def patch(self, request: Request, team_id: int) -> Response:
        schema = TeamUpdateSchema.from_dict(request.data, auto_validate=True)
        team = TeamUpdateService().execute(request.user, team_id, schema)
        return response.success(serialize_team(team), message="队伍已更新")


class TeamMembersView(APIView):
    """管理员分配 / 移出成员"""

    permission_classes = [IsAdmin]

    @extend_schema(summary="分配成员", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["teams"])
    def post(self, request: Request, team_id: int) -> Response:
        schema = TeamMemberSchema.from_dict(request.data, auto_validate=True)
        member = TeamMemberAssignService().execute(request.user, team_id, schema)
        return response.success(serialize_user(member), message="成员已加入队伍")

    @extend_schema(summary="移出成员", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["teams"])
    def delete(self, request: Request, team_id: int) -> Response:
        schema = TeamMemberSchema.from_dict(request.data, auto_validate=True)
        member = TeamMemberRemoveService().execute(request.user, team_id, schema)
        return response.success(serialize_user(member), message="成员已移出队伍")


class MyTeamView(APIView):
    """当前参与者所在队伍"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="我的队伍", responses=OpenApiTypes.OBJECT, tags=["teams"])
    def get(self, request: Request) -> Response:
        if not request.user.team_id:
            raise TeamRequiredError()
        return response.success(TeamDetailService().execute(request.user.team_id))
