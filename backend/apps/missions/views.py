"""任务与竞速模块的 API 视图层

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

from apps.common import response
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly, IsAuthenticated
from apps.common.throttles import SubmissionRateThrottle
from .models import Mission
from .race_service import RaceApproveService, RaceEntriesService, RaceStartService, RaceStopService
from .repo import MissionRepo, SubmissionRepo
from .schemas import MissionCreateSchema, MissionSubmitSchema, MissionUpdateSchema, SubmissionReviewSchema
from .services import (
    MissionCreateService,
    MissionStatsService,
    MissionSubmitService,
    MissionUpdateService,
    SubmissionApproveService,
    SubmissionRejectService,
    serialize_mission,
    serialize_submission,
)


class MissionListView(APIView):
    """任务列表（参与者只看进行中的任务，附带个人统计）/ 创建任务（管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    mission_repo = MissionRepo()

    @extend_schema(summary="任务列表", responses=OpenApiTypes.OBJECT, tags=["missions"])
    def get(self, request: Request) -> Response:
        user = request.user
        base = self.mission_repo.get_queryset() if user.is_staff else self.mission_repo.visible()
        missions = self.mission_repo.with_user_stats(user.id, base).order_by("-created_at", "-id")
        paginator = StandardPagination()
        page_items = paginator.paginate_queryset(missions, request)
        return paginator.get_paginated_response([serialize_mission(m, for_admin=user.is_staff) for m in page_items])

    @extend_schema(summary="创建任务", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["missions"])
    def post(self, request: Request) -> Response:
        schema = MissionCreateSchema.from_dict(request.data)
        mission = MissionCreateService().execute(request.user, schema)
        return response.created(serialize_mission(mission, for_admin=True), message="任务已创建")


class MissionDetailView(APIView):
    """任务详情 / 修改任务（管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    mission_repo = MissionRepo()

    @extend_schema(summary="任务详情", responses=OpenApiTypes.OBJECT, tags=["missions"])
    def get(self, request: Request, mission_id: int) -> Response:
        user = request.user
        base = self.mission_repo.get_queryset() if user.is_staff else self.mission_repo.visible()
        mission = self.mission_repo.get_by_id(mission_id, queryset=self.mission_repo.with_user_stats(user.id, base))
        return response.success(serialize_mission(mission, for_admin=user.is_staff))

    @extend_schema(summary="修改任务", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["missions"])
    def patch(self, request: Request, mission_id: int) -> Response:
        schema = MissionUpdateSchema.from_dict(request.data)
        mission = MissionUpdateService().execute(request.user, mission_id, schema)
        return response.success(serialize_mission(mission, for_admin=True), message="任务已更新")


class MissionSubmitView(APIView):
    """提交任务凭证：自动判定类型直接返回结果，照片/人工/竞速进入待审核"""

    permission_classes = [IsAuthenticated]
    throttle_classes = [SubmissionRateThrottle]

    @extend_schema(summary="提交任务", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["missions"])
    def post(self, request: Request, mission_id: int) -> Response:
        schema = MissionSubmitSchema.from_dict(request.data)
        submission = MissionSubmitService().execute(request.user, mission_id, schema)
        messages = {
            "approved": "任务完成",
            "rejected": "未通过",
            "pending": "已提交，等待审核",
        }
        return response.created(serialize_submission(submission), message=messages[submission.status])


class MissionStatsView(APIView):
    """个人在该任务上的尝试/通过/待审/驳回次数"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="任务个人统计", responses=OpenApiTypes.OBJECT, tags=["missions"])
    def get(self, request: Request, mission_id: int) -> Response:
        return response.success(MissionStatsService().execute(request.user, mission_id))


class MySubmissionsView(APIView):
    permission_classes = [IsAuthenticated]
    submission_repo = SubmissionRepo()

    @extend_schema(summary="我的提交", responses=OpenApiTypes.OBJECT, tags=["missions"])
    def get(self, request: Request) -> Response:
        qs = self.submission_repo.filter(user_id=request.user.id)
        paginator = StandardPagination()
        page_items = paginator.paginate_queryset(qs, request)
        return paginator.get_paginated_response([serialize_submission(s) for s in page_items])


class ReviewQueueView(APIView):
    """待审核提交队列（管理员），先到先审"""

    permission_classes = [IsAdmin]
    submission_repo = SubmissionRepo()

    @extend_schema(summary="待审核队列", responses=OpenApiTypes.OBJECT, tags=["missions"])
    def get(self, request: Request) -> Response:
        qs = self.submission_repo.pending_queue()
        if mission_id := request.query_params.get("mission_id"):
            qs = qs.filter(mission_id=mission_id)
        paginator = StandardPagination()
        page_items = paginator.paginate_queryset(qs, request)
        return paginator.get_paginated_response([serialize_submission(s) for s in page_items])


class SubmissionApproveView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="审核通过", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["missions"])
    def post(self, request: Request, submission_id: int) -> Response:
        schema = SubmissionReviewSchema.from_dict(request.data)
        submission = SubmissionApproveService().execute(request.user, submission_id, schema)
        return response.success(serialize_submission(submission), message="已通过")


class SubmissionRejectView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="驳回", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["missions"])
    def post(self, request: Request, submission_id: int) -> Response:
        schema = SubmissionReviewSchema.from_dict(request.data)
        submission = SubmissionRejectService().execute(request.user, submission_id, schema)
        return response.success(serialize_submission(submission), message="已驳回")


# ------------------------
# 竞速
# ------------------------


class RaceListView(APIView):
    permission_classes = [IsAuthenticated]
    mission_repo = MissionRepo()

    @extend_schema(summary="竞速列表", responses=OpenApiTypes.OBJECT, tags=["races"])
    def get(self, request: Request) -> Response:
        races = self.mission_repo.races()
        if not request.user.is_staff:
            races = races.filter(status=Mission.Status.ACTIVE)
        return response.success([serialize_mission(r, for_admin=request.user.is_staff) for r in races])


class RaceStartView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="开始竞速", request=None, responses=OpenApiTypes.OBJECT, tags=["races"])
    def post(self, request: Request, mission_id: int) -> Response:
        mission = RaceStartService().execute(request.user, mission_id)
        return response.success(serialize_mission(mission, for_admin=True), message="竞速开始")


class RaceStopView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="停止竞速", request=None, responses=OpenApiTypes.OBJECT, tags=["races"])
    def post(self, request: Request, mission_id: int) -> Response:
        mission = RaceStopService().execute(request.user, mission_id)
        return response.success(serialize_mission(mission, for_admin=True), message="竞速已停止")


class RaceEntriesView(APIView):
    """竞速参赛列表：名次、用时"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="竞速参赛列表", responses=OpenApiTypes.OBJECT, tags=["races"])
    def get(self, request: Request, mission_id: int) -> Response:
        entries = RaceEntriesService().execute(mission_id)
        return response.success([serialize_submission(s) for s in entries])


class RaceApproveView(APIView):
    """竞速审核通过：按审核先后分配名次"""

    permission_classes = [IsAdmin]

    @extend_schema(summary="竞速审核通过", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["races"])
    def post(self, request: Request, submission_id: int) -> Response:
        schema = SubmissionReviewSchema.from_dict(request.data)
        submission = RaceApproveService().execute(request.user, submission_id, schema)
        return response.success(serialize_submission(submission), message=f"第 {submission.race_placement} 名")
