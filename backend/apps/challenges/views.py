"""挑战模块的 API 视图层"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly, IsAuthenticated
from .repo import ChallengeRepo
from .schemas import (
    ChallengeCreateSchema,
    ChallengeStatusSchema,
    ChallengeUpdateSchema,
    ResultCreateSchema,
    ResultUpdateSchema,
)
from .services import (
    AwardPointsService,
    ChallengeCreateService,
    ChallengeDeleteService,
    ChallengeLeaderboardService,
    ChallengeStatusService,
    ChallengeUpdateService,
    ComputePlacementsService,
    ResultAddService,
    ResultDeleteService,
    ResultUpdateService,
    serialize_challenge,
    serialize_result,
)


class ChallengeListView(APIView):
    """挑战列表（参与者看不到未开始的挑战）/ 创建挑战（管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    challenge_repo = ChallengeRepo()

    @extend_schema(summary="挑战列表", responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def get(self, request: Request) -> Response:
        base = self.challenge_repo.get_queryset() if request.user.is_staff else self.challenge_repo.visible()
        challenges = self.challenge_repo.with_result_count(base)
        return response.success([serialize_challenge(c) for c in challenges])

    @extend_schema(summary="创建挑战", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def post(self, request: Request) -> Response:
        schema = ChallengeCreateSchema.from_dict(request.data)
        challenge = ChallengeCreateService().execute(request.user, schema)
        return response.created(serialize_challenge(challenge), message="挑战已创建")


class ChallengeDetailView(APIView):
    permission_classes = [IsAdminOrReadOnly]
    challenge_repo = ChallengeRepo()

    @extend_schema(summary="挑战详情", responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def get(self, request: Request, challenge_id: int) -> Response:
        base = self.challenge_repo.get_queryset() if request.user.is_staff else self.challenge_repo.visible()
        challenge = self.challenge_repo.get_by_id(challenge_id, queryset=self.challenge_repo.with_result_count(base))
        return response.success(serialize_challenge(challenge))

    @extend_schema(summary="修改挑战", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def patch(self, request: Request, challenge_id: int) -> Response:
        schema = ChallengeUpdateSchema.from_dict(request.data)
        challenge = ChallengeUpdateService().execute(request.user, challenge_id, schema)
        return response.success(serialize_challenge(challenge), message="挑战已更新")

    @extend_schema(summary="删除挑战", responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def delete(self, request: Request, challenge_id: int) -> Response:
        ChallengeDeleteService().execute(request.user, challenge_id)
        return response.success(message="挑战已删除")


class ChallengeStatusView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="挑战状态迁移", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def post(self, request: Request, challenge_id: int) -> Response:
        schema = ChallengeStatusSchema.from_dict(request.data)
        challenge = ChallengeStatusService().execute(request.user, challenge_id, schema)
        return response.success(serialize_challenge(challenge))


class ChallengeResultsView(APIView):
    """成绩榜 / 录入成绩（管理员）"""

    permission_classes = [IsAdminOrReadOnly]

    @extend_schema(summary="挑战成绩榜", responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def get(self, request: Request, challenge_id: int) -> Response:
        results = ChallengeLeaderboardService().execute(challenge_id)
        return response.success([serialize_result(r) for r in results])

    @extend_schema(summary="录入成绩", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def post(self, request: Request, challenge_id: int) -> Response:
        schema = ResultCreateSchema.from_dict(request.data)
        result = ResultAddService().execute(request.user, challenge_id, schema)
        return response.created(serialize_result(result), message="成绩已录入")


class ChallengeResultDetailView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="修改成绩", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def patch(self, request: Request, result_id: int) -> Response:
        schema = ResultUpdateSchema.from_dict(request.data)
        result = ResultUpdateService().execute(request.user, result_id, schema)
        return response.success(serialize_result(result), message="成绩已更新")

    @extend_schema(summary="删除成绩", responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def delete(self, request: Request, result_id: int) -> Response:
        ResultDeleteService().execute(request.user, result_id)
        return response.success(message="成绩已删除")


class ComputePlacementsView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="计算名次", request=None, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def post(self, request: Request, challenge_id: int) -> Response:
        results = ComputePlacementsService().execute(request.user, challenge_id)
        return response.success([serialize_result(r) for r in results], message="名次已计算")


class AwardPointsView(APIView):
    """发放积分：每个挑战只能成功一次"""

    permission_classes = [IsAdmin]

    @extend_schema(summary="发放积分", request=None, responses=OpenApiTypes.OBJECT, tags=["challenges"])
    def post(self, request: Request, challenge_id: int) -> Response:
        return response.success(AwardPointsService().execute(request.user, challenge_id), message="积分已发放")
