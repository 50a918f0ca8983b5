"""拍卖模块的 API 视图层"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly, IsAuthenticated
from apps.common.throttles import BidRateThrottle
from .repo import AuctionRepo
from .schemas import AuctionCreateSchema, AuctionUpdateSchema, BidSchema
from .services import (
    AuctionCancelService,
    AuctionCloseService,
    AuctionCreateService,
    AuctionDeleteService,
    AuctionStartService,
    AuctionUpdateService,
    BidListService,
    BidPlaceService,
    serialize_auction,
    serialize_bid,
)


class AuctionListView(APIView):
    """拍卖列表（参与者只看进行中与已结束）/ 创建拍卖（管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    auction_repo = AuctionRepo()

    @extend_schema(summary="拍卖列表", responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def get(self, request: Request) -> Response:
        qs = self.auction_repo.get_queryset() if request.user.is_staff else self.auction_repo.visible()
        if status := request.query_params.get("status"):
            qs = qs.filter(status=status)
        paginator = StandardPagination()
        page_items = paginator.paginate_queryset(qs, request)
        return paginator.get_paginated_response([serialize_auction(a) for a in page_items])

    @extend_schema(summary="创建拍卖", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def post(self, request: Request) -> Response:
        schema = AuctionCreateSchema.from_dict(request.data)
        auction = AuctionCreateService().execute(request.user, schema)
        return response.created(serialize_auction(auction), message="拍卖已创建")


class AuctionDetailView(APIView):
    permission_classes = [IsAdminOrReadOnly]
    auction_repo = AuctionRepo()

    @extend_schema(summary="拍卖详情", responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def get(self, request: Request, auction_id: int) -> Response:
        return response.success(serialize_auction(self.auction_repo.get_by_id(auction_id)))

    @extend_schema(summary="修改拍卖", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def patch(self, request: Request, auction_id: int) -> Response:
        schema = AuctionUpdateSchema.from_dict(request.data)
        auction = AuctionUpdateService().execute(request.user, auction_id, schema)
        return response.success(serialize_auction(auction), message="拍卖已更新")

    @extend_schema(summary="删除拍卖", responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def delete(self, request: Request, auction_id: int) -> Response:
        AuctionDeleteService().execute(request.user, auction_id)
        return response.success(message="拍卖已删除")


class AuctionStartView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="开始拍卖", request=None, responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def post(self, request: Request, auction_id: int) -> Response:
        auction = AuctionStartService().execute(request.user, auction_id)
        return response.success(serialize_auction(auction), message="拍卖开始")


class AuctionCloseView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="结束拍卖", request=None, responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def post(self, request: Request, auction_id: int) -> Response:
        auction = AuctionCloseService().execute(request.user, auction_id)
        return response.success(serialize_auction(auction), message="拍卖已结束")


class AuctionCancelView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(summary="取消拍卖", request=None, responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def post(self, request: Request, auction_id: int) -> Response:
        auction = AuctionCancelService().execute(request.user, auction_id)
        return response.success(serialize_auction(auction), message="拍卖已取消")


class AuctionBidsView(APIView):
    """出价列表 / 出价（价格已过期时返回 409 且 extra.retryable=true）"""

    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == "POST":
            return [BidRateThrottle()]
        return super().get_throttles()

    @extend_schema(summary="出价列表", responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def get(self, request: Request, auction_id: int) -> Response:
        bids = BidListService().execute(auction_id)
        return response.success([serialize_bid(b) for b in bids])

    @extend_schema(summary="出价", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["auctions"])
    def post(self, request: Request, auction_id: int) -> Response:
        schema = BidSchema.from_dict(request.data)
        bid = BidPlaceService().execute(request.user, auction_id, schema)
        return response.created(serialize_bid(bid), message="出价成功")
