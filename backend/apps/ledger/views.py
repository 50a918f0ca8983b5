"""积分流水查询接口"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAuthenticated
from .models import CreditEntry
from .repo import CreditEntryRepo


def serialize_entry(entry: CreditEntry) -> dict:
    return {
        "id": entry.id,
        "target": entry.target_key,
        "source_type": entry.source_type,
        "source_id": entry.source_id,
        "amount": entry.amount,
        "balance_after": entry.balance_after,
        "note": entry.note,
        "created_at": entry.created_at,
    }


class MyCreditHistoryView(APIView):
    """
    我的积分流水：默认只含个人入账，?include_team=1 时合并所在队伍的入账
    """

    permission_classes = [IsAuthenticated]
    entry_repo = CreditEntryRepo()

    @extend_schema(
        summary="我的积分流水",
        parameters=[OpenApiParameter("include_team", OpenApiTypes.BOOL, required=False)],
        responses=OpenApiTypes.OBJECT,
        tags=["ledger"],
    )
    def get(self, request: Request) -> Response:
        include_team = request.query_params.get("include_team") in {"1", "true", "True"}
        team_id = request.user.team_id if include_team else None
        entries = self.entry_repo.history(user_id=request.user.id, team_id=team_id)
        paginator = StandardPagination()
        page_items = paginator.paginate_queryset(entries, request)
        return paginator.get_paginated_response([serialize_entry(e) for e in page_items])
