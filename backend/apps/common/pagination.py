"""
自定义分页器（apps.common.pagination）

- 统一分页响应结构，与 common.response.page_success 对齐
- 视图中手动调用 paginate_queryset / get_paginated_response
"""

from __future__ import annotations

from typing import Any, List

from rest_framework.pagination import PageNumberPagination
from rest_framework.request import Request
from rest_framework.response import Response

from apps.common.response import page_success


class StandardPagination(PageNumberPagination):
    """
    标准分页器：默认每页 20 条，?page_size= 最大 100
    """

    page_size: int = 20
    page_size_query_param: str = "page_size"
    max_page_size: int = 100

    def get_paginated_response(self, data: List[Any]) -> Response:
        return page_success(
            items=data,
            page=self.page.number,
            page_size=self.page.paginator.per_page,
            total=self.page.paginator.count,
            has_next=self.page.has_next(),
            has_previous=self.page.has_previous(),
        )

    def get_page_size(self, request: Request) -> int | None:
        size = super().get_page_size(request)
        if size is None:
            return None
        return max(1, size)
