"""
统一 API 响应封装（common.response）

约定返回结构：
{
    "code": 0,            # 0 表示成功；非 0 表示业务错误
    "message": "OK",      # 提示信息
    "data": {...},        # 业务数据
    "extra": {...}        # 可选，分页信息 / 重试提示等元信息
}
"""

from typing import Any, Mapping, Optional

from rest_framework import status
from rest_framework.response import Response

from .exceptions import BizError

SUCCESS_CODE = 0

Payload = dict[str, Any]


def build_payload(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        extra: Optional[Mapping[str, Any]] = None,
) -> Payload:
    payload: Payload = {"code": code, "message": message, "data": data}
    if extra:
        payload["extra"] = dict(extra)
    return payload


def payload_from_biz_error(exc: BizError, data: Any = None) -> Payload:
    return build_payload(code=exc.code, message=exc.message, data=data, extra=exc.extra)


def api_response(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        http_status: int = status.HTTP_200_OK,
        extra: Optional[Mapping[str, Any]] = None,
) -> Response:
    """
    所有接口/异常的最终出口，确保格式一致
    """
    return Response(build_payload(code=code, message=message, data=data, extra=extra), status=http_status)


def success(data: Any = None, message: str = "OK") -> Response:
    """业务成功返回（200）"""
    return api_response(data=data, message=message)


def created(data: Any = None, message: str = "Created") -> Response:
    """新建资源成功（201）"""
    return api_response(data=data, message=message, http_status=status.HTTP_201_CREATED)


def response_from_biz_error(exc: BizError, data: Any = None) -> Response:
    return api_response(
        code=exc.code,
        message=exc.message,
        data=data,
        http_status=exc.http_status,
        extra=exc.extra,
    )


def page_success(
        *,
        items: Any,
        page: int,
        page_size: int,
        total: int,
        has_next: bool,
        has_previous: bool,
        message: str = "OK",
) -> Response:
    """
    分页成功返回：data 为当前页列表，extra 携带分页信息
    """
    extra = {
        "page": page,
        "page_size": page_size,
        "total": total,
        "has_next": has_next,
        "has_previous": has_previous,
    }
    return api_response(message=message, data=items, extra=extra)
