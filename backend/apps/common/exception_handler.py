"""
全局异常处理器（DRF 入口）：
  1) BizError 及子类 → 直接转换为 {code, message, data, extra}
  2) DRF 内置异常（Validation/Authentication/Permission/NotFound/Throttled）→ 映射为 BizError
  3) 未知异常 → 记录堆栈，返回 500 标准格式，不泄露内部信息
"""

from typing import Any

from rest_framework import status
from rest_framework.exceptions import (
    AuthenticationFailed,
    NotAuthenticated,
    NotFound as DRFNotFound,
    ParseError,
    PermissionDenied as DRFPermissionDenied,
    Throttled,
    ValidationError as DRFValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .exceptions import (
    AuthError,
    BadRequestError,
    BizError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError as BizValidationError,
)
from .infra.logger import get_logger, logger_extra
from .response import api_response, response_from_biz_error
from .utils.request_context import get_request_context

logger = get_logger(__name__)


def _extract_message(detail: Any) -> str:
    """
    从 DRF 的 detail 结构中提取第一条可读错误信息
    """
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return _extract_message(detail[0])
    if isinstance(detail, dict) and detail:
        return _extract_message(next(iter(detail.values())))
    return str(detail)


def _map_drf_exception_to_biz(exc: Exception) -> BizError | None:
    detail = getattr(exc, "detail", str(exc))
    if isinstance(exc, DRFValidationError):
        return BizValidationError(message=_extract_message(detail), extra={"raw_detail": detail})
    if isinstance(exc, ParseError):
        return BadRequestError(message=_extract_message(detail))
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        return AuthError(message=_extract_message(detail))
    if isinstance(exc, DRFPermissionDenied):
        return PermissionDeniedError(message=_extract_message(detail))
    if isinstance(exc, DRFNotFound):
        return NotFoundError(message=_extract_message(detail))
    if isinstance(exc, Throttled):
        return RateLimitError(message=_extract_message(detail), extra={"wait": getattr(exc, "wait", None)})
    return None


def custom_exception_handler(exc: Exception, context: dict) -> Response | None:
    if isinstance(exc, BizError):
        return response_from_biz_error(exc)

    mapped = _map_drf_exception_to_biz(exc)
    if mapped is not None:
        return response_from_biz_error(mapped)

    drf_response = drf_exception_handler(exc, context)
    if drf_response is not None:
        status_code = drf_response.status_code
        return api_response(
            code=40000 if status_code < 500 else 50000,
            message=_extract_message(drf_response.data),
            http_status=status_code,
            extra={"raw": drf_response.data},
        )

    request = context.get("request")
    logger.exception(
        "接口出现未处理的异常",
        exc_info=exc,
        extra=logger_extra({"view": type(context.get("view")).__name__ if context.get("view") else None}),
    )
    return api_response(
        code=50000,
        message="内部服务器错误，请联系管理员或稍后重试",
        http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        extra={
            "request_path": getattr(request, "path", None),
            "request_id": get_request_context().get("request_id"),
        },
    )
