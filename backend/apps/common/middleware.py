from __future__ import annotations

from django.utils.deprecation import MiddlewareMixin

from apps.common.utils.request_context import (
    clear_request_context,
    generate_request_id,
    set_request_context,
)


class RequestContextMiddleware(MiddlewareMixin):
    """
    在请求生命周期内写入 request_id、用户、方法、路径、IP，供日志格式化器读取
    响应头回写 X-Request-ID，便于按请求排查
    """

    def process_request(self, request):
        user = getattr(request, "user", None)
        authenticated = bool(user and user.is_authenticated)
        request.request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_context(
            request_id=request.request_id,
            user_id=getattr(user, "id", None) if authenticated else None,
            username=getattr(user, "username", "") if authenticated else "",
            path=request.path,
            method=request.method,
            ip=self._get_client_ip(request),
        )

    @staticmethod
    def process_response(request, response):
        request_id = getattr(request, "request_id", None)
        if request_id:
            response["X-Request-ID"] = request_id
        clear_request_context()
        return response

    @staticmethod
    def _get_client_ip(request) -> str:
        xff = request.META.get("HTTP_X_FORWARDED_FOR")
        if xff:
            return xff.split(",")[0].strip()
        return request.META.get("REMOTE_ADDR", "")
