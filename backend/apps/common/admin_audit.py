from __future__ import annotations

from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)


class AdminAuditMixin:
    """后台审计日志：记录增删改关键对象"""

    audit_model = ""

    def _audit(self, request, action: str, obj=None, **fields) -> None:
        logger.info(
            f"Admin{action}",
            extra=logger_extra(
                {
                    "admin": getattr(request.user, "username", None),
                    "model": self.audit_model or (obj.__class__.__name__ if obj is not None else None),
                    "object_id": getattr(obj, "pk", None),
                    **fields,
                }
            ),
        )

    def log_change(self, request, obj, message):
        super().log_change(request, obj, message)  # type: ignore[misc]
        self._audit(request, "修改", obj, action="change")

    def log_addition(self, request, obj, message):
        super().log_addition(request, obj, message)  # type: ignore[misc]
        self._audit(request, "新增", obj, action="add")

    def log_deletion(self, request, obj, object_repr):
        super().log_deletion(request, obj, object_repr)  # type: ignore[misc]
        self._audit(request, "删除", obj, action="delete", object_repr=object_repr)
