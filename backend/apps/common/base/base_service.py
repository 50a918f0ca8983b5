# apps/common/base/base_service.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Generic, TypeVar

from django.db import transaction

from apps.common.exceptions import BizError, PermissionDeniedError
from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)

ServiceReturn = TypeVar("ServiceReturn")


class BaseService(ABC, Generic[ServiceReturn]):
    """
    Service 层业务逻辑基类

    约束：
        - 负责编排业务逻辑，不直接处理 HTTP
        - 通过 Repo 访问持久化层，涉及不变量的写入只走原子原语
        - 默认在事务中执行 `perform`，任一步失败则整体回滚，不留下部分写入
        - 推送等外部副作用通过 `after_commit` 延迟到提交之后

    标准流程：validate(...) -> perform(...) -> handle_error(...)
    """

    atomic_enabled: bool = True
    atomic_savepoint: bool = True

    #: 仅管理员可调用的服务置为 True，由 validate 统一校验
    admin_only: bool = False

    @staticmethod
    def atomic(*args, **kwargs):
        return transaction.atomic(*args, **kwargs)

    @staticmethod
    def after_commit(func: Callable[[], None]) -> None:
        """
        事务提交后执行回调；事务回滚则丢弃
        回调内部异常只记录日志，不影响已提交的业务结果
        """

        def _run():
            try:
                func()
            except Exception:  # noqa: BLE001
                logger.exception("提交后回调执行失败")

        transaction.on_commit(_run)

    # ------------------------
    # 子类扩展点
    # ------------------------

    def validate(self, *args, **kwargs) -> None:
        """
        业务预检查钩子，默认只处理 admin_only（首个位置参数或 user 关键字视为调用者）
        """
        if not self.admin_only:
            return
        user = kwargs.get("user", args[0] if args else None)
        if not getattr(user, "is_staff", False):
            raise PermissionDeniedError()

    @abstractmethod
    def perform(self, *args, **kwargs) -> ServiceReturn:
        """
        子类必须实现的业务核心逻辑
        """

    def execute(self, *args, **kwargs) -> ServiceReturn:
        try:
            self.validate(*args, **kwargs)
            if self.atomic_enabled:
                with self.atomic(savepoint=self.atomic_savepoint):
                    return self.perform(*args, **kwargs)
            return self.perform(*args, **kwargs)
        except Exception as exc:
            return self.handle_error(exc)

    __call__ = execute

    def handle_error(self, exc: Exception) -> ServiceReturn:
        """
        BizError 原样抛出；其他异常记录堆栈后抛出，由全局处理器按 500 返回
        """
        if isinstance(exc, BizError):
            logger.info(
                "业务操作被拒绝",
                extra=logger_extra({"service": type(self).__name__, "code": exc.code, "reason": exc.message}),
            )
            raise exc
        logger.exception(
            "Service 层出现未捕获的系统异常",
            extra=logger_extra({"service": type(self).__name__}),
        )
        raise exc
