"""
显式状态迁移表

拍卖、挑战等实体的状态迁移统一登记为 {当前状态: {允许的目标状态}}，
不在表中的迁移一律拒绝，不从其他字段推断合法性
"""

from __future__ import annotations

from typing import Iterable, Mapping

from apps.common.exceptions import BizError, OperationNotAllowedError


class TransitionTable:
    """
    用法：
        AUCTION_TRANSITIONS = TransitionTable({
            "pending": {"active", "cancelled"},
            "active": {"ended", "cancelled"},
        }, error_class=AuctionStateError)
        AUCTION_TRANSITIONS.ensure(auction.status, "ended")
    """

    def __init__(self, transitions: Mapping[str, Iterable[str]], *, error_class: type[BizError] = OperationNotAllowedError):
        self._transitions = {str(src): frozenset(str(t) for t in targets) for src, targets in transitions.items()}
        self._error_class = error_class

    def allowed(self, current: str) -> frozenset[str]:
        return self._transitions.get(str(current), frozenset())

    def can(self, current: str, target: str) -> bool:
        return str(target) in self.allowed(current)

    def sources_for(self, target: str) -> list[str]:
        """可迁移到 target 的全部源状态，用作条件更新的 status__in"""
        return sorted(src for src, targets in self._transitions.items() if str(target) in targets)

    def ensure(self, current: str, target: str) -> None:
        if not self.can(current, target):
            allowed = sorted(self.allowed(current))
            raise self._error_class(
                message=f"不允许的状态迁移：{current} → {target}",
                extra={"from": str(current), "to": str(target), "allowed": allowed},
            )
