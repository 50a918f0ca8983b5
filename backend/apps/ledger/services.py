"""
积分入账（唯一的累计积分写入口）

所有解析器（任务、竞速、拍卖、挑战）都只通过 CreditService 增加参与者/队伍的累计积分：
- 原子自增（UPDATE ... SET total_xp = total_xp + n），并发入账不会丢失更新
- 每次非零入账写一条 CreditEntry，唯一约束保证同一来源只入账一次
- 参与者入账同时计入其所在队伍的累计积分，并在同一事务内重算等级
- 入账为 0 时不写任何数据；不存在扣减
- 推送与排行榜缓存失效在事务提交后执行
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from django.db import IntegrityError, transaction

from apps.accounts.levels import level_for_xp
from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import DuplicateCreditError, NegativeCreditError, ValidationError
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_events import CREDIT_APPLIED
from apps.common.ws_utils import broadcast_notify, broadcast_team
from apps.leaderboards.services import invalidate_leaderboards
from apps.teams.repo import TeamRepo
from .models import CreditEntry
from .repo import CreditEntryRepo

logger = get_logger(__name__)


@dataclass
class CreditResult:
    """入账结果；amount 为 0 时 entry_id 为空"""

    target: str
    amount: int
    total: int
    entry_id: Optional[int] = None
    level: Optional[int] = None
    level_up: bool = False
    team_id: Optional[int] = None
    team_total: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


class CreditService(BaseService[CreditResult]):
    """
    聚合入账：credit(target, amount)

    调用方通常已处于自身业务事务内，本服务以保存点嵌套执行；
    任何失败（含重复入账）都会连同调用方的状态迁移一起回滚
    """

    def __init__(
            self,
            user_repo: UserRepo | None = None,
            team_repo: TeamRepo | None = None,
            entry_repo: CreditEntryRepo | None = None,
    ):
        self.user_repo = user_repo or UserRepo()
        self.team_repo = team_repo or TeamRepo()
        self.entry_repo = entry_repo or CreditEntryRepo()

    def validate(self, target_type: str, target_id: int, amount: int, **kwargs) -> None:
        if target_type not in CreditEntry.TargetType.values:
            raise ValidationError(message="入账对象类型不合法")
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(message="入账积分必须为整数")
        if amount < 0:
            raise NegativeCreditError(extra={"amount": amount})
        if kwargs.get("source_type") not in CreditEntry.SourceType.values:
            raise ValidationError(message="入账来源类型不合法")

    def perform(
            self,
            target_type: str,
            target_id: int,
            amount: int,
            *,
            source_type: str,
            source_id: int,
            note: str = "",
    ) -> CreditResult:
        target = CreditEntry.key_for(target_type, target_id)
        if amount == 0:
            current = self._current_total(target_type, target_id)
            return CreditResult(target=target, amount=0, total=current)

        if target_type == CreditEntry.TargetType.USER:
            result = self._credit_user(target_id, amount)
        else:
            total = self.team_repo.increment(target_id, "total_xp", amount)
            result = CreditResult(target=target, amount=amount, total=total, team_id=target_id, team_total=total)

        entry = self._append_entry(
            target_type=target_type,
            target_id=target_id,
            team_id=result.team_id,
            amount=amount,
            balance_after=result.total,
            source_type=source_type,
            source_id=source_id,
            note=note,
        )
        result.entry_id = entry.id
        logger.info(
            "积分入账",
            extra=logger_extra(
                {
                    "target": target,
                    "amount": amount,
                    "total": result.total,
                    "source_type": source_type,
                    "source_id": source_id,
                    "level_up": result.level_up,
                }
            ),
        )
        self._publish(result, source_type=source_type, source_id=source_id)
        return result

    # ------------------------
    # 内部步骤
    # ------------------------

    def _current_total(self, target_type: str, target_id: int) -> int:
        repo = self.user_repo if target_type == CreditEntry.TargetType.USER else self.team_repo
        return repo.get_by_id(target_id).total_xp

    def _credit_user(self, user_id: int, amount: int) -> CreditResult:
        total = self.user_repo.increment(user_id, "total_xp", amount)
        # UPDATE 已持有行锁，此时回读的等级与队伍不会被并发入账改动
        user = self.user_repo.get_by_id(user_id)
        new_level = level_for_xp(total)
        level_up = new_level > user.level
        if new_level != user.level:
            self.user_repo.set_level(user_id, new_level)
        team_total = None
        if user.team_id:
            team_total = self.team_repo.increment(user.team_id, "total_xp", amount)
        return CreditResult(
            target=CreditEntry.key_for(CreditEntry.TargetType.USER, user_id),
            amount=amount,
            total=total,
            level=new_level,
            level_up=level_up,
            team_id=user.team_id,
            team_total=team_total,
        )

    def _append_entry(self, *, target_type: str, target_id: int, team_id: Optional[int], **fields) -> CreditEntry:
        data = {
            "target_type": target_type,
            "target_key": CreditEntry.key_for(target_type, target_id),
            "user_id": target_id if target_type == CreditEntry.TargetType.USER else None,
            "team_id": team_id,
            **fields,
        }
        try:
            with transaction.atomic():
                return self.entry_repo.create(data)
        except IntegrityError as exc:
            logger.warning(
                "重复入账被拒绝",
                extra=logger_extra(
                    {
                        "target": data["target_key"],
                        "source_type": fields.get("source_type"),
                        "source_id": fields.get("source_id"),
                    }
                ),
            )
            raise DuplicateCreditError(
                extra={"source_type": fields.get("source_type"), "source_id": fields.get("source_id")}
            ) from exc

    def _publish(self, result: CreditResult, *, source_type: str, source_id: int) -> None:
        payload = {
            "event": CREDIT_APPLIED,
            "target": result.target,
            "amount": result.amount,
            "total": result.total,
            "source_type": source_type,
            "source_id": source_id,
        }
        if result.level is not None:
            payload.update(level=result.level, level_up=result.level_up)
        target_type, _, raw_id = result.target.partition(":")

        def _send():
            if target_type == CreditEntry.TargetType.USER:
                broadcast_notify(int(raw_id), payload)
            if result.team_id:
                broadcast_team(result.team_id, {**payload, "team_total": result.team_total})
            invalidate_leaderboards()

        self.after_commit(_send)


def credit_user(user_id: int, amount: int, *, source_type: str, source_id: int, note: str = "") -> CreditResult:
    """参与者入账（同时计入所在队伍）"""
    return CreditService().execute(
        CreditEntry.TargetType.USER, user_id, amount, source_type=source_type, source_id=source_id, note=note
    )


def credit_team(team_id: int, amount: int, *, source_type: str, source_id: int, note: str = "") -> CreditResult:
    """队伍入账（竞速、拍卖、挑战）"""
    return CreditService().execute(
        CreditEntry.TargetType.TEAM, team_id, amount, source_type=source_type, source_id=source_id, note=note
    )
