"""
拍卖结算

- 状态迁移表：pending → active → {ended, cancelled}，每一步都是条件更新
- 出价采用乐观并发：以读取到的当前价格为条件推进价格，条件不满足说明已被其他出价抢先
- 结束拍卖时把领先出价写入成交字段，并为获胜队伍入账一次；重复结束直接拒绝
"""

from __future__ import annotations

from typing import Any, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    AuctionAlreadyClosedError,
    AuctionNotActiveError,
    AuctionStateError,
    BidTooLowError,
    StalePriceError,
    TeamRequiredError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.state import TransitionTable
from apps.common.ws_events import AUCTION_CANCELLED, AUCTION_CLOSED, AUCTION_STARTED, BID_ACCEPTED
from apps.common.ws_utils import broadcast_feed, broadcast_team
from apps.ledger.models import CreditEntry
from apps.ledger.services import credit_team
from apps.system.services import ConfigService
from .models import Auction, Bid
from .repo import AuctionRepo, BidRepo
from .schemas import AuctionCreateSchema, AuctionUpdateSchema, BidSchema

logger = get_logger(__name__)

AUCTION_TRANSITIONS = TransitionTable(
    {
        Auction.Status.PENDING: {Auction.Status.ACTIVE, Auction.Status.CANCELLED},
        Auction.Status.ACTIVE: {Auction.Status.ENDED, Auction.Status.CANCELLED},
    },
    error_class=AuctionStateError,
)


def _team_brief(team) -> Optional[dict]:
    if team is None:
        return None
    return {"id": team.id, "name": team.name, "color": team.color, "emoji": team.emoji}


def serialize_auction(auction: Auction) -> dict:
    return {
        "id": auction.id,
        "item_name": auction.item_name,
        "item_description": auction.item_description,
        "item_image_url": auction.item_image_url,
        "status": auction.status,
        "starting_price": auction.starting_price,
        "min_bid_increment": auction.min_bid_increment,
        "current_price": auction.current_price,
        "minimum_bid": auction.minimum_bid,
        "points_for_win": auction.points_for_win,
        "bid_count": auction.bid_count,
        "winning_team": _team_brief(auction.winning_team),
        "winning_user_id": auction.winning_user_id,
        "winning_amount": auction.winning_amount,
        "started_at": auction.started_at,
        "ended_at": auction.ended_at,
        "created_at": auction.created_at,
    }


def serialize_bid(bid: Bid) -> dict:
    return {
        "id": bid.id,
        "auction_id": bid.auction_id,
        "team": _team_brief(bid.team),
        "user_id": bid.user_id,
        "amount": bid.amount,
        "is_leading": bid.is_leading,
        "created_at": bid.created_at,
    }


class AuctionCreateService(BaseService[Auction]):
    """创建拍卖（管理员）"""

    admin_only = True

    def __init__(self, auction_repo: AuctionRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()

    def perform(self, user: User, schema: AuctionCreateSchema) -> Auction:
        config = ConfigService()
        data = schema.to_dict()
        if data["min_bid_increment"] is None:
            data["min_bid_increment"] = config.get_int("DEFAULT_AUCTION_MIN_INCREMENT", 10)
        if data["points_for_win"] is None:
            data["points_for_win"] = config.get_int("DEFAULT_AUCTION_POINTS_FOR_WIN", 100)
        data.update(current_price=data["starting_price"], created_by=user)
        auction = self.auction_repo.create(data)
        logger.info("创建拍卖", extra=logger_extra({"auction_id": auction.id, "admin_id": user.id}))
        return auction


class AuctionUpdateService(BaseService[Auction]):
    """修改拍卖（管理员）：开始后价格规则冻结"""

    admin_only = True

    def __init__(self, auction_repo: AuctionRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()

    def perform(self, user: User, auction_id: int, schema: AuctionUpdateSchema) -> Auction:
        auction = self.auction_repo.lock(auction_id)
        if auction.status != Auction.Status.PENDING:
            raise AuctionStateError(message="只有未开始的拍卖可以修改")
        data = schema.to_dict(exclude_none=True)
        if "starting_price" in data:
            data["current_price"] = data["starting_price"]
        auction = self.auction_repo.update(auction, data)
        logger.info("修改拍卖", extra=logger_extra({"auction_id": auction.id, "fields": sorted(data)}))
        return self.auction_repo.get_by_id(auction.pk)


class AuctionDeleteService(BaseService[None]):
    """删除拍卖（管理员）：只允许未开始或已取消的拍卖"""

    admin_only = True

    def __init__(self, auction_repo: AuctionRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()

    def perform(self, user: User, auction_id: int) -> None:
        auction = self.auction_repo.lock(auction_id)
        if auction.status not in (Auction.Status.PENDING, Auction.Status.CANCELLED):
            raise AuctionStateError(message="进行中或已成交的拍卖不能删除")
        self.auction_repo.delete(auction)
        logger.info("删除拍卖", extra=logger_extra({"auction_id": auction_id, "admin_id": user.id}))


class AuctionStartService(BaseService[Auction]):
    admin_only = True

    def __init__(self, auction_repo: AuctionRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()

    def perform(self, user: User, auction_id: int) -> Auction:
        auction = self.auction_repo.lock(auction_id)
        AUCTION_TRANSITIONS.ensure(auction.status, Auction.Status.ACTIVE)
        if not self.auction_repo.compare_and_set(
                auction.pk,
                {"status": Auction.Status.PENDING},
                {"status": Auction.Status.ACTIVE, "started_at": timezone.now()},
        ):
            raise AuctionStateError()
        logger.info("拍卖开始", extra=logger_extra({"auction_id": auction.id, "admin_id": user.id}))
        price = auction.current_price
        self.after_commit(
            lambda: broadcast_feed({"event": AUCTION_STARTED, "auction_id": auction.id, "current_price": price})
        )
        return self.auction_repo.get_by_id(auction.pk)


class BidPlaceService(BaseService[Bid]):
    """
    出价：
    1) 拍卖必须进行中，出价人必须属于某个队伍
    2) 出价 ≥ 读取到的当前价格 + 最小加价幅度
    3) 以读取到的价格为条件推进 current_price；未命中则回读最新价格并返回可重试错误
    4) 价格推进成功后在同一事务内交接领先标记并写入出价
    """

    def __init__(self, auction_repo: AuctionRepo | None = None, bid_repo: BidRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()
        self.bid_repo = bid_repo or BidRepo()

    def perform(self, user: User, auction_id: int, schema: BidSchema) -> Bid:
        auction = self.auction_repo.get_by_id(auction_id)
        if not user.team_id:
            raise TeamRequiredError(message="出价记在队伍名下，请先加入队伍")
        if auction.status != Auction.Status.ACTIVE:
            raise AuctionNotActiveError(extra={"status": auction.status})

        observed = auction.current_price
        if schema.amount < observed + auction.min_bid_increment:
            raise BidTooLowError(
                message=f"出价至少为 {observed + auction.min_bid_increment}",
                extra={"current_price": observed, "minimum_bid": observed + auction.min_bid_increment},
            )

        advanced = self.auction_repo.compare_and_set(
            auction.pk,
            {"status": Auction.Status.ACTIVE, "current_price": observed},
            {"current_price": schema.amount},
        )
        if not advanced:
            self._raise_lost(auction.pk, user, schema.amount, observed)

        previous_team_id = self.bid_repo.clear_leader(auction.pk)
        try:
            with transaction.atomic():
                bid = self.bid_repo.create(
                    {
                        "auction_id": auction.pk,
                        "team_id": user.team_id,
                        "user": user,
                        "amount": schema.amount,
                        "is_leading": True,
                    }
                )
        except IntegrityError as exc:
            self._raise_lost(auction.pk, user, schema.amount, observed, cause=exc)
        self.auction_repo.increment(auction.pk, "bid_count", 1)

        logger.info(
            "出价成功",
            extra=logger_extra(
                {
                    "auction_id": auction.id,
                    "bid_id": bid.id,
                    "team_id": user.team_id,
                    "user_id": user.id,
                    "amount": schema.amount,
                    "previous_price": observed,
                }
            ),
        )
        payload = {
            "event": BID_ACCEPTED,
            "auction_id": auction.id,
            "bid_id": bid.id,
            "team_id": user.team_id,
            "user_id": user.id,
            "amount": schema.amount,
            "current_price": schema.amount,
            "previous_team_id": previous_team_id,
        }

        def _publish():
            broadcast_feed(payload)
            if previous_team_id and previous_team_id != user.team_id:
                broadcast_team(previous_team_id, payload)

        self.after_commit(_publish)
        return bid

    def _raise_lost(self, auction_id: int, user: User, amount: int, observed: int, cause: Exception | None = None):
        fresh = self.auction_repo.current_state(auction_id)
        if fresh["status"] != Auction.Status.ACTIVE:
            raise AuctionNotActiveError(extra={"status": fresh["status"]}) from cause
        logger.warning(
            "出价并发落败",
            extra=logger_extra(
                {
                    "auction_id": auction_id,
                    "user_id": user.id,
                    "amount": amount,
                    "observed_price": observed,
                    "current_price": fresh["current_price"],
                }
            ),
        )
        raise StalePriceError(
            extra={
                "current_price": fresh["current_price"],
                "minimum_bid": fresh["current_price"] + fresh["min_bid_increment"],
            }
        ) from cause


class AuctionCloseService(BaseService[Auction]):
    """
    结束拍卖（管理员）：
    - 仅进行中的拍卖可结束；已结束/已取消直接拒绝，防止重复入账
    - 无出价时无获胜方、不入账
    """

    admin_only = True

    def __init__(self, auction_repo: AuctionRepo | None = None, bid_repo: BidRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()
        self.bid_repo = bid_repo or BidRepo()

    def perform(self, user: User, auction_id: int) -> Auction:
        auction = self.auction_repo.lock(auction_id)
        if auction.status in Auction.CLOSED_STATUSES:
            raise AuctionAlreadyClosedError(extra={"status": auction.status})
        AUCTION_TRANSITIONS.ensure(auction.status, Auction.Status.ENDED)

        leader = self.bid_repo.leader(auction.pk)
        values: dict[str, Any] = {"status": Auction.Status.ENDED, "ended_at": timezone.now()}
        if leader is not None:
            values.update(winning_team_id=leader.team_id, winning_user_id=leader.user_id, winning_amount=leader.amount)
        if not self.auction_repo.compare_and_set(auction.pk, {"status": Auction.Status.ACTIVE}, values):
            raise AuctionAlreadyClosedError()

        points = 0
        if leader is not None:
            points = auction.points_for_win
            credit_team(
                leader.team_id,
                points,
                source_type=CreditEntry.SourceType.AUCTION,
                source_id=auction.id,
                note=f"拍卖成交：{auction.item_name}",
            )
        logger.info(
            "拍卖结束",
            extra=logger_extra(
                {
                    "auction_id": auction.id,
                    "admin_id": user.id,
                    "winning_team_id": values.get("winning_team_id"),
                    "winning_amount": values.get("winning_amount"),
                    "points": points,
                }
            ),
        )
        payload = {
            "event": AUCTION_CLOSED,
            "auction_id": auction.id,
            "winning_team_id": values.get("winning_team_id"),
            "winning_user_id": values.get("winning_user_id"),
            "winning_amount": values.get("winning_amount"),
            "points_awarded": points,
        }

        def _publish():
            broadcast_feed(payload)
            if payload["winning_team_id"]:
                broadcast_team(payload["winning_team_id"], payload)

        self.after_commit(_publish)
        return self.auction_repo.get_by_id(auction.pk)


class AuctionCancelService(BaseService[Auction]):
    """取消拍卖（管理员）：未开始或进行中均可取消，不发放积分"""

    admin_only = True

    def __init__(self, auction_repo: AuctionRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()

    def perform(self, user: User, auction_id: int) -> Auction:
        auction = self.auction_repo.lock(auction_id)
        if auction.status in Auction.CLOSED_STATUSES:
            raise AuctionAlreadyClosedError(extra={"status": auction.status})
        AUCTION_TRANSITIONS.ensure(auction.status, Auction.Status.CANCELLED)
        if not self.auction_repo.compare_and_set(
                auction.pk,
                {"status__in": AUCTION_TRANSITIONS.sources_for(Auction.Status.CANCELLED)},
                {"status": Auction.Status.CANCELLED, "ended_at": timezone.now()},
        ):
            raise AuctionAlreadyClosedError()
        logger.info("拍卖取消", extra=logger_extra({"auction_id": auction.id, "admin_id": user.id}))
        self.after_commit(lambda: broadcast_feed({"event": AUCTION_CANCELLED, "auction_id": auction.id}))
        return self.auction_repo.get_by_id(auction.pk)


class BidListService(BaseService[list[Bid]]):
    """出价列表：按金额从高到低"""

    atomic_enabled = False

    def __init__(self, auction_repo: AuctionRepo | None = None, bid_repo: BidRepo | None = None):
        self.auction_repo = auction_repo or AuctionRepo()
        self.bid_repo = bid_repo or BidRepo()

    def perform(self, auction_id: int) -> list[Bid]:
        auction = self.auction_repo.get_by_id(auction_id)
        return list(self.bid_repo.for_auction(auction.id))
