from __future__ import annotations

from typing import Optional

from django.db.models import QuerySet

from apps.common.base.base_repo import BaseRepo
from .models import Auction, Bid


class AuctionRepo(BaseRepo[Auction]):
    """拍卖仓储：状态与当前价格只通过 compare_and_set 推进"""

    model = Auction
    not_found_message = "拍卖不存在"

    def get_queryset(self) -> QuerySet[Auction]:
        return super().get_queryset().select_related("winning_team", "winning_user")

    def visible(self) -> QuerySet[Auction]:
        return self.filter(status__in=[Auction.Status.ACTIVE, Auction.Status.ENDED])

    def current_state(self, pk) -> dict:
        """直接回读库中最新的状态与价格（不经过任何实例缓存）"""
        return (
            self.model._default_manager.filter(pk=pk)
            .values("status", "current_price", "min_bid_increment")
            .get()
        )


class BidRepo(BaseRepo[Bid]):
    model = Bid
    not_found_message = "出价不存在"

    def get_queryset(self) -> QuerySet[Bid]:
        return super().get_queryset().select_related("team", "user")

    def for_auction(self, auction_id: int) -> QuerySet[Bid]:
        return self.filter(auction_id=auction_id).order_by("-amount", "-created_at", "-id")

    def leader(self, auction_id: int) -> Optional[Bid]:
        return self.get_or_none(auction_id=auction_id, is_leading=True)

    def clear_leader(self, auction_id: int) -> Optional[int]:
        """取消当前领先标记，返回原领先队伍 id"""
        previous = self.model._default_manager.filter(auction_id=auction_id, is_leading=True)
        team_id = previous.values_list("team_id", flat=True).first()
        previous.update(is_leading=False)
        return team_id
