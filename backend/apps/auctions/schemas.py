# apps/auctions/schemas.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from apps.common.base.base_schema import BaseSchema


@dataclass
class AuctionCreateSchema(BaseSchema):
    """
    创建拍卖（管理员）：
    - 加价幅度与获胜积分缺省时取系统配置
    - 当前价格从起拍价开始
    """
    auto_validate: ClassVar[bool] = True
    item_name: str = ""
    item_description: str = ""
    item_image_url: str = ""
    starting_price: Any = 0
    min_bid_increment: Any = None
    points_for_win: Any = None

    def validate(self) -> None:
        self.item_name = self.require_text("item_name", self.item_name, max_length=200)
        self.starting_price = self.require_int("starting_price", self.starting_price, minimum=0)
        self.min_bid_increment = self.require_int("min_bid_increment", self.min_bid_increment, minimum=1, allow_none=True)
        self.points_for_win = self.require_int("points_for_win", self.points_for_win, minimum=0, allow_none=True)


@dataclass
class AuctionUpdateSchema(BaseSchema):
    """修改拍卖：仅未开始的拍卖允许调整"""
    auto_validate: ClassVar[bool] = True
    item_name: Optional[str] = None
    item_description: Optional[str] = None
    item_image_url: Optional[str] = None
    starting_price: Any = None
    min_bid_increment: Any = None
    points_for_win: Any = None

    def validate(self) -> None:
        if self.item_name is not None:
            self.item_name = self.require_text("item_name", self.item_name, max_length=200)
        self.starting_price = self.require_int("starting_price", self.starting_price, minimum=0, allow_none=True)
        self.min_bid_increment = self.require_int("min_bid_increment", self.min_bid_increment, minimum=1, allow_none=True)
        self.points_for_win = self.require_int("points_for_win", self.points_for_win, minimum=0, allow_none=True)


@dataclass
class BidSchema(BaseSchema):
    auto_validate: ClassVar[bool] = True
    # 出价金额
    amount: Any = None

    def validate(self) -> None:
        self.amount = self.require_int("amount", self.amount, minimum=1)
