# apps/teams/schemas.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def _check_color(color: str) -> str:
    if not _COLOR_RE.match(color or ""):
        raise ValidationError(message="主题色须为 #RRGGBB 格式")
    return color


@dataclass
class TeamCreateSchema(BaseSchema):
    """创建队伍入参（管理员）"""
    auto_validate: ClassVar[bool] = True
    # 队伍名称
    name: str = ""
    # 简介
    description: str = ""
    # 主题色
    color: str = "#3b82f6"
    # 图标
    emoji: str = ""
    # 排序
    order_index: int = 0

    def validate(self) -> None:
        self.name = self.require_text("name", self.name, max_length=120)
        self.color = _check_color(self.color)
        self.order_index = self.require_int("order_index", self.order_index, minimum=0)


@dataclass
class TeamUpdateSchema(BaseSchema):
    """
    修改队伍资料：累计积分不在此列，只能经由入账变更
    """
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    emoji: Optional[str] = None
    order_index: Optional[int] = None
    is_active: Optional[bool] = None

    def validate(self) -> None:
        if self.name is not None:
            self.name = self.require_text("name", self.name, max_length=120)
        if self.color is not None:
            self.color = _check_color(self.color)
        if self.order_index is not None:
            self.order_index = self.require_int("order_index", self.order_index, minimum=0)
        if self.is_active is not None and not isinstance(self.is_active, bool):
            raise ValidationError(message="is_active 必须为布尔值")


@dataclass
class TeamMemberSchema(BaseSchema):
    """分配/移出成员"""
    user_id: int = None  # type: ignore[assignment]

    def validate(self) -> None:
        self.user_id = self.require_int("user_id", self.user_id, minimum=1)
