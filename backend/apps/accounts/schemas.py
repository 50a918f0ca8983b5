"""账户模块入参 Schema"""

from __future__ import annotations

from dataclasses import dataclass

from apps.common.base.base_schema import BaseSchema


@dataclass
class ProfileUpdateSchema(BaseSchema):
    """修改个人资料：仅昵称与头像，经验/等级/队伍字段一律忽略"""

    nickname: str | None = None
    avatar_url: str | None = None

    def validate(self) -> None:
        if self.nickname is not None:
            self.nickname = self.require_text("nickname", self.nickname, max_length=40)
        if self.avatar_url is not None:
            self.avatar_url = str(self.avatar_url).strip()
