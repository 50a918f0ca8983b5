# apps/challenges/schemas.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.utils.points import normalize_distribution, to_storage
from .models import Challenge


# Schema 层：负责请求入参的结构化与校验，禁止写业务逻辑


@dataclass
class ChallengeCreateSchema(BaseSchema):
    """
    创建挑战（管理员）：
    - 积分表、固定分缺省时取系统配置
    - top_n 仅在 top_n 模式下有意义
    """
    auto_validate: ClassVar[bool] = True
    title: str = ""
    description: str = ""
    challenge_type: str = ""
    points_mode: str = Challenge.PointsMode.PLACEMENT
    points_distribution: Any = None
    fixed_points: Any = None
    top_n: Any = None
    score_direction: str = Challenge.ScoreDirection.DESC
    max_participants_per_team: Any = None
    order_index: Any = 0

    def validate(self) -> None:
        self.title = self.require_text("title", self.title, max_length=200)
        self.challenge_type = self.require_choice("challenge_type", self.challenge_type, Challenge.ChallengeType.values)
        self.points_mode = self.require_choice("points_mode", self.points_mode, Challenge.PointsMode.values)
        self.score_direction = self.require_choice(
            "score_direction", self.score_direction, Challenge.ScoreDirection.values
        )
        if self.points_distribution is not None:
            self.points_distribution = to_storage(normalize_distribution(self.points_distribution))
        self.fixed_points = self.require_int("fixed_points", self.fixed_points, minimum=0, allow_none=True)
        self.top_n = self.require_int("top_n", self.top_n, minimum=1, allow_none=True)
        self.max_participants_per_team = self.require_int(
            "max_participants_per_team", self.max_participants_per_team, minimum=1, allow_none=True
        )
        self.order_index = self.require_int("order_index", self.order_index, minimum=0)


@dataclass
class ChallengeUpdateSchema(BaseSchema):
    """修改挑战配置：状态不在此列，走状态迁移接口"""
    auto_validate: ClassVar[bool] = True
    title: Optional[str] = None
    description: Optional[str] = None
    points_mode: Optional[str] = None
    points_distribution: Any = None
    fixed_points: Any = None
    top_n: Any = None
    score_direction: Optional[str] = None
    max_participants_per_team: Any = None
    order_index: Any = None

    def validate(self) -> None:
        if self.title is not None:
            self.title = self.require_text("title", self.title, max_length=200)
        if self.points_mode is not None:
            self.require_choice("points_mode", self.points_mode, Challenge.PointsMode.values)
        if self.score_direction is not None:
            self.require_choice("score_direction", self.score_direction, Challenge.ScoreDirection.values)
        if self.points_distribution is not None:
            self.points_distribution = to_storage(normalize_distribution(self.points_distribution))
        self.fixed_points = self.require_int("fixed_points", self.fixed_points, minimum=0, allow_none=True)
        self.top_n = self.require_int("top_n", self.top_n, minimum=1, allow_none=True)
        self.max_participants_per_team = self.require_int(
            "max_participants_per_team", self.max_participants_per_team, minimum=1, allow_none=True
        )
        self.order_index = self.require_int("order_index", self.order_index, minimum=0, allow_none=True)


@dataclass
class ChallengeStatusSchema(BaseSchema):
    auto_validate: ClassVar[bool] = True
    status: str = ""

    def validate(self) -> None:
        self.status = self.require_choice("status", self.status, Challenge.Status.values)


@dataclass
class ResultCreateSchema(BaseSchema):
    """
    录入成绩：团队类型填 team_id；个人类型填 user_id（队伍取参赛者所在队伍）
    """
    auto_validate: ClassVar[bool] = True
    team_id: Any = None
    user_id: Any = None
    time_ms: Any = None
    score: Any = None
    notes: str = ""

    def validate(self) -> None:
        self.team_id = self.require_int("team_id", self.team_id, minimum=1, allow_none=True)
        self.user_id = self.require_int("user_id", self.user_id, minimum=1, allow_none=True)
        self.time_ms = self.require_int("time_ms", self.time_ms, minimum=0, allow_none=True)
        self.score = self.require_int("score", self.score, allow_none=True)
        if self.team_id is None and self.user_id is None:
            raise ValidationError(message="team_id 与 user_id 至少填写一个")
        self.notes = (self.notes or "").strip()


@dataclass
class ResultUpdateSchema(BaseSchema):
    auto_validate: ClassVar[bool] = True
    time_ms: Any = None
    score: Any = None
    notes: Optional[str] = None

    def validate(self) -> None:
        self.time_ms = self.require_int("time_ms", self.time_ms, minimum=0, allow_none=True)
        self.score = self.require_int("score", self.score, allow_none=True)
