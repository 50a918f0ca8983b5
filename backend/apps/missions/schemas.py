# apps/missions/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Optional

from django.utils import timezone

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.utils.points import normalize_distribution, to_storage
from .models import Mission


# Schema 层：负责请求入参的结构化与校验，禁止写业务逻辑


def ensure_dt(value: datetime | str | None, *, field_name: str) -> Optional[datetime]:
    """将字符串或 naive datetime 统一转换为时区感知的 datetime"""
    if value in (None, ""):
        return None
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValidationError(message=f"{field_name} 时间格式不正确") from exc
    else:
        dt = value
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, timezone.get_default_timezone())
    return dt


@dataclass
class MissionSubmitSchema(BaseSchema):
    """
    提交任务凭证：按任务类型取用对应字段，其余忽略
    """
    auto_validate: ClassVar[bool] = True
    # 二维码内容
    qr_code: Optional[str] = None
    # 照片地址（对象存储引用，引擎不解析）
    photo_url: Optional[str] = None
    # 人工任务的说明
    note: str = ""
    # 定位坐标
    lat: Any = None
    lng: Any = None
    # 测验作答 {题目 id: 选项 id}
    answers: dict = field(default_factory=dict)
    # 测验用时（毫秒）
    time_ms: Any = None

    def validate(self) -> None:
        if self.qr_code is not None:
            self.qr_code = str(self.qr_code).strip()
        if self.photo_url is not None:
            self.photo_url = str(self.photo_url).strip()
        if self.lat is not None or self.lng is not None:
            self.lat = self.require_float("lat", self.lat)
            self.lng = self.require_float("lng", self.lng)
            if not -90 <= self.lat <= 90 or not -180 <= self.lng <= 180:
                raise ValidationError(message="坐标超出范围")
        if not isinstance(self.answers, dict):
            raise ValidationError(message="answers 必须为对象")
        self.time_ms = self.require_int("time_ms", self.time_ms, minimum=0, allow_none=True)


@dataclass
class SubmissionReviewSchema(BaseSchema):
    """审核提交：通过时可覆盖奖励，驳回时填写备注"""
    auto_validate: ClassVar[bool] = True
    xp_override: Any = None
    admin_notes: str = ""

    def validate(self) -> None:
        self.xp_override = self.require_int("xp_override", self.xp_override, minimum=0, allow_none=True)
        self.admin_notes = (self.admin_notes or "").strip()


def _validate_quiz_data(quiz_data: Any) -> dict:
    if not isinstance(quiz_data, dict):
        raise ValidationError(message="quiz_data 必须为对象")
    questions = quiz_data.get("questions")
    if not isinstance(questions, list) or not questions:
        raise ValidationError(message="测验至少需要一道题目")
    seen: set[str] = set()
    for q in questions:
        if not isinstance(q, dict):
            raise ValidationError(message="每道题目必须为对象")
        raw_id = q.get("id")
        if not isinstance(raw_id, (str, int)) or isinstance(raw_id, bool):
            raise ValidationError(message="题目 id 必须为字符串或整数")
        qid = str(raw_id).strip()
        if not qid or qid in seen:
            raise ValidationError(message="题目 id 不能为空且不能重复")
        seen.add(qid)
        answers = q.get("answers")
        if not isinstance(answers, list) or not all(isinstance(a, dict) for a in answers):
            raise ValidationError(message=f"题目 {qid} 的选项必须为对象列表")
        if sum(1 for a in answers if a.get("is_correct")) != 1:
            raise ValidationError(message=f"题目 {qid} 必须有且只有一个正确选项")
    passing = BaseSchema.require_int("passing_score", quiz_data.get("passing_score", 60), minimum=0)
    if passing > 100:
        raise ValidationError(message="passing_score 不能超过 100")
    mode = quiz_data.get("mode") or Mission.QuizMode.CLASSIC
    BaseSchema.require_choice("mode", mode, Mission.QuizMode.values)
    time_limit = BaseSchema.require_int("time_limit", quiz_data.get("time_limit"), minimum=1, allow_none=True)
    return {**quiz_data, "passing_score": passing, "mode": mode, "time_limit": time_limit}


@dataclass
class MissionCreateSchema(BaseSchema):
    """
    创建任务（管理员）：
    - 二维码任务需要期望值；定位任务需要目标坐标；测验需要题目
    - 竞速任务只能是照片/人工类型，并携带名次积分表
    """
    auto_validate: ClassVar[bool] = True
    title: str = ""
    mission_type: str = ""
    description: str = ""
    xp_reward: Any = 0
    status: str = Mission.Status.ACTIVE
    qr_code_value: str = ""
    location_name: str = ""
    location_lat: Any = None
    location_lng: Any = None
    location_radius: Any = None
    quiz_data: Any = None
    photo_requirements: str = ""
    image_url: str = ""
    start_date: Any = None
    end_date: Any = None
    required_level: Any = 1
    max_completions: Any = None
    is_race: bool = False
    race_points_distribution: Any = None

    def validate(self) -> None:
        self.title = self.require_text("title", self.title, max_length=200)
        self.mission_type = self.require_choice("mission_type", self.mission_type, Mission.MissionType.values)
        self.status = self.require_choice("status", self.status, Mission.Status.values)
        self.xp_reward = self.require_int("xp_reward", self.xp_reward, minimum=0)
        self.required_level = self.require_int("required_level", self.required_level, minimum=1)
        self.max_completions = self.require_int("max_completions", self.max_completions, minimum=1, allow_none=True)
        self.start_date = ensure_dt(self.start_date, field_name="start_date")
        self.end_date = ensure_dt(self.end_date, field_name="end_date")
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError(message="截止时间必须晚于开放时间")

        if self.mission_type == Mission.MissionType.QR_CODE:
            self.qr_code_value = self.require_text("qr_code_value", self.qr_code_value, max_length=255)
        if self.mission_type == Mission.MissionType.GPS:
            self.location_lat = self.require_float("location_lat", self.location_lat)
            self.location_lng = self.require_float("location_lng", self.location_lng)
            self.location_radius = self.require_int("location_radius", self.location_radius, minimum=1, allow_none=True)
        if self.mission_type == Mission.MissionType.QUIZ:
            self.quiz_data = _validate_quiz_data(self.quiz_data)
            if self.max_completions not in (None, 1):
                raise ValidationError(message="测验任务只能作答一次")
        else:
            self.quiz_data = {}

        if not isinstance(self.is_race, bool):
            raise ValidationError(message="is_race 必须为布尔值")
        if self.is_race:
            if self.mission_type not in Mission.RACE_TYPES:
                raise ValidationError(message="竞速任务只支持照片或人工确认类型")
            self.race_points_distribution = to_storage(
                normalize_distribution(self.race_points_distribution, field_name="race_points_distribution")
            )
        else:
            self.race_points_distribution = {}


@dataclass
class MissionUpdateSchema(BaseSchema):
    """修改任务基础信息与上下线；类型与竞速属性创建后不可改"""
    auto_validate: ClassVar[bool] = True
    title: Optional[str] = None
    description: Optional[str] = None
    xp_reward: Any = None
    status: Optional[str] = None
    start_date: Any = None
    end_date: Any = None
    required_level: Any = None
    max_completions: Any = None
    # 需要显式置空的可选字段（未传值的字段保持不变）
    clear_fields: list = field(default_factory=list)

    CLEARABLE_FIELDS: ClassVar[tuple[str, ...]] = ("start_date", "end_date", "max_completions")

    def validate(self) -> None:
        if not isinstance(self.clear_fields, list):
            raise ValidationError(message="clear_fields 必须为列表")
        for name in self.clear_fields:
            self.require_choice("clear_fields", name, self.CLEARABLE_FIELDS)
            if getattr(self, name) not in (None, ""):
                raise ValidationError(message=f"{name} 不能同时赋值和置空")
        self.clear_fields = sorted(set(self.clear_fields))
        if self.title is not None:
            self.title = self.require_text("title", self.title, max_length=200)
        if self.status is not None:
            self.require_choice("status", self.status, Mission.Status.values)
        self.xp_reward = self.require_int("xp_reward", self.xp_reward, minimum=0, allow_none=True)
        self.required_level = self.require_int("required_level", self.required_level, minimum=1, allow_none=True)
        self.max_completions = self.require_int("max_completions", self.max_completions, minimum=1, allow_none=True)
        self.start_date = ensure_dt(self.start_date, field_name="start_date")
        self.end_date = ensure_dt(self.end_date, field_name="end_date")
