"""
任务完成判定

- 提交前统一校验：任务开放、时间窗、等级、无待审核提交、完成次数、测验仅一次
- 二维码/定位/测验在创建提交时即判定为终态；照片/人工创建为待审核
- 每一次进入 approved 的迁移恰好触发一次参与者入账；驳回不入账
- 竞速任务的提交也走这里创建，审核交给 race_service
"""

from __future__ import annotations

from typing import Any, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.accounts.levels import level_for_xp
from apps.accounts.models import User
from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    BizError,
    InvalidEvidenceError,
    MissionAlreadyCompletedError,
    MissionAlreadyPendingError,
    MissionCompletionLimitError,
    MissionInactiveError,
    MissionLevelTooLowError,
    MissionOutsideWindowError,
    RaceClosedError,
    RaceNotStartedError,
    SubmissionAlreadyResolvedError,
    TeamRequiredError,
    ValidationError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.geo import haversine_meters
from apps.common.utils.state import TransitionTable
from apps.common.ws_events import SUBMISSION_RESOLVED
from apps.common.ws_utils import broadcast_feed, broadcast_notify
from apps.ledger.models import CreditEntry
from apps.ledger.services import credit_user
from apps.system.services import ConfigService
from . import quiz
from .models import Mission, Submission
from .repo import MissionRepo, SubmissionRepo
from .schemas import MissionCreateSchema, MissionSubmitSchema, MissionUpdateSchema, SubmissionReviewSchema

logger = get_logger(__name__)

SUBMISSION_TRANSITIONS = TransitionTable(
    {
        Submission.Status.PENDING: {Submission.Status.APPROVED, Submission.Status.REJECTED},
    },
    error_class=SubmissionAlreadyResolvedError,
)


def serialize_mission(mission: Mission, *, for_admin: bool = False) -> dict:
    """任务序列化：参与者视角隐藏二维码期望值与测验答案"""
    data: dict[str, Any] = {
        "id": mission.id,
        "title": mission.title,
        "description": mission.description,
        "mission_type": mission.mission_type,
        "xp_reward": mission.xp_reward,
        "status": mission.status,
        "location_name": mission.location_name,
        "location_lat": mission.location_lat,
        "location_lng": mission.location_lng,
        "location_radius": mission.location_radius,
        "photo_requirements": mission.photo_requirements,
        "image_url": mission.image_url,
        "start_date": mission.start_date,
        "end_date": mission.end_date,
        "required_level": mission.required_level,
        "max_completions": mission.completion_limit,
        "is_race": mission.is_race,
        "quiz": None,
    }
    if mission.mission_type == Mission.MissionType.QUIZ:
        data["quiz"] = mission.quiz_data if for_admin else quiz.public_quiz(mission.quiz_data)
    if mission.is_race:
        data.update(
            race_active=mission.race_active,
            race_started_at=mission.race_started_at,
            race_points_distribution=mission.race_points_distribution,
        )
    if for_admin:
        data["qr_code_value"] = mission.qr_code_value
    stats = {k: getattr(mission, f"my_{k}") for k in ("attempts", "completed", "pending", "rejected") if hasattr(mission, f"my_{k}")}
    if stats:
        data["my_stats"] = stats
    return data


def serialize_submission(submission: Submission) -> dict:
    return {
        "id": submission.id,
        "mission_id": submission.mission_id,
        "user_id": submission.user_id,
        "team_id": submission.team_id,
        "status": submission.status,
        "xp_awarded": submission.xp_awarded,
        "photo_url": submission.photo_url,
        "note": submission.note,
        "quiz_score": submission.quiz_score,
        "quiz_time_ms": submission.quiz_time_ms,
        "race_placement": submission.race_placement,
        "race_time_ms": submission.race_time_ms,
        "admin_notes": submission.admin_notes,
        "reviewed_by": submission.reviewed_by_id,
        "reviewed_at": submission.reviewed_at,
        "created_at": submission.created_at,
    }


def publish_resolution(submission_id: int) -> None:
    """提交进入终态后（提交之后）推送：个人组 + 公共动态"""
    submission = SubmissionRepo().get_by_id(submission_id)
    payload = {
        "event": SUBMISSION_RESOLVED,
        "submission_id": submission.id,
        "mission_id": submission.mission_id,
        "user_id": submission.user_id,
        "status": submission.status,
        "xp_awarded": submission.xp_awarded,
        "quiz_score": submission.quiz_score,
        "placement": submission.race_placement,
    }
    broadcast_notify(submission.user_id, payload)
    if submission.status == Submission.Status.APPROVED:
        broadcast_feed(payload)


class MissionEligibility:
    """
    提交前置条件，任何写入之前执行；不满足时抛出对应的任务/竞速错误
    """

    def __init__(self, submission_repo: SubmissionRepo | None = None):
        self.submission_repo = submission_repo or SubmissionRepo()

    def ensure(self, user: User, mission: Mission, *, now=None) -> None:
        now = now or timezone.now()
        if mission.status != Mission.Status.ACTIVE:
            raise MissionInactiveError()
        if mission.start_date and now < mission.start_date:
            raise MissionOutsideWindowError(message="任务尚未开放", extra={"start_date": mission.start_date})
        if mission.end_date and now > mission.end_date:
            raise MissionOutsideWindowError(message="任务已截止", extra={"end_date": mission.end_date})
        if level_for_xp(user.total_xp) < mission.required_level:
            raise MissionLevelTooLowError(extra={"required_level": mission.required_level})
        if mission.is_race:
            if mission.race_started_at is None:
                raise RaceNotStartedError()
            if not mission.race_active:
                raise RaceClosedError()
            if not user.team_id:
                raise TeamRequiredError(message="竞速积分记在队伍名下，请先加入队伍")

        existing = self.submission_repo.for_user_mission(user.id, mission.id)
        if mission.mission_type == Mission.MissionType.QUIZ:
            prior = existing.values_list("status", flat=True).first()
            if prior is not None:
                raise MissionAlreadyCompletedError(message="测验只能作答一次", extra={"status": prior})
        if existing.filter(status=Submission.Status.PENDING).exists():
            raise MissionAlreadyPendingError()
        completed = existing.filter(status=Submission.Status.APPROVED).count()
        if completed >= mission.completion_limit:
            if mission.completion_limit == 1:
                raise MissionAlreadyCompletedError()
            raise MissionCompletionLimitError(extra={"max_completions": mission.completion_limit})

    def reason(self, user: User, mission: Mission) -> Optional[dict]:
        """列表展示用：返回不可提交的原因，可提交时为 None"""
        try:
            self.ensure(user, mission)
        except BizError as exc:
            return {"code": exc.code, "message": exc.message}
        return None


class MissionSubmitService(BaseService[Submission]):
    """
    提交任务凭证：
    - 锁定参与者行，同一参与者的并发提交串行化
    - once_key 唯一约束兜底：测验与单次任务不会因并发产生第二条终态记录
    """

    def __init__(
            self,
            mission_repo: MissionRepo | None = None,
            submission_repo: SubmissionRepo | None = None,
            user_repo: UserRepo | None = None,
    ):
        self.mission_repo = mission_repo or MissionRepo()
        self.submission_repo = submission_repo or SubmissionRepo()
        self.user_repo = user_repo or UserRepo()
        self.eligibility = MissionEligibility(self.submission_repo)

    def perform(self, user: User, mission_id: int, schema: MissionSubmitSchema) -> Submission:
        mission = self.mission_repo.get_by_id(mission_id)
        participant = self.user_repo.lock(user.pk)
        self.eligibility.ensure(participant, mission)

        data: dict[str, Any] = {
            "user": participant,
            "mission": mission,
            "team_id": participant.team_id,
            "status": Submission.Status.PENDING,
            "xp_awarded": 0,
        }
        if mission.is_race or not mission.is_auto_resolved:
            data.update(self._manual_evidence(mission, schema))
        elif mission.mission_type == Mission.MissionType.QR_CODE:
            data.update(self._check_qr(mission, schema))
        elif mission.mission_type == Mission.MissionType.GPS:
            data.update(self._check_gps(mission, schema))
        else:
            data.update(self._grade_quiz(mission, schema))

        consumes_slot = mission.mission_type == Mission.MissionType.QUIZ or (
            data["status"] == Submission.Status.APPROVED and mission.completion_limit == 1
        )
        if consumes_slot:
            data["once_key"] = Submission.build_once_key(mission.id, participant.id)

        submission = self._create(data)
        logger.info(
            "任务提交",
            extra=logger_extra(
                {
                    "submission_id": submission.id,
                    "mission_id": mission.id,
                    "user_id": participant.id,
                    "status": submission.status,
                    "xp_awarded": submission.xp_awarded,
                }
            ),
        )
        if submission.status == Submission.Status.APPROVED:
            credit_user(
                participant.id,
                submission.xp_awarded,
                source_type=CreditEntry.SourceType.MISSION_SUBMISSION,
                source_id=submission.id,
            )
        if submission.status != Submission.Status.PENDING:
            submission_id = submission.id
            self.after_commit(lambda: publish_resolution(submission_id))
        return submission

    # ------------------------
    # 各类型判定
    # ------------------------

    @staticmethod
    def _manual_evidence(mission: Mission, schema: MissionSubmitSchema) -> dict:
        if mission.mission_type == Mission.MissionType.PHOTO and not schema.photo_url:
            raise InvalidEvidenceError(message="请上传照片")
        return {"photo_url": schema.photo_url or "", "note": schema.note or ""}

    @staticmethod
    def _check_qr(mission: Mission, schema: MissionSubmitSchema) -> dict:
        if not schema.qr_code or schema.qr_code != mission.qr_code_value:
            raise InvalidEvidenceError(message="二维码不正确")
        return {"status": Submission.Status.APPROVED, "xp_awarded": mission.xp_reward}

    @staticmethod
    def _check_gps(mission: Mission, schema: MissionSubmitSchema) -> dict:
        if schema.lat is None or schema.lng is None:
            raise InvalidEvidenceError(message="缺少定位坐标")
        if mission.location_lat is None or mission.location_lng is None:
            raise ValidationError(message="任务未配置目标位置")
        radius = mission.location_radius or ConfigService().get_int("DEFAULT_GPS_RADIUS_METERS", 50)
        distance = haversine_meters(schema.lat, schema.lng, mission.location_lat, mission.location_lng)
        if distance > radius:
            raise InvalidEvidenceError(
                message="距离目标位置过远",
                extra={"distance_meters": round(distance, 1), "radius_meters": radius},
            )
        return {
            "status": Submission.Status.APPROVED,
            "xp_awarded": mission.xp_reward,
            "gps_lat": schema.lat,
            "gps_lng": schema.lng,
        }

    @staticmethod
    def _grade_quiz(mission: Mission, schema: MissionSubmitSchema) -> dict:
        outcome = quiz.grade(mission.quiz_data, schema.answers, time_ms=schema.time_ms)
        return {
            "status": Submission.Status.APPROVED if outcome.passed else Submission.Status.REJECTED,
            "xp_awarded": mission.xp_reward if outcome.passed else 0,
            "quiz_score": outcome.score,
            "quiz_time_ms": outcome.time_ms,
        }

    def _create(self, data: dict) -> Submission:
        try:
            with transaction.atomic():
                return self.submission_repo.create(data)
        except IntegrityError as exc:
            if data.get("status") == Submission.Status.PENDING and "once_key" not in data:
                raise MissionAlreadyPendingError() from exc
            raise MissionAlreadyCompletedError() from exc


class SubmissionApproveService(BaseService[Submission]):
    """
    审核通过（管理员）：
    - 仅 pending 可迁移，条件更新保证两名审核员并发操作只有一个成功
    - 奖励为任务奖励或管理员指定值；竞速提交转交竞速审核
    """

    admin_only = True

    def __init__(self, submission_repo: SubmissionRepo | None = None):
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, user: User, submission_id: int, schema: SubmissionReviewSchema) -> Submission:
        submission = self.submission_repo.lock(submission_id)
        mission = submission.mission
        if mission.is_race:
            from .race_service import RaceApproveService

            return RaceApproveService(submission_repo=self.submission_repo).perform(user, submission_id, schema)

        SUBMISSION_TRANSITIONS.ensure(submission.status, Submission.Status.APPROVED)
        xp = schema.xp_override if schema.xp_override is not None else mission.xp_reward
        values: dict[str, Any] = {
            "status": Submission.Status.APPROVED,
            "xp_awarded": xp,
            "reviewed_by": user,
            "reviewed_at": timezone.now(),
            "admin_notes": schema.admin_notes,
        }
        if mission.completion_limit == 1:
            values["once_key"] = Submission.build_once_key(mission.id, submission.user_id)
        try:
            with transaction.atomic():
                claimed = self.submission_repo.compare_and_set(
                    submission.pk, {"status": Submission.Status.PENDING}, values
                )
        except IntegrityError as exc:
            raise MissionAlreadyCompletedError(message="该参与者已完成此任务") from exc
        if not claimed:
            raise SubmissionAlreadyResolvedError()

        credit_user(
            submission.user_id,
            xp,
            source_type=CreditEntry.SourceType.MISSION_SUBMISSION,
            source_id=submission.id,
        )
        logger.info(
            "审核通过任务提交",
            extra=logger_extra(
                {"submission_id": submission.id, "mission_id": mission.id, "admin_id": user.id, "xp_awarded": xp}
            ),
        )
        self.after_commit(lambda: publish_resolution(submission.id))
        return self.submission_repo.get_by_id(submission.pk)


class SubmissionRejectService(BaseService[Submission]):
    """驳回（管理员）：终态，不入账；竞速提交同样适用，不分配名次"""

    admin_only = True

    def __init__(self, submission_repo: SubmissionRepo | None = None):
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, user: User, submission_id: int, schema: SubmissionReviewSchema) -> Submission:
        submission = self.submission_repo.lock(submission_id)
        SUBMISSION_TRANSITIONS.ensure(submission.status, Submission.Status.REJECTED)
        claimed = self.submission_repo.compare_and_set(
            submission.pk,
            {"status": Submission.Status.PENDING},
            {
                "status": Submission.Status.REJECTED,
                "xp_awarded": 0,
                "reviewed_by": user,
                "reviewed_at": timezone.now(),
                "admin_notes": schema.admin_notes,
            },
        )
        if not claimed:
            raise SubmissionAlreadyResolvedError()
        logger.info(
            "驳回任务提交",
            extra=logger_extra({"submission_id": submission.id, "mission_id": submission.mission_id, "admin_id": user.id}),
        )
        self.after_commit(lambda: publish_resolution(submission.id))
        return self.submission_repo.get_by_id(submission.pk)


class MissionCreateService(BaseService[Mission]):
    """创建任务（管理员）"""

    admin_only = True

    def __init__(self, mission_repo: MissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()

    def perform(self, user: User, schema: MissionCreateSchema) -> Mission:
        data = schema.to_dict()
        data["created_by"] = user
        mission = self.mission_repo.create(data)
        logger.info(
            "创建任务",
            extra=logger_extra({"mission_id": mission.id, "mission_type": mission.mission_type, "is_race": mission.is_race}),
        )
        return mission


class MissionUpdateService(BaseService[Mission]):
    """修改任务（管理员）：仅基础信息与上下线，竞速状态走 race_service"""

    admin_only = True

    def __init__(self, mission_repo: MissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()

    def perform(self, user: User, mission_id: int, schema: MissionUpdateSchema) -> Mission:
        mission = self.mission_repo.get_by_id(mission_id)
        data = schema.to_dict(exclude_none=True, exclude=["clear_fields"])
        data.update({name: None for name in schema.clear_fields})
        if mission.mission_type == Mission.MissionType.QUIZ and data.get("max_completions", 1) != 1:
            raise ValidationError(message="测验任务只能作答一次")
        start = data.get("start_date", mission.start_date)
        end = data.get("end_date", mission.end_date)
        if start and end and end <= start:
            raise ValidationError(message="截止时间必须晚于开放时间")
        mission = self.mission_repo.update(mission, data)
        logger.info("修改任务", extra=logger_extra({"mission_id": mission.id, "fields": sorted(data)}))
        return mission


class MissionStatsService(BaseService[dict]):
    """参与者在单个任务上的提交统计与是否可提交"""

    atomic_enabled = False

    def __init__(self, mission_repo: MissionRepo | None = None, submission_repo: SubmissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, user: User, mission_id: int) -> dict:
        mission = self.mission_repo.get_by_id(mission_id)
        stats = self.submission_repo.user_stats(user.id, mission.id)
        blocked = MissionEligibility(self.submission_repo).reason(user, mission)
        return {**stats, "can_submit": blocked is None, "blocked_reason": blocked}
