"""
竞速：带开关与开始时间的任务

- start 只能从未进行迁移到进行中；stop 只能从进行中迁移到已停止
- 审核通过时按审核先后原子分配名次（任务行上的计数器 +1），与参赛者自报时间无关
- 用时 = 审核时刻 - 开始时间；积分按名次查表，超出积分表为 0，记在提交时所在队伍名下
- 驳回复用 SubmissionRejectService：终态、不分配名次、不入账
"""

from __future__ import annotations

from django.utils import timezone

from apps.accounts.models import User
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    RaceNotStartedError,
    RaceStateError,
    SubmissionAlreadyResolvedError,
    ValidationError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.points import points_for_placement
from apps.common.ws_events import RACE_PLACEMENT_ASSIGNED, RACE_STARTED, RACE_STOPPED
from apps.common.ws_utils import broadcast_feed, broadcast_team
from apps.ledger.models import CreditEntry
from apps.ledger.services import credit_team
from .models import Mission, Submission
from .repo import MissionRepo, SubmissionRepo
from .schemas import SubmissionReviewSchema
from .services import SUBMISSION_TRANSITIONS, publish_resolution

logger = get_logger(__name__)


class RaceStartService(BaseService[Mission]):
    """开始竞速（管理员）：重新开始时名次计数器延续，用时从最近一次开始计算"""

    admin_only = True

    def __init__(self, mission_repo: MissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()

    def perform(self, user: User, mission_id: int) -> Mission:
        mission = self.mission_repo.get_by_id(mission_id, queryset=self.mission_repo.races())
        started_at = timezone.now()
        if not self.mission_repo.compare_and_set(
                mission.pk,
                {"is_race": True, "race_active": False},
                {"race_active": True, "race_started_at": started_at},
        ):
            raise RaceStateError(message="竞速已在进行中")
        logger.info("竞速开始", extra=logger_extra({"mission_id": mission.id, "admin_id": user.id}))
        self.after_commit(
            lambda: broadcast_feed(
                {"event": RACE_STARTED, "mission_id": mission.id, "started_at": started_at.isoformat()}
            )
        )
        return self.mission_repo.get_by_id(mission.pk)


class RaceStopService(BaseService[Mission]):
    """停止竞速（管理员）：不再接受参赛提交，已有的待审核提交仍可审核"""

    admin_only = True

    def __init__(self, mission_repo: MissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()

    def perform(self, user: User, mission_id: int) -> Mission:
        mission = self.mission_repo.get_by_id(mission_id, queryset=self.mission_repo.races())
        if not self.mission_repo.compare_and_set(
                mission.pk, {"is_race": True, "race_active": True}, {"race_active": False}
        ):
            raise RaceStateError(message="竞速未在进行中")
        logger.info("竞速停止", extra=logger_extra({"mission_id": mission.id, "admin_id": user.id}))
        self.after_commit(lambda: broadcast_feed({"event": RACE_STOPPED, "mission_id": mission.id}))
        return self.mission_repo.get_by_id(mission.pk)


class RaceApproveService(BaseService[Submission]):
    """
    竞速审核通过（管理员）：
    1) 认领提交：pending → approved 条件更新，失败说明已被处理
    2) 名次：任务行计数器原子 +1
    3) 用时与积分写回提交，并为队伍入账一次
    """

    admin_only = True

    def __init__(self, mission_repo: MissionRepo | None = None, submission_repo: SubmissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, user: User, submission_id: int, schema: SubmissionReviewSchema | None = None) -> Submission:
        submission = self.submission_repo.lock(submission_id)
        mission = submission.mission
        if not mission.is_race:
            raise RaceStateError(message="该提交不属于竞速任务")
        if mission.race_started_at is None:
            raise RaceNotStartedError()
        SUBMISSION_TRANSITIONS.ensure(submission.status, Submission.Status.APPROVED)
        team_id = submission.team_id or submission.user.team_id
        if not team_id:
            raise ValidationError(message="参赛者未加入队伍，无法记录竞速积分")

        now = timezone.now()
        claimed = self.submission_repo.compare_and_set(
            submission.pk,
            {"status": Submission.Status.PENDING},
            {
                "status": Submission.Status.APPROVED,
                "reviewed_by": user,
                "reviewed_at": now,
                "admin_notes": schema.admin_notes if schema else "",
                "team_id": team_id,
            },
        )
        if not claimed:
            raise SubmissionAlreadyResolvedError()

        placement = self.mission_repo.next_sequence(mission.pk, "race_placement_seq")
        # 开始时间以加锁后的最新任务行为准
        started_at = self.mission_repo.get_by_id(mission.pk).race_started_at
        time_ms = max(0, int((now - started_at).total_seconds() * 1000))
        points = points_for_placement(mission.race_points_distribution, placement)
        self.submission_repo.compare_and_set(
            submission.pk,
            {"status": Submission.Status.APPROVED, "race_placement__isnull": True},
            {"race_placement": placement, "race_time_ms": time_ms, "xp_awarded": points},
        )
        credit_team(
            team_id,
            points,
            source_type=CreditEntry.SourceType.RACE_SUBMISSION,
            source_id=submission.id,
            note=f"{mission.title} 第 {placement} 名",
        )
        logger.info(
            "竞速名次分配",
            extra=logger_extra(
                {
                    "mission_id": mission.id,
                    "submission_id": submission.id,
                    "team_id": team_id,
                    "placement": placement,
                    "time_ms": time_ms,
                    "points": points,
                }
            ),
        )
        payload = {
            "event": RACE_PLACEMENT_ASSIGNED,
            "mission_id": mission.id,
            "submission_id": submission.id,
            "team_id": team_id,
            "user_id": submission.user_id,
            "placement": placement,
            "time_ms": time_ms,
            "points": points,
        }

        def _publish():
            broadcast_team(team_id, payload)
            broadcast_feed(payload)
            publish_resolution(submission.id)

        self.after_commit(_publish)
        return self.submission_repo.get_by_id(submission.pk)


class RaceEntriesService(BaseService[list[Submission]]):
    """竞速参赛列表：名次、用时、所属队伍"""

    atomic_enabled = False

    def __init__(self, mission_repo: MissionRepo | None = None, submission_repo: SubmissionRepo | None = None):
        self.mission_repo = mission_repo or MissionRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, mission_id: int) -> list[Submission]:
        mission = self.mission_repo.get_by_id(mission_id, queryset=self.mission_repo.races())
        return list(self.submission_repo.race_entries(mission.id))
