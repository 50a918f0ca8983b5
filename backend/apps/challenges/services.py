"""
挑战计分

- 状态迁移表：pending → active ⇄ scoring，active/scoring → completed 只能经由发放积分
- 成绩只在 active / scoring 状态下可录入、修改、删除；completed 后一切修改被拒绝
- 名次可在发放前重复计算；发放时在同一事务内重新计算并按队伍汇总
- 发放积分以条件更新 {active, scoring} → completed 作为唯一的防重入口
"""

from __future__ import annotations

from typing import Any, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    ChallengeAlreadyCompletedError,
    ChallengeStateError,
    ConflictError,
    NoResultsToScoreError,
    ParticipantCapExceededError,
    TeamNotMemberError,
    TeamRequiredError,
    ValidationError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.state import TransitionTable
from apps.common.ws_events import (
    CHALLENGE_PLACEMENTS_COMPUTED,
    CHALLENGE_POINTS_AWARDED,
    CHALLENGE_STATUS_CHANGED,
)
from apps.common.ws_utils import broadcast_feed, broadcast_team
from apps.ledger.models import CreditEntry
from apps.ledger.services import credit_team
from apps.system.services import ConfigService
from apps.teams.repo import TeamRepo
from . import scoring
from .models import Challenge, ChallengeResult
from .repo import ChallengeRepo, ChallengeResultRepo
from .schemas import (
    ChallengeCreateSchema,
    ChallengeStatusSchema,
    ChallengeUpdateSchema,
    ResultCreateSchema,
    ResultUpdateSchema,
)

logger = get_logger(__name__)

CHALLENGE_TRANSITIONS = TransitionTable(
    {
        Challenge.Status.PENDING: {Challenge.Status.ACTIVE},
        Challenge.Status.ACTIVE: {Challenge.Status.SCORING, Challenge.Status.COMPLETED},
        Challenge.Status.SCORING: {Challenge.Status.ACTIVE, Challenge.Status.COMPLETED},
    },
    error_class=ChallengeStateError,
)


def serialize_challenge(challenge: Challenge) -> dict:
    data = {
        "id": challenge.id,
        "title": challenge.title,
        "description": challenge.description,
        "challenge_type": challenge.challenge_type,
        "status": challenge.status,
        "points_mode": challenge.points_mode,
        "points_distribution": challenge.points_distribution,
        "fixed_points": challenge.fixed_points,
        "top_n": challenge.top_n,
        "score_direction": challenge.score_direction,
        "max_participants_per_team": challenge.max_participants_per_team,
        "order_index": challenge.order_index,
        "points_awarded_at": challenge.points_awarded_at,
        "created_at": challenge.created_at,
    }
    if hasattr(challenge, "result_count"):
        data["result_count"] = challenge.result_count
    return data


def serialize_result(result: ChallengeResult) -> dict:
    return {
        "id": result.id,
        "challenge_id": result.challenge_id,
        "team_id": result.team_id,
        "team_name": result.team.name if result.team_id else None,
        "user_id": result.user_id,
        "username": result.user.username if result.user_id else None,
        "time_ms": result.time_ms,
        "score": result.score,
        "placement": result.placement,
        "points_awarded": result.points_awarded,
        "notes": result.notes,
        "created_at": result.created_at,
    }


def ensure_editable(challenge: Challenge) -> None:
    """成绩与名次只在 active / scoring 状态下可变更"""
    if challenge.status == Challenge.Status.COMPLETED:
        raise ChallengeAlreadyCompletedError()
    if challenge.status not in Challenge.EDITABLE_STATUSES:
        raise ChallengeStateError(message="挑战未开始，暂不接受成绩", extra={"status": challenge.status})


class ChallengeCreateService(BaseService[Challenge]):
    """创建挑战（管理员）"""

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()

    def perform(self, user: User, schema: ChallengeCreateSchema) -> Challenge:
        config = ConfigService()
        data = schema.to_dict()
        if data["points_distribution"] is None:
            data["points_distribution"] = config.get("DEFAULT_POINTS_DISTRIBUTION", {})
        if data["fixed_points"] is None:
            data["fixed_points"] = config.get_int("DEFAULT_CHALLENGE_FIXED_POINTS", 50)
        data["created_by"] = user
        challenge = self.challenge_repo.create(data)
        logger.info(
            "创建挑战",
            extra=logger_extra(
                {"challenge_id": challenge.id, "challenge_type": challenge.challenge_type, "points_mode": challenge.points_mode}
            ),
        )
        return challenge


class ChallengeUpdateService(BaseService[Challenge]):
    """修改挑战配置（管理员）：已完成的挑战不可修改"""

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()

    def perform(self, user: User, challenge_id: int, schema: ChallengeUpdateSchema) -> Challenge:
        challenge = self.challenge_repo.lock(challenge_id)
        if challenge.status == Challenge.Status.COMPLETED:
            raise ChallengeAlreadyCompletedError()
        data = schema.to_dict(exclude_none=True)
        challenge = self.challenge_repo.update(challenge, data)
        logger.info("修改挑战", extra=logger_extra({"challenge_id": challenge.id, "fields": sorted(data)}))
        return challenge


class ChallengeDeleteService(BaseService[None]):
    """删除挑战（管理员）：已发放积分的挑战保留作为账本来源"""

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()

    def perform(self, user: User, challenge_id: int) -> None:
        challenge = self.challenge_repo.lock(challenge_id)
        if challenge.status == Challenge.Status.COMPLETED:
            raise ChallengeAlreadyCompletedError(message="已发放积分的挑战不能删除")
        self.challenge_repo.delete(challenge)
        logger.info("删除挑战", extra=logger_extra({"challenge_id": challenge_id, "admin_id": user.id}))


class ChallengeStatusService(BaseService[Challenge]):
    """
    状态迁移（管理员）：
    - 迁移到 completed 只能通过发放积分
    - 其余迁移按迁移表校验后以条件更新写入
    """

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()

    def perform(self, user: User, challenge_id: int, schema: ChallengeStatusSchema) -> Challenge:
        challenge = self.challenge_repo.lock(challenge_id)
        if challenge.status == Challenge.Status.COMPLETED:
            raise ChallengeAlreadyCompletedError()
        target = schema.status
        if target == Challenge.Status.COMPLETED:
            raise ChallengeStateError(message="请通过发放积分完成挑战")
        CHALLENGE_TRANSITIONS.ensure(challenge.status, target)
        previous = challenge.status
        if not self.challenge_repo.compare_and_set(challenge.pk, {"status": previous}, {"status": target}):
            raise ChallengeStateError(message="挑战状态已被修改，请刷新后重试")
        logger.info(
            "挑战状态变更",
            extra=logger_extra({"challenge_id": challenge.id, "from": previous, "to": target, "admin_id": user.id}),
        )
        self.after_commit(
            lambda: broadcast_feed(
                {"event": CHALLENGE_STATUS_CHANGED, "challenge_id": challenge.id, "from": previous, "status": target}
            )
        )
        return self.challenge_repo.get_by_id(challenge.pk)


class ResultAddService(BaseService[ChallengeResult]):
    """
    录入成绩（管理员）：
    - 计时类必须有用时，任务类必须有得分
    - 个人类型：参赛者必须属于队伍，且每队人数不超过上限
    - 锁定挑战行，同一挑战的录入串行化，人数上限不会被并发突破
    """

    admin_only = True

    def __init__(
            self,
            challenge_repo: ChallengeRepo | None = None,
            result_repo: ChallengeResultRepo | None = None,
            user_repo: UserRepo | None = None,
            team_repo: TeamRepo | None = None,
    ):
        self.challenge_repo = challenge_repo or ChallengeRepo()
        self.result_repo = result_repo or ChallengeResultRepo()
        self.user_repo = user_repo or UserRepo()
        self.team_repo = team_repo or TeamRepo()

    def perform(self, user: User, challenge_id: int, schema: ResultCreateSchema) -> ChallengeResult:
        challenge = self.challenge_repo.lock(challenge_id)
        ensure_editable(challenge)
        self._ensure_measure(challenge, schema.time_ms, schema.score)

        participant: Optional[User] = None
        if challenge.is_individual:
            if schema.user_id is None:
                raise ValidationError(message="个人挑战需要填写 user_id")
            participant = self.user_repo.get_by_id(schema.user_id)
            if not participant.team_id:
                raise TeamRequiredError(message="参赛者未加入队伍")
            if schema.team_id is not None and schema.team_id != participant.team_id:
                raise TeamNotMemberError(extra={"team_id": schema.team_id, "user_id": participant.id})
            team_id = participant.team_id
            cap = challenge.max_participants_per_team
            if cap and self.result_repo.team_entry_count(challenge.id, team_id) >= cap:
                raise ParticipantCapExceededError(extra={"team_id": team_id, "max_participants_per_team": cap})
        else:
            if schema.team_id is None:
                raise ValidationError(message="团队挑战需要填写 team_id")
            team_id = self.team_repo.get_by_id(schema.team_id).id

        try:
            with transaction.atomic():
                result = self.result_repo.create(
                    {
                        "challenge": challenge,
                        "team_id": team_id,
                        "user": participant,
                        "time_ms": schema.time_ms,
                        "score": schema.score,
                        "notes": schema.notes,
                    }
                )
        except IntegrityError as exc:
            raise ConflictError(message="该队伍/参赛者已有成绩，请修改原成绩") from exc
        logger.info(
            "录入挑战成绩",
            extra=logger_extra(
                {
                    "challenge_id": challenge.id,
                    "result_id": result.id,
                    "team_id": team_id,
                    "user_id": participant.id if participant else None,
                }
            ),
        )
        return self.result_repo.get_by_id(result.pk)

    @staticmethod
    def _ensure_measure(challenge: Challenge, time_ms: Optional[int], score: Optional[int]) -> None:
        if challenge.is_timed and time_ms is None:
            raise ValidationError(message="计时挑战需要填写用时")
        if not challenge.is_timed and score is None:
            raise ValidationError(message="任务挑战需要填写得分")


class ResultUpdateService(BaseService[ChallengeResult]):
    """修改成绩（管理员）：清空已算出的名次与积分，待重新计算"""

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None, result_repo: ChallengeResultRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()
        self.result_repo = result_repo or ChallengeResultRepo()

    def perform(self, user: User, result_id: int, schema: ResultUpdateSchema) -> ChallengeResult:
        result = self.result_repo.get_by_id(result_id)
        challenge = self.challenge_repo.lock(result.challenge_id)
        ensure_editable(challenge)
        data: dict[str, Any] = schema.to_dict(exclude_none=True)
        data.update(placement=None, points_awarded=0)
        result = self.result_repo.update(result, data)
        logger.info("修改挑战成绩", extra=logger_extra({"challenge_id": challenge.id, "result_id": result.id}))
        return result


class ResultDeleteService(BaseService[None]):
    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None, result_repo: ChallengeResultRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()
        self.result_repo = result_repo or ChallengeResultRepo()

    def perform(self, user: User, result_id: int) -> None:
        result = self.result_repo.get_by_id(result_id)
        challenge = self.challenge_repo.lock(result.challenge_id)
        ensure_editable(challenge)
        self.result_repo.delete(result)
        logger.info("删除挑战成绩", extra=logger_extra({"challenge_id": challenge.id, "result_id": result_id}))


class ComputePlacementsService(BaseService[list[ChallengeResult]]):
    """计算名次（管理员）：发放前可重复执行，结果覆盖上一次计算"""

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None, result_repo: ChallengeResultRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()
        self.result_repo = result_repo or ChallengeResultRepo()

    def perform(self, user: User, challenge_id: int) -> list[ChallengeResult]:
        challenge = self.challenge_repo.lock(challenge_id)
        ensure_editable(challenge)
        rows = self.apply(challenge)
        logger.info(
            "计算挑战名次",
            extra=logger_extra({"challenge_id": challenge.id, "results": len(rows), "admin_id": user.id}),
        )
        self.after_commit(
            lambda: broadcast_feed(
                {"event": CHALLENGE_PLACEMENTS_COMPUTED, "challenge_id": challenge.id, "results": len(rows)}
            )
        )
        return list(self.result_repo.leaderboard(challenge.id))

    def apply(self, challenge: Challenge) -> list[scoring.PlacementRow]:
        results = list(self.result_repo.for_challenge(challenge.id))
        if not results:
            raise NoResultsToScoreError()
        rows = scoring.compute_placements(challenge, results)
        self.result_repo.save_placements(rows)
        return rows


class AwardPointsService(BaseService[dict]):
    """
    发放积分（管理员）：
    1) 锁定挑战行，已完成直接拒绝
    2) 重新计算名次，按队伍汇总积分
    3) 条件更新 {active, scoring} → completed，命中后为每支队伍入账一次
    """

    admin_only = True

    def __init__(self, challenge_repo: ChallengeRepo | None = None, result_repo: ChallengeResultRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()
        self.result_repo = result_repo or ChallengeResultRepo()

    def perform(self, user: User, challenge_id: int) -> dict:
        challenge = self.challenge_repo.lock(challenge_id)
        ensure_editable(challenge)
        rows = ComputePlacementsService(self.challenge_repo, self.result_repo).apply(challenge)
        totals = scoring.team_totals(rows)

        awarded_at = timezone.now()
        if not self.challenge_repo.compare_and_set(
                challenge.pk,
                {"status__in": CHALLENGE_TRANSITIONS.sources_for(Challenge.Status.COMPLETED)},
                {"status": Challenge.Status.COMPLETED, "points_awarded_at": awarded_at},
        ):
            raise ChallengeAlreadyCompletedError()

        for team_id, points in sorted(totals.items()):
            credit_team(
                team_id,
                points,
                source_type=CreditEntry.SourceType.CHALLENGE,
                source_id=challenge.id,
                note=f"挑战：{challenge.title}",
            )
        logger.info(
            "发放挑战积分",
            extra=logger_extra({"challenge_id": challenge.id, "admin_id": user.id, "team_points": totals}),
        )
        team_points = [{"team_id": team_id, "points": points} for team_id, points in sorted(totals.items())]
        payload = {"event": CHALLENGE_POINTS_AWARDED, "challenge_id": challenge.id, "team_points": team_points}

        def _publish():
            broadcast_feed(payload)
            for item in team_points:
                broadcast_team(item["team_id"], payload)

        self.after_commit(_publish)
        return {
            "challenge": serialize_challenge(self.challenge_repo.get_by_id(challenge.pk)),
            "team_points": team_points,
        }


class ChallengeLeaderboardService(BaseService[list[ChallengeResult]]):
    """挑战成绩榜：名次升序，未排名的排在最后"""

    atomic_enabled = False

    def __init__(self, challenge_repo: ChallengeRepo | None = None, result_repo: ChallengeResultRepo | None = None):
        self.challenge_repo = challenge_repo or ChallengeRepo()
        self.result_repo = result_repo or ChallengeResultRepo()

    def perform(self, challenge_id: int) -> list[ChallengeResult]:
        challenge = self.challenge_repo.get_by_id(challenge_id)
        return list(self.result_repo.leaderboard(challenge.id))
