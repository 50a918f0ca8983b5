from __future__ import annotations

from django.db.models import Count, F, QuerySet

from apps.common.base.base_repo import BaseRepo
from .models import Challenge, ChallengeResult


class ChallengeRepo(BaseRepo[Challenge]):
    """挑战仓储：状态只通过 compare_and_set 推进"""

    model = Challenge
    not_found_message = "挑战不存在"

    def visible(self) -> QuerySet[Challenge]:
        return self.filter(status__in=[Challenge.Status.ACTIVE, Challenge.Status.SCORING, Challenge.Status.COMPLETED])

    def with_result_count(self, queryset: QuerySet[Challenge] | None = None) -> QuerySet[Challenge]:
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.annotate(result_count=Count("results"))


class ChallengeResultRepo(BaseRepo[ChallengeResult]):
    model = ChallengeResult
    not_found_message = "成绩不存在"

    def get_queryset(self) -> QuerySet[ChallengeResult]:
        return super().get_queryset().select_related("team", "user")

    def for_challenge(self, challenge_id: int) -> QuerySet[ChallengeResult]:
        return self.filter(challenge_id=challenge_id).order_by("id")

    def leaderboard(self, challenge_id: int) -> QuerySet[ChallengeResult]:
        """名次升序，未排名的按用时、录入先后排在最后"""
        return self.filter(challenge_id=challenge_id).order_by(
            F("placement").asc(nulls_last=True), F("time_ms").asc(nulls_last=True), "id"
        )

    def team_entry_count(self, challenge_id: int, team_id: int) -> int:
        return self.count(challenge_id=challenge_id, team_id=team_id)

    def save_placements(self, rows) -> int:
        """批量写回名次与积分"""
        by_id = {row.result_id: row for row in rows}
        results = list(self.model._default_manager.filter(pk__in=by_id))
        for result in results:
            result.placement = by_id[result.pk].placement
            result.points_awarded = by_id[result.pk].points
        return self.model._default_manager.bulk_update(results, ["placement", "points_awarded"])
