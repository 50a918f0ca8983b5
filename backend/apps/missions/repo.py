from __future__ import annotations

from django.db.models import Count, F, Q, QuerySet

from apps.common.base.base_repo import BaseRepo
from .models import Mission, Submission


class MissionRepo(BaseRepo[Mission]):
    """任务仓储"""

    model = Mission
    not_found_message = "任务不存在"

    def visible(self) -> QuerySet[Mission]:
        return self.filter(status=Mission.Status.ACTIVE)

    def races(self) -> QuerySet[Mission]:
        return self.filter(is_race=True)

    def with_user_stats(self, user_id: int, queryset: QuerySet[Mission] | None = None) -> QuerySet[Mission]:
        """附带当前参与者在每个任务上的提交统计"""
        qs = queryset if queryset is not None else self.get_queryset()
        mine = Q(submissions__user_id=user_id)
        return qs.annotate(
            my_attempts=Count("submissions", filter=mine),
            my_completed=Count("submissions", filter=mine & Q(submissions__status=Submission.Status.APPROVED)),
            my_pending=Count("submissions", filter=mine & Q(submissions__status=Submission.Status.PENDING)),
            my_rejected=Count("submissions", filter=mine & Q(submissions__status=Submission.Status.REJECTED)),
        )


class SubmissionRepo(BaseRepo[Submission]):
    """任务提交仓储：状态只通过 compare_and_set 迁移"""

    model = Submission
    not_found_message = "提交记录不存在"

    def get_queryset(self) -> QuerySet[Submission]:
        return super().get_queryset().select_related("mission", "user", "team")

    def lock(self, pk) -> Submission:
        return self.get_by_id(
            pk, queryset=self.model._default_manager.select_for_update(of=("self",)).select_related("mission")
        )

    def for_user_mission(self, user_id: int, mission_id: int) -> QuerySet[Submission]:
        return self.filter(user_id=user_id, mission_id=mission_id)

    def user_stats(self, user_id: int, mission_id: int) -> dict:
        return self.for_user_mission(user_id, mission_id).aggregate(
            attempts=Count("id"),
            completed=Count("id", filter=Q(status=Submission.Status.APPROVED)),
            pending=Count("id", filter=Q(status=Submission.Status.PENDING)),
            rejected=Count("id", filter=Q(status=Submission.Status.REJECTED)),
        )

    def pending_queue(self) -> QuerySet[Submission]:
        return self.filter(status=Submission.Status.PENDING).order_by("created_at", "id")

    def race_entries(self, mission_id: int) -> QuerySet[Submission]:
        """竞速提交：已分配名次的按名次，其余按提交先后"""
        return self.filter(mission_id=mission_id).order_by(F("race_placement").asc(nulls_last=True), "created_at", "id")
