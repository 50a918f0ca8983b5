from __future__ import annotations

from django.urls import path

from .views import (
    MissionDetailView,
    MissionListView,
    MissionStatsView,
    MissionSubmitView,
    MySubmissionsView,
    RaceApproveView,
    RaceEntriesView,
    RaceListView,
    RaceStartView,
    RaceStopView,
    ReviewQueueView,
    SubmissionApproveView,
    SubmissionRejectView,
)

app_name = "missions"

urlpatterns = [
    path("", MissionListView.as_view(), name="list"),
    path("<int:mission_id>/", MissionDetailView.as_view(), name="detail"),
    path("<int:mission_id>/submit/", MissionSubmitView.as_view(), name="submit"),
    path("<int:mission_id>/stats/", MissionStatsView.as_view(), name="stats"),
    # 提交与审核
    path("submissions/mine/", MySubmissionsView.as_view(), name="my-submissions"),
    path("submissions/pending/", ReviewQueueView.as_view(), name="review-queue"),
    path("submissions/<int:submission_id>/approve/", SubmissionApproveView.as_view(), name="approve"),
    path("submissions/<int:submission_id>/reject/", SubmissionRejectView.as_view(), name="reject"),
    # 竞速
    path("races/", RaceListView.as_view(), name="races"),
    path("races/<int:mission_id>/start/", RaceStartView.as_view(), name="race-start"),
    path("races/<int:mission_id>/stop/", RaceStopView.as_view(), name="race-stop"),
    path("races/<int:mission_id>/entries/", RaceEntriesView.as_view(), name="race-entries"),
    path("races/submissions/<int:submission_id>/approve/", RaceApproveView.as_view(), name="race-approve"),
]
