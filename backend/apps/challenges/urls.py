from __future__ import annotations

from django.urls import path

from .views import (
    AwardPointsView,
    ChallengeDetailView,
    ChallengeListView,
    ChallengeResultDetailView,
    ChallengeResultsView,
    ChallengeStatusView,
    ComputePlacementsView,
)

app_name = "challenges"

urlpatterns = [
    path("", ChallengeListView.as_view(), name="list"),
    path("<int:challenge_id>/", ChallengeDetailView.as_view(), name="detail"),
    path("<int:challenge_id>/status/", ChallengeStatusView.as_view(), name="status"),
    path("<int:challenge_id>/results/", ChallengeResultsView.as_view(), name="results"),
    path("<int:challenge_id>/placements/", ComputePlacementsView.as_view(), name="placements"),
    path("<int:challenge_id>/award/", AwardPointsView.as_view(), name="award"),
    path("results/<int:result_id>/", ChallengeResultDetailView.as_view(), name="result-detail"),
]
