from __future__ import annotations

from django.urls import path

from .views import TeamLeaderboardView, UserLeaderboardView

app_name = "leaderboards"

urlpatterns = [
    path("users/", UserLeaderboardView.as_view(), name="users"),
    path("teams/", TeamLeaderboardView.as_view(), name="teams"),
]
