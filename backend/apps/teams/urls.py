from __future__ import annotations

from django.urls import path

from .views import MyTeamView, TeamDetailView, TeamListView, TeamMembersView

app_name = "teams"

urlpatterns = [
    path("", TeamListView.as_view(), name="list"),
    path("mine/", MyTeamView.as_view(), name="mine"),
    path("<int:team_id>/", TeamDetailView.as_view(), name="detail"),
    path("<int:team_id>/members/", TeamMembersView.as_view(), name="members"),
]
