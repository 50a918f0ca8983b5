from __future__ import annotations

from django.urls import path

from .views import MyCreditHistoryView

app_name = "ledger"

urlpatterns = [
    path("mine/", MyCreditHistoryView.as_view(), name="mine"),
]
