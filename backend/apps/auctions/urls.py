from __future__ import annotations

from django.urls import path

from .views import (
    AuctionBidsView,
    AuctionCancelView,
    AuctionCloseView,
    AuctionDetailView,
    AuctionListView,
    AuctionStartView,
)

app_name = "auctions"

urlpatterns = [
    path("", AuctionListView.as_view(), name="list"),
    path("<int:auction_id>/", AuctionDetailView.as_view(), name="detail"),
    path("<int:auction_id>/start/", AuctionStartView.as_view(), name="start"),
    path("<int:auction_id>/close/", AuctionCloseView.as_view(), name="close"),
    path("<int:auction_id>/cancel/", AuctionCancelView.as_view(), name="cancel"),
    path("<int:auction_id>/bids/", AuctionBidsView.as_view(), name="bids"),
]
