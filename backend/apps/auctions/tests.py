from __future__ import annotations

from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.auctions.models import Auction, Bid
from apps.auctions.schemas import AuctionCreateSchema, BidSchema
from apps.auctions.services import (
    AuctionCancelService,
    AuctionCloseService,
    AuctionCreateService,
    AuctionDeleteService,
    AuctionStartService,
    BidListService,
    BidPlaceService,
)
from apps.common.exceptions import (
    AuctionAlreadyClosedError,
    AuctionNotActiveError,
    AuctionStateError,
    BidTooLowError,
    PermissionDeniedError,
    StalePriceError,
    TeamRequiredError,
)
from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user
from apps.ledger.models import CreditEntry
from apps.teams.models import Team


def make_auction(**extra) -> Auction:
    price = extra.pop("starting_price", 100)
    extra.setdefault("status", Auction.Status.ACTIVE)
    extra.setdefault("min_bid_increment", 10)
    extra.setdefault("points_for_win", 150)
    return Auction.objects.create(item_name="Golden cat", starting_price=price, current_price=price, **extra)


def bid(user, auction, amount) -> Bid:
    return BidPlaceService().execute(user, auction.id, BidSchema(amount=amount))


@override_settings(**ISOLATED_SETTINGS)
class AuctionBiddingTestCase(TestCase):
    """
    出价：
    - 出价需 ≥ 当前价格 + 最小加价幅度
    - 并发出价只有一个能推进价格，落败方收到可重试错误
    - 同一时刻只有一条领先出价
    """

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.red = make_team("Red")
        cls.blue = make_team("Blue")
        cls.alice = make_user("alice", team=cls.red)
        cls.bob = make_user("bob", team=cls.blue)
        cls.loner = make_user("loner")

    def setUp(self):
        cache.clear()
        self.auction = make_auction()

    def _fresh(self) -> Auction:
        return Auction.objects.get(pk=self.auction.pk)

    def test_minimum_increment_enforced(self):
        with self.assertRaises(BidTooLowError) as ctx:
            bid(self.alice, self.auction, 105)
        self.assertEqual(ctx.exception.extra["minimum_bid"], 110)

        accepted = bid(self.alice, self.auction, 110)
        self.assertTrue(accepted.is_leading)
        self.assertEqual(accepted.team_id, self.red.id)
        self.assertEqual(self._fresh().current_price, 110)
        self.assertEqual(self._fresh().bid_count, 1)

    def test_stale_price_loses(self):
        bid(self.alice, self.auction, 110)
        # 出价方读取到的价格快照
        snapshot = self._fresh()
        # 另一笔 120 的出价在读取与条件更新之间完成
        bid(self.bob, self.auction, 120)

        service = BidPlaceService()
        with mock.patch.object(service.auction_repo, "get_by_id", return_value=snapshot):
            with self.assertRaises(StalePriceError) as ctx:
                service.execute(self.alice, self.auction.id, BidSchema(amount=120))

        self.assertTrue(ctx.exception.extra["retryable"])
        self.assertEqual(ctx.exception.extra["current_price"], 120)
        self.assertEqual(ctx.exception.extra["minimum_bid"], 130)
        auction = self._fresh()
        self.assertEqual(auction.current_price, 120)
        leaders = Bid.objects.filter(auction=auction, is_leading=True)
        self.assertEqual(leaders.count(), 1)
        self.assertEqual(leaders.get().team_id, self.blue.id)
        self.assertEqual(Bid.objects.filter(auction=auction).count(), 2)

    def test_leader_flag_moves_and_price_is_max(self):
        for user, amount in [(self.alice, 110), (self.bob, 130), (self.alice, 140)]:
            bid(user, self.auction, amount)
        self.assertEqual(self._fresh().current_price, 140)
        leaders = Bid.objects.filter(auction=self.auction, is_leading=True)
        self.assertEqual(list(leaders.values_list("amount", flat=True)), [140])
        amounts = [b.amount for b in BidListService().execute(self.auction.id)]
        self.assertEqual(amounts, [140, 130, 110])

    def test_bid_requires_team_and_active_auction(self):
        with self.assertRaises(TeamRequiredError):
            bid(self.loner, self.auction, 200)
        pending = make_auction(status=Auction.Status.PENDING)
        with self.assertRaises(AuctionNotActiveError):
            bid(self.alice, pending, 200)
        self.assertFalse(Bid.objects.exists())


@override_settings(**ISOLATED_SETTINGS)
class AuctionLifecycleTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.red = make_team("Red")
        cls.alice = make_user("alice", team=cls.red)

    def setUp(self):
        cache.clear()

    def test_create_uses_configured_defaults(self):
        auction = AuctionCreateService().execute(
            self.admin, AuctionCreateSchema(item_name="Mystery box", starting_price=50)
        )
        self.assertEqual(auction.status, Auction.Status.PENDING)
        self.assertEqual(auction.current_price, 50)
        self.assertEqual(auction.min_bid_increment, 10)
        self.assertEqual(auction.points_for_win, 100)

    def test_participant_cannot_create(self):
        with self.assertRaises(PermissionDeniedError):
            AuctionCreateService().execute(self.alice, AuctionCreateSchema(item_name="Nope"))

    def test_start_is_one_way(self):
        auction = make_auction(status=Auction.Status.PENDING)
        started = AuctionStartService().execute(self.admin, auction.id)
        self.assertEqual(started.status, Auction.Status.ACTIVE)
        self.assertIsNotNone(started.started_at)
        with self.assertRaises(AuctionStateError):
            AuctionStartService().execute(self.admin, auction.id)

    def test_close_credits_winner_once(self):
        auction = make_auction()
        bid(self.alice, auction, 110)

        closed = AuctionCloseService().execute(self.admin, auction.id)

        self.assertEqual(closed.status, Auction.Status.ENDED)
        self.assertEqual(closed.winning_team_id, self.red.id)
        self.assertEqual(closed.winning_user_id, self.alice.id)
        self.assertEqual(closed.winning_amount, 110)
        self.assertEqual(Team.objects.get(pk=self.red.pk).total_xp, 150)

        with self.assertRaises(AuctionAlreadyClosedError):
            AuctionCloseService().execute(self.admin, auction.id)
        with self.assertRaises(AuctionAlreadyClosedError):
            AuctionCancelService().execute(self.admin, auction.id)
        self.assertEqual(Team.objects.get(pk=self.red.pk).total_xp, 150)
        self.assertEqual(
            CreditEntry.objects.filter(source_type=CreditEntry.SourceType.AUCTION, source_id=auction.id).count(), 1
        )
        with self.assertRaises(AuctionNotActiveError):
            bid(self.alice, auction, 500)

    def test_close_without_bids_has_no_winner(self):
        auction = make_auction()
        closed = AuctionCloseService().execute(self.admin, auction.id)
        self.assertEqual(closed.status, Auction.Status.ENDED)
        self.assertIsNone(closed.winning_team_id)
        self.assertFalse(CreditEntry.objects.exists())

    def test_pending_auction_cannot_be_closed(self):
        auction = make_auction(status=Auction.Status.PENDING)
        with self.assertRaises(AuctionStateError):
            AuctionCloseService().execute(self.admin, auction.id)

    def test_cancel_issues_no_credit(self):
        auction = make_auction()
        bid(self.alice, auction, 120)
        cancelled = AuctionCancelService().execute(self.admin, auction.id)
        self.assertEqual(cancelled.status, Auction.Status.CANCELLED)
        self.assertIsNone(cancelled.winning_team_id)
        self.assertEqual(Team.objects.get(pk=self.red.pk).total_xp, 0)
        with self.assertRaises(AuctionAlreadyClosedError):
            AuctionCloseService().execute(self.admin, auction.id)

    def test_delete_only_before_start(self):
        active = make_auction()
        with self.assertRaises(AuctionStateError):
            AuctionDeleteService().execute(self.admin, active.id)
        pending = make_auction(status=Auction.Status.PENDING)
        AuctionDeleteService().execute(self.admin, pending.id)
        self.assertFalse(Auction.objects.filter(pk=pending.pk).exists())


@override_settings(**ISOLATED_SETTINGS)
class AuctionAPITestCase(AuthenticatedAPIMixin, APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.team = make_team("Red")
        cls.player = make_user("player", team=cls.team)

    def setUp(self):
        cache.clear()
        self.auction = make_auction()
        self.admin_client = self.client_for(self.admin)
        self.player_client = self.client_for(self.player)

    def test_bid_and_list(self):
        resp = self.player_client.post(f"/api/auctions/{self.auction.id}/bids/", {"amount": 110}, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.data["data"]["is_leading"])

        listed = self.player_client.get(f"/api/auctions/{self.auction.id}/bids/")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["data"][0]["amount"], 110)

        detail = self.player_client.get(f"/api/auctions/{self.auction.id}/")
        self.assertEqual(detail.data["data"]["current_price"], 110)
        self.assertEqual(detail.data["data"]["minimum_bid"], 120)

    def test_low_bid_returns_business_code(self):
        resp = self.player_client.post(f"/api/auctions/{self.auction.id}/bids/", {"amount": 101}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 48402)

    def test_participant_cannot_close(self):
        resp = self.player_client.post(f"/api/auctions/{self.auction.id}/close/")
        self.assertEqual(resp.status_code, 403)
        resp = self.admin_client.post(f"/api/auctions/{self.auction.id}/close/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["status"], "ended")
