from __future__ import annotations

from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.exceptions import DuplicateCreditError, NegativeCreditError, ValidationError
from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user
from apps.ledger.models import CreditEntry
from apps.ledger.repo import CreditEntryRepo
from apps.ledger.services import credit_team, credit_user
from apps.teams.models import Team

SOURCE = CreditEntry.SourceType


@override_settings(**ISOLATED_SETTINGS)
class CreditServiceTestCase(TestCase):
    """
    聚合入账：
    - 参与者入账同时计入队伍
    - 同一来源只入账一次，零入账不落库，负数拒绝
    """

    @classmethod
    def setUpTestData(cls):
        cls.team = make_team("Gold")
        cls.user = make_user("alice", team=cls.team)
        cls.solo = make_user("bob")

    def setUp(self):
        cache.clear()

    def test_user_credit_updates_user_and_team(self):
        result = credit_user(self.user.id, 40, source_type=SOURCE.MISSION_SUBMISSION, source_id=1)
        self.assertEqual(result.total, 40)
        self.assertEqual(result.team_total, 40)
        self.assertEqual(User.objects.get(pk=self.user.id).total_xp, 40)
        self.assertEqual(Team.objects.get(pk=self.team.id).total_xp, 40)
        entry = CreditEntry.objects.get(pk=result.entry_id)
        self.assertEqual(entry.target_key, f"user:{self.user.id}")
        self.assertEqual(entry.team_id, self.team.id)
        self.assertEqual(entry.balance_after, 40)

    def test_credit_recomputes_level(self):
        result = credit_user(self.user.id, 120, source_type=SOURCE.MISSION_SUBMISSION, source_id=2)
        self.assertEqual(result.level, 2)
        self.assertTrue(result.level_up)
        self.assertEqual(User.objects.get(pk=self.user.id).level, 2)

        again = credit_user(self.user.id, 10, source_type=SOURCE.MISSION_SUBMISSION, source_id=3)
        self.assertEqual(again.level, 2)
        self.assertFalse(again.level_up)

    def test_user_without_team_only_credits_user(self):
        result = credit_user(self.solo.id, 15, source_type=SOURCE.MISSION_SUBMISSION, source_id=4)
        self.assertIsNone(result.team_id)
        self.assertEqual(Team.objects.get(pk=self.team.id).total_xp, 0)

    def test_team_credit(self):
        result = credit_team(self.team.id, 75, source_type=SOURCE.AUCTION, source_id=9)
        self.assertEqual(result.total, 75)
        self.assertEqual(User.objects.get(pk=self.user.id).total_xp, 0)
        self.assertEqual(CreditEntryRepo().sum_for(f"team:{self.team.id}"), 75)

    def test_zero_credit_is_noop(self):
        result = credit_user(self.user.id, 0, source_type=SOURCE.MISSION_SUBMISSION, source_id=5)
        self.assertIsNone(result.entry_id)
        self.assertEqual(result.total, 0)
        self.assertFalse(CreditEntry.objects.exists())

    def test_negative_credit_rejected(self):
        with self.assertRaises(NegativeCreditError):
            credit_user(self.user.id, -5, source_type=SOURCE.MISSION_SUBMISSION, source_id=6)
        self.assertEqual(User.objects.get(pk=self.user.id).total_xp, 0)

    def test_unknown_source_rejected(self):
        with self.assertRaises(ValidationError):
            credit_user(self.user.id, 5, source_type="gift", source_id=1)

    def test_duplicate_source_rolls_back_increment(self):
        credit_team(self.team.id, 30, source_type=SOURCE.CHALLENGE, source_id=11)
        with self.assertRaises(DuplicateCreditError):
            credit_team(self.team.id, 30, source_type=SOURCE.CHALLENGE, source_id=11)
        self.assertEqual(Team.objects.get(pk=self.team.id).total_xp, 30)
        self.assertEqual(CreditEntry.objects.count(), 1)

    def test_same_source_may_credit_distinct_targets(self):
        other = make_team("Silver")
        credit_team(self.team.id, 10, source_type=SOURCE.CHALLENGE, source_id=12)
        credit_team(other.id, 10, source_type=SOURCE.CHALLENGE, source_id=12)
        self.assertEqual(CreditEntryRepo().for_source(SOURCE.CHALLENGE, 12).count(), 2)

    def test_broadcast_after_commit(self):
        with mock.patch("apps.ledger.services.broadcast_notify") as notify, mock.patch(
            "apps.ledger.services.broadcast_team"
        ) as team_send:
            with self.captureOnCommitCallbacks(execute=True):
                credit_user(self.user.id, 20, source_type=SOURCE.MISSION_SUBMISSION, source_id=7)
        notify.assert_called_once()
        payload = notify.call_args[0][1]
        self.assertEqual(payload["event"], "credit_applied")
        self.assertEqual(payload["amount"], 20)
        team_send.assert_called_once()
        self.assertEqual(team_send.call_args[0][0], self.team.id)


@override_settings(**ISOLATED_SETTINGS)
class CreditHistoryAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """积分流水接口"""

    @classmethod
    def setUpTestData(cls):
        cls.team = make_team("Amber")
        cls.user = make_user("carol", team=cls.team)
        credit_user(cls.user.id, 10, source_type=SOURCE.MISSION_SUBMISSION, source_id=1)
        credit_team(cls.team.id, 50, source_type=SOURCE.AUCTION, source_id=1)

    def setUp(self):
        cache.clear()

    def test_personal_history(self):
        resp = self.client_for(self.user).get("/api/ledger/mine/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data["data"]), 1)
        self.assertEqual(resp.data["data"][0]["amount"], 10)

    def test_history_with_team(self):
        resp = self.client_for(self.user).get("/api/ledger/mine/?include_team=1")
        self.assertEqual(resp.data["extra"]["total"], 2)
