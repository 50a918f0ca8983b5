from __future__ import annotations

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.accounts.levels import level_for_xp, level_progress
from apps.accounts.models import User
from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user


class LevelCalculationTestCase(TestCase):
    """等级推导：阈值第 i 项为达到 i+1 级的最低经验"""

    thresholds = [0, 100, 250, 500]

    def test_level_for_xp_boundaries(self):
        self.assertEqual(level_for_xp(0, self.thresholds), 1)
        self.assertEqual(level_for_xp(99, self.thresholds), 1)
        self.assertEqual(level_for_xp(100, self.thresholds), 2)
        self.assertEqual(level_for_xp(499, self.thresholds), 3)
        self.assertEqual(level_for_xp(10_000, self.thresholds), 4)

    def test_level_never_below_one(self):
        self.assertEqual(level_for_xp(0, [10, 20]), 1)

    def test_progress_reports_gap_to_next_level(self):
        progress = level_progress(120, self.thresholds)
        self.assertEqual(progress["level"], 2)
        self.assertEqual(progress["next_level_xp"], 250)
        self.assertEqual(progress["xp_to_next"], 130)

    def test_progress_at_max_level(self):
        progress = level_progress(600, self.thresholds)
        self.assertIsNone(progress["next_level_xp"])
        self.assertEqual(progress["xp_to_next"], 0)


@override_settings(**ISOLATED_SETTINGS)
class AccountsAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """
    账户模块接口冒烟测试：令牌签发、个人主页、资料修改
    """

    @classmethod
    def setUpTestData(cls):
        cls.team = make_team("Red Foxes")
        cls.user = make_user("tester", team=cls.team)

    def setUp(self):
        cache.clear()

    def test_nickname_defaults_to_username(self):
        self.assertEqual(self.user.nickname, "tester")

    def test_token_login_and_profile(self):
        client = self.auth_client("tester")
        resp = client.get("/api/accounts/me/")
        self.assertEqual(resp.status_code, 200)
        data = resp.data["data"]
        self.assertEqual(data["username"], "tester")
        self.assertEqual(data["team"]["name"], "Red Foxes")
        self.assertEqual(data["progress"]["level"], 1)
        self.assertEqual(data["stats"]["missions_completed"], 0)

    def test_wrong_password_is_rejected(self):
        resp = self.client.post(
            self.login_url, {"username": "tester", "password": "nope"}, format="json"
        )
        self.assertEqual(resp.status_code, 401)

    def test_profile_requires_authentication(self):
        resp = self.client.get("/api/accounts/me/")
        self.assertEqual(resp.status_code, 401)

    def test_profile_update_ignores_aggregate_fields(self):
        client = self.client_for(self.user)
        resp = client.patch(
            "/api/accounts/me/", {"nickname": "Fox", "total_xp": 9999, "level": 9}, format="json"
        )
        self.assertEqual(resp.status_code, 200)
        fresh = User.objects.get(pk=self.user.pk)
        self.assertEqual(fresh.nickname, "Fox")
        self.assertEqual(fresh.total_xp, 0)
        self.assertEqual(fresh.level, 1)

    def test_profile_update_rejects_blank_nickname(self):
        client = self.client_for(self.user)
        resp = client.patch("/api/accounts/me/", {"nickname": "   "}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 40002)
