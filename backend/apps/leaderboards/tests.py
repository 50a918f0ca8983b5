from __future__ import annotations

from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user
from apps.leaderboards.services import TeamLeaderboardService, UserLeaderboardService
from apps.leaderboards.tasks import push_leaderboard_snapshot
from apps.ledger.models import CreditEntry
from apps.ledger.services import credit_team, credit_user

SOURCE = CreditEntry.SourceType.MISSION_SUBMISSION


@override_settings(**ISOLATED_SETTINGS)
class LeaderboardTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.red = make_team("Red")
        cls.blue = make_team("Blue")
        cls.alice = make_user("alice", team=cls.red)
        cls.anna = make_user("anna", team=cls.red)
        cls.bob = make_user("bob", team=cls.blue)
        cls.admin = make_user("admin", is_staff=True)
        credit_user(cls.alice.id, 120, source_type=SOURCE, source_id=1)
        credit_user(cls.anna.id, 30, source_type=SOURCE, source_id=2)
        credit_user(cls.bob.id, 120, source_type=SOURCE, source_id=3)
        credit_team(cls.blue.id, 100, source_type=CreditEntry.SourceType.AUCTION, source_id=1)

    def setUp(self):
        cache.clear()

    def test_users_ranked_by_xp_then_join_order(self):
        rows = UserLeaderboardService().execute(10)
        self.assertEqual([row["user_id"] for row in rows], [self.alice.id, self.bob.id, self.anna.id])
        self.assertEqual([row["rank"] for row in rows], [1, 2, 3])
        self.assertEqual(rows[0]["level"], 2)
        self.assertEqual(rows[0]["team"], "Red")
        self.assertNotIn(self.admin.id, [row["user_id"] for row in rows])

    def test_user_limit(self):
        self.assertEqual(len(UserLeaderboardService().execute(1)), 1)

    def test_short_cached_board_is_still_a_hit(self):
        # 只有 3 名参与者，缓存行数小于 limit 也应直接命中
        cached = {"limit": 100, "rows": [{"rank": 1, "user_id": self.bob.id}]}
        with mock.patch("apps.leaderboards.services.redis_client.get_json", return_value=cached), \
                mock.patch.object(UserLeaderboardService, "_build") as build:
            rows = UserLeaderboardService().execute(50)
        build.assert_not_called()
        self.assertEqual(rows, cached["rows"])

    def test_cache_miss_stores_build_size(self):
        with mock.patch("apps.leaderboards.services.redis_client.get_json", return_value=None), \
                mock.patch("apps.leaderboards.services.redis_client.set_json") as store:
            rows = UserLeaderboardService().execute(20)
        self.assertEqual(len(rows), 3)
        payload = store.call_args.args[1]
        self.assertEqual(payload["limit"], 100)
        self.assertEqual(payload["rows"], rows)

    def test_larger_limit_rebuilds_and_legacy_list_is_ignored(self):
        for cached in ({"limit": 100, "rows": []}, [{"rank": 1}]):
            with mock.patch("apps.leaderboards.services.redis_client.get_json", return_value=cached), \
                    mock.patch("apps.leaderboards.services.redis_client.set_json"):
                rows = UserLeaderboardService().execute(200 if isinstance(cached, dict) else 10)
            self.assertEqual([row["user_id"] for row in rows], [self.alice.id, self.bob.id, self.anna.id])

    def test_teams_include_contributors(self):
        rows = TeamLeaderboardService().execute()
        self.assertEqual([(row["team_id"], row["total_xp"]) for row in rows], [(self.blue.id, 220), (self.red.id, 150)])
        red = rows[1]
        self.assertEqual(red["member_count"], 2)
        self.assertEqual(red["avg_xp_per_member"], 75)
        self.assertEqual([c["user_id"] for c in red["top_contributors"]], [self.alice.id, self.anna.id])

    def test_snapshot_push_is_throttled(self):
        with mock.patch.dict("apps.common.ws_utils._last_event_time", clear=True), \
                mock.patch("apps.leaderboards.tasks.broadcast_feed") as feed:
            self.assertTrue(push_leaderboard_snapshot())
            self.assertFalse(push_leaderboard_snapshot())
        feed.assert_called_once()
        payload = feed.call_args.args[0]
        self.assertEqual(payload["users"][0]["user_id"], self.alice.id)
        self.assertEqual(payload["teams"][0]["team_id"], self.blue.id)


@override_settings(**ISOLATED_SETTINGS)
class LeaderboardAPITestCase(AuthenticatedAPIMixin, APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.team = make_team("Red")
        cls.player = make_user("player", team=cls.team)

    def setUp(self):
        cache.clear()

    def test_requires_login(self):
        self.assertEqual(self.client.get("/api/leaderboards/users/").status_code, 401)

    def test_lists(self):
        client = self.client_for(self.player)
        users = client.get("/api/leaderboards/users/", {"limit": 5})
        self.assertEqual(users.status_code, 200)
        self.assertEqual(users.data["data"][0]["user_id"], self.player.id)
        teams = client.get("/api/leaderboards/teams/")
        self.assertEqual(teams.data["data"][0]["name"], "Red")
