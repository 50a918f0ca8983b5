from __future__ import annotations

from django.core.cache import cache
from django.test import override_settings
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user
from apps.teams.models import Team


@override_settings(**ISOLATED_SETTINGS)
class TeamAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """
    队伍接口：
    - 管理员创建/修改队伍、分配/移出成员
    - 普通参与者只读，且无法修改累计积分
    """

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.team = make_team("Blue Owls")
        cls.player = make_user("player", team=cls.team)
        cls.loner = make_user("loner")

    def setUp(self):
        cache.clear()
        self.admin_client = self.client_for(self.admin)
        self.player_client = self.client_for(self.player)

    def test_admin_creates_team_with_unique_slug(self):
        resp = self.admin_client.post("/api/teams/", {"name": "Green Bees"}, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["slug"], "green-bees")
        self.assertEqual(resp.data["data"]["total_xp"], 0)

    def test_duplicate_team_name_conflicts(self):
        resp = self.admin_client.post("/api/teams/", {"name": "Blue Owls"}, format="json")
        self.assertEqual(resp.status_code, 409)

    def test_participant_cannot_create_team(self):
        resp = self.player_client.post("/api/teams/", {"name": "Rogue"}, format="json")
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Team.objects.filter(name="Rogue").exists())

    def test_invalid_color_rejected(self):
        resp = self.admin_client.post("/api/teams/", {"name": "Pink", "color": "pink"}, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_list_reports_member_count(self):
        resp = self.player_client.get("/api/teams/")
        self.assertEqual(resp.status_code, 200)
        row = next(item for item in resp.data["data"] if item["id"] == self.team.id)
        self.assertEqual(row["member_count"], 1)
        self.assertEqual(resp.data["extra"]["total"], 1)

    def test_update_does_not_touch_total_xp(self):
        resp = self.admin_client.patch(
            f"/api/teams/{self.team.id}/", {"description": "night owls", "total_xp": 500}, format="json"
        )
        self.assertEqual(resp.status_code, 200)
        self.team.refresh_from_db()
        self.assertEqual(self.team.description, "night owls")
        self.assertEqual(self.team.total_xp, 0)

    def test_assign_and_remove_member(self):
        resp = self.admin_client.post(
            f"/api/teams/{self.team.id}/members/", {"user_id": self.loner.id}, format="json"
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(User.objects.get(pk=self.loner.id).team_id, self.team.id)

        again = self.admin_client.post(
            f"/api/teams/{self.team.id}/members/", {"user_id": self.loner.id}, format="json"
        )
        self.assertEqual(again.status_code, 409)

        resp = self.admin_client.delete(
            f"/api/teams/{self.team.id}/members/", {"user_id": self.loner.id}, format="json"
        )
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(User.objects.get(pk=self.loner.id).team_id)

    def test_remove_non_member_rejected(self):
        resp = self.admin_client.delete(
            f"/api/teams/{self.team.id}/members/", {"user_id": self.loner.id}, format="json"
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 47003)

    def test_my_team_requires_membership(self):
        resp = self.client_for(self.loner).get("/api/teams/mine/")
        self.assertEqual(resp.data["code"], 47001)

        resp = self.player_client.get("/api/teams/mine/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["members"][0]["username"], "player")
