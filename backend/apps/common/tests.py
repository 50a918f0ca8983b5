# -*- coding: utf-8 -*-
"""
公共模块单测：
- 积分表规范化、状态迁移表、球面距离
- Repo 原子原语（条件更新、自增、序号）
- Service 基类的权限与回滚
"""

from __future__ import annotations

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APITestCase

from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    NotFoundError,
    OperationNotAllowedError,
    PermissionDeniedError,
    ValidationError,
)
from apps.common.infra.logger import logger_extra
from apps.common.tests_utils import ISOLATED_SETTINGS, make_team, make_user
from apps.common.utils.geo import haversine_meters, within_radius
from apps.common.utils.points import normalize_distribution, points_for_placement, to_storage
from apps.common.utils.state import TransitionTable
from apps.teams.models import Team
from apps.teams.repo import TeamRepo


class PointsDistributionTests(SimpleTestCase):

    def test_normalize_string_keys(self):
        table = normalize_distribution({"1": 100, "3": 20})
        self.assertEqual(table, {1: 100, 3: 20})
        self.assertEqual(to_storage(table), {"1": 100, "3": 20})

    def test_invalid_tables_rejected(self):
        for raw in ([1, 2], {"0": 5}, {"x": 5}, {"1": -1}, {"1": True}):
            with self.assertRaises(ValidationError):
                normalize_distribution(raw)

    def test_lookup_outside_table_is_zero(self):
        table = {"1": 100, "2": 50}
        self.assertEqual(points_for_placement(table, 2), 50)
        self.assertEqual(points_for_placement(table, 3), 0)
        self.assertEqual(points_for_placement(table, None), 0)
        self.assertEqual(points_for_placement({}, 1), 0)


class TransitionTableTests(SimpleTestCase):

    def setUp(self):
        self.table = TransitionTable({"pending": {"active", "cancelled"}, "active": {"ended", "cancelled"}})

    def test_allowed_transitions(self):
        self.assertTrue(self.table.can("pending", "active"))
        self.assertFalse(self.table.can("ended", "active"))
        self.assertEqual(self.table.sources_for("cancelled"), ["active", "pending"])

    def test_ensure_raises_with_allowed_targets(self):
        with self.assertRaises(OperationNotAllowedError) as ctx:
            self.table.ensure("pending", "ended")
        self.assertEqual(ctx.exception.extra["allowed"], ["active", "cancelled"])


class GeoTests(SimpleTestCase):

    def test_distance(self):
        self.assertAlmostEqual(haversine_meters(0, 0, 0, 0), 0)
        # 赤道上经度 0.001° 约 111 米
        self.assertAlmostEqual(haversine_meters(0, 0, 0, 0.001), 111.19, delta=0.5)
        self.assertTrue(within_radius(0, 0, 0, 0.0004, 50))
        self.assertFalse(within_radius(0, 0, 0, 0.001, 50))


class LoggerExtraTests(SimpleTestCase):

    def test_sensitive_keys_masked(self):
        extra = logger_extra({"password": "x", "qr_code": "CAT", "auction_id": 1})
        self.assertEqual(extra, {"password": "***", "qr_code": "***", "auction_id": 1})


@override_settings(**ISOLATED_SETTINGS)
class AtomicRepoTests(TestCase):

    def setUp(self):
        self.repo = TeamRepo()
        self.team = make_team("Red")

    def test_compare_and_set_only_hits_expected_state(self):
        self.assertTrue(self.repo.compare_and_set(self.team.pk, {"is_active": True}, {"is_active": False}))
        self.assertFalse(self.repo.compare_and_set(self.team.pk, {"is_active": True}, {"is_active": False}))
        self.assertFalse(Team.objects.get(pk=self.team.pk).is_active)

    def test_increment_returns_new_value(self):
        self.assertEqual(self.repo.increment(self.team.pk, "total_xp", 30), 30)
        self.assertEqual(self.repo.increment(self.team.pk, "total_xp", 12), 42)
        self.assertEqual(self.repo.next_sequence(self.team.pk, "total_xp"), 43)

    def test_increment_missing_row(self):
        with self.assertRaises(NotFoundError):
            self.repo.increment(999999, "total_xp", 1)


class _RenameTeamService(BaseService[Team]):
    admin_only = True

    def perform(self, user, team_id: int, name: str) -> Team:
        team = TeamRepo().update(TeamRepo().lock(team_id), {"name": name})
        if name == "boom":
            raise ValidationError(message="名称不合法")
        return team


@override_settings(**ISOLATED_SETTINGS)
class BaseServiceTests(TestCase):

    def setUp(self):
        self.team = make_team("Red")

    def test_admin_only(self):
        with self.assertRaises(PermissionDeniedError):
            _RenameTeamService().execute(make_user("player"), self.team.pk, "Blue")
        renamed = _RenameTeamService().execute(make_user("admin", is_staff=True), self.team.pk, "Blue")
        self.assertEqual(renamed.name, "Blue")

    def test_failure_rolls_back_partial_writes(self):
        with self.assertRaises(ValidationError):
            _RenameTeamService().execute(make_user("admin", is_staff=True), self.team.pk, "boom")
        self.assertEqual(Team.objects.get(pk=self.team.pk).name, "Red")


@override_settings(**ISOLATED_SETTINGS)
class HealthAndErrorFormatTests(APITestCase):

    def setUp(self):
        cache.clear()

    def test_health_echoes_request_id(self):
        resp = self.client.get("/health/", HTTP_X_REQUEST_ID="req-123")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"], {"status": "ok"})
        self.assertEqual(resp["X-Request-ID"], "req-123")

    def test_anonymous_error_uses_standard_payload(self):
        resp = self.client.get("/api/ledger/mine/")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.data["code"], 40100)
        self.assertIn("message", resp.data)
