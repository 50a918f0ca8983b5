from __future__ import annotations

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.common.tests_utils import ISOLATED_SETTINGS
from apps.system.models import SystemConfig
from apps.system.services import ConfigService


@override_settings(**ISOLATED_SETTINGS)
class ConfigServiceTestCase(TestCase):
    """
    配置读取优先级：后台配置 > settings > 传入默认值
    """

    def setUp(self):
        cache.clear()
        self.service = ConfigService()

    def test_supported_keys_seeded_after_migrate(self):
        keys = set(SystemConfig.objects.values_list("key", flat=True))
        self.assertTrue(set(ConfigService.SUPPORTED_CONFIGS) <= keys)
        row = SystemConfig.objects.get(key="DEFAULT_POINTS_DISTRIBUTION")
        self.assertEqual(row.value_type, SystemConfig.ValueType.JSON)
        self.assertEqual(row.cast_value()["1"], 100)

    def test_database_value_wins_and_save_invalidates_cache(self):
        self.assertEqual(self.service.get_int("DEFAULT_AUCTION_MIN_INCREMENT"), 10)
        row = SystemConfig.objects.get(key="DEFAULT_AUCTION_MIN_INCREMENT")
        row.value = "25"
        row.save()
        self.assertEqual(self.service.get_int("DEFAULT_AUCTION_MIN_INCREMENT"), 25)

    def test_blank_row_falls_back_to_settings(self):
        SystemConfig.objects.filter(key="DEFAULT_GPS_RADIUS_METERS").update(value="")
        cache.clear()
        self.assertEqual(self.service.get_int("DEFAULT_GPS_RADIUS_METERS"), 50)

    def test_unknown_key_uses_default(self):
        self.assertEqual(self.service.get("NOT_A_REAL_KEY", "fallback"), "fallback")

    def test_non_integer_value_uses_default(self):
        row = SystemConfig.objects.get(key="LEADERBOARD_PUSH_TOP")
        row.value = "many"
        row.save()
        self.assertEqual(self.service.get_int("LEADERBOARD_PUSH_TOP", 7), 7)

    def test_cast_value(self):
        self.assertTrue(SystemConfig(value="yes", value_type=SystemConfig.ValueType.BOOL).cast_value())
        self.assertEqual(SystemConfig(value="[1, 2]", value_type=SystemConfig.ValueType.JSON).cast_value(), [1, 2])
        self.assertEqual(SystemConfig(value="{bad", value_type=SystemConfig.ValueType.JSON).cast_value(), "{bad")
        self.assertEqual(SystemConfig.dump_value({"1": 5}, SystemConfig.ValueType.JSON), '{"1": 5}')


@override_settings(**ISOLATED_SETTINGS)
class PublicRulesAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()

    def test_rules_are_public(self):
        resp = self.client.get("/api/system/public/rules/")
        self.assertEqual(resp.status_code, 200)
        data = resp.data["data"]
        self.assertEqual(data["level_thresholds"][:3], [0, 100, 250])
        self.assertEqual(data["default_challenge_fixed_points"], 50)
        self.assertNotIn("leaderboard_cache_ttl", data)
