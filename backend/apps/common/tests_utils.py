from __future__ import annotations

from django.contrib.auth import get_user_model
from django.utils.text import slugify
from rest_framework.test import APIClient

#: 各模块测试共用的隔离配置：本地内存缓存、内存通道层、关闭 Redis
ISOLATED_SETTINGS = {
    "CACHES": {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "ledger-tests",
        }
    },
    "CHANNEL_LAYERS": {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}},
    "REDIS_ENABLED": False,
}

DEFAULT_PASSWORD = "Passw0rd123"


def make_team(name: str, **extra):
    from apps.teams.models import Team

    return Team.objects.create(name=name, slug=extra.pop("slug", slugify(name) or name.lower()), **extra)


def make_user(username: str, *, team=None, is_staff: bool = False, **extra):
    User = get_user_model()
    return User.objects.create_user(
        username=username,
        password=DEFAULT_PASSWORD,
        email=f"{username}@example.com",
        team=team,
        is_staff=is_staff,
        **extra,
    )


class AuthenticatedAPIMixin:
    """
    提供统一的登录与认证客户端构造工具，减少各测试用例的重复代码
    """

    login_url: str = "/api/accounts/auth/token/"
    client: APIClient  # 由 APITestCase 提供

    def api_login(self, username: str, password: str = DEFAULT_PASSWORD, expect_status: int = 200) -> str:
        """
        登录并返回访问令牌，默认期望 200 状态
        """
        resp = self.client.post(
            self.login_url,
            {"username": username, "password": password},
            format="json",
        )
        if resp.status_code != expect_status:
            raise AssertionError(f"登录接口返回 {resp.status_code}，期望 {expect_status}，响应：{resp.content}")
        return resp.data["data"]["access"]

    def auth_client(self, username: str, password: str = DEFAULT_PASSWORD) -> APIClient:
        """
        构造附带 Authorization 头的 APIClient
        """
        token = self.api_login(username, password)
        client = APIClient()
        client.raise_request_exception = False
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        return client

    @staticmethod
    def client_for(user) -> APIClient:
        """
        跳过令牌签发，直接以指定用户身份发起请求
        """
        client = APIClient()
        client.raise_request_exception = False
        client.force_authenticate(user=user)
        return client
