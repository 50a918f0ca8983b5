"""
ASGI 入口

- HTTP 交给 Django 处理
- WebSocket（ws/notify/、ws/feed/）先经 JWTAuthMiddleware 解析令牌，再按 Config.routing 分发
"""

import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Config.settings')

from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack

# 先初始化 Django，确保 AppRegistry 就绪
django_application = get_asgi_application()

# 延后加载以避免 AppRegistryNotReady
from Config.routing import websocket_urlpatterns  # noqa: E402
from apps.common.ws_auth import JWTAuthMiddleware  # noqa: E402

application = ProtocolTypeRouter({
    "http": django_application,
    "websocket": JWTAuthMiddleware(
        AuthMiddlewareStack(
            URLRouter(websocket_urlpatterns)
        )
    ),
})
