# -*- coding: utf-8 -*-
"""
全局 WebSocket 路由配置

- notify：个人与所在队伍的事件（审核结果、出价被超越、积分到账）
- feed：公共动态（拍卖价格、竞速名次、排行榜快照），供大屏订阅
- 鉴权在 Consumer 内校验
"""

from django.urls import path

from apps.common.consumers import FeedConsumer, NotifyConsumer

websocket_urlpatterns = [
    path("ws/notify/", NotifyConsumer.as_asgi(), name="ws-notify"),
    path("ws/feed/", FeedConsumer.as_asgi(), name="ws-feed"),
]
