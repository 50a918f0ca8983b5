# -*- coding: utf-8 -*-
"""
通用 WebSocket 消费者

- 轻量级实时推送，不做持久化/历史消息
- NotifyConsumer：个人 + 所在队伍频道
- FeedConsumer：公共动态频道（拍卖价格、竞速名次、排行榜快照）
"""

from __future__ import annotations

import asyncio
import time

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from apps.common.ws_utils import FEED_GROUP, team_group, user_group


class BaseAuthorizedConsumer(AsyncJsonWebsocketConsumer):
    """
    登录校验 + 心跳的基础 Consumer
    子类通过 get_groups 声明要加入的分组
    """

    heartbeat_timeout_seconds: int = 120
    heartbeat_interval_seconds: int = 25
    _last_ping: float = 0.0
    _monitor_task: asyncio.Task | None = None
    groups_joined: list[str] = []

    async def get_groups(self, user) -> list[str]:
        return []

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4401)
            return None
        await self.accept()
        self.groups_joined = await self.get_groups(user)
        if self.channel_layer:
            for group in self.groups_joined:
                await self.channel_layer.group_add(group, self.channel_name)
        self._last_ping = time.time()
        self._monitor_task = asyncio.create_task(self._monitor_heartbeat())
        return None

    async def disconnect(self, close_code):
        if self.channel_layer:
            for group in self.groups_joined:
                await self.channel_layer.group_discard(group, self.channel_name)
        if self._monitor_task:
            self._monitor_task.cancel()
        return None

    async def receive_json(self, content, **kwargs):
        """
        心跳：前端发送 {"type":"ping"}，返回 {"event":"pong"}
        """
        if content.get("type") == "ping":
            self._last_ping = time.time()
            await self.send_json({"event": "pong", "ts": self._last_ping})
        return None

    async def broadcast(self, event):
        """统一广播入口：去掉 channels 路由字段后透传给前端"""
        payload = {key: value for key, value in event.items() if key != "type"}
        await self.send_json(payload)

    async def _monitor_heartbeat(self):
        """长时间未收到 ping 则自动断开"""
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval_seconds)
                if time.time() - self._last_ping > self.heartbeat_timeout_seconds:
                    await self.close(code=4410)
                    break
        except asyncio.CancelledError:
            return None


@database_sync_to_async
def _current_team_id(user_id: int):
    from apps.accounts.models import User

    return User.objects.filter(pk=user_id).values_list("team_id", flat=True).first()


class NotifyConsumer(BaseAuthorizedConsumer):
    """
    个人通知通道：加入 user_<id>，已入队时同时加入 team_<id>
    """

    async def get_groups(self, user) -> list[str]:
        groups = [user_group(user.id)]
        team_id = await _current_team_id(user.id)
        if team_id:
            groups.append(team_group(team_id))
        return groups


class FeedConsumer(BaseAuthorizedConsumer):
    """
    公共动态通道：登录即可订阅
    """

    async def get_groups(self, user) -> list[str]:
        return [FEED_GROUP]
