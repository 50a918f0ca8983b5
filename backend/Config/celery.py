from __future__ import annotations

import os

from celery import Celery
from django.conf import settings

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "Config.settings")

# 创建 Celery 应用，使用 Django 配置中的 CELERY_* 变量
app = Celery("Config")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# 统一时区，与 Django 设置保持一致
if getattr(settings, "TIME_ZONE", None):
    app.conf.timezone = settings.TIME_ZONE

# 若外部未设置，则注入默认的排行榜快照推送任务
app.conf.beat_schedule = getattr(settings, "CELERY_BEAT_SCHEDULE", {})
if "push-leaderboard-snapshot" not in app.conf.beat_schedule:
    app.conf.beat_schedule["push-leaderboard-snapshot"] = {
        "task": "leaderboards.push_snapshot",
        "schedule": 30,
    }
