from django.apps import AppConfig


class LeaderboardsConfig(AppConfig):
    """
    排行榜：参与者与队伍榜单的只读投影及定时推送
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.leaderboards"
    label = "leaderboards"
    verbose_name = "排行榜"
