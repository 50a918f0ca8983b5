from django.apps import AppConfig


class TeamsConfig(AppConfig):
    """
    队伍模块应用配置
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.teams"
    label = "teams"
    verbose_name = "队伍"
