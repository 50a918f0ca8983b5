from django.apps import AppConfig


class MissionsConfig(AppConfig):
    """
    任务与竞速：提交判定、审核、名次分配
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.missions"
    label = "missions"
    verbose_name = "任务"
