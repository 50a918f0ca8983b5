from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """
    账户模块应用配置：参与者（User）模型与个人资料接口
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.accounts"
    label = "accounts"
    verbose_name = "参与者"
