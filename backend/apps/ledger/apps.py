from django.apps import AppConfig


class LedgerConfig(AppConfig):
    """
    积分账本：唯一的累计积分入账入口与入账流水
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.ledger"
    label = "ledger"
    verbose_name = "积分账本"
