from django.apps import AppConfig


class AuctionsConfig(AppConfig):
    """
    队伍拍卖：出价、成交与获胜积分
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.auctions"
    label = "auctions"
    verbose_name = "拍卖"
