from django.apps import AppConfig


class ChallengesConfig(AppConfig):
    """
    Challenges 应用配置：
    - 挑战成绩录入、名次计算与队伍积分发放
    """

    default_auto_field = 'django.db.models.BigAutoField'  # 默认主键类型
    name = 'apps.challenges'  # 应用路径
    label = 'challenges'  # 应用标签
    verbose_name = "挑战"  # 应用在后台显示的名称
