from django.apps import AppConfig
from django.db.models.signals import post_delete, post_migrate, post_save


class SystemConfigApp(AppConfig):
    """
    系统配置模块 AppConfig

    职责：
    1. ready() 中初始化日志系统（不访问数据库）
    2. migrate 完成后把 settings 默认值同步到 SystemConfig
    3. SystemConfig 变更时清理配置缓存
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.system"
    verbose_name = "系统配置"

    def ready(self):
        from apps.common.infra.logger import configure_logging, get_logger

        configure_logging(force=True)
        logger = get_logger(__name__)

        from .models import SystemConfig

        def sync_system_configs(**kwargs):
            from .services import ConfigService

            ConfigService().ensure_supported_configs()
            logger.info("系统配置同步完成")

        def invalidate_config_cache(sender, instance, **kwargs):
            from .services import ConfigService

            ConfigService().invalidate(instance.key)

        post_migrate.connect(sync_system_configs, sender=self, weak=False, dispatch_uid="system-sync-configs")
        post_save.connect(invalidate_config_cache, sender=SystemConfig, weak=False, dispatch_uid="system-config-saved")
        post_delete.connect(invalidate_config_cache, sender=SystemConfig, weak=False, dispatch_uid="system-config-deleted")
