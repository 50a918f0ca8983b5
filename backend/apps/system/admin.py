from __future__ import annotations

from django.contrib import admin

from .models import SystemConfig


@admin.register(SystemConfig)
class SystemConfigAdmin(admin.ModelAdmin):
    """
    竞赛规则参数后台：只允许修改值，键与类型由 ConfigService 维护
    """

    list_display = ("key", "value", "value_type", "description", "updated_at")
    search_fields = ("key", "description")
    readonly_fields = ("key", "value_type", "description", "created_at", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
