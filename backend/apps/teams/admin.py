from __future__ import annotations

from django.contrib import admin

from apps.accounts.models import User
from apps.common.admin_audit import AdminAuditMixin
from .models import Team

# 后台注册：仅负责 Django Admin 展示配置，不包含业务逻辑


class TeamMemberInline(admin.TabularInline):
    """队伍详情页内联成员列表（只读）"""

    model = User
    fk_name = "team"
    extra = 0
    fields = ("username", "nickname", "total_xp", "level", "is_active")
    readonly_fields = fields
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Team)
class TeamAdmin(AdminAuditMixin, admin.ModelAdmin):
    audit_model = "Team"
    list_display = ("name", "slug", "total_xp", "member_count", "is_active", "order_index")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("total_xp", "created_at", "updated_at")
    inlines = [TeamMemberInline]
