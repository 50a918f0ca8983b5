from __future__ import annotations

from django.contrib import admin

from apps.common.admin_audit import AdminAuditMixin
from .models import Challenge, ChallengeResult


class ChallengeResultInline(admin.TabularInline):
    model = ChallengeResult
    extra = 0
    can_delete = False
    fields = ("team", "user", "time_ms", "score", "placement", "points_awarded")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Challenge)
class ChallengeAdmin(AdminAuditMixin, admin.ModelAdmin):
    """状态与发放时间只读：完成挑战必须走发放积分接口"""

    audit_model = "Challenge"
    list_display = ("title", "challenge_type", "status", "points_mode", "order_index", "points_awarded_at")
    list_filter = ("challenge_type", "status", "points_mode")
    search_fields = ("title",)
    readonly_fields = ("status", "points_awarded_at", "created_at", "updated_at")
    inlines = [ChallengeResultInline]
