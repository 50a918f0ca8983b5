from __future__ import annotations

from django.contrib import admin

from .models import CreditEntry


@admin.register(CreditEntry)
class CreditEntryAdmin(admin.ModelAdmin):
    """积分流水只读：入账只能经由各业务结算产生"""

    list_display = ("id", "target_key", "amount", "balance_after", "source_type", "source_id", "created_at")
    list_filter = ("source_type", "target_type")
    search_fields = ("target_key", "note")
    readonly_fields = [f.name for f in CreditEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
