from __future__ import annotations

from django.contrib import admin

from apps.common.admin_audit import AdminAuditMixin
from .models import Auction, Bid


class BidInline(admin.TabularInline):
    model = Bid
    extra = 0
    can_delete = False
    fields = ("team", "user", "amount", "is_leading", "created_at")
    readonly_fields = fields
    ordering = ("-amount",)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Auction)
class AuctionAdmin(AdminAuditMixin, admin.ModelAdmin):
    """价格、状态与成交字段只读；状态迁移请走接口，保证入账只发生一次"""

    audit_model = "Auction"
    list_display = ("item_name", "status", "current_price", "bid_count", "winning_team", "points_for_win", "created_at")
    list_filter = ("status",)
    search_fields = ("item_name",)
    readonly_fields = (
        "status",
        "current_price",
        "bid_count",
        "winning_team",
        "winning_user",
        "winning_amount",
        "started_at",
        "ended_at",
        "created_at",
        "updated_at",
    )
    inlines = [BidInline]
