"""
后台参与者管理：累计经验与等级只读，只能经由积分入账变更
"""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("username", "nickname", "team", "total_xp", "level", "is_staff", "is_active")
    list_filter = ("is_staff", "is_active", "team")
    search_fields = ("username", "nickname", "email")
    readonly_fields = ("total_xp", "level", "last_login", "date_joined", "updated_at")
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("竞赛信息", {"fields": ("nickname", "avatar_url", "team", "total_xp", "level", "updated_at")}),
    )
