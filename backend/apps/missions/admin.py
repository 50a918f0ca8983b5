from __future__ import annotations

from django.contrib import admin, messages

from apps.common.admin_audit import AdminAuditMixin
from apps.common.exceptions import BizError
from .models import Mission, Submission
from .schemas import SubmissionReviewSchema
from .services import SubmissionApproveService, SubmissionRejectService

# 后台注册：审核动作复用 Service，保证与接口相同的入账与并发保护


@admin.register(Mission)
class MissionAdmin(AdminAuditMixin, admin.ModelAdmin):
    audit_model = "Mission"
    list_display = ("title", "mission_type", "xp_reward", "status", "is_race", "race_active", "created_at")
    list_filter = ("mission_type", "status", "is_race")
    search_fields = ("title",)
    readonly_fields = ("race_active", "race_started_at", "race_placement_seq", "created_at", "updated_at")


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ("id", "mission", "user", "status", "xp_awarded", "race_placement", "created_at")
    list_filter = ("status", "mission__mission_type", "mission__is_race")
    search_fields = ("user__username", "mission__title")
    actions = ["approve_selected", "reject_selected"]

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in Submission._meta.fields]

    def has_add_permission(self, request):
        return False

    def _review(self, request, queryset, service_cls, label: str):
        schema = SubmissionReviewSchema()
        done = 0
        for submission in queryset:
            try:
                service_cls().execute(request.user, submission.pk, schema)
                done += 1
            except BizError as exc:
                self.message_user(request, f"#{submission.pk}: {exc.message}", level=messages.WARNING)
        self.message_user(request, f"{label} {done} 条提交")

    @admin.action(description="审核通过所选提交")
    def approve_selected(self, request, queryset):
        self._review(request, queryset, SubmissionApproveService, "已通过")

    @admin.action(description="驳回所选提交")
    def reject_selected(self, request, queryset):
        self._review(request, queryset, SubmissionRejectService, "已驳回")
