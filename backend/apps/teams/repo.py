from __future__ import annotations

from django.db.models import Count, Q, QuerySet
from django.utils.text import slugify

from apps.common.base.base_repo import BaseRepo
from .models import Team


class TeamRepo(BaseRepo[Team]):
    """队伍仓储：生成唯一 slug、附带成员统计"""

    model = Team
    not_found_message = "队伍不存在"

    def generate_slug(self, name: str) -> str:
        """根据队伍名称生成唯一 slug，重名时递增后缀"""
        base = slugify(name) or "team"
        slug = base
        idx = 1
        while self.filter(slug=slug).exists():
            idx += 1
            slug = f"{base}-{idx}"
        return slug

    def with_member_count(self, queryset: QuerySet[Team] | None = None) -> QuerySet[Team]:
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.annotate(active_member_count=Count("members", filter=Q(members__is_active=True)))

    def active_teams(self) -> QuerySet[Team]:
        return self.with_member_count(self.filter(is_active=True))
