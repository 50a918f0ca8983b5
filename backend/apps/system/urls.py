# -*- coding: utf-8 -*-
"""
系统配置模块 API：仅暴露只读的公开规则参数
"""

from django.urls import path

from .views import PublicRulesView

urlpatterns: list[path] = [
    path("public/rules/", PublicRulesView.as_view(), name="public-rules"),
]
