from __future__ import annotations

from django.urls import path

from .views import ProfileView, TokenObtainView, TokenRefreshWrappedView

app_name = "accounts"

urlpatterns = [
    # 签发 / 刷新访问令牌
    path("auth/token/", TokenObtainView.as_view(), name="token"),
    path("auth/refresh/", TokenRefreshWrappedView.as_view(), name="token-refresh"),
    # 个人资料
    path("me/", ProfileView.as_view(), name="profile"),
]
