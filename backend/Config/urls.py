"""
URL configuration for Config project.

业务接口统一挂在 /api/<模块>/ 下；OpenAPI 文档与健康检查独立暴露
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView
from apps.common.health import HealthCheckView

# Admin 中文化：修改后台标题/页眉/站点名称
_brand = getattr(settings, "SITE_BRAND", "Contest Ledger")
admin.site.site_header = f"{_brand} 管理后台"
admin.site.site_title = _brand
admin.site.index_title = "管理控制台"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', HealthCheckView.as_view()),
    path('api/accounts/', include('apps.accounts.urls')),
    path('api/teams/', include('apps.teams.urls')),
    path('api/ledger/', include('apps.ledger.urls')),
    path('api/missions/', include('apps.missions.urls')),
    path('api/auctions/', include('apps.auctions.urls')),
    path('api/challenges/', include('apps.challenges.urls')),
    path('api/leaderboards/', include('apps.leaderboards.urls')),
    path('api/system/', include('apps.system.urls')),
    # OpenAPI 文档：提供 schema JSON 及 UI
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
