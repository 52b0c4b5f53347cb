"""
URL configuration for the Strata OKR API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Health
    path('v1/', include('apps.core.urls')),

    # Policy Decision Explorer, system status and feature flags
    path('v1/', include('apps.policy.urls')),

    # Role assignments and private-visibility whitelist
    path('v1/rbac/', include('apps.rbac.urls')),

    # Organizations and workspaces
    path('v1/', include('apps.tenants.urls')),

    # Objectives and key results
    path('v1/', include('apps.okrs.urls')),
]
