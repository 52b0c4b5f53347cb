"""
URL configuration for the Policy Explorer and system endpoints.
"""
from django.urls import path

from apps.policy import views

app_name = 'policy'

urlpatterns = [
    path('policy/decide', views.PolicyDecideView.as_view(), name='decide'),
    path('system/status', views.SystemStatusView.as_view(), name='system-status'),
    path('system/feature-flags/<uuid:user_id>', views.FeatureFlagView.as_view(), name='feature-flags'),
]
