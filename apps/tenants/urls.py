"""
URL configuration for organization and workspace endpoints.
"""
from django.urls import path

from apps.tenants import views

app_name = 'tenants'

urlpatterns = [
    path('organizations', views.OrganizationListView.as_view(), name='organization-list'),
    path('organizations/<uuid:org_id>', views.OrganizationDetailView.as_view(), name='organization-detail'),
    path('workspaces', views.WorkspaceListView.as_view(), name='workspace-list'),
    path('workspaces/<uuid:workspace_id>', views.WorkspaceDetailView.as_view(), name='workspace-detail'),
]
