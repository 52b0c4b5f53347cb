"""
RBAC API URLs.

Provides endpoints for:
- Role assignments (own, effective, grant, revoke)
- PRIVATE objective whitelist management
"""
from django.urls import path
from apps.rbac.views import (
    MyAssignmentsView,
    EffectiveRoleView,
    AssignmentCreateView,
    AssignmentDetailView,
    WhitelistView,
    WhitelistAddView,
    WhitelistRemoveView,
)

app_name = 'rbac'

urlpatterns = [
    # Role assignments
    path('assignments/me', MyAssignmentsView.as_view(), name='assignments-me'),
    path('assignments/effective', EffectiveRoleView.as_view(), name='assignments-effective'),
    path('assignments', AssignmentCreateView.as_view(), name='assignments-create'),
    path('assignments/<uuid:assignment_id>', AssignmentDetailView.as_view(), name='assignments-detail'),

    # Whitelist
    path('whitelist/<uuid:tenant_id>', WhitelistView.as_view(), name='whitelist'),
    path('whitelist/<uuid:tenant_id>/add', WhitelistAddView.as_view(), name='whitelist-add'),
    path('whitelist/<uuid:tenant_id>/remove', WhitelistRemoveView.as_view(), name='whitelist-remove'),
]
