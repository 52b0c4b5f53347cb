"""
DRF permission classes and request helpers for policy enforcement.

This module provides:
- get_user_context / get_caller_scope: per-request authorization snapshot
- IsSuperuser: platform-administrator-only endpoints
- HasPolicyAction: DRF permission class that asks the decision engine
- @requires_action: Decorator to declare the action a view needs
"""
import logging
import uuid

from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)

TENANT_HEADER = 'HTTP_X_TENANT_ID'


def get_user_context(request):
    """
    UserContext for the authenticated user, built once per request.

    Never cached beyond the request object.
    """
    from apps.rbac.services import RoleResolver

    user_ctx = getattr(request, '_strata_user_ctx', None)
    if user_ctx is None:
        user_ctx = RoleResolver.build_user_context(request.user)
        request._strata_user_ctx = user_ctx
    return user_ctx


def requested_tenant_id(request):
    """Tenant id named by the ``X-TENANT-ID`` header, or None when absent or malformed."""
    header = request.META.get(TENANT_HEADER)
    if not header:
        return None
    try:
        return str(uuid.UUID(str(header)))
    except ValueError:
        return None


def get_caller_scope(request, explicit_only=False):
    """
    CallerScope for the request.

    The header is read through ``requested_tenant_id``, so a malformed value
    counts as absent. A well-formed tenant id the member does not belong to
    raises ``TenantBoundaryError``; a caller with no membership at all stays
    ``Unscoped`` whatever the header says. With ``explicit_only`` and no
    usable header, returns None so decisions bound reads by the resource's
    own tenant.
    """
    from apps.tenants.guard import UNSCOPED, resolve_caller_scope

    tenant_id = requested_tenant_id(request)
    if explicit_only and tenant_id is None:
        return None
    user_ctx = get_user_context(request)
    if not user_ctx.is_superuser and not user_ctx.tenant_ids:
        return UNSCOPED
    return resolve_caller_scope(user_ctx, tenant_id, strict=True)


class IsSuperuser(BasePermission):
    """Allow platform superusers only."""

    message = 'Superuser access required.'

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        allowed = bool(user and getattr(user, 'is_authenticated', False) and user.is_superuser)
        if not allowed:
            logger.info(
                "Superuser permission denied",
                extra={
                    'path': request.path,
                    'user_id': str(getattr(user, 'id', '')) or None,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
        return allowed


class HasPolicyAction(BasePermission):
    """
    DRF permission class that runs a policy decision before the view.

    The view declares ``required_action`` (directly or with
    ``@requires_action``) and may implement ``get_policy_resource(request)``
    returning a ``ResourceContext``; without it the decision has no
    resource. Denies raise the domain exception matching the reason code,
    so cross-tenant targets answer 404.

    Usage in views:
        @requires_action('manage_tenant_settings')
        class WhitelistView(APIView):
            permission_classes = [IsAuthenticated, HasPolicyAction]

            def get_policy_resource(self, request):
                return ResourceContext(tenant_id=self.kwargs['tenant_id'])
    """

    def has_permission(self, request, view):
        from apps.policy.services import PolicyDecisionService

        action = getattr(view, 'required_action', None)
        if not action:
            return True

        resource = None
        if hasattr(view, 'get_policy_resource'):
            resource = view.get_policy_resource(request)

        PolicyDecisionService.enforce(
            get_user_context(request),
            action,
            resource,
            caller_scope=get_caller_scope(request, explicit_only=True),
            route=request.path,
        )
        return True


def requires_action(action):
    """
    Class decorator declaring the policy action a view requires.

    Example:
        @requires_action('manage_workspaces')
        class WorkspaceDetailView(APIView):
            permission_classes = [IsAuthenticated, HasPolicyAction]
    """
    def decorator(view_class):
        view_class.required_action = action
        return view_class
    return decorator
