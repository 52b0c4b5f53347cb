"""
Policy decision engine.

Composes the tenant guard, lock resolver, role table and visibility
resolver into a single ordered evaluation. The first failing step decides
the reason code:

1. ``create_okr`` is re-targeted at a tenant the user belongs to.
2. Mutations pass the tenant gate (superuser read-only, membership).
3. Edits and deletes of OKRs pass the publish/cycle lock.
4. Reads of tenant resources stay inside the caller's tenant.
5. The role table allows the action.
6. ``view_okr`` passes the visibility resolver.

A deny is a normal return value; the engine never raises for one.
"""
import logging
from dataclasses import replace
from typing import Optional

from apps.core.exceptions import TenantBoundaryError
from apps.okrs.governance import get_lock_info
from apps.okrs.visibility import can_view
from apps.policy.context import ResourceContext
from apps.policy.rules import role_allows
from apps.policy.types import (
    LOCKED_ACTIONS, MUTATION_ACTIONS, Action, Decision, ReasonCode,
)
from apps.tenants.guard import (
    Superuser, Tenant, assert_mutation_boundary, assert_same_tenant,
    resolve_caller_scope,
)

logger = logging.getLogger(__name__)

SUPERUSER_READ_ONLY_MESSAGE = 'Superusers are read-only; cannot modify resources.'


class PolicyDecisionEngine:
    """Stateless evaluator; one instance may be shared freely."""

    def evaluate(self, user_ctx, action, resource: Optional[ResourceContext] = None,
                 caller_scope=None) -> Decision:
        """
        Decide whether ``user_ctx`` may perform ``action`` on ``resource``.

        Args:
            user_ctx: UserContext of the evaluated user
            action: Action (or its string value)
            resource: ResourceContext; None means no specific resource
            caller_scope: CallerScope of the request, when known. Reads are
                bounded to it; without one the user's membership of the
                resource tenant decides.

        Returns:
            Decision without ``meta`` (the service adds it)

        Raises:
            ValueError: If ``action`` is not a known action
        """
        action = action if isinstance(action, Action) else Action(action)
        resource = resource or ResourceContext()
        evaluated = user_ctx

        if action == Action.CREATE_OKR:
            resource = self._default_create_tenant(user_ctx, resource, caller_scope)

        if action in MUTATION_ACTIONS:
            if user_ctx.is_superuser and action != Action.IMPERSONATE_USER:
                if not user_ctx.belongs_to(resource.tenant_id):
                    return self._deny(user_ctx, action, resource, ReasonCode.SUPERUSER_READ_ONLY,
                                      SUPERUSER_READ_ONLY_MESSAGE)
                evaluated = user_ctx.as_member()

            if not evaluated.is_superuser:
                try:
                    assert_mutation_boundary(resource.tenant_id, evaluated)
                except TenantBoundaryError as exc:
                    return self._deny(user_ctx, action, resource, ReasonCode.TENANT_BOUNDARY, exc.message)

            if action in LOCKED_ACTIONS and resource.okr is not None:
                lock = get_lock_info(evaluated, resource.okr)
                if lock.is_locked:
                    return self._deny(user_ctx, action, resource, ReasonCode.PUBLISH_LOCK,
                                      lock.message, lockReason=lock.reason)

        elif resource.tenant_id and not user_ctx.is_superuser:
            scope = caller_scope
            if scope is None or isinstance(scope, Superuser):
                scope = resolve_caller_scope(user_ctx, resource.tenant_id, strict=False)
            try:
                assert_same_tenant(resource.tenant_id, scope, user_id=user_ctx.user_id)
            except TenantBoundaryError:
                return self._deny(
                    user_ctx, action, resource, ReasonCode.TENANT_BOUNDARY,
                    'You do not have permission to access resources outside your organization.'
                )

        if not role_allows(evaluated, action, resource):
            tenant = resource.tenant_id or 'any tenant'
            return self._deny(
                user_ctx, action, resource, ReasonCode.ROLE_DENY,
                f'User does not have permission to {action.value} in tenant {tenant}.'
            )

        if action == Action.VIEW_OKR:
            if resource.okr is None and (resource.objective_id or resource.key_result_id):
                return self._deny(user_ctx, action, resource, ReasonCode.PRIVATE_VISIBILITY,
                                  'Parent objective is unavailable.')
            if resource.okr is not None and not can_view(evaluated, resource.okr, resource.organization):
                return self._deny(user_ctx, action, resource, ReasonCode.PRIVATE_VISIBILITY,
                                  'This OKR is private.',
                                  okrId=resource.okr.id,
                                  visibilityLevel=resource.okr.visibility_level)

        return Decision(
            allow=True,
            reason=ReasonCode.ALLOW,
            details=self._details(user_ctx, resource, ReasonCode.ALLOW),
        )

    @staticmethod
    def _default_create_tenant(user_ctx, resource, caller_scope):
        """Point a create at a tenant the user belongs to; new resources have no tenant yet."""
        if resource.tenant_id and user_ctx.belongs_to(resource.tenant_id):
            return resource
        if isinstance(caller_scope, Tenant) and user_ctx.belongs_to(caller_scope.id):
            return resource.with_tenant(caller_scope.id)
        if user_ctx.tenant_ids:
            logger.debug(
                "create_okr re-targeted to first tenant membership",
                extra={'user_id': str(user_ctx.user_id), 'requested_tenant_id': resource.tenant_id}
            )
            return resource.with_tenant(user_ctx.tenant_ids[0])
        return resource

    def _deny(self, user_ctx, action, resource, reason, message, **extra) -> Decision:
        details = self._details(user_ctx, resource, reason)
        details['message'] = message
        details.update(extra)
        logger.debug(
            "Policy deny",
            extra={'user_id': str(user_ctx.user_id), 'action': action.value, 'reason': reason.value}
        )
        return Decision(allow=False, reason=reason, details=details)

    @staticmethod
    def _details(user_ctx, resource, reason):
        return {
            'userRoles': list(user_ctx.all_roles),
            'scopes': {
                'tenantIds': list(user_ctx.tenant_ids),
                'workspaceIds': sorted(user_ctx.workspace_roles),
                'teamIds': sorted(user_ctx.team_roles),
            },
            'resourceCtxEcho': resource.echo(),
            'ruleMatched': reason.value,
        }


def with_meta(decision: Decision, meta) -> Decision:
    return replace(decision, meta=dict(meta))
