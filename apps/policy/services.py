"""
Policy decision service: loads resources, runs the engine, audits.
"""
import logging
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from apps.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from apps.okrs.context import OkrContext
from apps.policy import telemetry
from apps.policy.context import ResourceContext
from apps.policy.engine import PolicyDecisionEngine, with_meta
from apps.policy.types import Action, Decision, ReasonCode
from apps.rbac.roles import ScopeType, highest_role

logger = logging.getLogger(__name__)

RESOURCE_KEYS = {
    'tenantId': 'tenant_id',
    'workspaceId': 'workspace_id',
    'teamId': 'team_id',
    'objectiveId': 'objective_id',
    'keyResultId': 'key_result_id',
    'cycleId': 'cycle_id',
}

FORBIDDEN_MESSAGES = {
    ReasonCode.ROLE_DENY: 'You do not have permission to perform this action.',
    ReasonCode.PRIVATE_VISIBILITY: 'You do not have permission to view this OKR.',
}


def _first(queryset, **lookup):
    try:
        return queryset.filter(**lookup).first()
    except (DjangoValidationError, ValueError):
        return None


class PolicyDecisionService:
    """
    Entry point for every authorization decision.

    ``check`` is the bare engine call used inside services. ``authorize``
    adds deny telemetry for request paths and ``enforce`` turns a deny into
    the matching domain exception. ``decide`` backs the Policy Explorer.
    """

    engine = PolicyDecisionEngine()

    @classmethod
    def check(cls, user_ctx, action, resource: Optional[ResourceContext] = None,
              caller_scope=None) -> Decision:
        return cls.engine.evaluate(user_ctx, action, resource, caller_scope)

    @classmethod
    def authorize(cls, user_ctx, action, resource: Optional[ResourceContext] = None,
                  caller_scope=None, route=None) -> Decision:
        decision = cls.check(user_ctx, action, resource, caller_scope)
        if not decision.allow:
            cls._record_deny(user_ctx, action, decision, route)
        return decision

    @classmethod
    def enforce(cls, user_ctx, action, resource: Optional[ResourceContext] = None,
                caller_scope=None, route=None, hide_private=False) -> Decision:
        """
        Authorize or raise.

        Cross-tenant denies surface as ``NotFoundError`` so existence never
        leaks. ``hide_private`` does the same for visibility denies on read
        paths. Every other deny is a ``ForbiddenError`` carrying a message
        that names the cause.
        """
        decision = cls.authorize(user_ctx, action, resource, caller_scope, route)
        if decision.allow:
            return decision

        if decision.reason == ReasonCode.TENANT_BOUNDARY:
            raise NotFoundError('Resource not found.')
        if decision.reason == ReasonCode.PRIVATE_VISIBILITY and hide_private:
            raise NotFoundError('Resource not found.')

        message = FORBIDDEN_MESSAGES.get(decision.reason) or decision.message or 'Forbidden.'
        raise ForbiddenError(message, details={'reason': decision.reason.value})

    @classmethod
    def decide(cls, request_user, action, evaluated_user_id=None,
               resource: Optional[Dict[str, Any]] = None, context: Optional[Dict[str, Any]] = None,
               caller_scope=None, request=None) -> Decision:
        """
        Evaluate a (possibly hypothetical) decision for the Policy Explorer.

        Args:
            request_user: Authenticated caller
            action: Action value
            evaluated_user_id: User to evaluate; defaults to the caller.
                Only superusers may evaluate someone else.
            resource: Camel-cased resource ids from the request body
            context: Free-form context, echoed for the audit trail only
            caller_scope: Caller's scope when evaluating themselves
            request: Originating request (audit/request id)

        Returns:
            Decision with ``meta`` filled in

        Raises:
            ValidationError: Unknown action
            ForbiddenError: Non-superuser evaluating another user
            NotFoundError: Evaluated user or referenced OKR missing
        """
        from apps.rbac.models import User
        from apps.rbac.services import RoleResolver

        parsed = Action.parse(action)
        if parsed is None:
            raise ValidationError(f'Unknown action: {action}', details={'action': action})

        evaluated_user = request_user
        if evaluated_user_id and str(evaluated_user_id) != str(request_user.id):
            if not request_user.is_superuser:
                raise ForbiddenError('Only superusers may evaluate decisions for other users.')
            evaluated_user = _first(User.objects.all(), id=evaluated_user_id)
            if evaluated_user is None:
                raise NotFoundError('User not found.', details={'userId': str(evaluated_user_id)})
            caller_scope = None

        resource_ctx = cls.load_resource(resource or {})
        user_ctx = RoleResolver.build_user_context(evaluated_user)

        decision = cls.engine.evaluate(user_ctx, parsed, resource_ctx, caller_scope)
        decision = with_meta(decision, {
            'requestUserId': str(request_user.id),
            'evaluatedUserId': str(evaluated_user.id),
            'action': parsed.value,
            'timestamp': timezone.now().isoformat().replace('+00:00', 'Z'),
        })

        if not decision.allow:
            cls._record_deny(user_ctx, parsed, decision, getattr(request, 'path', None))
        cls._enqueue_audit(decision, request_user, resource_ctx, request, context)
        return decision

    @classmethod
    def load_resource(cls, ids: Dict[str, Any]) -> ResourceContext:
        """
        Build a ResourceContext from camel-cased ids, loading OKRs and ancestry.

        A key result resolves to its parent objective's snapshot. Tenant,
        workspace and team ids are taken from the loaded OKR when there is
        one, otherwise filled in from the narrowest scope given.
        """
        from apps.okrs.models import KeyResult, Objective
        from apps.rbac.services import RoleResolver
        from apps.tenants.models import Organization

        if not isinstance(ids, dict):
            raise ValidationError('resource must be an object.')

        values = {
            attr: str(ids[key]) for key, attr in RESOURCE_KEYS.items()
            if ids.get(key) not in (None, '')
        }
        okr = None

        if values.get('key_result_id'):
            key_result = _first(
                KeyResult.objects.select_related('objective__cycle'), id=values['key_result_id']
            )
            if key_result is None:
                raise NotFoundError('Key result not found.')
            okr = OkrContext.from_key_result(key_result)
            if okr is not None:
                values['objective_id'] = okr.id
        elif values.get('objective_id'):
            objective = _first(Objective.objects.select_related('cycle'), id=values['objective_id'])
            if objective is None:
                raise NotFoundError('Objective not found.')
            okr = OkrContext.from_objective(objective)
            if objective.cycle_id and not values.get('cycle_id'):
                values['cycle_id'] = str(objective.cycle_id)

        if okr is not None:
            values['tenant_id'] = okr.organization_id
            values['workspace_id'] = okr.workspace_id
            values['team_id'] = okr.team_id
        elif values.get('team_id'):
            scope = RoleResolver.resolve_scope(ScopeType.TEAM, values['team_id'])
            if scope:
                values.setdefault('workspace_id', scope['workspace_id'])
                values.setdefault('tenant_id', scope['tenant_id'])
        elif values.get('workspace_id'):
            scope = RoleResolver.resolve_scope(ScopeType.WORKSPACE, values['workspace_id'])
            if scope:
                values.setdefault('tenant_id', scope['tenant_id'])

        organization = None
        if values.get('tenant_id'):
            organization = _first(Organization.objects.all(), id=values['tenant_id'])

        return ResourceContext(
            tenant_id=values.get('tenant_id'),
            workspace_id=values.get('workspace_id'),
            team_id=values.get('team_id'),
            objective_id=values.get('objective_id'),
            key_result_id=values.get('key_result_id'),
            cycle_id=values.get('cycle_id'),
            okr=okr,
            organization=organization,
        )

    @staticmethod
    def _record_deny(user_ctx, action, decision, route=None):
        action = action.value if isinstance(action, Action) else action
        telemetry.record_deny(
            action=action,
            reason=decision.reason.value,
            user_id=user_ctx.user_id,
            tenant_id=(decision.details.get('resourceCtxEcho') or {}).get('tenantId'),
            role=highest_role(user_ctx.all_roles),
            route=route,
        )

    @staticmethod
    def _enqueue_audit(decision, request_user, resource_ctx, request=None, context=None):
        """Fire-and-forget audit of a decision; failures are logged only."""
        from apps.policy.tasks import record_decision_audit

        payload = decision.as_dict()
        if context:
            payload['context'] = context
        try:
            record_decision_audit.delay(
                payload,
                request_user_id=str(request_user.id),
                tenant_id=str(resource_ctx.organization.id) if resource_ctx.organization is not None else None,
                request_id=getattr(request, 'request_id', None),
            )
        except Exception:
            logger.warning(
                "Failed to enqueue policy decision audit",
                extra={'request_id': getattr(request, 'request_id', None)},
                exc_info=True
            )
