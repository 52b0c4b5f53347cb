"""
OKR services: permission hints and objective/key-result writes.

Writes assume the caller has already been authorized through
``PolicyDecisionService``; they only apply and audit the change.
"""
import logging

from django.db import transaction

from apps.okrs.governance import get_lock_info
from apps.okrs.models import KeyResult, Objective

logger = logging.getLogger(__name__)

OBJECTIVE_FIELDS = ('title', 'description', 'visibility_level')
KEY_RESULT_FIELDS = ('title', 'start_value', 'target_value', 'current_value', 'unit')


class OkrPermissionService:
    """
    Dry-run permission hints for the dashboard.

    Hints run the same decision engine as enforcement, so they never
    disagree with it; they are still advisory and every mutation is
    re-checked.
    """

    @staticmethod
    def hints(user_ctx, okr, organization=None, caller_scope=None, key_result_id=None):
        from apps.policy.context import ResourceContext
        from apps.policy.services import PolicyDecisionService
        from apps.policy.types import Action

        if okr is None:
            return {
                'canView': False,
                'canEdit': False,
                'canDelete': False,
                'canPublish': False,
                'lockInfo': get_lock_info(user_ctx, None).as_dict(),
            }

        resource = ResourceContext.for_okr(okr, organization=organization, key_result_id=key_result_id)

        def allowed(action):
            return PolicyDecisionService.check(user_ctx, action, resource, caller_scope).allow

        return {
            'canView': allowed(Action.VIEW_OKR),
            'canEdit': allowed(Action.EDIT_OKR),
            'canDelete': allowed(Action.DELETE_OKR),
            'canPublish': allowed(Action.PUBLISH_OKR) and not okr.is_published,
            'lockInfo': get_lock_info(user_ctx, okr).as_dict(),
        }


class ObjectiveService:
    """Apply objective changes and record them in the audit log."""

    @staticmethod
    def _audit(action, objective, actor, request, diff=None):
        from apps.rbac.models import AuditLog

        AuditLog.log_action(
            action=action,
            user=actor,
            tenant_id=objective.organization_id,
            target_type='Objective',
            target_id=objective.id,
            diff=diff,
            request=request,
        )

    @classmethod
    @transaction.atomic
    def update(cls, objective: Objective, data, actor=None, request=None) -> Objective:
        diff = {}
        for field in OBJECTIVE_FIELDS:
            if field in data and getattr(objective, field) != data[field]:
                diff[field] = {'before': getattr(objective, field), 'after': data[field]}
                setattr(objective, field, data[field])

        if diff:
            objective.save(update_fields=list(diff) + ['updated_at'])
            cls._audit('objective_updated', objective, actor, request, diff)
        return objective

    @classmethod
    @transaction.atomic
    def publish(cls, objective: Objective, actor=None, request=None) -> Objective:
        """Publish ``objective``; publishing twice is a no-op."""
        if objective.is_published:
            return objective
        objective.publish()
        cls._audit('objective_published', objective, actor, request)
        logger.info(
            "Objective published",
            extra={'objective_id': str(objective.id), 'tenant_id': str(objective.organization_id)}
        )
        return objective

    @classmethod
    @transaction.atomic
    def delete(cls, objective: Objective, actor=None, request=None):
        """Soft delete the objective and its key results."""
        KeyResult.objects.filter(objective=objective).delete()
        objective.delete()
        cls._audit('objective_deleted', objective, actor, request)


class KeyResultService:

    @staticmethod
    @transaction.atomic
    def update(key_result: KeyResult, data, actor=None, request=None) -> KeyResult:
        from apps.rbac.models import AuditLog

        diff = {}
        for field in KEY_RESULT_FIELDS:
            if field in data and getattr(key_result, field) != data[field]:
                diff[field] = {'before': str(getattr(key_result, field)), 'after': str(data[field])}
                setattr(key_result, field, data[field])

        if diff:
            key_result.save(update_fields=list(diff) + ['updated_at'])
            AuditLog.log_action(
                action='key_result_updated',
                user=actor,
                tenant_id=key_result.objective.organization_id if key_result.objective_id else None,
                target_type='KeyResult',
                target_id=key_result.id,
                diff=diff,
                request=request,
            )
        return key_result

