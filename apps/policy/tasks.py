"""
Celery tasks for policy decision auditing.
"""
from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, ignore_result=True)
def record_decision_audit(self, decision: dict, request_user_id: str = None,
                          tenant_id: str = None, request_id: str = None):
    """
    Persist one policy decision to the audit log.

    Enqueued fire-and-forget by ``PolicyDecisionService.decide``; the
    decision itself is never stored anywhere else.

    Args:
        decision: ``Decision.as_dict()`` payload
        request_user_id: User who asked for the decision
        tenant_id: Resource tenant, when the decision had one
        request_id: Originating request id
    """
    from apps.rbac.models import AuditLog, User
    from apps.tenants.models import Organization

    meta = decision.get('meta') or {}
    actor = User.objects.filter(id=request_user_id).first() if request_user_id else None
    if tenant_id and not Organization.objects.filter(id=tenant_id).exists():
        tenant_id = None

    try:
        entry = AuditLog.objects.create(
            action='policy_decision',
            user=actor,
            tenant_id=tenant_id,
            target_type='PolicyDecision',
            target_id=meta.get('evaluatedUserId'),
            request_id=request_id or '',
            metadata={
                'allow': decision.get('allow'),
                'reason': decision.get('reason'),
                'action': meta.get('action'),
                'evaluated_user_id': meta.get('evaluatedUserId'),
                'resource': (decision.get('details') or {}).get('resourceCtxEcho', {}),
                'timestamp': meta.get('timestamp'),
            },
        )
    except Exception as exc:
        logger.error(
            f"Failed to record policy decision audit: {exc}",
            extra={'request_id': request_id},
            exc_info=True
        )
        raise self.retry(exc=exc, countdown=2 ** self.request.retries)

    logger.info(
        "Policy decision audited",
        extra={'audit_id': str(entry.id), 'reason': decision.get('reason')}
    )
    return str(entry.id)
