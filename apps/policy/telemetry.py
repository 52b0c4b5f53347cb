"""
Deny telemetry for policy decisions.
"""
import logging

from django.conf import settings
from django.utils import timezone

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


def telemetry_enabled() -> bool:
    return bool(getattr(settings, 'RBAC_TELEMETRY', True))


def record_deny(action, reason, user_id=None, tenant_id=None, role=None, route=None):
    """
    Emit a structured deny event. Never raises.

    Args:
        action: Action value that was denied
        reason: ReasonCode value
        user_id: Evaluated user
        tenant_id: Resource tenant, when known
        role: Highest role the user held (for dashboards)
        route: Request path that triggered the decision
    """
    if not telemetry_enabled():
        return
    try:
        SecurityLogger.log_authorization_denied(
            user_id=str(user_id) if user_id else None,
            action=action,
            reason=reason,
            tenant_id=str(tenant_id) if tenant_id else None,
            role=role,
            route=route,
            denied_at=timezone.now().isoformat(),
        )
    except Exception:
        logger.warning("Failed to record deny telemetry", exc_info=True)
