"""
Sentry helpers. Every function is a no-op when no DSN is configured.
"""
import sentry_sdk
from django.conf import settings


def _enabled():
    return bool(getattr(settings, 'SENTRY_DSN', None))


def tag_request(user, tenant_id=None):
    """Attach the authenticated user and requested tenant to the current scope."""
    if not _enabled():
        return

    sentry_sdk.set_user({'id': str(user.id)})
    sentry_sdk.set_tag('superuser', 'yes' if user.is_superuser else 'no')
    if tenant_id:
        sentry_sdk.set_tag('tenant_id', str(tenant_id))


def _capture(capture, *args, contexts=None, **kwargs):
    with sentry_sdk.new_scope() as scope:
        for name, value in (contexts or {}).items():
            scope.set_context(name, value)
        capture(*args, **kwargs)


def capture_exception(exception, **contexts):
    """Send ``exception`` with each keyword attached as a named context."""
    if _enabled():
        _capture(sentry_sdk.capture_exception, exception, contexts=contexts)


def capture_message(message, level='info', **contexts):
    """Send ``message`` at ``level`` with each keyword attached as a named context."""
    if _enabled():
        _capture(sentry_sdk.capture_message, message, contexts=contexts, level=level)
