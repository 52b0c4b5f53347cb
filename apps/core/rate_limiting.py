"""
Rate limiting utilities for authenticated API views.

django-ratelimit's decorators run before DRF authentication, so per-user
limits are checked from inside the view once ``request.user`` is resolved.
"""
import logging
from django_ratelimit.core import is_ratelimited
from django_ratelimit.exceptions import Ratelimited

logger = logging.getLogger(__name__)


def user_or_ip_key(group, request):
    """Rate limit key: authenticated user id, falling back to client IP."""
    user = getattr(request, 'user', None)
    if user is not None and getattr(user, 'is_authenticated', False):
        return f"user:{user.id}"
    return f"ip:{request.META.get('REMOTE_ADDR', 'unknown')}"


def enforce_rate_limit(request, group, rate):
    """
    Count this request against ``group`` and raise when over ``rate``.

    Args:
        request: DRF request (authenticated)
        group: Rate limit bucket name (e.g. 'policy.decide')
        rate: django-ratelimit rate string (e.g. '60/m')

    Raises:
        Ratelimited: rendered as 429 by the custom exception handler
    """
    limited = is_ratelimited(
        request=request,
        group=group,
        key=user_or_ip_key,
        rate=rate,
        increment=True,
    )
    if limited:
        logger.warning(
            f"Rate limit exceeded for {group}",
            extra={
                'group': group,
                'rate': rate,
                'request_id': getattr(request, 'request_id', None),
            }
        )
        raise Ratelimited()
