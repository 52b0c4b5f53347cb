"""
Custom exception handlers and domain exceptions for DRF.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django_ratelimit.exceptions import Ratelimited
from django.http import JsonResponse

logger = logging.getLogger(__name__)

RATE_LIMIT_RETRY_AFTER = 60


def _client_ip(request):
    """Extract client IP from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def _log_rate_limit(request):
    from apps.core.logging import SecurityLogger

    user = getattr(request, 'user', None)
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=_client_ip(request),
        user_id=str(user.id) if user is not None and getattr(user, 'is_authenticated', False) else None,
        limit='Rate limit exceeded'
    )


def ratelimit_view(request, exception):
    """
    Custom view for django-ratelimit to return 429 instead of 403.

    This is called when rate limit is exceeded with block=True.
    Returns 429 with Retry-After header indicating when to retry.
    """
    _log_rate_limit(request)

    response = JsonResponse(
        {
            'error': {
                'code': 'RATE_LIMIT_EXCEEDED',
                'message': 'Rate limit exceeded. Please try again later.',
                'details': {'retry_after': RATE_LIMIT_RETRY_AFTER},
            },
            'request_id': getattr(request, 'request_id', None),
        },
        status=429
    )

    # Add Retry-After header (RFC 6585)
    response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)

    return response


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.

    Domain exceptions render as ``{"error": {"code", "message", "details"}}``
    with the status code declared on the exception class.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        if request is not None:
            _log_rate_limit(request)

        response = Response(
            {
                'error': {
                    'code': 'RATE_LIMIT_EXCEEDED',
                    'message': 'Rate limit exceeded. Please try again later.',
                    'details': {'retry_after': RATE_LIMIT_RETRY_AFTER},
                },
                'request_id': request_id,
            },
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
        response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)
        return response

    if isinstance(exc, StrataException):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"Domain exception: {exc.__class__.__name__}",
            extra={
                'code': exc.code,
                'exception': exc.message,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        return Response(exc.as_response_body(request_id), status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.info(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'status_code': response.status_code,
            'request_id': request_id,
            'path': request.path if request else None,
        }
    )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response


class StrataException(Exception):
    """Base exception for Strata domain errors."""

    status_code = 400
    code = 'ERROR'

    def __init__(self, message, details=None, code=None):
        self.message = message
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)

    def as_response_body(self, request_id=None):
        body = {
            'error': {
                'code': self.code,
                'message': self.message,
            }
        }
        if self.details:
            body['error']['details'] = self.details
        if request_id:
            body['request_id'] = request_id
        return body


class TenantBoundaryError(StrataException):
    """
    Raised when a caller touches a resource outside their tenant.

    Mutation paths surface this as 403. Read paths convert it to
    ``NotFoundError`` so cross-tenant existence is never revealed.
    """
    status_code = 403
    code = 'TENANT_BOUNDARY'


class ForbiddenError(StrataException):
    """Raised when role, visibility or lock policy denies an action."""
    status_code = 403
    code = 'FORBIDDEN'


class NotFoundError(StrataException):
    """Raised when a resource is absent or deliberately hidden."""
    status_code = 404
    code = 'NOT_FOUND'


class ValidationError(StrataException):
    """Raised when input validation fails."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class RoleEscalationError(ForbiddenError):
    """Raised when a granter tries to grant or revoke a role above their own level."""
    code = 'ROLE_ESCALATION'


class WorkspaceCycleError(ValidationError):
    """Raised when a workspace parent change would create a cycle."""
    code = 'WORKSPACE_CYCLE'
