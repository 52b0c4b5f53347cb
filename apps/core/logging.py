"""
Custom logging formatters for structured JSON logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone

from apps.core.sentry_utils import capture_message


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    API_KEY_PATTERN = re.compile(r'(api[_-]?key|token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)
    BEARER_PATTERN = re.compile(r'Bearer\s+[A-Za-z0-9\-_\.]+')

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'email', 'email_address',
        'password', 'password_hash',
        'api_key', 'access_token', 'refresh_token', 'bearer_token', 'authorization',
        'secret', 'secret_key', 'jwt',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            masked_username = username[0] + '*' * (len(username) - 1) if len(username) > 1 else username
            return f"{masked_username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_api_keys(cls, text):
        """Mask API keys, tokens, and secrets in text."""
        if not isinstance(text, str):
            return text
        text = cls.BEARER_PATTERN.sub('Bearer ********', text)
        return cls.API_KEY_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_api_keys(cls.mask_email(text))

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in cls.SENSITIVE_FIELDS):
                if value and not isinstance(value, (dict, list)):
                    masked[key] = '********'
                else:
                    masked[key] = value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict)
                    else cls.mask_text(item) if isinstance(item, str)
                    else item
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and tenant_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id', 'tenant_id', 'task_id', 'task_name',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('request_id', 'tenant_id', 'task_id', 'task_name'):
            if getattr(record, attr, None) is not None:
                log_data[attr] = str(getattr(record, attr))

        if record.exc_info and record.exc_info[0] is not None:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        # Add any extra fields
        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            try:
                if isinstance(value, dict):
                    masked_value = PIIMasker.mask_dict(value)
                elif isinstance(value, str):
                    masked_value = PIIMasker.mask_text(value)
                else:
                    masked_value = value

                json.dumps(masked_value)  # Test if serializable
                log_data[key] = masked_value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized security event logging for authorization events.

    Logs security-related events with structured data and sends critical
    events to Sentry for alerting and monitoring.

    All security events are logged with:
    - Event type
    - Timestamp
    - Additional context (user, tenant, action, reason)
    """

    CRITICAL_EVENTS = {
        'role_escalation_attempt',
        'tenant_boundary_violation',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'authorization_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (user_id, tenant_id, action, etc.)

        Example:
            >>> SecurityLogger.log_event(
            ...     'authorization_denied',
            ...     user_id='123',
            ...     action='edit_okr',
            ...     reason='PUBLISH_LOCK'
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_at': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(
            f"Security event: {event_type}",
            extra=log_data
        )

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            capture_message(
                f"Critical security event: {event_type}",
                level='error',
                security_event=log_data
            )

    @staticmethod
    def log_authorization_denied(user_id: str, action: str, reason: str,
                                 tenant_id: str = None, **extra):
        """
        Log an authorization decision that denied access.

        Args:
            user_id: Evaluated user
            action: Action that was denied
            reason: Reason code
            tenant_id: Resource tenant (if any)
        """
        SecurityLogger.log_event(
            'authorization_denied',
            level='info',
            user_id=user_id,
            action=action,
            reason=reason,
            tenant_id=tenant_id,
            **extra
        )

    @staticmethod
    def log_tenant_boundary_violation(user_id: str, resource_tenant_id: str,
                                      caller_scope: str, operation: str = None):
        """
        Log an attempt to touch another tenant's resources.

        Args:
            user_id: Acting user
            resource_tenant_id: Tenant owning the resource
            caller_scope: Caller scope description
            operation: Operation attempted
        """
        SecurityLogger.log_event(
            'tenant_boundary_violation',
            level='warning',
            user_id=user_id,
            resource_tenant_id=resource_tenant_id,
            caller_scope=caller_scope,
            operation=operation,
        )

    @staticmethod
    def log_role_escalation_attempt(granter_id: str, role: str, scope_type: str,
                                    scope_id: str, granter_role: str = None):
        """
        Log an attempt to grant or revoke a role above the granter's level.

        Args:
            granter_id: User attempting the grant
            role: Role being granted or revoked
            scope_type: TENANT, WORKSPACE or TEAM
            scope_id: Scope identifier
            granter_role: Granter's effective role at the scope
        """
        SecurityLogger.log_event(
            'role_escalation_attempt',
            level='error',
            granter_id=granter_id,
            role=role,
            scope_type=scope_type,
            scope_id=scope_id,
            granter_role=granter_role,
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str,
                                user_id: str = None, limit: str = None):
        """
        Log a rate limit violation.

        Args:
            endpoint: API endpoint that was rate limited
            ip_address: IP address of the request
            user_id: Authenticated user (if any)
            limit: Rate limit that was exceeded
        """
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            user_id=user_id,
            limit=limit
        )
