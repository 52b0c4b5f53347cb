"""
RBAC models for tenant-scoped access control.

Implements:
- Global User identity (superuser flag, per-user feature settings)
- RoleAssignment (user, role, scope type, scope id)
- AuditLog (audit trail for grants, whitelist changes and decisions)
"""
import logging
from django.db import models
from apps.core.models import BaseModel, BaseModelManager
from apps.rbac.roles import Role, ScopeType

logger = logging.getLogger(__name__)


class UserManager(BaseModelManager):

    def create_user(self, email, **extra_fields):
        """
        Create a user row.

        Credentials live with the identity provider; this row only anchors
        role assignments, the superuser flag and per-user settings.
        """
        if not email:
            raise ValueError('Email address is required')

        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.save(using=self._db)
        return user

    @staticmethod
    def normalize_email(email):
        """Lowercase the domain part."""
        email = email or ''
        try:
            local, domain = email.strip().rsplit('@', 1)
        except ValueError:
            return email
        return f"{local}@{domain.lower()}"

    def get_by_natural_key(self, email):
        return self.get(email=email)


class User(BaseModel):
    """
    Global user identity; may hold roles in many organizations.

    Authentication happens upstream (JWT). Authorization comes from
    RoleAssignment rows and ``is_superuser``.
    """

    email = models.EmailField(unique=True)
    is_active = models.BooleanField(default=True, db_index=True)
    is_superuser = models.BooleanField(
        default=False,
        help_text="Platform administrator: reads everywhere, writes only where a member"
    )
    settings = models.JSONField(
        default=dict,
        blank=True,
        help_text="Per-user settings; feature flags under 'features' (legacy: 'debug')"
    )

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    # DRF treats any object with these as an authenticated principal.
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False


class RoleAssignmentQuerySet(models.QuerySet):

    def for_user(self, user):
        return self.filter(user=user)


class RoleAssignment(BaseModel):
    """
    Binds a user to a role at a tenant, workspace or team scope.

    A user may hold several assignments across scopes and several roles at
    the same scope. ``scope_id`` is the id of an Organization, Workspace or
    Team depending on ``scope_type``; every scope resolves to exactly one
    organization.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='role_assignments')
    role = models.CharField(max_length=32, choices=Role.choices, db_index=True)
    scope_type = models.CharField(max_length=16, choices=ScopeType.choices)
    scope_id = models.UUIDField(
        db_index=True,
        help_text="Organization, workspace or team id, per scope_type"
    )
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='role_grants',
        help_text="Null for system grants and legacy migration"
    )
    granted_at = models.DateTimeField(auto_now_add=True)

    # Revocation is a hard delete, so no soft-delete filtering here.
    objects = models.Manager.from_queryset(RoleAssignmentQuerySet)()

    class Meta:
        db_table = 'role_assignments'
        ordering = ['granted_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'role', 'scope_type', 'scope_id'],
                name='unique_role_assignment',
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'scope_type']),
            models.Index(fields=['scope_type', 'scope_id']),
        ]

    def __str__(self):
        return f"{self.user_id} {self.role} @ {self.scope_type}:{self.scope_id}"


class AuditLog(BaseModel):
    """
    Audit trail for role grants, whitelist and settings edits, feature flag
    toggles and Policy Decision Explorer calls.
    """

    tenant = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Null for platform-level entries"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Acting user; null for system actions"
    )
    action = models.CharField(max_length=100, db_index=True)
    target_type = models.CharField(max_length=50, blank=True)
    target_id = models.UUIDField(null=True, blank=True)
    diff = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, blank=True, db_index=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at']),
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['target_type', 'target_id']),
        ]

    def __str__(self):
        return f"{self.tenant_id or 'platform'} {self.user_id or 'system'} {self.action}"

    @classmethod
    def log_action(cls, action, user=None, tenant=None, tenant_id=None, target_type='',
                   target_id=None, diff=None, metadata=None, request=None):
        """
        Write an audit entry. Never raises.

        ``request`` supplies the client IP, user agent and request id.
        Returns the entry, or None when the write failed.
        """
        if user is not None and not getattr(user, 'is_authenticated', False):
            user = None

        fields = {
            'action': action,
            'user': user,
            'target_type': target_type or '',
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
        }
        if tenant is not None:
            fields['tenant'] = tenant
        elif tenant_id is not None:
            fields['tenant_id'] = tenant_id

        if request is not None:
            fields['ip_address'] = cls._get_client_ip(request)
            fields['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            fields['request_id'] = getattr(request, 'request_id', None) or ''

        try:
            return cls.objects.create(**fields)
        except Exception:
            logger.error(
                "Failed to create audit log",
                extra={'action': action, 'tenant_id': str(tenant.id if tenant else tenant_id)},
                exc_info=True
            )
            return None

    @staticmethod
    def _get_client_ip(request):
        forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
        if forwarded:
            return forwarded.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
