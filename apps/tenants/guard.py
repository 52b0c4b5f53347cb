"""
Tenant guard: hard tenant-boundary assertions and fail-closed list filtering.

The caller's tenant is modelled as an explicit variant rather than a
nullable id:

- ``Unscoped``: the caller has no tenant membership at all. Lists are
  empty and every mutation is refused.
- ``Superuser``: platform-wide reader, no tenant restriction on reads.
- ``Tenant(id)``: a normal caller bound to one organization.

``Unscoped`` and ``Superuser`` must never be confused; a non-member is
never treated as unrestricted.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from apps.core.exceptions import TenantBoundaryError
from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unscoped:
    def __str__(self):
        return 'Unscoped'


@dataclass(frozen=True)
class Superuser:
    def __str__(self):
        return 'Superuser'


@dataclass(frozen=True)
class Tenant:
    id: str

    def __post_init__(self):
        if not self.id:
            raise ValueError('Tenant scope requires a tenant id')
        object.__setattr__(self, 'id', str(self.id))

    def __str__(self):
        return f'Tenant({self.id})'


CallerScope = Union[Unscoped, Superuser, Tenant]

UNSCOPED = Unscoped()
SUPERUSER_SCOPE = Superuser()


def assert_same_tenant(resource_tenant_id, scope: CallerScope, user_id=None):
    """
    Raise ``TenantBoundaryError`` unless ``scope`` may touch ``resource_tenant_id``.

    Superusers always pass. Unscoped callers never pass.
    """
    if isinstance(scope, Superuser):
        return
    if isinstance(scope, Tenant) and resource_tenant_id is not None \
            and str(resource_tenant_id) == scope.id:
        return

    SecurityLogger.log_tenant_boundary_violation(
        user_id=str(user_id) if user_id else None,
        resource_tenant_id=str(resource_tenant_id) if resource_tenant_id else None,
        caller_scope=str(scope),
    )
    raise TenantBoundaryError(
        'Resource belongs to a different tenant.',
        details={'resource_tenant_id': str(resource_tenant_id) if resource_tenant_id else None},
    )


def assert_can_mutate_tenant(scope: CallerScope):
    """A mutation always needs a tenant to attribute to."""
    if isinstance(scope, Unscoped):
        raise TenantBoundaryError('A tenant context is required for this operation.')


def assert_mutation_boundary(resource_tenant_id, user_ctx, user_id=None):
    """
    Membership check used on mutation paths.

    Unlike reads, a superuser only passes where they actually hold an
    assignment; callers decide whether that becomes SUPERUSER_READ_ONLY.
    """
    if resource_tenant_id is None:
        raise TenantBoundaryError('System/global resources are immutable.')
    if not user_ctx.belongs_to(resource_tenant_id):
        SecurityLogger.log_tenant_boundary_violation(
            user_id=str(user_id or user_ctx.user_id),
            resource_tenant_id=str(resource_tenant_id),
            caller_scope='mutation',
        )
        raise TenantBoundaryError(
            'Resource belongs to a different tenant.',
            details={'resource_tenant_id': str(resource_tenant_id)},
        )


def resolve_caller_scope(user_ctx, preferred_tenant_id=None, strict=True) -> CallerScope:
    """
    Resolve the caller's scope from their user context.

    Args:
        user_ctx: UserContext of the caller
        preferred_tenant_id: Tenant the request asks for (``X-TENANT-ID``
            header, or the resource tenant when evaluating another user)
        strict: Raise when the preferred tenant is not one of the caller's;
            when False, fall back to the caller's first membership

    Returns:
        Unscoped, Superuser or Tenant(id)
    """
    if user_ctx.is_superuser:
        return SUPERUSER_SCOPE

    if preferred_tenant_id:
        if user_ctx.belongs_to(preferred_tenant_id):
            return Tenant(str(preferred_tenant_id))
        if strict:
            SecurityLogger.log_tenant_boundary_violation(
                user_id=str(user_ctx.user_id),
                resource_tenant_id=str(preferred_tenant_id),
                caller_scope='header',
            )
            raise TenantBoundaryError('You do not have access to this tenant.')

    if user_ctx.tenant_ids:
        return Tenant(user_ctx.tenant_ids[0])
    return UNSCOPED


def tenant_filter(queryset, scope: CallerScope, field='organization_id', tenant_id=None):
    """
    Apply fail-closed tenant filtering to a list queryset.

    Unscoped callers get nothing. Superusers get everything, or only
    ``tenant_id`` when they ask for one. Scoped callers get their tenant.
    """
    if isinstance(scope, Unscoped):
        return queryset.none()
    if isinstance(scope, Superuser):
        if tenant_id:
            return queryset.filter(**{field: tenant_id})
        return queryset
    return queryset.filter(**{field: scope.id})


def membership_filter(queryset, user_ctx, field='organization_id'):
    """
    List filter when no tenant was requested explicitly.

    Superusers see everything; members see every tenant they belong to;
    callers without membership see nothing.
    """
    if user_ctx.is_superuser:
        return queryset
    if not user_ctx.tenant_ids:
        return queryset.none()
    return queryset.filter(**{f'{field}__in': list(user_ctx.tenant_ids)})


def scoped_queryset(queryset, user_ctx, scope: Optional[CallerScope], field='organization_id',
                    tenant_id=None):
    """``tenant_filter`` for an explicit scope, ``membership_filter`` otherwise."""
    if scope is None:
        return membership_filter(queryset, user_ctx, field)
    return tenant_filter(queryset, scope, field, tenant_id=tenant_id)
