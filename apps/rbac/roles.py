"""
Role catalogue: scopes, roles, ordinals and the legacy role mapping.

Roles are bound to exactly one scope type. Ordinals are global so a
granter's authority can be compared across scopes (a tenant admin outranks
any workspace or team role inside that tenant).
"""
from typing import Optional

from django.db import models


SUPERUSER = 'SUPERUSER'


class ScopeType(models.TextChoices):
    TENANT = 'TENANT', 'Tenant'
    WORKSPACE = 'WORKSPACE', 'Workspace'
    TEAM = 'TEAM', 'Team'


class Role(models.TextChoices):
    TENANT_OWNER = 'TENANT_OWNER', 'Tenant owner'
    TENANT_ADMIN = 'TENANT_ADMIN', 'Tenant admin'
    TENANT_VIEWER = 'TENANT_VIEWER', 'Tenant viewer'
    WORKSPACE_LEAD = 'WORKSPACE_LEAD', 'Workspace lead'
    WORKSPACE_ADMIN = 'WORKSPACE_ADMIN', 'Workspace admin'
    WORKSPACE_MEMBER = 'WORKSPACE_MEMBER', 'Workspace member'
    TEAM_LEAD = 'TEAM_LEAD', 'Team lead'
    TEAM_CONTRIBUTOR = 'TEAM_CONTRIBUTOR', 'Team contributor'
    TEAM_VIEWER = 'TEAM_VIEWER', 'Team viewer'


# Higher wins. Values are unique, so "highest" is never ambiguous.
ROLE_PRIORITY = {
    SUPERUSER: 100,
    Role.TENANT_OWNER: 90,
    Role.TENANT_ADMIN: 80,
    Role.WORKSPACE_LEAD: 70,
    Role.WORKSPACE_ADMIN: 60,
    Role.TEAM_LEAD: 50,
    Role.WORKSPACE_MEMBER: 40,
    Role.TEAM_CONTRIBUTOR: 30,
    Role.TEAM_VIEWER: 20,
    Role.TENANT_VIEWER: 10,
}

SCOPE_ROLES = {
    ScopeType.TENANT: (Role.TENANT_OWNER, Role.TENANT_ADMIN, Role.TENANT_VIEWER),
    ScopeType.WORKSPACE: (Role.WORKSPACE_LEAD, Role.WORKSPACE_ADMIN, Role.WORKSPACE_MEMBER),
    ScopeType.TEAM: (Role.TEAM_LEAD, Role.TEAM_CONTRIBUTOR, Role.TEAM_VIEWER),
}

TENANT_ADMIN_ROLES = frozenset({Role.TENANT_OWNER, Role.TENANT_ADMIN})

# Roles that bypass publish and cycle locks for objects in their tenant
LOCK_OVERRIDE_ROLES = TENANT_ADMIN_ROLES


# Legacy model: SUPERUSER > ORG_ADMIN > WORKSPACE_OWNER > TEAM_LEAD > MEMBER > VIEWER.
# SUPERUSER is carried by User.is_superuser rather than an assignment.
LEGACY_ROLE_MAPPING = {
    ScopeType.TENANT: {
        'ORG_ADMIN': Role.TENANT_ADMIN,
        'MEMBER': Role.TENANT_VIEWER,
        'VIEWER': Role.TENANT_VIEWER,
    },
    ScopeType.WORKSPACE: {
        'WORKSPACE_OWNER': Role.WORKSPACE_LEAD,
        'MEMBER': Role.WORKSPACE_MEMBER,
        'VIEWER': Role.WORKSPACE_MEMBER,
    },
    ScopeType.TEAM: {
        'TEAM_LEAD': Role.TEAM_LEAD,
        'MEMBER': Role.TEAM_CONTRIBUTOR,
        'VIEWER': Role.TEAM_VIEWER,
    },
}


def role_priority(role: Optional[str]) -> int:
    """Ordinal for ``role``; unknown or missing roles rank below everything."""
    if role is None:
        return 0
    return ROLE_PRIORITY.get(role, 0)


def highest_role(roles) -> Optional[str]:
    """Return the highest-ordinal role in ``roles``, or None when empty."""
    best = None
    for role in roles:
        if best is None or role_priority(role) > role_priority(best):
            best = role
    return best


def scope_of(role: str) -> Optional[str]:
    """Scope type a role belongs to, or None for SUPERUSER/unknown values."""
    for scope_type, roles in SCOPE_ROLES.items():
        if role in roles:
            return scope_type
    return None


def is_valid_for_scope(role: str, scope_type: str) -> bool:
    return role in SCOPE_ROLES.get(scope_type, ())


def map_legacy_role(scope_type: str, legacy_role: str) -> Optional[str]:
    """
    Translate a legacy membership role to the scoped role model.

    Args:
        scope_type: ScopeType the legacy membership was attached to
        legacy_role: Legacy role name (e.g. 'ORG_ADMIN', 'MEMBER')

    Returns:
        The mapped Role value, or None when the legacy role has no
        equivalent at that scope (callers skip such rows).
    """
    return LEGACY_ROLE_MAPPING.get(scope_type, {}).get(legacy_role)
