"""
Immutable authorization snapshot of a user.

``UserContext`` is what the visibility, lock and policy resolvers consume.
It is built per request by ``RoleResolver.build_user_context`` and never
cached across requests.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Optional, Tuple

from apps.rbac.roles import SUPERUSER, TENANT_ADMIN_ROLES, Role


@dataclass(frozen=True)
class RoleBinding:
    """A single (role, scope type, scope id) fact. Superusers get a scope-less SUPERUSER binding."""
    role: str
    scope_type: Optional[str] = None
    scope_id: Optional[str] = None


@dataclass(frozen=True)
class UserContext:
    user_id: str
    is_superuser: bool = False
    tenant_roles: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    workspace_roles: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    team_roles: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    # Every tenant the user belongs to through any assignment, first membership first
    tenant_ids: Tuple[str, ...] = ()

    def roles_at_tenant(self, tenant_id) -> FrozenSet[str]:
        if tenant_id is None:
            return frozenset()
        return self.tenant_roles.get(str(tenant_id), frozenset())

    def roles_at_workspace(self, workspace_id) -> FrozenSet[str]:
        if workspace_id is None:
            return frozenset()
        return self.workspace_roles.get(str(workspace_id), frozenset())

    def roles_at_team(self, team_id) -> FrozenSet[str]:
        if team_id is None:
            return frozenset()
        return self.team_roles.get(str(team_id), frozenset())

    def is_tenant_admin(self, tenant_id) -> bool:
        """TENANT_OWNER or TENANT_ADMIN at ``tenant_id``."""
        return bool(self.roles_at_tenant(tenant_id) & TENANT_ADMIN_ROLES)

    def is_tenant_owner(self, tenant_id) -> bool:
        return Role.TENANT_OWNER in self.roles_at_tenant(tenant_id)

    def belongs_to(self, tenant_id) -> bool:
        return tenant_id is not None and str(tenant_id) in self.tenant_ids

    def as_member(self) -> 'UserContext':
        """The same user evaluated on their assignments only, without the superuser flag."""
        return replace(self, is_superuser=False)

    @property
    def all_roles(self) -> Tuple[str, ...]:
        """SUPERUSER (if set) followed by every assigned role, de-duplicated in a stable order."""
        seen = []
        if self.is_superuser:
            seen.append(SUPERUSER)
        for mapping in (self.tenant_roles, self.workspace_roles, self.team_roles):
            for roles in mapping.values():
                for role in sorted(roles):
                    if role not in seen:
                        seen.append(role)
        return tuple(seen)
