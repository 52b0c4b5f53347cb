"""
Governance lock resolver: publish locks and cycle locks.

An objective is locked once published, or while its cycle is LOCKED or
ARCHIVED. The publish lock takes precedence when both apply. Tenant owners
and admins of the objective's organization are never locked out.
Key results take the lock state of their parent objective.
"""
from dataclasses import dataclass
from typing import Optional

from apps.okrs.models import LOCKING_CYCLE_STATUSES
from apps.rbac.roles import LOCK_OVERRIDE_ROLES, Role

LOCK_REASON_PUBLISHED = 'published'
LOCK_REASON_CYCLE = 'cycle_locked'

PUBLISHED_LOCK_MESSAGE = (
    "This OKR is published and locked. You cannot change targets after publish. "
    "Only tenant administrators can edit or delete published OKRs."
)
CYCLE_LOCK_MESSAGE = (
    "This OKR is locked because its cycle is locked. You cannot change targets during a locked cycle. "
    "Only tenant administrators can edit or delete OKRs in locked cycles."
)


@dataclass(frozen=True)
class LockInfo:
    is_locked: bool
    reason: Optional[str] = None
    message: Optional[str] = None

    def as_dict(self):
        return {
            'isLocked': self.is_locked,
            'reason': self.reason,
            'message': self.message,
        }


UNLOCKED = LockInfo(is_locked=False)


def can_override_locks(user_ctx, tenant_id) -> bool:
    return bool(user_ctx.roles_at_tenant(tenant_id) & LOCK_OVERRIDE_ROLES)


def underlying_lock(okr) -> LockInfo:
    """Lock state of ``okr`` ignoring who is asking."""
    if okr is None:
        return UNLOCKED
    if okr.is_published:
        return LockInfo(True, LOCK_REASON_PUBLISHED, PUBLISHED_LOCK_MESSAGE)
    if okr.cycle_status in LOCKING_CYCLE_STATUSES:
        return LockInfo(True, LOCK_REASON_CYCLE, CYCLE_LOCK_MESSAGE)
    return UNLOCKED


def get_lock_info(user_ctx, okr) -> LockInfo:
    """Lock state of ``okr`` as seen by ``user_ctx``; overriders always see it unlocked."""
    if okr is None:
        return UNLOCKED
    if can_override_locks(user_ctx, okr.organization_id):
        return UNLOCKED
    return underlying_lock(okr)


def role_can_edit(user_ctx, okr) -> bool:
    """
    Role half of the edit check.

    Published objectives are editable by tenant owners and admins only.
    Drafts are editable by the owner, tenant owners/admins, the workspace
    lead of the objective's workspace and the team lead of its team.
    """
    if okr is None:
        return False

    if user_ctx.is_tenant_admin(okr.organization_id):
        return True
    if okr.is_published:
        return False

    if okr.owner_id == str(user_ctx.user_id):
        return True
    if okr.workspace_id and Role.WORKSPACE_LEAD in user_ctx.roles_at_workspace(okr.workspace_id):
        return True
    if okr.team_id and Role.TEAM_LEAD in user_ctx.roles_at_team(okr.team_id):
        return True
    return False


# Delete follows the same role rules as edit
role_can_delete = role_can_edit


def can_edit(user_ctx, okr) -> bool:
    role_ok = role_can_edit(user_ctx, okr)
    lock = get_lock_info(user_ctx, okr)
    return role_ok and not lock.is_locked


def can_delete(user_ctx, okr) -> bool:
    role_ok = role_can_delete(user_ctx, okr)
    lock = get_lock_info(user_ctx, okr)
    return role_ok and not lock.is_locked
