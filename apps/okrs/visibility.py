"""
Visibility resolver for objectives and key results.

Every visibility level except PRIVATE is tenant-global. PRIVATE objectives
are readable by the owner, tenant owners/admins of the objective's
organization and the organization's whitelist.
"""
import logging
from typing import Optional

from apps.okrs.models import VisibilityLevel
from apps.tenants.services.whitelist_service import union_whitelists

logger = logging.getLogger(__name__)


def can_view(user_ctx, okr, organization=None) -> bool:
    """
    Decide whether ``user_ctx`` may read ``okr``.

    Args:
        user_ctx: UserContext of the reader
        okr: OkrContext of the objective (or a key result's parent).
            None means the parent is unknown; that is always a deny.
        organization: The objective's Organization, used for the whitelist.
            An organization other than the objective's contributes nothing.

    Returns:
        True when the read is allowed
    """
    if okr is None:
        return False

    if user_ctx.is_superuser:
        return True

    if okr.owner_id == str(user_ctx.user_id):
        return True

    if okr.visibility_level != VisibilityLevel.PRIVATE:
        return True

    if user_ctx.is_tenant_admin(okr.organization_id):
        return True

    if str(user_ctx.user_id) in _whitelist_for(okr, organization):
        return True

    if not user_ctx.belongs_to(okr.organization_id):
        # Tenant isolation upstream should make this unreachable
        logger.debug(
            "PRIVATE objective read outside caller tenant",
            extra={'objective_id': okr.id, 'user_id': str(user_ctx.user_id)}
        )
    return False


def can_view_key_result(user_ctx, parent_okr: Optional[object], organization=None) -> bool:
    """Key results are visible exactly when their parent objective is."""
    return can_view(user_ctx, parent_okr, organization)


def _whitelist_for(okr, organization):
    if organization is None or okr.organization_id is None:
        return set()
    if str(organization.id) != str(okr.organization_id):
        return set()
    return union_whitelists(organization)


def filter_visible(user_ctx, objectives, organizations):
    """
    Keep only the objectives ``user_ctx`` may read.

    Args:
        objectives: Iterable of Objective rows
        organizations: Mapping of organization id (str) to Organization

    Returns:
        List of visible Objective rows, in input order
    """
    from apps.okrs.context import OkrContext

    visible = []
    for objective in objectives:
        okr = OkrContext.from_objective(objective)
        if can_view(user_ctx, okr, organizations.get(okr.organization_id)):
            visible.append(objective)
    return visible
