"""
Resource context passed to the decision engine.
"""
from dataclasses import dataclass, replace
from typing import Any, Optional

from apps.okrs.context import OkrContext


@dataclass(frozen=True)
class ResourceContext:
    """
    What a decision is about.

    Ids are strings (or None). ``okr`` is the loaded objective snapshot
    (for a key result, its parent's). ``organization`` is the loaded
    Organization row, used only for the PRIVATE whitelist.
    """
    tenant_id: Optional[str] = None
    workspace_id: Optional[str] = None
    team_id: Optional[str] = None
    objective_id: Optional[str] = None
    key_result_id: Optional[str] = None
    cycle_id: Optional[str] = None
    okr: Optional[OkrContext] = None
    organization: Any = None

    def with_tenant(self, tenant_id) -> 'ResourceContext':
        return replace(self, tenant_id=str(tenant_id) if tenant_id else None)

    @classmethod
    def for_okr(cls, okr: OkrContext, organization=None, key_result_id=None) -> 'ResourceContext':
        return cls(
            tenant_id=okr.organization_id,
            workspace_id=okr.workspace_id,
            team_id=okr.team_id,
            objective_id=okr.id,
            key_result_id=key_result_id,
            okr=okr,
            organization=organization,
        )

    def echo(self):
        """Camel-cased id echo for decision details."""
        data = {
            'tenantId': self.tenant_id,
            'workspaceId': self.workspace_id,
            'teamId': self.team_id,
            'objectiveId': self.objective_id,
            'keyResultId': self.key_result_id,
            'cycleId': self.cycle_id,
        }
        return {key: value for key, value in data.items() if value is not None}
