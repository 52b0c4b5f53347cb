"""
Access-relevant snapshot of an objective.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OkrContext:
    """
    Everything the visibility and lock resolvers need from an OKR.

    Key results are represented by their parent objective's snapshot, so
    a key result and its objective always resolve identically.
    """
    id: str
    owner_id: str
    organization_id: Optional[str]
    workspace_id: Optional[str] = None
    team_id: Optional[str] = None
    visibility_level: str = 'PUBLIC_TENANT'
    is_published: bool = False
    cycle_status: Optional[str] = None

    @classmethod
    def from_objective(cls, objective) -> 'OkrContext':
        cycle = objective.cycle if objective.cycle_id else None
        return cls(
            id=str(objective.id),
            owner_id=str(objective.owner_id),
            organization_id=str(objective.organization_id) if objective.organization_id else None,
            workspace_id=str(objective.workspace_id) if objective.workspace_id else None,
            team_id=str(objective.team_id) if objective.team_id else None,
            visibility_level=objective.visibility_level,
            is_published=bool(objective.is_published),
            cycle_status=cycle.status if cycle is not None else None,
        )

    @classmethod
    def from_key_result(cls, key_result) -> Optional['OkrContext']:
        """Parent objective snapshot, or None for an orphaned key result."""
        if not key_result.objective_id:
            return None
        objective = key_result.objective
        if objective is None or objective.is_deleted:
            return None
        return cls.from_objective(objective)

    def as_dict(self):
        return {
            'id': self.id,
            'ownerId': self.owner_id,
            'organizationId': self.organization_id,
            'workspaceId': self.workspace_id,
            'teamId': self.team_id,
            'visibilityLevel': self.visibility_level,
            'isPublished': self.is_published,
            'cycleStatus': self.cycle_status,
        }
