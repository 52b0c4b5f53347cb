"""
Workspace hierarchy maintenance.
"""
import logging

from django.db import transaction

from apps.core.exceptions import ValidationError, WorkspaceCycleError
from apps.tenants.models import Workspace

logger = logging.getLogger(__name__)


class WorkspaceService:
    """Service for workspace updates and the parent-chain invariant."""

    @staticmethod
    def would_create_cycle(workspace_id, new_parent_id) -> bool:
        """
        Return True when pointing ``workspace_id`` at ``new_parent_id`` closes a loop.

        Self-parenting is a one-hop cycle. Otherwise walk upward from the new
        parent; reaching the workspace, or revisiting any node on the way,
        means a cycle. A missing ancestor ends the walk.
        """
        if new_parent_id is None:
            return False

        workspace_id = str(workspace_id)
        current = str(new_parent_id)
        if current == workspace_id:
            return True

        visited = set()
        while current is not None:
            if current == workspace_id or current in visited:
                return True
            visited.add(current)
            parent_id = (
                Workspace.objects
                .filter(id=current)
                .values_list('parent_id', flat=True)
                .first()
            )
            current = str(parent_id) if parent_id else None
        return False

    @classmethod
    @transaction.atomic
    def set_parent(cls, workspace: Workspace, parent_id, actor=None, request=None) -> Workspace:
        """
        Move ``workspace`` under ``parent_id`` (or to the root when None).

        Raises:
            ValidationError: Parent missing or in another organization
            WorkspaceCycleError: The move would create a cycle
        """
        from apps.rbac.models import AuditLog

        parent = None
        if parent_id:
            parent = Workspace.objects.filter(id=parent_id).first()
            if parent is None:
                raise ValidationError('Parent workspace not found.', details={'parentId': str(parent_id)})
            if parent.organization_id != workspace.organization_id:
                raise ValidationError(
                    'Parent workspace must belong to the same organization.',
                    details={'parentId': str(parent_id)}
                )
            if cls.would_create_cycle(workspace.id, parent.id):
                logger.warning(
                    "Rejected workspace parent change: cycle",
                    extra={'workspace_id': str(workspace.id), 'parent_id': str(parent.id)}
                )
                raise WorkspaceCycleError(
                    'Setting this parent would create a cycle in the workspace hierarchy.',
                    details={'workspaceId': str(workspace.id), 'parentId': str(parent.id)}
                )

        before = str(workspace.parent_id) if workspace.parent_id else None
        workspace.parent = parent
        workspace.save(update_fields=['parent', 'updated_at'])

        AuditLog.log_action(
            action='workspace_parent_changed',
            user=actor,
            tenant_id=workspace.organization_id,
            target_type='Workspace',
            target_id=workspace.id,
            diff={'parent_id': {'before': before, 'after': str(parent.id) if parent else None}},
            request=request,
        )
        return workspace

    @classmethod
    @transaction.atomic
    def update(cls, workspace: Workspace, data, actor=None, request=None) -> Workspace:
        """Apply ``name`` and ``parentId`` changes from a PATCH payload."""
        if 'name' in data:
            name = (data.get('name') or '').strip()
            if not name:
                raise ValidationError('Workspace name cannot be empty.')
            if name != workspace.name:
                workspace.name = name
                workspace.save(update_fields=['name', 'updated_at'])

        if 'parent_id' in data:
            new_parent = data.get('parent_id')
            current = str(workspace.parent_id) if workspace.parent_id else None
            if (str(new_parent) if new_parent else None) != current:
                cls.set_parent(workspace, new_parent, actor=actor, request=request)

        return workspace
