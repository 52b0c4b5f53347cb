"""
Organization updates (PATCH /v1/organizations/{id}).
"""
import logging
from typing import Any, Dict

from django.db import transaction

from apps.core.exceptions import ValidationError
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)


class OrganizationService:
    """Service for organization settings and metadata."""

    UPDATABLE_FIELDS = ('name', 'metadata', 'private_whitelist', 'exec_only_whitelist')

    @classmethod
    @transaction.atomic
    def update(cls, org: Organization, data: Dict[str, Any], actor=None, request=None) -> Organization:
        """
        Apply a partial update to an organization.

        ``metadata`` is merged shallowly into the existing value so a client
        touching one key does not wipe the legacy whitelist keys. Whitelist
        fields are replaced with de-duplicated lists of string ids.

        Args:
            org: Organization to update (authorization already decided)
            data: Validated fields; unknown keys are ignored
            actor: User performing the change (audit)
            request: Originating request (audit)

        Returns:
            The updated Organization

        Raises:
            ValidationError: If a field has the wrong shape
        """
        from apps.rbac.models import AuditLog

        changes = {}
        update_fields = []

        if 'name' in data:
            name = (data.get('name') or '').strip()
            if not name:
                raise ValidationError('Organization name cannot be empty.')
            if name != org.name:
                changes['name'] = {'before': org.name, 'after': name}
                org.name = name
                update_fields.append('name')

        if 'metadata' in data:
            patch = data.get('metadata')
            if not isinstance(patch, dict):
                raise ValidationError('metadata must be an object.')
            before = dict(org.metadata or {})
            merged = dict(before)
            merged.update(patch)
            if merged != before:
                changes['metadata'] = {'before': before, 'after': merged}
                org.metadata = merged
                update_fields.append('metadata')

        for field in ('private_whitelist', 'exec_only_whitelist'):
            if field not in data:
                continue
            value = data.get(field)
            if not isinstance(value, list):
                raise ValidationError(f'{field} must be a list of user ids.')
            cleaned = []
            for item in value:
                item = str(item)
                if item and item not in cleaned:
                    cleaned.append(item)
            if cleaned != list(getattr(org, field) or []):
                changes[field] = {'before': getattr(org, field), 'after': cleaned}
                setattr(org, field, cleaned)
                update_fields.append(field)

        if not update_fields:
            return org

        org.save(update_fields=update_fields + ['updated_at'])

        AuditLog.log_action(
            action='organization_updated',
            user=actor,
            tenant=org,
            target_type='Organization',
            target_id=org.id,
            diff=changes,
            request=request,
        )
        logger.info(
            "Organization updated",
            extra={'tenant_id': str(org.id), 'fields': update_fields}
        )
        return org
