"""
Private-visibility whitelist management.

The whitelist lives in four places for backward compatibility. Every read
goes through ``union_whitelists``; every write targets the canonical
``exec_only_whitelist`` field.
"""
import logging
from typing import Iterable, List, Optional, Set

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from apps.core.exceptions import NotFoundError, ValidationError
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)

LEGACY_METADATA_KEYS = ('privateWhitelist', 'execOnlyWhitelist')


def _as_ids(value) -> Set[str]:
    if not isinstance(value, (list, tuple)):
        return set()
    return {str(item) for item in value if item not in (None, '')}


def union_whitelists(org) -> Set[str]:
    """
    Union of every whitelist storage location on ``org``.

    Reads the top-level ``private_whitelist`` and ``exec_only_whitelist``
    fields and the ``privateWhitelist`` / ``execOnlyWhitelist`` keys inside
    ``metadata``. Non-list values are ignored; ids are stringified.
    """
    if org is None:
        return set()

    ids = set()
    ids |= _as_ids(getattr(org, 'private_whitelist', None))
    ids |= _as_ids(getattr(org, 'exec_only_whitelist', None))

    metadata = getattr(org, 'metadata', None)
    if isinstance(metadata, dict):
        for key in LEGACY_METADATA_KEYS:
            ids |= _as_ids(metadata.get(key))
    return ids


def _dedupe(user_ids: Iterable) -> List[str]:
    seen = []
    for user_id in user_ids:
        if user_id in (None, ''):
            continue
        user_id = str(user_id)
        if user_id not in seen:
            seen.append(user_id)
    return seen


class WhitelistService:
    """
    Read and write the per-organization PRIVATE objective whitelist.

    Callers are expected to have passed the ``manage_tenant_settings``
    decision already; this service only enforces existence and records
    audit entries.
    """

    @staticmethod
    def _get_org(tenant_id, for_update=False) -> Organization:
        queryset = Organization.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=tenant_id)
        except (Organization.DoesNotExist, DjangoValidationError, ValueError, TypeError):
            raise NotFoundError('Organization not found.', details={'tenant_id': str(tenant_id)})

    @classmethod
    def get_whitelist(cls, tenant_id) -> List[str]:
        """Effective whitelist (union of all storage locations), sorted."""
        return sorted(union_whitelists(cls._get_org(tenant_id)))

    @classmethod
    def is_whitelisted(cls, tenant_id, user_id) -> bool:
        try:
            org = cls._get_org(tenant_id)
        except NotFoundError:
            return False
        return str(user_id) in union_whitelists(org)

    @classmethod
    @transaction.atomic
    def add_to_whitelist(cls, tenant_id, user_id, actor=None, request=None) -> List[str]:
        """Add ``user_id`` to the canonical whitelist; a no-op when already present."""
        if not user_id:
            raise ValidationError('userId is required.')
        org = cls._get_org(tenant_id, for_update=True)
        before = list(org.exec_only_whitelist or [])
        if str(user_id) in before:
            return cls._effective(org)

        org.exec_only_whitelist = _dedupe(before + [user_id])
        org.save(update_fields=['exec_only_whitelist', 'updated_at'])
        cls._audit('whitelist_user_added', org, actor, request, before, user_id=user_id)
        return cls._effective(org)

    @classmethod
    @transaction.atomic
    def remove_from_whitelist(cls, tenant_id, user_id, actor=None, request=None) -> List[str]:
        """
        Remove ``user_id`` from every storage location.

        Legacy locations are cleaned too, otherwise the union would keep
        granting access after removal.
        """
        if not user_id:
            raise ValidationError('userId is required.')
        org = cls._get_org(tenant_id, for_update=True)
        user_id = str(user_id)
        before = sorted(union_whitelists(org))

        org.exec_only_whitelist = [i for i in _dedupe(org.exec_only_whitelist or []) if i != user_id]
        org.private_whitelist = [i for i in _dedupe(org.private_whitelist or [])
                                 if i != user_id] if isinstance(org.private_whitelist, list) else []
        metadata = dict(org.metadata or {})
        for key in LEGACY_METADATA_KEYS:
            if isinstance(metadata.get(key), list):
                metadata[key] = [i for i in _dedupe(metadata[key]) if i != user_id]
        org.metadata = metadata
        org.save(update_fields=['exec_only_whitelist', 'private_whitelist', 'metadata', 'updated_at'])

        cls._audit('whitelist_user_removed', org, actor, request, before, user_id=user_id)
        return cls._effective(org)

    @classmethod
    @transaction.atomic
    def set_whitelist(cls, tenant_id, user_ids, actor=None, request=None) -> List[str]:
        """Replace the whitelist with ``user_ids`` (order-preserving de-duplication)."""
        if not isinstance(user_ids, (list, tuple)):
            raise ValidationError('userIds must be a list.')
        org = cls._get_org(tenant_id, for_update=True)
        before = sorted(union_whitelists(org))
        cls._reset_legacy(org)
        org.exec_only_whitelist = _dedupe(user_ids)
        org.save(update_fields=['exec_only_whitelist', 'private_whitelist', 'metadata', 'updated_at'])
        cls._audit('whitelist_set', org, actor, request, before)
        return cls._effective(org)

    @classmethod
    @transaction.atomic
    def clear_whitelist(cls, tenant_id, actor=None, request=None) -> List[str]:
        org = cls._get_org(tenant_id, for_update=True)
        before = sorted(union_whitelists(org))
        cls._reset_legacy(org)
        org.exec_only_whitelist = []
        org.save(update_fields=['exec_only_whitelist', 'private_whitelist', 'metadata', 'updated_at'])
        cls._audit('whitelist_cleared', org, actor, request, before)
        return []

    @staticmethod
    def _reset_legacy(org):
        org.private_whitelist = []
        metadata = dict(org.metadata or {})
        for key in LEGACY_METADATA_KEYS:
            metadata.pop(key, None)
        org.metadata = metadata

    @staticmethod
    def _effective(org) -> List[str]:
        return sorted(union_whitelists(org))

    @staticmethod
    def _audit(action, org, actor, request, before, user_id: Optional[str] = None):
        from apps.rbac.models import AuditLog

        after = sorted(union_whitelists(org))
        metadata = {'user_id': str(user_id)} if user_id else {}
        AuditLog.log_action(
            action=action,
            user=actor,
            tenant=org,
            target_type='Organization',
            target_id=org.id,
            diff={'before': before, 'after': after},
            metadata=metadata,
            request=request,
        )
        logger.info(
            f"Whitelist updated: {action}",
            extra={'tenant_id': str(org.id), 'whitelist_size': len(after)}
        )
