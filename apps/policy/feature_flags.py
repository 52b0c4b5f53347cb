"""
Per-user feature flags stored in ``User.settings``.

``rbacInspector`` has two historical locations
(``settings.debug.rbacInspectorEnabled`` and
``settings.features.rbacInspector``); either being true enables it and
writes keep both in step. Other flags live under ``settings.features``.
"""
import logging

from django.conf import settings as django_settings
from django.db import transaction

from apps.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

RBAC_INSPECTOR = 'rbacInspector'
OKR_TREE_VIEW = 'okrTreeView'

FEATURE_FLAGS = (RBAC_INSPECTOR, OKR_TREE_VIEW)


class FeatureFlagService:
    """Read and toggle user feature flags."""

    @staticmethod
    def get_flag(user, name: str) -> bool:
        if user is None:
            return False
        data = getattr(user, 'settings', None) or {}
        if not isinstance(data, dict):
            return False

        features = data.get('features') or {}
        if name == RBAC_INSPECTOR:
            debug = data.get('debug') or {}
            return debug.get('rbacInspectorEnabled') is True or features.get(RBAC_INSPECTOR) is True
        return features.get(name) is True

    @classmethod
    def get_all_flags(cls, user):
        return {name: cls.get_flag(user, name) for name in FEATURE_FLAGS}

    @classmethod
    @transaction.atomic
    def set_flag(cls, user, name: str, enabled: bool, actor=None, tenant_id=None, request=None):
        """
        Toggle ``name`` for ``user`` and audit the change.

        Raises:
            ValidationError: Unknown flag name
        """
        from apps.rbac.models import AuditLog

        if name not in FEATURE_FLAGS:
            raise ValidationError(f'Unknown feature flag: {name}', details={'flag': name})

        previous = cls.get_flag(user, name)
        data = dict(user.settings or {}) if isinstance(user.settings, dict) else {}
        features = dict(data.get('features') or {})
        features[name] = bool(enabled)
        data['features'] = features
        if name == RBAC_INSPECTOR:
            debug = dict(data.get('debug') or {})
            debug['rbacInspectorEnabled'] = bool(enabled)
            data['debug'] = debug

        user.settings = data
        user.save(update_fields=['settings', 'updated_at'])

        AuditLog.log_action(
            action=f'toggle_feature_flag_{name}',
            user=actor,
            tenant_id=tenant_id,
            target_type='User',
            target_id=user.id,
            metadata={'flag_name': name, 'enabled': bool(enabled), 'previous_state': previous},
            request=request,
        )
        logger.info(
            f"Feature flag {name} {'enabled' if enabled else 'disabled'}",
            extra={'target_user_id': str(user.id), 'actor_id': str(actor.id) if actor else None}
        )
        return cls.get_flag(user, name)

    @classmethod
    def is_rbac_inspector_enabled(cls, user) -> bool:
        """Operational switch (``RBAC_INSPECTOR`` setting) or the user's own flag."""
        if getattr(django_settings, 'RBAC_INSPECTOR', False):
            return True
        return cls.get_flag(user, RBAC_INSPECTOR)
