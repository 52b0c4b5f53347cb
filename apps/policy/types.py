"""
Actions, reason codes and the Decision value object.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Action(str, Enum):
    VIEW_OKR = 'view_okr'
    EDIT_OKR = 'edit_okr'
    DELETE_OKR = 'delete_okr'
    PUBLISH_OKR = 'publish_okr'
    CREATE_OKR = 'create_okr'
    REQUEST_CHECKIN = 'request_checkin'
    MANAGE_USERS = 'manage_users'
    MANAGE_BILLING = 'manage_billing'
    MANAGE_WORKSPACES = 'manage_workspaces'
    MANAGE_TEAMS = 'manage_teams'
    IMPERSONATE_USER = 'impersonate_user'
    MANAGE_TENANT_SETTINGS = 'manage_tenant_settings'
    VIEW_ALL_OKRS = 'view_all_okrs'
    EXPORT_DATA = 'export_data'

    @classmethod
    def parse(cls, value):
        """Return the Action for ``value``, or None when it is not one."""
        try:
            return cls(value)
        except ValueError:
            return None


class ReasonCode(str, Enum):
    ALLOW = 'ALLOW'
    ROLE_DENY = 'ROLE_DENY'
    TENANT_BOUNDARY = 'TENANT_BOUNDARY'
    PRIVATE_VISIBILITY = 'PRIVATE_VISIBILITY'
    PUBLISH_LOCK = 'PUBLISH_LOCK'
    SUPERUSER_READ_ONLY = 'SUPERUSER_READ_ONLY'


MUTATION_ACTIONS = frozenset({
    Action.EDIT_OKR,
    Action.DELETE_OKR,
    Action.CREATE_OKR,
    Action.PUBLISH_OKR,
    Action.REQUEST_CHECKIN,
    Action.MANAGE_USERS,
    Action.MANAGE_BILLING,
    Action.MANAGE_WORKSPACES,
    Action.MANAGE_TEAMS,
    Action.MANAGE_TENANT_SETTINGS,
    Action.IMPERSONATE_USER,
})

OKR_MUTATION_ACTIONS = frozenset({
    Action.EDIT_OKR,
    Action.DELETE_OKR,
    Action.CREATE_OKR,
    Action.PUBLISH_OKR,
})

# OKR mutations that respect publish and cycle locks
LOCKED_ACTIONS = frozenset({Action.EDIT_OKR, Action.DELETE_OKR})


@dataclass(frozen=True)
class Decision:
    """
    Outcome of one policy evaluation. Never persisted.

    ``details`` carries the reasoning trail (roles, scopes, echoed
    resource, matched rule); ``meta`` identifies the request.
    """
    allow: bool
    reason: ReasonCode
    details: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self):
        return self.details.get('message')

    def as_dict(self):
        return {
            'allow': self.allow,
            'reason': self.reason.value,
            'details': dict(self.details),
            'meta': dict(self.meta),
        }
