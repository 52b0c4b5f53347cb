"""
RBAC and Authentication services.

Implements:
- RoleResolver: role lookup, effective roles with scope inheritance,
  user context snapshots, escalation-checked assignment and revocation
- AuthService: JWT minting (tooling/tests) and validation
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Set

import jwt
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.core.exceptions import NotFoundError, RoleEscalationError, ValidationError
from apps.core.logging import SecurityLogger
from apps.rbac.context import RoleBinding, UserContext
from apps.rbac.models import AuditLog, RoleAssignment, User
from apps.rbac.roles import (
    SUPERUSER, ScopeType, highest_role, is_valid_for_scope, role_priority,
)

logger = logging.getLogger(__name__)


class RoleResolver:
    """
    Service for role resolution and role assignment.

    Nothing here is cached: every call reads the role store so concurrent
    grants and revocations are seen by the next decision.
    """

    @staticmethod
    def resolve_scope(scope_type: str, scope_id) -> Optional[Dict[str, Optional[str]]]:
        """
        Resolve a scope to its organization/workspace/team ancestry.

        Returns:
            ``{'tenant_id', 'workspace_id', 'team_id'}`` with the ids that
            apply at that level, or None when the scope does not exist
        """
        from apps.tenants.models import Organization, Team, Workspace

        if not scope_id:
            return None
        try:
            if scope_type == ScopeType.TENANT:
                if Organization.objects.filter(id=scope_id).exists():
                    return {'tenant_id': str(scope_id), 'workspace_id': None, 'team_id': None}
                return None
            if scope_type == ScopeType.WORKSPACE:
                org_id = Workspace.objects.filter(id=scope_id).values_list('organization_id', flat=True).first()
                if org_id is None:
                    return None
                return {'tenant_id': str(org_id), 'workspace_id': str(scope_id), 'team_id': None}
            if scope_type == ScopeType.TEAM:
                row = (
                    Team.objects.filter(id=scope_id)
                    .values_list('workspace_id', 'workspace__organization_id')
                    .first()
                )
                if row is None:
                    return None
                return {'tenant_id': str(row[1]), 'workspace_id': str(row[0]), 'team_id': str(scope_id)}
        except (DjangoValidationError, ValueError):
            return None
        return None

    @classmethod
    def get_user_roles(cls, user: User) -> Set[RoleBinding]:
        """
        All role bindings of ``user`` across every scope.

        Superusers short-circuit to a single scope-less SUPERUSER binding
        without reading assignment rows.
        """
        if user.is_superuser:
            return {RoleBinding(SUPERUSER)}

        return {
            RoleBinding(role, scope_type, str(scope_id))
            for role, scope_type, scope_id in
            RoleAssignment.objects.for_user(user).values_list('role', 'scope_type', 'scope_id')
        }

    @classmethod
    def get_effective_role(cls, user: User, scope_type: str, scope_id) -> Optional[str]:
        """
        Highest role ``user`` holds at a scope, counting inherited roles.

        Tenant roles inherit to every workspace and team in the tenant;
        workspace roles inherit to the workspace's teams.

        Returns:
            Role value, SUPERUSER for superusers, or None when the user has
            no applicable assignment (a valid state; callers deny)
        """
        if user.is_superuser:
            return SUPERUSER

        scope = cls.resolve_scope(scope_type, scope_id)
        if scope is None:
            return None

        condition = Q(scope_type=ScopeType.TENANT, scope_id=scope['tenant_id'])
        if scope['workspace_id']:
            condition |= Q(scope_type=ScopeType.WORKSPACE, scope_id=scope['workspace_id'])
        if scope['team_id']:
            condition |= Q(scope_type=ScopeType.TEAM, scope_id=scope['team_id'])

        roles = RoleAssignment.objects.for_user(user).filter(condition).values_list('role', flat=True)
        return highest_role(roles)

    @classmethod
    def build_user_context(cls, user: User) -> UserContext:
        """
        Immutable snapshot of ``user``'s roles for the decision engine.

        ``tenant_ids`` lists tenant-scope memberships first, then tenants
        reached only through workspace or team assignments.
        """
        from apps.tenants.models import Team, Workspace

        tenant_roles, workspace_roles, team_roles = {}, {}, {}
        for role, scope_type, scope_id in (
            RoleAssignment.objects.for_user(user)
            .order_by('granted_at')
            .values_list('role', 'scope_type', 'scope_id')
        ):
            target = {
                ScopeType.TENANT: tenant_roles,
                ScopeType.WORKSPACE: workspace_roles,
                ScopeType.TEAM: team_roles,
            }.get(scope_type)
            if target is not None:
                target.setdefault(str(scope_id), []).append(role)

        tenant_ids = list(tenant_roles)

        if workspace_roles:
            for workspace_id, org_id in Workspace.objects.filter(
                id__in=list(workspace_roles)
            ).values_list('id', 'organization_id'):
                if str(org_id) not in tenant_ids:
                    tenant_ids.append(str(org_id))

        if team_roles:
            for team_id, org_id in Team.objects.filter(
                id__in=list(team_roles)
            ).values_list('id', 'workspace__organization_id'):
                if str(org_id) not in tenant_ids:
                    tenant_ids.append(str(org_id))

        return UserContext(
            user_id=str(user.id),
            is_superuser=bool(user.is_superuser),
            tenant_roles={k: frozenset(v) for k, v in tenant_roles.items()},
            workspace_roles={k: frozenset(v) for k, v in workspace_roles.items()},
            team_roles={k: frozenset(v) for k, v in team_roles.items()},
            tenant_ids=tuple(tenant_ids),
        )

    @classmethod
    def assign_role(cls, granter: User, user: User, role: str, scope_type: str,
                    scope_id, request=None):
        """
        Grant ``role`` to ``user`` at a scope.

        Args:
            granter: User performing the grant
            user: User receiving the role
            role: Role value, valid for ``scope_type``
            scope_type: TENANT, WORKSPACE or TEAM
            scope_id: Organization, workspace or team id
            request: Originating request (audit)

        Returns:
            tuple: (RoleAssignment, created)

        Raises:
            ValidationError: Role not valid at that scope
            NotFoundError: Scope missing or outside the granter's tenant
            RoleEscalationError: Granter lacks authority for the role
        """
        if not is_valid_for_scope(role, scope_type):
            raise ValidationError(
                f'Role {role} cannot be assigned at {scope_type} scope.',
                details={'role': role, 'scopeType': scope_type}
            )

        scope = cls.resolve_scope(scope_type, scope_id)
        if scope is None:
            raise NotFoundError('Scope not found.', details={'scopeType': scope_type, 'scopeId': str(scope_id)})

        cls._check_authority(granter, role, scope_type, scope_id, scope, 'grant', request)

        try:
            with transaction.atomic():
                assignment, created = RoleAssignment.objects.get_or_create(
                    user=user,
                    role=role,
                    scope_type=scope_type,
                    scope_id=scope_id,
                    defaults={'granted_by': granter},
                )
        except IntegrityError:
            # Lost a race with a concurrent identical grant
            assignment = RoleAssignment.objects.get(
                user=user, role=role, scope_type=scope_type, scope_id=scope_id
            )
            created = False

        if created:
            AuditLog.log_action(
                action='role_assigned',
                user=granter,
                tenant_id=scope['tenant_id'],
                target_type='RoleAssignment',
                target_id=assignment.id,
                diff={'role': role, 'scope_type': scope_type, 'scope_id': str(scope_id), 'action': 'assigned'},
                metadata={'target_user_id': str(user.id)},
                request=request,
            )
            logger.info(
                f"Role {role} assigned",
                extra={'target_user_id': str(user.id), 'scope_type': scope_type, 'scope_id': str(scope_id)}
            )

        return assignment, created

    @classmethod
    def revoke_role(cls, granter: User, assignment: RoleAssignment, request=None) -> bool:
        """
        Remove one role assignment (single-row hard delete).

        The granter needs the same authority they would need to grant the
        role.

        Raises:
            NotFoundError: Assignment scope is outside the granter's tenant
            RoleEscalationError: Granter lacks authority for the role
        """
        scope = cls.resolve_scope(assignment.scope_type, assignment.scope_id)
        if scope is None:
            # Dangling assignment; only a superuser may clean it up
            scope = {'tenant_id': None, 'workspace_id': None, 'team_id': None}

        cls._check_authority(
            granter, assignment.role, assignment.scope_type, assignment.scope_id, scope, 'revoke', request
        )

        assignment_id = assignment.id
        deleted, _ = RoleAssignment.objects.filter(pk=assignment_id).delete()
        if not deleted:
            return False

        AuditLog.log_action(
            action='role_revoked',
            user=granter,
            tenant_id=scope['tenant_id'],
            target_type='RoleAssignment',
            target_id=assignment_id,
            diff={
                'role': assignment.role,
                'scope_type': assignment.scope_type,
                'scope_id': str(assignment.scope_id),
                'action': 'revoked',
            },
            metadata={'target_user_id': str(assignment.user_id)},
            request=request,
        )
        return True

    @classmethod
    def _check_authority(cls, granter, role, scope_type, scope_id, scope, operation, request=None):
        """
        Raise unless ``granter`` may grant/revoke ``role`` at the scope.

        Superusers provision freely. Everyone else must pass the
        ``manage_users`` decision for the scope and hold an effective role
        of at least the same priority there.
        """
        from apps.policy.context import ResourceContext
        from apps.policy.services import PolicyDecisionService
        from apps.policy.types import Action, ReasonCode

        if granter.is_superuser:
            return

        granter_ctx = cls.build_user_context(granter)
        decision = PolicyDecisionService.check(
            granter_ctx,
            Action.MANAGE_USERS,
            ResourceContext(
                tenant_id=scope['tenant_id'],
                workspace_id=scope['workspace_id'],
                team_id=scope['team_id'],
            ),
        )
        if not decision.allow and decision.reason == ReasonCode.TENANT_BOUNDARY:
            raise NotFoundError('Scope not found.', details={'scopeType': scope_type, 'scopeId': str(scope_id)})

        granter_role = cls.get_effective_role(granter, scope_type, scope_id) if decision.allow else None
        if decision.allow and role_priority(granter_role) >= role_priority(role):
            return

        SecurityLogger.log_role_escalation_attempt(
            granter_id=str(granter.id),
            role=role,
            scope_type=scope_type,
            scope_id=str(scope_id),
            granter_role=granter_role,
        )
        AuditLog.log_action(
            action='role_escalation_blocked',
            user=granter,
            tenant_id=scope['tenant_id'],
            target_type='RoleAssignment',
            metadata={
                'operation': operation,
                'role': role,
                'scope_type': scope_type,
                'scope_id': str(scope_id),
                'granter_role': granter_role,
                'decision_reason': decision.reason.value,
            },
            request=request,
        )
        raise RoleEscalationError(
            f'You cannot {operation} the {role} role at this scope.',
            details={'role': role, 'scopeType': scope_type, 'scopeId': str(scope_id)}
        )

    @staticmethod
    def grouped_assignments(user: User) -> Dict[str, Any]:
        """Assignments of ``user`` grouped by scope type, for the /me endpoint."""
        grouped = {'tenant': [], 'workspace': [], 'team': []}
        keys = {
            ScopeType.TENANT: 'tenant',
            ScopeType.WORKSPACE: 'workspace',
            ScopeType.TEAM: 'team',
        }
        for assignment in RoleAssignment.objects.for_user(user).order_by('granted_at'):
            grouped[keys[assignment.scope_type]].append(assignment)
        return grouped


class AuthService:
    """
    Service for authentication operations.

    Tokens are minted upstream in production; ``generate_jwt`` exists for
    tooling and tests.
    """

    @classmethod
    def generate_jwt(cls, user: User, expires_in: Optional[timedelta] = None) -> str:
        """
        Generate JWT token for a user.

        Args:
            user: User instance
            expires_in: Lifetime override (default ``JWT_EXPIRATION_HOURS``)

        Returns:
            JWT token string
        """
        now = timezone.now()
        lifetime = expires_in or timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24))
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + lifetime,
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Args:
            token: JWT token string

        Returns:
            Decoded payload dict or None if invalid
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_payload(cls, payload: Dict[str, Any]) -> Optional[User]:
        user_id = payload.get('user_id') or payload.get('sub')
        if not user_id:
            return None

        try:
            return User.objects.get(id=user_id, is_active=True)
        except (User.DoesNotExist, DjangoValidationError, ValueError):
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """
        Extract and return user from JWT token.

        Returns:
            User instance or None if invalid
        """
        payload = cls.validate_jwt(token)
        if not payload:
            return None
        return cls.get_user_from_payload(payload)
