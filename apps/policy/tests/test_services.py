"""
Tests for PolicyDecisionService, deny telemetry, decision audit and
feature flags.
"""
import uuid
from unittest.mock import patch

import pytest

from apps.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from apps.okrs.models import VisibilityLevel
from apps.policy import telemetry
from apps.policy.context import ResourceContext
from apps.policy.feature_flags import OKR_TREE_VIEW, RBAC_INSPECTOR, FeatureFlagService
from apps.policy.services import FORBIDDEN_MESSAGES, PolicyDecisionService
from apps.policy.tasks import record_decision_audit
from apps.policy.types import Action, ReasonCode
from apps.rbac.models import AuditLog
from apps.rbac.services import RoleResolver


@pytest.mark.django_db
class TestLoadResource:

    def test_objective_fills_scope(self, owner, team, make_objective):
        objective = make_objective(owner, workspace=team.workspace, team=team)

        resource = PolicyDecisionService.load_resource({'objectiveId': str(objective.id)})

        assert resource.tenant_id == str(objective.organization_id)
        assert resource.workspace_id == str(team.workspace_id)
        assert resource.team_id == str(team.id)
        assert resource.cycle_id == str(objective.cycle_id)
        assert resource.okr.id == str(objective.id)
        assert resource.organization == objective.organization

    def test_key_result_uses_parent_snapshot(self, owner, make_objective, make_key_result):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        key_result = make_key_result(objective)

        resource = PolicyDecisionService.load_resource({'keyResultId': str(key_result.id)})

        assert resource.objective_id == str(objective.id)
        assert resource.okr.visibility_level == VisibilityLevel.PRIVATE

    def test_team_fills_ancestry(self, org, team):
        resource = PolicyDecisionService.load_resource({'teamId': str(team.id)})
        assert resource.tenant_id == str(org.id)
        assert resource.workspace_id == str(team.workspace_id)

    def test_missing_objective(self):
        with pytest.raises(NotFoundError):
            PolicyDecisionService.load_resource({'objectiveId': str(uuid.uuid4())})

    def test_missing_key_result(self):
        with pytest.raises(NotFoundError):
            PolicyDecisionService.load_resource({'keyResultId': str(uuid.uuid4())})

    def test_empty_values_ignored(self):
        assert PolicyDecisionService.load_resource({'tenantId': '', 'teamId': None}) == ResourceContext()


@pytest.mark.django_db
class TestEnforce:

    def test_cross_tenant_is_not_found(self, outsider, owner, make_objective):
        resource = PolicyDecisionService.load_resource({'objectiveId': str(make_objective(owner).id)})
        with pytest.raises(NotFoundError):
            PolicyDecisionService.enforce(RoleResolver.build_user_context(outsider), Action.VIEW_OKR, resource)

    def test_private_hidden_only_when_asked(self, member, owner, make_objective):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        resource = PolicyDecisionService.load_resource({'objectiveId': str(objective.id)})
        ctx = RoleResolver.build_user_context(member)

        with pytest.raises(NotFoundError):
            PolicyDecisionService.enforce(ctx, Action.VIEW_OKR, resource, hide_private=True)
        with pytest.raises(ForbiddenError) as exc_info:
            PolicyDecisionService.enforce(ctx, Action.VIEW_OKR, resource)

        assert exc_info.value.message == FORBIDDEN_MESSAGES[ReasonCode.PRIVATE_VISIBILITY]
        assert exc_info.value.details == {'reason': 'PRIVATE_VISIBILITY'}

    def test_allow_returns_decision(self, admin, org):
        decision = PolicyDecisionService.enforce(
            RoleResolver.build_user_context(admin), Action.MANAGE_WORKSPACES, ResourceContext(tenant_id=str(org.id))
        )
        assert decision.allow is True


@pytest.mark.django_db
class TestDecide:

    def test_meta_and_audit(self, superuser, member, owner, make_objective):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)

        decision = PolicyDecisionService.decide(
            superuser, 'view_okr', evaluated_user_id=member.id,
            resource={'objectiveId': str(objective.id)}, context={'note': 'support ticket'},
        )

        assert decision.allow is False
        assert decision.reason == ReasonCode.PRIVATE_VISIBILITY
        assert decision.meta['requestUserId'] == str(superuser.id)
        assert decision.meta['evaluatedUserId'] == str(member.id)
        assert decision.meta['action'] == 'view_okr'
        assert decision.meta['timestamp'].endswith('Z')

        entry = AuditLog.objects.get(action='policy_decision')
        assert entry.user == superuser
        assert entry.tenant_id == objective.organization_id
        assert entry.metadata['reason'] == 'PRIVATE_VISIBILITY'
        assert entry.metadata['evaluated_user_id'] == str(member.id)

    def test_defaults_to_caller(self, member, org):
        decision = PolicyDecisionService.decide(member, 'view_all_okrs', resource={'tenantId': str(org.id)})

        assert decision.allow is True
        assert decision.meta['evaluatedUserId'] == str(member.id)

    def test_only_superusers_evaluate_others(self, member, owner):
        with pytest.raises(ForbiddenError):
            PolicyDecisionService.decide(member, 'view_okr', evaluated_user_id=owner.id)

    def test_unknown_action(self, superuser):
        with pytest.raises(ValidationError, match='launch_rockets'):
            PolicyDecisionService.decide(superuser, 'launch_rockets')

    def test_unknown_evaluated_user(self, superuser):
        with pytest.raises(NotFoundError):
            PolicyDecisionService.decide(superuser, 'view_okr', evaluated_user_id=uuid.uuid4())

    def test_key_result_matches_objective(self, superuser, member, owner, make_objective, make_key_result):
        objective = make_objective(owner, is_published=True)
        key_result = make_key_result(objective)

        for action in ('view_okr', 'edit_okr', 'delete_okr'):
            parent = PolicyDecisionService.decide(
                superuser, action, evaluated_user_id=owner.id, resource={'objectiveId': str(objective.id)}
            )
            child = PolicyDecisionService.decide(
                superuser, action, evaluated_user_id=owner.id, resource={'keyResultId': str(key_result.id)}
            )
            assert (child.allow, child.reason) == (parent.allow, parent.reason)


@pytest.mark.django_db
class TestDecisionAudit:

    def test_unknown_tenant_is_dropped(self, superuser):
        payload = {'allow': True, 'reason': 'ALLOW', 'details': {}, 'meta': {'action': 'view_okr'}}

        entry_id = record_decision_audit(payload, request_user_id=str(superuser.id), tenant_id=str(uuid.uuid4()))

        entry = AuditLog.objects.get(id=entry_id)
        assert entry.tenant_id is None
        assert entry.metadata['allow'] is True


class TestTelemetry:

    @patch('apps.policy.telemetry.SecurityLogger.log_authorization_denied')
    def test_deny_is_logged(self, log):
        telemetry.record_deny('edit_okr', 'PUBLISH_LOCK', user_id='u1', tenant_id='t1', role='TENANT_VIEWER',
                              route='/v1/objectives/x')

        log.assert_called_once()
        kwargs = log.call_args.kwargs
        assert kwargs['reason'] == 'PUBLISH_LOCK'
        assert kwargs['route'] == '/v1/objectives/x'

    @patch('apps.policy.telemetry.SecurityLogger.log_authorization_denied')
    def test_disabled(self, log, settings):
        settings.RBAC_TELEMETRY = False
        telemetry.record_deny('edit_okr', 'ROLE_DENY')
        log.assert_not_called()

    @patch('apps.policy.telemetry.SecurityLogger.log_authorization_denied', side_effect=RuntimeError)
    def test_never_raises(self, log):
        telemetry.record_deny('edit_okr', 'ROLE_DENY')
        log.assert_called_once()


@pytest.mark.django_db
class TestFeatureFlags:

    def test_legacy_debug_location(self, make_user):
        user = make_user(settings={'debug': {'rbacInspectorEnabled': True}})
        assert FeatureFlagService.get_flag(user, RBAC_INSPECTOR) is True
        assert FeatureFlagService.get_flag(user, OKR_TREE_VIEW) is False

    def test_set_flag_writes_both_locations(self, make_user, superuser):
        user = make_user()

        FeatureFlagService.set_flag(user, RBAC_INSPECTOR, True, actor=superuser)

        user.refresh_from_db()
        assert user.settings['features'][RBAC_INSPECTOR] is True
        assert user.settings['debug']['rbacInspectorEnabled'] is True
        assert AuditLog.objects.filter(action='toggle_feature_flag_rbacInspector', user=superuser).exists()

    def test_disabling_clears_legacy_location(self, make_user):
        user = make_user(settings={'debug': {'rbacInspectorEnabled': True}})
        FeatureFlagService.set_flag(user, RBAC_INSPECTOR, False)
        assert FeatureFlagService.get_flag(user, RBAC_INSPECTOR) is False

    def test_unknown_flag(self, make_user):
        with pytest.raises(ValidationError):
            FeatureFlagService.set_flag(make_user(), 'darkMode', True)

    def test_operational_switch(self, make_user, settings):
        settings.RBAC_INSPECTOR = True
        assert FeatureFlagService.is_rbac_inspector_enabled(make_user()) is True
