"""
Tests for the visibility resolver.

Property tests run over plain UserContext/OkrContext values; whitelists
come from lightweight organization stand-ins.
"""
import uuid
from types import SimpleNamespace

import pytest
from hypothesis import given, strategies as st

from apps.okrs.context import OkrContext
from apps.okrs.models import Cycle, CycleStatus, KeyResult, Objective, VisibilityLevel
from apps.okrs.visibility import can_view, can_view_key_result, filter_visible
from apps.rbac.context import UserContext
from apps.rbac.roles import Role

TENANT = str(uuid.uuid4())
OTHER_TENANT = str(uuid.uuid4())
USER = str(uuid.uuid4())
SOMEONE_ELSE = str(uuid.uuid4())

ids = st.uuids().map(str)
visibility_levels = st.sampled_from(VisibilityLevel.values)
cycle_statuses = st.one_of(st.none(), st.sampled_from(CycleStatus.values))


def okrs(owner=st.sampled_from([USER, SOMEONE_ELSE]), visibility=visibility_levels):
    return st.builds(
        OkrContext,
        id=ids,
        owner_id=owner,
        organization_id=st.just(TENANT),
        workspace_id=st.one_of(st.none(), ids),
        team_id=st.one_of(st.none(), ids),
        visibility_level=visibility,
        is_published=st.booleans(),
        cycle_status=cycle_statuses,
    )


def non_admin_contexts():
    """A user at TENANT with no owner/admin role there."""
    return st.builds(
        lambda tenant_roles, ws, team: UserContext(
            user_id=USER,
            tenant_roles={TENANT: frozenset(tenant_roles)} if tenant_roles else {},
            workspace_roles={ws: frozenset({Role.WORKSPACE_LEAD})} if ws else {},
            team_roles={team: frozenset({Role.TEAM_LEAD})} if team else {},
            tenant_ids=(TENANT,),
        ),
        st.sets(st.just(Role.TENANT_VIEWER)),
        st.one_of(st.none(), ids),
        st.one_of(st.none(), ids),
    )


def admin_context(role=Role.TENANT_ADMIN, tenant=TENANT):
    return UserContext(user_id=USER, tenant_roles={tenant: frozenset({role})}, tenant_ids=(tenant,))


def organization(**fields):
    fields.setdefault('id', TENANT)
    fields.setdefault('private_whitelist', [])
    fields.setdefault('exec_only_whitelist', [])
    fields.setdefault('metadata', {})
    return SimpleNamespace(**fields)


class TestVisibilityProperties:

    @given(okr=okrs(owner=st.just(USER)), ctx=non_admin_contexts())
    def test_owner_always_sees_own_objective(self, okr, ctx):
        assert can_view(ctx, okr) is True

    @given(okr=okrs(owner=st.just(SOMEONE_ELSE), visibility=st.just(VisibilityLevel.PRIVATE)),
           ctx=non_admin_contexts())
    def test_private_default_deny(self, okr, ctx):
        assert can_view(ctx, okr, organization()) is False

    @given(okr=okrs(owner=st.just(SOMEONE_ELSE),
                    visibility=st.sampled_from([v for v in VisibilityLevel.values if v != VisibilityLevel.PRIVATE])),
           ctx=non_admin_contexts())
    def test_non_private_levels_are_tenant_global(self, okr, ctx):
        assert can_view(ctx, okr) is True

    @given(okr=okrs(owner=st.just(SOMEONE_ELSE), visibility=st.just(VisibilityLevel.PRIVATE)),
           role=st.sampled_from([Role.TENANT_OWNER, Role.TENANT_ADMIN]))
    def test_tenant_admins_see_private(self, okr, role):
        assert can_view(admin_context(role), okr) is True

    @given(okr=okrs())
    def test_superuser_sees_everything(self, okr):
        assert can_view(UserContext(user_id=str(uuid.uuid4()), is_superuser=True), okr) is True


class TestWhitelist:

    @pytest.fixture
    def private_okr(self):
        return OkrContext(
            id=str(uuid.uuid4()), owner_id=SOMEONE_ELSE, organization_id=TENANT,
            visibility_level=VisibilityLevel.PRIVATE,
        )

    @pytest.fixture
    def viewer(self):
        return UserContext(user_id=USER, tenant_roles={TENANT: frozenset({Role.TENANT_VIEWER})},
                           tenant_ids=(TENANT,))

    @pytest.mark.parametrize('org_fields', [
        {'private_whitelist': [USER]},
        {'exec_only_whitelist': [USER]},
        {'metadata': {'privateWhitelist': [USER]}},
        {'metadata': {'execOnlyWhitelist': [USER]}},
    ])
    def test_any_storage_location_grants_access(self, private_okr, viewer, org_fields):
        assert can_view(viewer, private_okr, organization(**org_fields)) is True

    def test_users_whitelisted_through_different_fields_both_see(self, private_okr):
        second = str(uuid.uuid4())
        org = organization(private_whitelist=[USER], metadata={'execOnlyWhitelist': [second]})

        for user_id in (USER, second):
            ctx = UserContext(user_id=user_id, tenant_roles={TENANT: frozenset({Role.TENANT_VIEWER})},
                              tenant_ids=(TENANT,))
            assert can_view(ctx, private_okr, org) is True

    def test_other_organizations_whitelist_is_ignored(self, private_okr, viewer):
        org = organization(id=OTHER_TENANT, exec_only_whitelist=[USER])
        assert can_view(viewer, private_okr, org) is False

    def test_malformed_whitelist_values_are_ignored(self, private_okr, viewer):
        org = organization(private_whitelist='not-a-list', metadata={'privateWhitelist': {'a': USER}})
        assert can_view(viewer, private_okr, org) is False

    def test_cross_tenant_private_read_denied(self, private_okr):
        ctx = admin_context(tenant=OTHER_TENANT)
        assert can_view(ctx, private_okr, organization()) is False


class TestKeyResultInheritance:

    def test_missing_parent_is_denied(self):
        ctx = admin_context()
        assert can_view(ctx, None) is False
        assert can_view_key_result(ctx, None) is False

    @given(visibility=visibility_levels, published=st.booleans(), status=st.sampled_from(CycleStatus.values))
    def test_key_result_snapshot_is_parent_snapshot(self, visibility, published, status):
        objective = Objective(
            organization_id=uuid.UUID(TENANT),
            owner_id=uuid.UUID(SOMEONE_ELSE),
            visibility_level=visibility,
            is_published=published,
        )
        objective.cycle = Cycle(organization_id=uuid.UUID(TENANT), name='Q', status=status)
        key_result = KeyResult(objective=objective, owner_id=uuid.UUID(USER))

        assert OkrContext.from_key_result(key_result) == OkrContext.from_objective(objective)

    def test_orphaned_key_result_has_no_snapshot(self):
        assert OkrContext.from_key_result(KeyResult(objective=None, owner_id=uuid.UUID(USER))) is None


@pytest.mark.django_db
class TestFilterVisible:

    def test_filters_private_objectives_by_reader(self, org, owner, member, make_objective):
        public = make_objective(owner, title='Public')
        private = make_objective(owner, title='Private', visibility_level=VisibilityLevel.PRIVATE)
        organizations = {str(org.id): org}

        from apps.rbac.services import RoleResolver
        member_ctx = RoleResolver.build_user_context(member)
        owner_ctx = RoleResolver.build_user_context(owner)

        assert filter_visible(member_ctx, [public, private], organizations) == [public]
        assert filter_visible(owner_ctx, [public, private], organizations) == [public, private]

    def test_whitelisted_member_sees_private(self, org, owner, member, make_objective):
        private = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        org.private_whitelist = [str(member.id)]
        org.save()

        from apps.rbac.services import RoleResolver
        ctx = RoleResolver.build_user_context(member)
        assert filter_visible(ctx, [private], {str(org.id): org}) == [private]
