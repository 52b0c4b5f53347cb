"""
API tests for objective and key-result endpoints.
"""
import uuid

import pytest

from apps.okrs.governance import PUBLISHED_LOCK_MESSAGE
from apps.okrs.models import Cycle, CycleStatus, Objective, VisibilityLevel
from apps.rbac.models import AuditLog


@pytest.mark.django_db
class TestObjectiveList:

    def test_requires_authentication(self, api_client):
        response = api_client.get('/v1/objectives')
        assert response.status_code == 401

    def test_user_without_tenant_gets_empty_list(self, auth_client, make_user, owner, make_objective):
        make_objective(owner)
        response = auth_client(make_user()).get('/v1/objectives')

        assert response.status_code == 200
        assert response.json()['results'] == []

    def test_private_objectives_hidden_from_members(self, auth_client, owner, member, make_objective):
        public = make_objective(owner, title='Public')
        make_objective(owner, title='Secret', visibility_level=VisibilityLevel.PRIVATE)

        response = auth_client(member).get('/v1/objectives')

        assert response.status_code == 200
        assert [row['id'] for row in response.json()['results']] == [str(public.id)]

    def test_other_tenants_objectives_not_listed(self, auth_client, outsider, owner, make_objective):
        make_objective(owner)
        response = auth_client(outsider).get('/v1/objectives')
        assert response.json()['results'] == []

    def test_superuser_lists_every_tenant(self, auth_client, superuser, owner, make_objective):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        response = auth_client(superuser).get('/v1/objectives')
        assert [row['id'] for row in response.json()['results']] == [str(objective.id)]

    def test_foreign_tenant_header_rejected(self, auth_client, member, other_org):
        response = auth_client(member, tenant_id=other_org.id).get('/v1/objectives')
        assert response.status_code == 403

    def test_uppercase_tenant_header_accepted(self, auth_client, owner, member, org, make_objective):
        objective = make_objective(owner)

        response = auth_client(member, tenant_id=str(org.id).upper()).get('/v1/objectives')

        assert response.status_code == 200
        assert [row['id'] for row in response.json()['results']] == [str(objective.id)]

    def test_malformed_tenant_header_ignored(self, auth_client, owner, member, make_objective):
        objective = make_objective(owner)

        response = auth_client(member, tenant_id='garbage').get('/v1/objectives')

        assert response.status_code == 200
        assert [row['id'] for row in response.json()['results']] == [str(objective.id)]

    @pytest.mark.parametrize('header', ['org', 'garbage'])
    def test_user_without_tenant_sending_header_gets_empty_list(self, header, auth_client, make_user, owner,
                                                               org, make_objective):
        make_objective(owner)
        tenant_id = org.id if header == 'org' else header

        response = auth_client(make_user(), tenant_id=tenant_id).get('/v1/objectives')

        assert response.status_code == 200
        assert response.json()['results'] == []

    def test_filters_by_cycle(self, auth_client, owner, org, cycle, make_objective):
        current = make_objective(owner)
        make_objective(owner, cycle=Cycle.objects.create(organization=org, name='Q2'))

        response = auth_client(owner).get('/v1/objectives', {'cycleId': str(cycle.id)})

        assert [row['id'] for row in response.json()['results']] == [str(current.id)]

    @pytest.mark.parametrize('param', ['cycleId', 'workspaceId', 'teamId'])
    def test_malformed_filter_is_bad_request(self, param, auth_client, member):
        response = auth_client(member).get('/v1/objectives', {param: 'not-a-uuid'})

        assert response.status_code == 400
        assert param in response.json()


@pytest.mark.django_db
class TestObjectiveRetrieve:

    def test_member_reads_public_objective(self, auth_client, owner, member, make_objective):
        objective = make_objective(owner)
        response = auth_client(member).get(f'/v1/objectives/{objective.id}')

        assert response.status_code == 200
        assert response.json()['visibilityLevel'] == VisibilityLevel.PUBLIC_TENANT

    def test_private_objective_is_not_found_for_member(self, auth_client, owner, member, make_objective):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        response = auth_client(member).get(f'/v1/objectives/{objective.id}')
        assert response.status_code == 404

    def test_cross_tenant_read_is_not_found(self, auth_client, owner, outsider, make_objective):
        objective = make_objective(owner)
        response = auth_client(outsider).get(f'/v1/objectives/{objective.id}')
        assert response.status_code == 404

    def test_missing_objective(self, auth_client, member):
        response = auth_client(member).get(f'/v1/objectives/{uuid.uuid4()}')
        assert response.status_code == 404


@pytest.mark.django_db
class TestObjectiveMutations:

    def test_owner_edits_draft(self, auth_client, contributor, make_objective):
        objective = make_objective(contributor)
        response = auth_client(contributor).patch(
            f'/v1/objectives/{objective.id}', {'title': 'Renamed'}, format='json'
        )

        assert response.status_code == 200
        assert response.json()['title'] == 'Renamed'
        assert AuditLog.objects.filter(action='objective_updated', target_id=objective.id).exists()

    def test_owner_blocked_by_publish_lock(self, auth_client, contributor, make_objective):
        objective = make_objective(contributor, is_published=True)
        response = auth_client(contributor).patch(
            f'/v1/objectives/{objective.id}', {'title': 'Renamed'}, format='json'
        )

        assert response.status_code == 403
        assert response.json()['error']['message'] == PUBLISHED_LOCK_MESSAGE

    def test_admin_edits_published(self, auth_client, admin, contributor, make_objective):
        objective = make_objective(contributor, is_published=True)
        response = auth_client(admin).patch(
            f'/v1/objectives/{objective.id}', {'visibilityLevel': 'PRIVATE'}, format='json'
        )

        assert response.status_code == 200
        objective.refresh_from_db()
        assert objective.visibility_level == VisibilityLevel.PRIVATE

    def test_member_cannot_edit_someone_elses_objective(self, auth_client, owner, member, make_objective):
        objective = make_objective(owner)
        response = auth_client(member).patch(
            f'/v1/objectives/{objective.id}', {'title': 'Nope'}, format='json'
        )
        assert response.status_code == 403

    def test_cross_tenant_edit_is_not_found(self, auth_client, owner, outsider, make_objective):
        objective = make_objective(owner)
        response = auth_client(outsider).patch(
            f'/v1/objectives/{objective.id}', {'title': 'Nope'}, format='json'
        )
        assert response.status_code == 404

    def test_superuser_is_read_only(self, auth_client, owner, superuser, make_objective):
        objective = make_objective(owner)
        response = auth_client(superuser).delete(f'/v1/objectives/{objective.id}')

        assert response.status_code == 403
        assert response.json()['error']['details']['reason'] == 'SUPERUSER_READ_ONLY'
        assert Objective.objects.filter(id=objective.id).exists()

    def test_team_lead_blocked_by_archived_cycle(self, auth_client, team_lead, owner, team, org, make_objective):
        archived = Cycle.objects.create(organization=org, name='Q0', status=CycleStatus.ARCHIVED)
        objective = make_objective(owner, team=team, workspace=team.workspace, cycle=archived)

        response = auth_client(team_lead).delete(f'/v1/objectives/{objective.id}')

        assert response.status_code == 403
        assert response.json()['error']['details']['reason'] == 'PUBLISH_LOCK'

    def test_delete_soft_deletes_objective_and_key_results(self, auth_client, admin, owner,
                                                           make_objective, make_key_result):
        objective = make_objective(owner)
        key_result = make_key_result(objective)

        response = auth_client(admin).delete(f'/v1/objectives/{objective.id}')

        assert response.status_code == 204
        assert not Objective.objects.filter(id=objective.id).exists()
        assert Objective.objects_with_deleted.filter(id=objective.id).exists()
        from apps.okrs.models import KeyResult
        assert not KeyResult.objects.filter(id=key_result.id).exists()

    def test_team_lead_publishes(self, auth_client, team_lead, owner, team, make_objective):
        objective = make_objective(owner, team=team, workspace=team.workspace)
        response = auth_client(team_lead).post(f'/v1/objectives/{objective.id}/publish')

        assert response.status_code == 200
        assert response.json()['isPublished'] is True
        assert AuditLog.objects.filter(action='objective_published').count() == 1

    def test_member_cannot_publish(self, auth_client, member, make_objective):
        objective = make_objective(member)
        response = auth_client(member).post(f'/v1/objectives/{objective.id}/publish')
        assert response.status_code == 403


@pytest.mark.django_db
class TestPermissionHints:

    def test_admin_hints_on_public_draft(self, auth_client, admin, owner, make_objective):
        objective = make_objective(owner)
        response = auth_client(admin).get(f'/v1/objectives/{objective.id}/permissions')

        assert response.status_code == 200
        assert response.json() == {
            'canView': True,
            'canEdit': True,
            'canDelete': True,
            'canPublish': True,
            'lockInfo': {'isLocked': False, 'reason': None, 'message': None},
        }

    def test_owner_hints_on_published(self, auth_client, contributor, make_objective):
        objective = make_objective(contributor, is_published=True)
        data = auth_client(contributor).get(f'/v1/objectives/{objective.id}/permissions').json()

        assert data['canView'] is True
        assert data['canEdit'] is False
        assert data['lockInfo']['reason'] == 'published'

    def test_key_result_hints_match_parent(self, auth_client, contributor, make_objective, make_key_result):
        objective = make_objective(contributor, is_published=True)
        key_result = make_key_result(objective)
        client = auth_client(contributor)

        parent = client.get(f'/v1/objectives/{objective.id}/permissions').json()
        child = client.get(f'/v1/key-results/{key_result.id}/permissions').json()
        assert child == parent

    def test_hidden_objective_hints_are_not_found(self, auth_client, owner, member, make_objective):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        response = auth_client(member).get(f'/v1/objectives/{objective.id}/permissions')
        assert response.status_code == 404


@pytest.mark.django_db
class TestKeyResults:

    def test_private_parent_hides_key_result(self, auth_client, owner, member, make_objective, make_key_result):
        objective = make_objective(owner, visibility_level=VisibilityLevel.PRIVATE)
        key_result = make_key_result(objective, owner=member)

        response = auth_client(member).get(f'/v1/key-results/{key_result.id}')
        assert response.status_code == 404

    def test_orphaned_key_result_is_not_found(self, auth_client, admin, make_objective, make_key_result):
        key_result = make_key_result(make_objective(admin))
        key_result.objective = None
        key_result.save()

        response = auth_client(admin).get(f'/v1/key-results/{key_result.id}')
        assert response.status_code == 404

    def test_update_follows_parent_lock(self, auth_client, contributor, make_objective, make_key_result):
        objective = make_objective(contributor, is_published=True)
        key_result = make_key_result(objective)

        response = auth_client(contributor).patch(
            f'/v1/key-results/{key_result.id}', {'currentValue': '50.00'}, format='json'
        )
        assert response.status_code == 403

    def test_owner_updates_draft_key_result(self, auth_client, contributor, make_objective, make_key_result):
        key_result = make_key_result(make_objective(contributor))

        response = auth_client(contributor).patch(
            f'/v1/key-results/{key_result.id}', {'currentValue': '42.50'}, format='json'
        )

        assert response.status_code == 200
        assert response.json()['currentValue'] == '42.50'
