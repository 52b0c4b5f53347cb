"""
API tests for role assignment and whitelist endpoints.
"""
import uuid

import pytest

from apps.rbac.models import AuditLog, RoleAssignment
from apps.rbac.roles import Role, ScopeType


@pytest.mark.django_db
class TestAssignmentEndpoints:

    def test_my_assignments_grouped_by_scope(self, auth_client, contributor, assign, org, team):
        assign(contributor, Role.TENANT_VIEWER, ScopeType.TENANT, org.id)

        response = auth_client(contributor).get('/v1/rbac/assignments/me')

        assert response.status_code == 200
        data = response.json()
        assert data['isSuperuser'] is False
        assert [row['role'] for row in data['tenant']] == ['TENANT_VIEWER']
        assert data['workspace'] == []
        assert [row['scopeId'] for row in data['team']] == [str(team.id)]

    def test_effective_role_counts_inheritance(self, auth_client, admin, team):
        response = auth_client(admin).get(
            '/v1/rbac/assignments/effective', {'scopeType': 'TEAM', 'scopeId': str(team.id)}
        )

        assert response.status_code == 200
        assert response.json()['effectiveRole'] == 'TENANT_ADMIN'

    def test_effective_role_for_other_user_needs_manage_users(self, auth_client, member, owner, org):
        response = auth_client(member).get('/v1/rbac/assignments/effective', {
            'scopeType': 'TENANT', 'scopeId': str(org.id), 'userId': str(owner.id),
        })
        assert response.status_code == 403

    def test_admin_looks_up_other_user(self, auth_client, admin, member, org):
        response = auth_client(admin).get('/v1/rbac/assignments/effective', {
            'scopeType': 'TENANT', 'scopeId': str(org.id), 'userId': str(member.id),
        })

        assert response.status_code == 200
        assert response.json()['effectiveRole'] == 'TENANT_VIEWER'

    def test_create_then_repeat(self, auth_client, owner, make_user, org):
        target = make_user()
        client = auth_client(owner)
        payload = {
            'userId': str(target.id), 'role': 'TENANT_ADMIN', 'scopeType': 'TENANT', 'scopeId': str(org.id),
        }

        first = client.post('/v1/rbac/assignments', payload, format='json')
        second = client.post('/v1/rbac/assignments', payload, format='json')

        assert first.status_code == 201
        assert first.json()['grantedBy'] == str(owner.id)
        assert second.status_code == 200
        assert second.json()['id'] == first.json()['id']

    def test_admin_cannot_grant_owner(self, auth_client, admin, make_user, org):
        response = auth_client(admin).post('/v1/rbac/assignments', {
            'userId': str(make_user().id), 'role': 'TENANT_OWNER', 'scopeType': 'TENANT', 'scopeId': str(org.id),
        }, format='json')

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'ROLE_ESCALATION'

    def test_other_tenant_grant_is_not_found(self, auth_client, outsider, make_user, org):
        response = auth_client(outsider).post('/v1/rbac/assignments', {
            'userId': str(make_user().id), 'role': 'TENANT_VIEWER', 'scopeType': 'TENANT', 'scopeId': str(org.id),
        }, format='json')
        assert response.status_code == 404

    def test_role_scope_mismatch_is_rejected(self, auth_client, owner, make_user, org):
        response = auth_client(owner).post('/v1/rbac/assignments', {
            'userId': str(make_user().id), 'role': 'TEAM_LEAD', 'scopeType': 'TENANT', 'scopeId': str(org.id),
        }, format='json')
        assert response.status_code == 400

    def test_revoke(self, auth_client, admin, member):
        assignment = RoleAssignment.objects.get(user=member)
        response = auth_client(admin).delete(f'/v1/rbac/assignments/{assignment.id}')

        assert response.status_code == 204
        assert not RoleAssignment.objects.filter(user=member).exists()

    def test_revoke_other_tenant_is_not_found(self, auth_client, outsider, member):
        assignment = RoleAssignment.objects.get(user=member)
        response = auth_client(outsider).delete(f'/v1/rbac/assignments/{assignment.id}')

        assert response.status_code == 404
        assert RoleAssignment.objects.filter(id=assignment.id).exists()

    def test_revoke_missing(self, auth_client, admin):
        response = auth_client(admin).delete(f'/v1/rbac/assignments/{uuid.uuid4()}')
        assert response.status_code == 404


@pytest.mark.django_db
class TestWhitelistEndpoints:

    def url(self, org, suffix=''):
        return f'/v1/rbac/whitelist/{org.id}{suffix}'

    def test_owner_reads_empty_whitelist(self, auth_client, owner, org):
        response = auth_client(owner).get(self.url(org))

        assert response.status_code == 200
        assert response.json() == {'tenantId': str(org.id), 'whitelist': []}

    def test_owner_replaces_whitelist(self, auth_client, owner, org):
        response = auth_client(owner).put(self.url(org), {'userIds': ['u2', 'u1', 'u2']}, format='json')

        assert response.status_code == 200
        assert response.json()['whitelist'] == ['u1', 'u2']
        assert AuditLog.objects.filter(tenant=org, user=owner).exists()

    def test_add_and_remove(self, auth_client, owner, org):
        client = auth_client(owner)

        added = client.post(self.url(org, '/add'), {'userId': 'u1'}, format='json')
        removed = client.post(self.url(org, '/remove'), {'userId': 'u1'}, format='json')

        assert added.json()['whitelist'] == ['u1']
        assert removed.json()['whitelist'] == []

    def test_clear(self, auth_client, owner, org):
        org.private_whitelist = ['u1']
        org.save()

        response = auth_client(owner).delete(self.url(org))
        assert response.json()['whitelist'] == []

    def test_admin_is_forbidden(self, auth_client, admin, org):
        response = auth_client(admin).get(self.url(org))
        assert response.status_code == 403

    def test_other_tenant_is_not_found(self, auth_client, outsider, org):
        response = auth_client(outsider).get(self.url(org))
        assert response.status_code == 404

    def test_unknown_tenant_is_not_found(self, auth_client, owner):
        response = auth_client(owner).get(f'/v1/rbac/whitelist/{uuid.uuid4()}')
        assert response.status_code == 404

    def test_blank_user_id_rejected(self, auth_client, owner, org):
        response = auth_client(owner).post(self.url(org, '/add'), {'userId': '   '}, format='json')
        assert response.status_code == 400

    def test_rate_limited(self, auth_client, owner, org):
        client = auth_client(owner)
        for _ in range(30):
            assert client.get(self.url(org)).status_code == 200

        response = client.get(self.url(org))

        assert response.status_code == 429
        assert response['Retry-After'] == '60'
        assert response.json()['error']['code'] == 'RATE_LIMIT_EXCEEDED'

    def test_anonymous_calls_are_unauthorized_not_throttled(self, api_client, org):
        for _ in range(31):
            response = api_client.get(self.url(org))
            assert response.status_code == 401

    def test_denied_calls_still_count_against_the_limit(self, auth_client, admin, org):
        client = auth_client(admin)
        for _ in range(30):
            assert client.get(self.url(org)).status_code == 403

        assert client.get(self.url(org)).status_code == 429
