"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = False
    settings.RBAC_INSPECTOR = False
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database; apps ship no migrations, so tables come from syncdb."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def _clear_cache():
    """Rate-limit counters live in the cache; start every test from zero."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def auth_client():
    """
    Build an APIClient authenticated as ``user`` with a real JWT.

    Usage:
        client = auth_client(user)
        client = auth_client(user, tenant_id=org.id)   # sends X-TENANT-ID
    """
    from rest_framework.test import APIClient
    from apps.rbac.services import AuthService

    def make(user, tenant_id=None):
        client = APIClient()
        headers = {'HTTP_AUTHORIZATION': f'Bearer {AuthService.generate_jwt(user)}'}
        if tenant_id:
            headers['HTTP_X_TENANT_ID'] = str(tenant_id)
        client.credentials(**headers)
        return client

    return make


@pytest.fixture
def make_user(db):
    """Factory for users; emails are unique per call."""
    from apps.rbac.models import User
    counter = {'n': 0}

    def make(email=None, is_superuser=False, **extra):
        counter['n'] += 1
        email = email or f"user{counter['n']}@example.com"
        return User.objects.create_user(email=email, is_superuser=is_superuser, **extra)

    return make


@pytest.fixture
def assign(db):
    """Create a RoleAssignment directly, bypassing escalation checks."""
    from apps.rbac.models import RoleAssignment

    def make(user, role, scope_type, scope_id):
        return RoleAssignment.objects.create(
            user=user, role=role, scope_type=scope_type, scope_id=scope_id
        )

    return make


@pytest.fixture
def org(db):
    """Create a test organization."""
    from apps.tenants.models import Organization
    return Organization.objects.create(name='Acme', slug='acme')


@pytest.fixture
def other_org(db):
    """Create another organization for isolation tests."""
    from apps.tenants.models import Organization
    return Organization.objects.create(name='Globex', slug='globex')


@pytest.fixture
def workspace(org):
    from apps.tenants.models import Workspace
    return Workspace.objects.create(organization=org, name='Engineering')


@pytest.fixture
def team(workspace):
    from apps.tenants.models import Team
    return Team.objects.create(workspace=workspace, name='Platform')


@pytest.fixture
def cycle(org):
    from apps.okrs.models import Cycle, CycleStatus
    return Cycle.objects.create(organization=org, name='Q1', status=CycleStatus.ACTIVE)


@pytest.fixture
def owner(make_user, assign, org):
    """TENANT_OWNER of ``org``."""
    from apps.rbac.roles import Role, ScopeType
    user = make_user(email='owner@acme.test')
    assign(user, Role.TENANT_OWNER, ScopeType.TENANT, org.id)
    return user


@pytest.fixture
def admin(make_user, assign, org):
    """TENANT_ADMIN of ``org``."""
    from apps.rbac.roles import Role, ScopeType
    user = make_user(email='admin@acme.test')
    assign(user, Role.TENANT_ADMIN, ScopeType.TENANT, org.id)
    return user


@pytest.fixture
def member(make_user, assign, org):
    """TENANT_VIEWER of ``org`` with no workspace or team roles."""
    from apps.rbac.roles import Role, ScopeType
    user = make_user(email='member@acme.test')
    assign(user, Role.TENANT_VIEWER, ScopeType.TENANT, org.id)
    return user


@pytest.fixture
def contributor(make_user, assign, org, team):
    """TEAM_CONTRIBUTOR of ``team`` (and so a member of ``org``)."""
    from apps.rbac.roles import Role, ScopeType
    user = make_user(email='contributor@acme.test')
    assign(user, Role.TEAM_CONTRIBUTOR, ScopeType.TEAM, team.id)
    return user


@pytest.fixture
def team_lead(make_user, assign, team):
    from apps.rbac.roles import Role, ScopeType
    user = make_user(email='lead@acme.test')
    assign(user, Role.TEAM_LEAD, ScopeType.TEAM, team.id)
    return user


@pytest.fixture
def outsider(make_user, assign, other_org):
    """TENANT_ADMIN of ``other_org`` only."""
    from apps.rbac.roles import Role, ScopeType
    user = make_user(email='outsider@globex.test')
    assign(user, Role.TENANT_ADMIN, ScopeType.TENANT, other_org.id)
    return user


@pytest.fixture
def superuser(make_user):
    """Platform superuser with no tenant membership."""
    return make_user(email='root@platform.test', is_superuser=True)


@pytest.fixture
def make_objective(org, cycle):
    """Factory for objectives in ``org``; defaults to a draft PUBLIC_TENANT objective."""
    from apps.okrs.models import Objective

    def make(owner, **fields):
        fields.setdefault('organization', org)
        fields.setdefault('cycle', cycle)
        fields.setdefault('title', 'Grow revenue')
        return Objective.objects.create(owner=owner, **fields)

    return make


@pytest.fixture
def make_key_result():
    from apps.okrs.models import KeyResult

    def make(objective, owner=None, **fields):
        fields.setdefault('title', 'Close 10 deals')
        return KeyResult.objects.create(
            objective=objective, owner=owner or objective.owner, **fields
        )

    return make
