"""
Role table: which roles may perform which action.

This is the role half of a decision only. Tenant boundaries, locks and
visibility are layered on top by ``PolicyDecisionEngine``.
"""
from apps.okrs.governance import role_can_delete, role_can_edit
from apps.policy.types import Action
from apps.rbac.roles import Role

SUPERUSER_ALLOWED_ACTIONS = frozenset({
    Action.VIEW_OKR,
    Action.VIEW_ALL_OKRS,
    Action.EXPORT_DATA,
    Action.IMPERSONATE_USER,
    Action.MANAGE_USERS,
    Action.MANAGE_WORKSPACES,
    Action.MANAGE_TEAMS,
    Action.MANAGE_TENANT_SETTINGS,
})


def _is_owner(user_ctx, tenant_id):
    return Role.TENANT_OWNER in user_ctx.roles_at_tenant(tenant_id)


def _is_admin(user_ctx, tenant_id):
    return user_ctx.is_tenant_admin(tenant_id)


def _is_workspace_lead(user_ctx, workspace_id):
    return bool(workspace_id) and Role.WORKSPACE_LEAD in user_ctx.roles_at_workspace(workspace_id)


def _is_team_lead(user_ctx, team_id):
    return bool(team_id) and Role.TEAM_LEAD in user_ctx.roles_at_team(team_id)


def _can_contribute(user_ctx, resource):
    """Any tenant role except a lone viewer, any workspace role, or a non-viewer team role."""
    tenant_roles = user_ctx.roles_at_tenant(resource.tenant_id)
    if tenant_roles:
        return tenant_roles != frozenset({Role.TENANT_VIEWER})

    if resource.workspace_id and user_ctx.roles_at_workspace(resource.workspace_id):
        return True

    if resource.team_id:
        team_roles = user_ctx.roles_at_team(resource.team_id)
        if team_roles and Role.TEAM_VIEWER not in team_roles:
            return True
    return False


def _okr_scope(resource):
    okr = resource.okr
    if okr is not None:
        return okr.organization_id, okr.workspace_id, okr.team_id
    return resource.tenant_id, resource.workspace_id, resource.team_id


def _view_okr(user_ctx, resource):
    # Visibility is its own decision step; any caller past the tenant boundary may ask
    return True


def _edit_okr(user_ctx, resource):
    return role_can_edit(user_ctx, resource.okr)


def _delete_okr(user_ctx, resource):
    return role_can_delete(user_ctx, resource.okr)


def _create_okr(user_ctx, resource):
    return _can_contribute(user_ctx, resource)


def _request_checkin(user_ctx, resource):
    if not resource.tenant_id:
        return False
    return _can_contribute(user_ctx, resource)


def _publish_okr(user_ctx, resource):
    if resource.okr is None:
        return False
    tenant_id, workspace_id, team_id = _okr_scope(resource)
    return (
        _is_admin(user_ctx, tenant_id)
        or _is_workspace_lead(user_ctx, workspace_id)
        or _is_team_lead(user_ctx, team_id)
    )


def _manage_users(user_ctx, resource):
    return (
        _is_admin(user_ctx, resource.tenant_id)
        or _is_workspace_lead(user_ctx, resource.workspace_id)
        or _is_team_lead(user_ctx, resource.team_id)
    )


def _tenant_owner_only(user_ctx, resource):
    if not resource.tenant_id:
        return any(Role.TENANT_OWNER in roles for roles in user_ctx.tenant_roles.values())
    return _is_owner(user_ctx, resource.tenant_id)


def _manage_workspaces(user_ctx, resource):
    if not resource.tenant_id:
        return any(user_ctx.is_tenant_admin(tenant_id) for tenant_id in user_ctx.tenant_roles)
    return _is_admin(user_ctx, resource.tenant_id)


def _manage_teams(user_ctx, resource):
    return _is_admin(user_ctx, resource.tenant_id) or _is_workspace_lead(user_ctx, resource.workspace_id)


def _impersonate_user(user_ctx, resource):
    return False


def _any_tenant_role(user_ctx, resource):
    return bool(user_ctx.roles_at_tenant(resource.tenant_id))


ROLE_TABLE = {
    Action.VIEW_OKR: _view_okr,
    Action.EDIT_OKR: _edit_okr,
    Action.DELETE_OKR: _delete_okr,
    Action.CREATE_OKR: _create_okr,
    Action.REQUEST_CHECKIN: _request_checkin,
    Action.PUBLISH_OKR: _publish_okr,
    Action.MANAGE_USERS: _manage_users,
    Action.MANAGE_BILLING: _tenant_owner_only,
    Action.MANAGE_WORKSPACES: _manage_workspaces,
    Action.MANAGE_TEAMS: _manage_teams,
    Action.IMPERSONATE_USER: _impersonate_user,
    Action.MANAGE_TENANT_SETTINGS: _tenant_owner_only,
    Action.VIEW_ALL_OKRS: _any_tenant_role,
    Action.EXPORT_DATA: _any_tenant_role,
}


def role_allows(user_ctx, action, resource) -> bool:
    """
    Role check for ``action`` on ``resource``.

    Superusers are allowed administrative and read actions everywhere and
    refused OKR content changes and billing. Unknown actions are denied.
    """
    action = Action.parse(action) if not isinstance(action, Action) else action
    if action is None:
        return False

    if user_ctx.is_superuser:
        return action in SUPERUSER_ALLOWED_ACTIONS

    rule = ROLE_TABLE.get(action)
    if rule is None:
        return False
    return bool(rule(user_ctx, resource))
