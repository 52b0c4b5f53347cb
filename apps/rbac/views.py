"""
RBAC REST API views.

Implements endpoints for:
- Role assignments (own assignments, effective role, grant, revoke)
- PRIVATE objective whitelist management
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError
from apps.core.permissions import (
    HasPolicyAction, get_user_context, requires_action,
)
from apps.core.rate_limiting import enforce_rate_limit
from apps.policy.context import ResourceContext
from apps.policy.services import PolicyDecisionService
from apps.policy.types import Action
from apps.rbac.models import RoleAssignment, User
from apps.rbac.serializers import (
    AssignRoleSerializer, EffectiveRoleQuerySerializer, RoleAssignmentSerializer,
    WhitelistSetSerializer, WhitelistUserSerializer,
)
from apps.rbac.services import RoleResolver
from apps.tenants.services import WhitelistService

WHITELIST_RATE = '30/m'


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Assignments'],
        summary='List my role assignments',
        description='''
Role assignments of the authenticated user grouped by scope level.

**No action required** - users can always see their own assignments.
        ''',
        examples=[
            OpenApiExample(
                'Success Response',
                value={
                    'userId': '123e4567-e89b-12d3-a456-426614174002',
                    'isSuperuser': False,
                    'tenant': [{'role': 'TENANT_ADMIN', 'scopeType': 'TENANT',
                                'scopeId': '123e4567-e89b-12d3-a456-426614174001'}],
                    'workspace': [],
                    'team': [],
                },
                response_only=True
            )
        ]
    )
)
class MyAssignmentsView(APIView):
    """GET /v1/rbac/assignments/me"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        grouped = RoleResolver.grouped_assignments(request.user)
        return Response({
            'userId': str(request.user.id),
            'isSuperuser': request.user.is_superuser,
            'tenant': RoleAssignmentSerializer(grouped['tenant'], many=True).data,
            'workspace': RoleAssignmentSerializer(grouped['workspace'], many=True).data,
            'team': RoleAssignmentSerializer(grouped['team'], many=True).data,
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Assignments'],
        summary='Effective role at a scope',
        description='''
Highest role a user holds at a scope, counting roles inherited from the
organization (and workspace, for teams).

Looking up another user requires superuser or `manage_users` at the scope.
        ''',
        parameters=[
            OpenApiParameter('scopeType', OpenApiTypes.STR, required=True, enum=['TENANT', 'WORKSPACE', 'TEAM']),
            OpenApiParameter('scopeId', OpenApiTypes.UUID, required=True),
            OpenApiParameter('userId', OpenApiTypes.UUID, required=False),
        ],
    )
)
class EffectiveRoleView(APIView):
    """GET /v1/rbac/assignments/effective"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = EffectiveRoleQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        scope_type = query.validated_data['scopeType']
        scope_id = query.validated_data['scopeId']
        user_id = query.validated_data.get('userId')

        target = request.user
        if user_id and str(user_id) != str(request.user.id):
            if not request.user.is_superuser:
                scope = RoleResolver.resolve_scope(scope_type, scope_id)
                if scope is None:
                    raise NotFoundError('Scope not found.')
                PolicyDecisionService.enforce(
                    get_user_context(request),
                    Action.MANAGE_USERS,
                    ResourceContext(**scope),
                    route=request.path,
                )
            target = User.objects.filter(id=user_id).first()
            if target is None:
                raise NotFoundError('User not found.')

        return Response({
            'userId': str(target.id),
            'scopeType': scope_type,
            'scopeId': str(scope_id),
            'effectiveRole': RoleResolver.get_effective_role(target, scope_type, scope_id),
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Assignments'],
        summary='Assign role',
        description='''
Grant a role at a tenant, workspace or team scope.

Granters need `manage_users` at the scope and an effective role at least as
high as the role granted. Superusers may provision any role.

Returns 201 when the assignment was created, 200 when it already existed.
        ''',
        request=AssignRoleSerializer,
        responses={200: RoleAssignmentSerializer, 201: RoleAssignmentSerializer},
    )
)
class AssignmentCreateView(APIView):
    """POST /v1/rbac/assignments"""

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = AssignRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = User.objects.filter(id=data['userId']).first()
        if user is None:
            raise NotFoundError('User not found.')
        assignment, created = RoleResolver.assign_role(
            granter=request.user,
            user=user,
            role=data['role'],
            scope_type=data['scopeType'],
            scope_id=data['scopeId'],
            request=request,
        )
        return Response(
            RoleAssignmentSerializer(assignment).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


@extend_schema_view(
    delete=extend_schema(
        tags=['RBAC - Assignments'],
        summary='Revoke role assignment',
        responses={204: None},
    )
)
class AssignmentDetailView(APIView):
    """DELETE /v1/rbac/assignments/{assignment_id}"""

    permission_classes = [IsAuthenticated]

    def delete(self, request, assignment_id):
        assignment = RoleAssignment.objects.filter(id=assignment_id).first()
        if assignment is None:
            raise NotFoundError('Assignment not found.')
        RoleResolver.revoke_role(request.user, assignment, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@requires_action(Action.MANAGE_TENANT_SETTINGS)
class WhitelistBaseView(APIView):
    """
    Shared plumbing for whitelist endpoints.

    ``HasPolicyAction`` checks ``manage_tenant_settings`` on the URL's
    tenant; a tenant outside the caller's scope answers 404.
    """

    permission_classes = [IsAuthenticated, HasPolicyAction]

    def check_permissions(self, request):
        # Anonymous calls answer 401 before touching the per-user bucket
        if not getattr(request.user, 'is_authenticated', False):
            self.permission_denied(request)
        enforce_rate_limit(request, 'rbac.whitelist', WHITELIST_RATE)
        super().check_permissions(request)

    def get_policy_resource(self, request):
        from apps.tenants.models import Organization

        tenant_id = str(self.kwargs['tenant_id'])
        organization = Organization.objects.filter(id=tenant_id).first()
        if organization is None:
            raise NotFoundError('Organization not found.')
        return ResourceContext(tenant_id=tenant_id, organization=organization)

    def _payload(self, user_ids):
        return Response({'tenantId': str(self.kwargs['tenant_id']), 'whitelist': user_ids})


@extend_schema_view(
    get=extend_schema(tags=['RBAC - Whitelist'], summary='Get PRIVATE whitelist'),
    put=extend_schema(tags=['RBAC - Whitelist'], summary='Replace PRIVATE whitelist',
                      request=WhitelistSetSerializer),
    delete=extend_schema(tags=['RBAC - Whitelist'], summary='Clear PRIVATE whitelist'),
)
class WhitelistView(WhitelistBaseView):
    """GET/PUT/DELETE /v1/rbac/whitelist/{tenant_id}"""

    def get(self, request, tenant_id):
        return self._payload(WhitelistService.get_whitelist(tenant_id))

    def put(self, request, tenant_id):
        serializer = WhitelistSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._payload(WhitelistService.set_whitelist(
            tenant_id, serializer.validated_data['userIds'], actor=request.user, request=request
        ))

    def delete(self, request, tenant_id):
        return self._payload(WhitelistService.clear_whitelist(tenant_id, actor=request.user, request=request))


@extend_schema_view(
    post=extend_schema(tags=['RBAC - Whitelist'], summary='Add user to PRIVATE whitelist',
                       request=WhitelistUserSerializer),
)
class WhitelistAddView(WhitelistBaseView):
    """POST /v1/rbac/whitelist/{tenant_id}/add"""

    def post(self, request, tenant_id):
        serializer = WhitelistUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._payload(WhitelistService.add_to_whitelist(
            tenant_id, serializer.validated_data['userId'], actor=request.user, request=request
        ))


@extend_schema_view(
    post=extend_schema(tags=['RBAC - Whitelist'], summary='Remove user from PRIVATE whitelist',
                       request=WhitelistUserSerializer),
)
class WhitelistRemoveView(WhitelistBaseView):
    """POST /v1/rbac/whitelist/{tenant_id}/remove"""

    def post(self, request, tenant_id):
        serializer = WhitelistUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._payload(WhitelistService.remove_from_whitelist(
            tenant_id, serializer.validated_data['userId'], actor=request.user, request=request
        ))
