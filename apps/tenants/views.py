"""
Organization and workspace API views.

Lists are fail-closed: a caller without tenant membership sees nothing,
an explicit ``X-TENANT-ID`` narrows the list to that tenant, and only
superusers see every tenant. Mutations go through the decision engine.
"""
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError
from apps.core.permissions import (
    HasPolicyAction, get_caller_scope, get_user_context, requested_tenant_id, requires_action,
)
from apps.policy.context import ResourceContext
from apps.policy.types import Action
from apps.tenants.guard import scoped_queryset
from apps.tenants.models import Organization, Workspace
from apps.tenants.serializers import (
    OrganizationSerializer, OrganizationUpdateSerializer,
    WorkspaceSerializer, WorkspaceUpdateSerializer,
)
from apps.tenants.services import OrganizationService, WorkspaceService

TENANT_HEADER_PARAM = OpenApiParameter(
    'X-TENANT-ID', OpenApiTypes.UUID, location=OpenApiParameter.HEADER, required=False,
    description='Restrict the result to one of your tenants.',
)


def _get_or_404(queryset, message, **lookup):
    obj = queryset.filter(**lookup).first()
    if obj is None:
        raise NotFoundError(message)
    return obj


@extend_schema_view(
    get=extend_schema(
        tags=['Tenants'],
        summary='List organizations',
        parameters=[TENANT_HEADER_PARAM],
        responses={200: OrganizationSerializer(many=True)},
    )
)
class OrganizationListView(APIView):
    """GET /v1/organizations"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        queryset = scoped_queryset(
            Organization.objects.order_by('name'),
            get_user_context(request),
            get_caller_scope(request, explicit_only=True),
            field='id',
            tenant_id=requested_tenant_id(request),
        )
        return Response({'results': OrganizationSerializer(queryset, many=True).data})


@extend_schema_view(
    get=extend_schema(tags=['Tenants'], summary='Get organization',
                      responses={200: OrganizationSerializer}),
    patch=extend_schema(
        tags=['Tenants'],
        summary='Update organization',
        description='''
Update name, metadata or the PRIVATE/EXEC_ONLY whitelists.

**Required action:** `manage_tenant_settings` (TENANT_OWNER only).
Superusers without a membership in the organization are read-only.
        ''',
        request=OrganizationUpdateSerializer,
        responses={200: OrganizationSerializer},
    ),
)
@requires_action(Action.MANAGE_TENANT_SETTINGS)
class OrganizationDetailView(APIView):
    """GET/PATCH /v1/organizations/{org_id}"""

    permission_classes = [IsAuthenticated, HasPolicyAction]

    def get_permissions(self):
        if self.request.method == 'GET':
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_policy_resource(self, request):
        organization = _get_or_404(Organization.objects.all(), 'Organization not found.',
                                   id=self.kwargs['org_id'])
        self.organization = organization
        return ResourceContext(tenant_id=str(organization.id), organization=organization)

    def get(self, request, org_id):
        queryset = scoped_queryset(
            Organization.objects.all(),
            get_user_context(request),
            get_caller_scope(request, explicit_only=True),
            field='id',
        )
        organization = _get_or_404(queryset, 'Organization not found.', id=org_id)
        return Response(OrganizationSerializer(organization).data)

    def patch(self, request, org_id):
        serializer = OrganizationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        organization = OrganizationService.update(
            self.organization, serializer.validated_data, actor=request.user, request=request
        )
        return Response(OrganizationSerializer(organization).data)


@extend_schema_view(
    get=extend_schema(
        tags=['Tenants'],
        summary='List workspaces',
        parameters=[TENANT_HEADER_PARAM],
        responses={200: WorkspaceSerializer(many=True)},
    )
)
class WorkspaceListView(APIView):
    """GET /v1/workspaces"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        queryset = scoped_queryset(
            Workspace.objects.select_related('organization').prefetch_related('teams').order_by('name'),
            get_user_context(request),
            get_caller_scope(request, explicit_only=True),
            tenant_id=requested_tenant_id(request),
        )
        return Response({'results': WorkspaceSerializer(queryset, many=True).data})


@extend_schema_view(
    patch=extend_schema(
        tags=['Tenants'],
        summary='Update workspace',
        description='''
Rename a workspace or move it under another workspace of the same
organization. Moves that would create a cycle are rejected with 400.

**Required action:** `manage_workspaces`.
        ''',
        request=WorkspaceUpdateSerializer,
        responses={200: WorkspaceSerializer},
    )
)
@requires_action(Action.MANAGE_WORKSPACES)
class WorkspaceDetailView(APIView):
    """PATCH /v1/workspaces/{workspace_id}"""

    permission_classes = [IsAuthenticated, HasPolicyAction]

    def get_policy_resource(self, request):
        workspace = _get_or_404(
            Workspace.objects.select_related('organization'), 'Workspace not found.',
            id=self.kwargs['workspace_id'],
        )
        self.workspace = workspace
        return ResourceContext(
            tenant_id=str(workspace.organization_id),
            workspace_id=str(workspace.id),
            organization=workspace.organization,
        )

    def patch(self, request, workspace_id):
        serializer = WorkspaceUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        workspace = WorkspaceService.update(
            self.workspace, serializer.validated_data, actor=request.user, request=request
        )
        return Response(WorkspaceSerializer(workspace).data)
