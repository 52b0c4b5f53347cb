"""
Objective and key-result API views.

Every request is decided by ``PolicyDecisionService``. Reads hide objects
the caller may not see behind 404; mutations of visible objects that the
caller may not perform answer 403 with a reason-specific message.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError
from apps.core.permissions import get_caller_scope, get_user_context, requested_tenant_id
from apps.okrs.context import OkrContext
from apps.okrs.models import KeyResult, Objective
from apps.okrs.serializers import (
    KeyResultSerializer, KeyResultUpdateSerializer, ObjectiveListQuerySerializer,
    ObjectiveSerializer, ObjectiveUpdateSerializer,
)
from apps.okrs.services import KeyResultService, ObjectiveService, OkrPermissionService
from apps.okrs.visibility import filter_visible
from apps.policy.context import ResourceContext
from apps.policy.services import PolicyDecisionService
from apps.policy.types import Action
from apps.tenants.guard import scoped_queryset
from apps.tenants.models import Organization


class OkrViewMixin:
    """Loading and authorization helpers shared by OKR views."""

    permission_classes = [IsAuthenticated]

    def load_objective(self, objective_id):
        objective = (
            Objective.objects
            .select_related('cycle', 'organization')
            .filter(id=objective_id)
            .first()
        )
        if objective is None:
            raise NotFoundError('Objective not found.')
        return objective

    def load_key_result(self, key_result_id):
        key_result = (
            KeyResult.objects
            .select_related('objective__cycle', 'objective__organization')
            .filter(id=key_result_id)
            .first()
        )
        if key_result is None:
            raise NotFoundError('Key result not found.')
        return key_result

    @staticmethod
    def objective_resource(objective):
        return ResourceContext.for_okr(
            OkrContext.from_objective(objective), organization=objective.organization
        )

    @staticmethod
    def key_result_resource(key_result):
        """Resource for a key result, authorised against its parent objective."""
        okr = OkrContext.from_key_result(key_result)
        if okr is None:
            return ResourceContext(key_result_id=str(key_result.id))
        return ResourceContext.for_okr(
            okr, organization=key_result.objective.organization, key_result_id=str(key_result.id)
        )

    def authorize(self, request, action, resource, hide_private=False):
        return PolicyDecisionService.enforce(
            get_user_context(request),
            action,
            resource,
            caller_scope=get_caller_scope(request, explicit_only=True),
            route=request.path,
            hide_private=hide_private,
        )


@extend_schema_view(
    get=extend_schema(
        tags=['OKRs'],
        summary='List objectives',
        description='''
Objectives in the caller's tenants that the caller may see. PRIVATE
objectives appear only for their owner, tenant owners/admins and
whitelisted users.
        ''',
        parameters=[
            OpenApiParameter('X-TENANT-ID', OpenApiTypes.UUID, location=OpenApiParameter.HEADER, required=False),
            OpenApiParameter('cycleId', OpenApiTypes.UUID, required=False),
            OpenApiParameter('workspaceId', OpenApiTypes.UUID, required=False),
            OpenApiParameter('teamId', OpenApiTypes.UUID, required=False),
        ],
        responses={200: ObjectiveSerializer(many=True)},
    )
)
class ObjectiveListView(OkrViewMixin, APIView):
    """GET /v1/objectives"""

    FILTERS = {'cycleId': 'cycle_id', 'workspaceId': 'workspace_id', 'teamId': 'team_id'}

    def get(self, request):
        query = ObjectiveListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        user_ctx = get_user_context(request)
        queryset = scoped_queryset(
            Objective.objects.select_related('cycle').prefetch_related('key_results'),
            user_ctx,
            get_caller_scope(request, explicit_only=True),
            tenant_id=requested_tenant_id(request),
        )
        for param, field in self.FILTERS.items():
            value = query.validated_data.get(param)
            if value is not None:
                queryset = queryset.filter(**{field: value})

        objectives = list(queryset)
        org_ids = {objective.organization_id for objective in objectives}
        organizations = {
            str(org.id): org for org in Organization.objects.filter(id__in=org_ids)
        }
        visible = filter_visible(user_ctx, objectives, organizations)
        return Response({'results': ObjectiveSerializer(visible, many=True).data})


@extend_schema_view(
    get=extend_schema(tags=['OKRs'], summary='Get objective', responses={200: ObjectiveSerializer}),
    patch=extend_schema(
        tags=['OKRs'],
        summary='Update objective',
        description='''
**Required action:** `edit_okr`.

Published objectives and objectives in LOCKED/ARCHIVED cycles can only be
changed by tenant owners and admins.
        ''',
        request=ObjectiveUpdateSerializer,
        responses={200: ObjectiveSerializer},
    ),
    delete=extend_schema(tags=['OKRs'], summary='Delete objective', responses={204: None}),
)
class ObjectiveDetailView(OkrViewMixin, APIView):
    """GET/PATCH/DELETE /v1/objectives/{objective_id}"""

    def get(self, request, objective_id):
        objective = self.load_objective(objective_id)
        self.authorize(request, Action.VIEW_OKR, self.objective_resource(objective), hide_private=True)
        return Response(ObjectiveSerializer(objective).data)

    def patch(self, request, objective_id):
        objective = self.load_objective(objective_id)
        resource = self.objective_resource(objective)
        self.authorize(request, Action.VIEW_OKR, resource, hide_private=True)
        self.authorize(request, Action.EDIT_OKR, resource)

        serializer = ObjectiveUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        objective = ObjectiveService.update(
            objective, serializer.validated_data, actor=request.user, request=request
        )
        return Response(ObjectiveSerializer(objective).data)

    def delete(self, request, objective_id):
        objective = self.load_objective(objective_id)
        resource = self.objective_resource(objective)
        self.authorize(request, Action.VIEW_OKR, resource, hide_private=True)
        self.authorize(request, Action.DELETE_OKR, resource)

        ObjectiveService.delete(objective, actor=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    post=extend_schema(
        tags=['OKRs'],
        summary='Publish objective',
        description='**Required action:** `publish_okr`. Publishing locks the objective for non-admins.',
        request=None,
        responses={200: ObjectiveSerializer},
    )
)
class ObjectivePublishView(OkrViewMixin, APIView):
    """POST /v1/objectives/{objective_id}/publish"""

    def post(self, request, objective_id):
        objective = self.load_objective(objective_id)
        resource = self.objective_resource(objective)
        self.authorize(request, Action.VIEW_OKR, resource, hide_private=True)
        self.authorize(request, Action.PUBLISH_OKR, resource)

        objective = ObjectiveService.publish(objective, actor=request.user, request=request)
        return Response(ObjectiveSerializer(objective).data)


PERMISSION_HINT_EXAMPLE = OpenApiExample(
    'Published objective seen by its owner',
    value={
        'canView': True,
        'canEdit': False,
        'canDelete': False,
        'canPublish': False,
        'lockInfo': {
            'isLocked': True,
            'reason': 'published',
            'message': 'This OKR is published and locked. You cannot change targets after publish. '
                       'Only tenant administrators can edit or delete published OKRs.',
        },
    },
    response_only=True,
)


@extend_schema_view(
    get=extend_schema(
        tags=['OKRs'],
        summary='Objective permission hints',
        description='Advisory flags for the UI. Every mutation is re-checked by the server.',
        examples=[PERMISSION_HINT_EXAMPLE],
    )
)
class ObjectivePermissionsView(OkrViewMixin, APIView):
    """GET /v1/objectives/{objective_id}/permissions"""

    def get(self, request, objective_id):
        objective = self.load_objective(objective_id)
        resource = self.objective_resource(objective)
        self.authorize(request, Action.VIEW_OKR, resource, hide_private=True)
        return Response(OkrPermissionService.hints(
            get_user_context(request),
            resource.okr,
            objective.organization,
            caller_scope=get_caller_scope(request, explicit_only=True),
        ))


@extend_schema_view(
    get=extend_schema(tags=['OKRs'], summary='Get key result', responses={200: KeyResultSerializer}),
    patch=extend_schema(
        tags=['OKRs'],
        summary='Update key result',
        description='**Required action:** `edit_okr` on the parent objective.',
        request=KeyResultUpdateSerializer,
        responses={200: KeyResultSerializer},
    ),
)
class KeyResultDetailView(OkrViewMixin, APIView):
    """GET/PATCH /v1/key-results/{key_result_id}"""

    def get(self, request, key_result_id):
        key_result = self.load_key_result(key_result_id)
        self.authorize(request, Action.VIEW_OKR, self.key_result_resource(key_result), hide_private=True)
        return Response(KeyResultSerializer(key_result).data)

    def patch(self, request, key_result_id):
        key_result = self.load_key_result(key_result_id)
        resource = self.key_result_resource(key_result)
        self.authorize(request, Action.VIEW_OKR, resource, hide_private=True)
        self.authorize(request, Action.EDIT_OKR, resource)

        serializer = KeyResultUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        key_result = KeyResultService.update(
            key_result, serializer.validated_data, actor=request.user, request=request
        )
        return Response(KeyResultSerializer(key_result).data)


@extend_schema_view(
    get=extend_schema(
        tags=['OKRs'],
        summary='Key result permission hints',
        description='Hints of the parent objective; a key result has no access state of its own.',
        examples=[PERMISSION_HINT_EXAMPLE],
    )
)
class KeyResultPermissionsView(OkrViewMixin, APIView):
    """GET /v1/key-results/{key_result_id}/permissions"""

    def get(self, request, key_result_id):
        key_result = self.load_key_result(key_result_id)
        resource = self.key_result_resource(key_result)
        self.authorize(request, Action.VIEW_OKR, resource, hide_private=True)
        return Response(OkrPermissionService.hints(
            get_user_context(request),
            resource.okr,
            resource.organization,
            caller_scope=get_caller_scope(request, explicit_only=True),
            key_result_id=str(key_result.id),
        ))
