"""
Policy Explorer and system endpoints.
"""
import logging

from django.conf import settings
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample

from apps.core.exceptions import ForbiddenError, NotFoundError
from apps.core.permissions import IsSuperuser, get_caller_scope
from apps.core.rate_limiting import enforce_rate_limit
from apps.policy.feature_flags import RBAC_INSPECTOR, FeatureFlagService
from apps.policy.serializers import DecideRequestSerializer, FeatureFlagUpdateSerializer
from apps.policy.services import PolicyDecisionService
from apps.rbac.models import User

logger = logging.getLogger(__name__)

DECIDE_RATE = '60/m'


@extend_schema_view(
    post=extend_schema(
        tags=['Policy'],
        summary='Policy Decision Explorer (superuser only)',
        description='''
Evaluate a live authorization decision for yourself or another user,
without performing the action.

- 404 when the RBAC inspector is disabled for the caller
- 403 for anyone but a superuser
- 400 for an unknown action
- 429 past 60 requests per minute

Every call is audited.
        ''',
        request=DecideRequestSerializer,
        examples=[
            OpenApiExample(
                'Private objective denied',
                value={
                    'allow': False,
                    'reason': 'PRIVATE_VISIBILITY',
                    'details': {
                        'userRoles': ['TENANT_VIEWER'],
                        'scopes': {
                            'tenantIds': ['123e4567-e89b-12d3-a456-426614174001'],
                            'workspaceIds': [],
                            'teamIds': [],
                        },
                        'resourceCtxEcho': {
                            'tenantId': '123e4567-e89b-12d3-a456-426614174001',
                            'objectiveId': '123e4567-e89b-12d3-a456-426614174009',
                        },
                        'ruleMatched': 'PRIVATE_VISIBILITY',
                        'message': 'This OKR is private.',
                    },
                    'meta': {
                        'requestUserId': '123e4567-e89b-12d3-a456-426614174000',
                        'evaluatedUserId': '123e4567-e89b-12d3-a456-426614174002',
                        'action': 'view_okr',
                        'timestamp': '2025-01-15T10:30:00Z',
                    },
                },
                response_only=True,
            )
        ],
    )
)
class PolicyDecideView(APIView):
    """POST /v1/policy/decide"""

    permission_classes = [IsAuthenticated]

    def check_permissions(self, request):
        super().check_permissions(request)
        if not FeatureFlagService.is_rbac_inspector_enabled(request.user):
            raise NotFoundError('Policy Decision Explorer is not enabled.')
        if not request.user.is_superuser:
            raise ForbiddenError('Only superusers can access the Policy Decision Explorer.')
        enforce_rate_limit(request, 'policy.decide', DECIDE_RATE)

    def post(self, request):
        serializer = DecideRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        resource = {
            key: str(value)
            for key, value in (data.get('resource') or {}).items()
            if value is not None
        }
        decision = PolicyDecisionService.decide(
            request.user,
            data['action'],
            evaluated_user_id=data.get('userId'),
            resource=resource,
            context=data.get('context'),
            caller_scope=get_caller_scope(request, explicit_only=True),
            request=request,
        )
        return Response(decision.as_dict())


@extend_schema_view(
    get=extend_schema(
        tags=['System'],
        summary='System status',
        examples=[
            OpenApiExample(
                'Status',
                value={'status': 'ok', 'version': '1.0.0', 'environment': 'production',
                       'features': {'rbacInspector': False}},
                response_only=True,
            )
        ],
    )
)
class SystemStatusView(APIView):
    """GET /v1/system/status"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({
            'status': 'ok',
            'version': settings.SERVICE_VERSION,
            'environment': settings.SENTRY_ENVIRONMENT,
            'features': {
                RBAC_INSPECTOR: FeatureFlagService.is_rbac_inspector_enabled(request.user),
            },
        })


@extend_schema_view(
    get=extend_schema(tags=['System'], summary="Get a user's feature flags"),
    put=extend_schema(tags=['System'], summary="Toggle a user's feature flag",
                      request=FeatureFlagUpdateSerializer),
)
class FeatureFlagView(APIView):
    """GET/PUT /v1/system/feature-flags/{user_id}"""

    permission_classes = [IsAuthenticated, IsSuperuser]

    def _get_user(self, user_id):
        user = User.objects.filter(id=user_id).first()
        if user is None:
            raise NotFoundError('User not found.')
        return user

    def get(self, request, user_id):
        user = self._get_user(user_id)
        return Response({'userId': str(user.id), 'features': FeatureFlagService.get_all_flags(user)})

    def put(self, request, user_id):
        user = self._get_user(user_id)
        serializer = FeatureFlagUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        FeatureFlagService.set_flag(
            user,
            serializer.validated_data['flag'],
            serializer.validated_data['enabled'],
            actor=request.user,
            request=request,
        )
        return Response({'userId': str(user.id), 'features': FeatureFlagService.get_all_flags(user)})
