"""
Serializers for the Policy Explorer and system endpoints.
"""
from rest_framework import serializers

from apps.policy.feature_flags import FEATURE_FLAGS


class DecideResourceSerializer(serializers.Serializer):
    tenantId = serializers.UUIDField(required=False, allow_null=True)
    workspaceId = serializers.UUIDField(required=False, allow_null=True)
    teamId = serializers.UUIDField(required=False, allow_null=True)
    objectiveId = serializers.UUIDField(required=False, allow_null=True)
    keyResultId = serializers.UUIDField(required=False, allow_null=True)
    cycleId = serializers.UUIDField(required=False, allow_null=True)


class DecideRequestSerializer(serializers.Serializer):
    """
    Body of POST /v1/policy/decide.

    ``action`` is a plain string so an unknown action reaches the service
    and is reported with its name.
    """

    userId = serializers.UUIDField(required=False, allow_null=True)
    action = serializers.CharField(max_length=64)
    resource = DecideResourceSerializer(required=False)
    context = serializers.DictField(required=False)


class FeatureFlagUpdateSerializer(serializers.Serializer):
    flag = serializers.ChoiceField(choices=list(FEATURE_FLAGS))
    enabled = serializers.BooleanField()
