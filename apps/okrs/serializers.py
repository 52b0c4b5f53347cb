"""
Serializers for objective and key-result endpoints.
"""
from rest_framework import serializers

from apps.okrs.models import KeyResult, Objective, VisibilityLevel


class KeyResultSerializer(serializers.ModelSerializer):
    objectiveId = serializers.UUIDField(source='objective_id', read_only=True, allow_null=True)
    ownerId = serializers.UUIDField(source='owner_id', read_only=True)
    startValue = serializers.DecimalField(source='start_value', max_digits=14, decimal_places=2, read_only=True)
    targetValue = serializers.DecimalField(source='target_value', max_digits=14, decimal_places=2, read_only=True)
    currentValue = serializers.DecimalField(source='current_value', max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = KeyResult
        fields = [
            'id', 'objectiveId', 'ownerId', 'title',
            'startValue', 'targetValue', 'currentValue', 'unit',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ObjectiveSerializer(serializers.ModelSerializer):
    """Objective with its access-relevant state and key results."""

    organizationId = serializers.UUIDField(source='organization_id', read_only=True)
    workspaceId = serializers.UUIDField(source='workspace_id', read_only=True, allow_null=True)
    teamId = serializers.UUIDField(source='team_id', read_only=True, allow_null=True)
    cycleId = serializers.UUIDField(source='cycle_id', read_only=True, allow_null=True)
    ownerId = serializers.UUIDField(source='owner_id', read_only=True)
    visibilityLevel = serializers.CharField(source='visibility_level', read_only=True)
    isPublished = serializers.BooleanField(source='is_published', read_only=True)
    publishedAt = serializers.DateTimeField(source='published_at', read_only=True, allow_null=True)
    keyResults = KeyResultSerializer(source='key_results', many=True, read_only=True)

    class Meta:
        model = Objective
        fields = [
            'id', 'organizationId', 'workspaceId', 'teamId', 'cycleId', 'ownerId',
            'title', 'description', 'visibilityLevel', 'isPublished', 'publishedAt',
            'keyResults', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ObjectiveUpdateSerializer(serializers.Serializer):
    """Partial update payload for PATCH /v1/objectives/{id}."""

    title = serializers.CharField(max_length=500, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    visibilityLevel = serializers.ChoiceField(
        choices=[VisibilityLevel.PUBLIC_TENANT, VisibilityLevel.PRIVATE],
        required=False,
        source='visibility_level',
    )

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be empty.")
        return value


class KeyResultUpdateSerializer(serializers.Serializer):
    """Partial update payload for PATCH /v1/key-results/{id}."""

    title = serializers.CharField(max_length=500, required=False)
    startValue = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, source='start_value')
    targetValue = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, source='target_value')
    currentValue = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, source='current_value')
    unit = serializers.CharField(max_length=32, required=False, allow_blank=True)


class ObjectiveListQuerySerializer(serializers.Serializer):
    """Query parameters for GET /v1/objectives."""

    cycleId = serializers.UUIDField(required=False)
    workspaceId = serializers.UUIDField(required=False)
    teamId = serializers.UUIDField(required=False)
