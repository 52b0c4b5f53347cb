"""
Serializers for organization and workspace API endpoints.
"""
from rest_framework import serializers
from apps.tenants.models import Organization, Workspace, Team


class OrganizationSerializer(serializers.ModelSerializer):
    """Serializer for Organization."""

    class Meta:
        model = Organization
        fields = [
            'id', 'name', 'slug', 'metadata',
            'private_whitelist', 'exec_only_whitelist',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrganizationUpdateSerializer(serializers.Serializer):
    """Partial update payload for PATCH /v1/organizations/{id}."""

    name = serializers.CharField(max_length=255, required=False)
    metadata = serializers.DictField(required=False)
    private_whitelist = serializers.ListField(child=serializers.CharField(max_length=64), required=False)
    exec_only_whitelist = serializers.ListField(child=serializers.CharField(max_length=64), required=False)

    def to_internal_value(self, data):
        # Accept the camel-cased names the dashboard sends
        if not isinstance(data, dict) or hasattr(data, 'getlist'):
            return super().to_internal_value(data)
        data = dict(data)
        for camel, snake in (('privateWhitelist', 'private_whitelist'),
                             ('execOnlyWhitelist', 'exec_only_whitelist')):
            if camel in data and snake not in data:
                data[snake] = data.pop(camel)
        return super().to_internal_value(data)


class TeamSerializer(serializers.ModelSerializer):
    class Meta:
        model = Team
        fields = ['id', 'name', 'workspace']
        read_only_fields = fields


class WorkspaceSerializer(serializers.ModelSerializer):
    """Serializer for Workspace with its teams."""

    teams = TeamSerializer(many=True, read_only=True)

    class Meta:
        model = Workspace
        fields = ['id', 'name', 'organization', 'parent', 'teams', 'created_at', 'updated_at']
        read_only_fields = fields


class WorkspaceUpdateSerializer(serializers.Serializer):
    """Partial update payload for PATCH /v1/workspaces/{id}."""

    name = serializers.CharField(max_length=255, required=False)
    parentId = serializers.UUIDField(required=False, allow_null=True, source='parent_id')
