"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Role assignments (read, create, effective-role queries)
- Whitelist management payloads
- Audit logs
"""
from rest_framework import serializers

from apps.rbac.models import AuditLog, RoleAssignment, User
from apps.rbac.roles import Role, ScopeType, is_valid_for_scope


class RoleAssignmentSerializer(serializers.ModelSerializer):
    """Read-only representation of a role assignment."""

    userId = serializers.UUIDField(source='user_id', read_only=True)
    scopeType = serializers.CharField(source='scope_type', read_only=True)
    scopeId = serializers.UUIDField(source='scope_id', read_only=True)
    grantedBy = serializers.UUIDField(source='granted_by_id', read_only=True, allow_null=True)
    grantedAt = serializers.DateTimeField(source='granted_at', read_only=True)

    class Meta:
        model = RoleAssignment
        fields = ['id', 'userId', 'role', 'scopeType', 'scopeId', 'grantedBy', 'grantedAt']
        read_only_fields = fields


class AssignRoleSerializer(serializers.Serializer):
    """Payload for POST /v1/rbac/assignments."""

    userId = serializers.UUIDField()
    role = serializers.ChoiceField(choices=Role.choices)
    scopeType = serializers.ChoiceField(choices=ScopeType.choices)
    scopeId = serializers.UUIDField()

    def validate_userId(self, value):
        user = User.objects.filter(id=value, is_active=True).first()
        if user is None:
            raise serializers.ValidationError("User not found.")
        return value

    def validate(self, attrs):
        if not is_valid_for_scope(attrs['role'], attrs['scopeType']):
            raise serializers.ValidationError({
                'role': f"Role {attrs['role']} cannot be assigned at {attrs['scopeType']} scope."
            })
        return attrs


class EffectiveRoleQuerySerializer(serializers.Serializer):
    """Query parameters for GET /v1/rbac/assignments/effective."""

    scopeType = serializers.ChoiceField(choices=ScopeType.choices)
    scopeId = serializers.UUIDField()
    userId = serializers.UUIDField(required=False)


class WhitelistUserSerializer(serializers.Serializer):
    userId = serializers.CharField(max_length=64)

    def validate_userId(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("userId cannot be empty.")
        return value


class WhitelistSetSerializer(serializers.Serializer):
    userIds = serializers.ListField(
        child=serializers.CharField(max_length=64),
        allow_empty=True,
    )


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for audit log entries."""

    class Meta:
        model = AuditLog
        fields = [
            'id', 'tenant', 'user', 'action', 'target_type', 'target_id',
            'diff', 'metadata', 'request_id', 'created_at',
        ]
        read_only_fields = fields
