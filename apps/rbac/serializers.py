"""
Serializers for RBAC API endpoints.
"""
from rest_framework import serializers

from apps.rbac.models import ImpersonationSession, User
from apps.workflows.choices import ResourceKind


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role', 'institution_id', 'oversight_org_id']
        read_only_fields = fields


class ActorContextSerializer(serializers.Serializer):
    """Read-only rendering of an ActorContext (effective identity first)."""
    user_id = serializers.CharField(source='effective_user_id')
    role = serializers.CharField(source='effective_role')
    institution_id = serializers.CharField(source='effective_institution_id', allow_null=True)
    oversight_org_id = serializers.CharField(source='effective_oversight_org_id', allow_null=True)
    is_impersonating = serializers.BooleanField()
    original_user_id = serializers.CharField(allow_null=True)
    original_role = serializers.CharField(allow_null=True)
    impersonation_session_id = serializers.CharField(allow_null=True)


class StartImpersonationSerializer(serializers.Serializer):
    target_user_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class ImpersonationSessionSerializer(serializers.ModelSerializer):
    target = UserSummarySerializer(read_only=True)

    class Meta:
        model = ImpersonationSession
        fields = [
            'id', 'target', 'status', 'reason',
            'expires_at', 'last_activity_at', 'ended_at', 'created_at',
        ]
        read_only_fields = fields


class ImpersonationSessionCreatedSerializer(ImpersonationSessionSerializer):
    """Includes the token; only ever returned once, when the session starts."""

    class Meta(ImpersonationSessionSerializer.Meta):
        fields = ImpersonationSessionSerializer.Meta.fields + ['token']
        read_only_fields = fields


class ResourceIdsSerializer(serializers.Serializer):
    resource_ids = serializers.ListField(
        child=serializers.CharField(max_length=64),
        allow_empty=True,
        max_length=500,
    )


def validate_resource_kind(value):
    """Normalize a resource kind from a URL segment, or raise a DRF ValidationError."""
    try:
        return ResourceKind(str(value).upper())
    except ValueError:
        raise serializers.ValidationError(
            {'resource_kind': f"Unknown resource kind. Expected one of: {', '.join(ResourceKind.values)}"}
        )
