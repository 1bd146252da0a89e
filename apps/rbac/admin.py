"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin
from .models import User, ImpersonationSession


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'role', 'institution', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    readonly_fields = ['id', 'last_login_at', 'created_at', 'updated_at', 'deleted_at']


@admin.register(ImpersonationSession)
class ImpersonationSessionAdmin(admin.ModelAdmin):
    """
    Sessions are audit records: read-only apart from revocation through the API.
    """
    list_display = ['impersonator', 'target', 'status', 'expires_at', 'ended_at', 'created_at']
    list_filter = ['status']
    search_fields = ['impersonator__email', 'target__email', 'reason']
    exclude = ['token']
    readonly_fields = [
        'id', 'impersonator', 'target', 'status', 'reason', 'expires_at',
        'last_activity_at', 'ended_at', 'ended_by', 'ip_address', 'user_agent',
        'created_at', 'updated_at',
    ]

    def has_add_permission(self, request):
        return False
