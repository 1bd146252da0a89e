"""
Django admin configuration for workflows app.
"""
from django.contrib import admin
from .models import (
    Submission, SubmissionResource, OversightRequest, OversightRequestResource
)


class SubmissionResourceInline(admin.TabularInline):
    model = SubmissionResource
    extra = 0
    fields = ['resource_kind', 'resource_id', 'created_at']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class OversightRequestResourceInline(admin.TabularInline):
    model = OversightRequestResource
    extra = 0
    fields = ['resource_kind', 'resource_id', 'created_at']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ['title', 'institution', 'status', 'submitted_at', 'reviewed_at']
    list_filter = ['status']
    search_fields = ['title', 'institution__name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']
    inlines = [SubmissionResourceInline]


@admin.register(OversightRequest)
class OversightRequestAdmin(admin.ModelAdmin):
    list_display = ['title', 'institution', 'status', 'expires_at', 'responded_at']
    list_filter = ['status']
    search_fields = ['title', 'institution__name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']
    inlines = [OversightRequestResourceInline]
