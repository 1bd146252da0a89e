"""
Django admin configuration for tenants app.
"""
from django.contrib import admin
from .models import Institution


@admin.register(Institution)
class InstitutionAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'registration_number', 'province', 'status', 'created_at']
    list_filter = ['status', 'province']
    search_fields = ['name', 'slug', 'registration_number']
    ordering = ['name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']
