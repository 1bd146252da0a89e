"""
URL configuration for RBAC endpoints.
"""
from django.urls import path

from apps.rbac import views

urlpatterns = [
    path('auth/me', views.ActorProfileView.as_view(), name='auth-me'),

    path(
        'impersonation/sessions',
        views.ImpersonationSessionListCreateView.as_view(),
        name='impersonation-sessions'
    ),
    path(
        'impersonation/sessions/<uuid:session_id>/end',
        views.ImpersonationSessionEndView.as_view(),
        name='impersonation-session-end'
    ),
    path(
        'impersonation/sessions/<uuid:session_id>/revoke',
        views.ImpersonationSessionRevokeView.as_view(),
        name='impersonation-session-revoke'
    ),

    path(
        'oversight/resources/<str:resource_kind>/readable',
        views.OversightReadableResourcesView.as_view(),
        name='oversight-readable-resources'
    ),
    path(
        'oversight/resources/<str:resource_kind>/<str:resource_id>/access',
        views.OversightResourceAccessView.as_view(),
        name='oversight-resource-access'
    ),
    path(
        'oversight/institutions/<uuid:institution_id>/access',
        views.OversightInstitutionAccessView.as_view(),
        name='oversight-institution-access'
    ),
]
