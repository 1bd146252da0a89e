"""
Tests for ActorContextMiddleware.
"""
import threading
from unittest.mock import Mock

import pytest
from django.http import HttpResponse
from django.test import RequestFactory, override_settings

from apps.rbac.identity import DevTokenIdentityStrategy, JWTIdentityStrategy
from apps.rbac.middleware import ActorContextMiddleware
from apps.rbac.roles import Role
from apps.rbac.services import AuthService


@pytest.fixture
def factory():
    return RequestFactory()


@pytest.fixture
def middleware():
    return ActorContextMiddleware(get_response=Mock(return_value=HttpResponse()))


@pytest.mark.django_db
class TestActorContextMiddleware:

    def test_public_paths_skip_resolution(self, factory, middleware):
        request = factory.get('/v1/health', HTTP_AUTHORIZATION='Bearer garbage')

        assert middleware.process_request(request) is None
        assert request.actor is None

    def test_anonymous_request_passes_through(self, factory, middleware):
        request = factory.get('/v1/auth/me')

        assert middleware.process_request(request) is None
        assert request.actor is None

    def test_attaches_actor_and_user(self, factory, middleware, institution_admin):
        token = AuthService.generate_jwt(institution_admin)
        request = factory.get('/v1/auth/me', HTTP_AUTHORIZATION=f'Bearer {token}')

        assert middleware.process_request(request) is None
        assert request.user == institution_admin
        assert request.actor.effective_role == Role.INSTITUTION_ADMIN
        assert threading.current_thread().actor_user_id == str(institution_admin.id)

    def test_invalid_credentials_get_401_envelope(self, factory, middleware):
        request = factory.get('/v1/auth/me', HTTP_AUTHORIZATION='Bearer garbage')
        request.request_id = 'req-123'

        response = middleware.process_request(request)

        assert response.status_code == 401
        assert b'UNAUTHENTICATED' in response.content
        assert b'req-123' in response.content

    @override_settings(DEV_AUTH_ENABLED=False)
    def test_strategy_chosen_at_construction(self):
        middleware = ActorContextMiddleware(get_response=Mock())

        assert isinstance(middleware.strategy, JWTIdentityStrategy)

    @override_settings(DEV_AUTH_ENABLED=True, DEV_API_TOKEN='dev-secret', DEV_AUTH_USER_EMAIL='admin@accredit.local')
    def test_dev_strategy_when_enabled(self, factory, platform_admin):
        middleware = ActorContextMiddleware(get_response=Mock())
        request = factory.get('/v1/auth/me', HTTP_X_DEV_TOKEN='dev-secret')

        assert isinstance(middleware.strategy, DevTokenIdentityStrategy)
        assert middleware.process_request(request) is None
        assert request.user == platform_admin

    @override_settings(DEV_AUTH_ENABLED=False, DEV_API_TOKEN='dev-secret')
    def test_dev_header_ignored_when_disabled(self, factory, middleware):
        request = factory.get('/v1/auth/me', HTTP_X_DEV_TOKEN='dev-secret')

        assert middleware.process_request(request) is None
        assert request.actor is None
