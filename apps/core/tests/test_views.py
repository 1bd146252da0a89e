"""
Tests for the health check endpoint.
"""
from unittest.mock import patch

import pytest


@pytest.mark.django_db
class TestHealthCheck:

    def test_healthy(self, api_client):
        response = api_client.get('/v1/health')

        assert response.status_code == 200
        assert response.json() == {'status': 'healthy', 'database': 'healthy', 'cache': 'healthy'}

    def test_no_authentication_needed_even_with_bad_token(self, api_client):
        response = api_client.get('/v1/health', HTTP_AUTHORIZATION='Bearer garbage')

        assert response.status_code == 200

    @patch('apps.core.views.cache')
    def test_cache_failure(self, cache, api_client):
        cache.set.side_effect = ConnectionError('cache down')

        response = api_client.get('/v1/health')

        assert response.status_code == 503
        body = response.json()
        assert body['status'] == 'unhealthy'
        assert body['cache'] == 'unhealthy'
        assert body['database'] == 'healthy'
        assert body['errors'] == ['Cache: cache down']
