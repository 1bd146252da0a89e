"""
Core API views.
"""
import logging
import uuid

from django.core.cache import cache
from django.db import connection
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)


def check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def check_cache():
    key = f"health:{uuid.uuid4().hex}"
    cache.set(key, 'ok', timeout=10)
    try:
        if cache.get(key) != 'ok':
            raise RuntimeError("Unable to read test key")
    finally:
        cache.delete(key)


HEALTH_CHECKS = (
    ('database', 'Database', check_database),
    ('cache', 'Cache', check_cache),
)

HEALTH_SCHEMA = {
    'type': 'object',
    'properties': {
        'status': {'type': 'string'},
        'database': {'type': 'string'},
        'cache': {'type': 'string'},
        'errors': {'type': 'array', 'items': {'type': 'string'}},
    }
}


class HealthCheckView(APIView):
    """
    Liveness of the dependencies authorization decisions read from.

    GET /v1/health

    Public. 200 when every check passes, 503 with an errors list otherwise.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=['Health'],
        summary="Health check",
        description="Check the health of the database and cache",
        responses={200: HEALTH_SCHEMA, 503: HEALTH_SCHEMA}
    )
    def get(self, request):
        body = {'status': 'healthy'}
        errors = []

        for key, label, check in HEALTH_CHECKS:
            try:
                check()
            except Exception as e:
                body[key] = 'unhealthy'
                errors.append(f"{label}: {e}")
                logger.error(f"{label} health check failed", exc_info=True)
            else:
                body[key] = 'healthy'

        if errors:
            body['status'] = 'unhealthy'
            body['errors'] = errors
            return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(body, status=status.HTTP_200_OK)
