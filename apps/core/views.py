"""
Core API views.
"""
import logging

from django.core.cache import cache
from django.db import connection
from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)

HEALTH_KEY = 'strata:health'


def check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


def check_cache():
    cache.set(HEALTH_KEY, 'ok', timeout=10)
    if cache.get(HEALTH_KEY) != 'ok':
        raise RuntimeError('Unable to read test key')


class HealthCheckView(APIView):
    """
    GET /v1/health

    Unauthenticated probe of the role store (database) and the rate-limit
    counters (cache). 200 when both answer, 503 otherwise.
    """
    authentication_classes = []
    permission_classes = []

    checks = (
        ('database', 'Database', check_database),
        ('cache', 'Cache', check_cache),
    )

    @extend_schema(
        tags=['System'],
        summary="Health check",
        responses={
            (200, 'application/json'): inline_serializer('HealthStatus', {
                'status': serializers.CharField(),
                'database': serializers.CharField(),
                'cache': serializers.CharField(),
                'errors': serializers.ListField(child=serializers.CharField(), required=False),
            }),
        },
    )
    def get(self, request):
        body = {'status': 'healthy'}
        errors = []

        for key, label, check in self.checks:
            try:
                check()
                body[key] = 'healthy'
            except Exception as e:
                body[key] = 'unhealthy'
                errors.append(f"{label}: {e}")
                logger.error(f"{label} health check failed", exc_info=True)

        if errors:
            body['status'] = 'unhealthy'
            body['errors'] = errors
            return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(body)
