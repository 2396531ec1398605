"""Liveness probe: database round trip and cache reachability."""
import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    try:
        with connection.cursor() as c:
            c.execute('SELECT 1')
            db_ok = c.fetchone()[0] == 1
    except DatabaseError as e:
        logger.error('Health check: database unreachable: %s', e)
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=503)
    cache.set('healthz:ping', 1, 5)
    return JsonResponse({'ok': db_ok, 'db': db_ok, 'cache': cache.get('healthz:ping') == 1})
