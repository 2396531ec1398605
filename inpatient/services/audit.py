"""
Audit trail.

Every workflow change writes one ``AuditEvent`` row inside the same
transaction as the change itself, so a rolled back operation leaves no
trace in the trail either.
"""
import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model

from inpatient.models import AuditEvent

logger = logging.getLogger(__name__)

User = get_user_model()


def client_ip(request) -> Optional[str]:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    actor = user if isinstance(user, User) and user.pk else None
    logger.debug('audit %s %s#%s by %s', action, object_type or '-', object_id, actor.pk if actor else None)
    return AuditEvent.objects.create(
        user=actor,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail or {},
    )
