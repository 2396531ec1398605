"""
Live queue events over Channels.

Events are sent only after the surrounding transaction commits so that
listeners never see a change that was rolled back.
"""
from __future__ import annotations

import logging
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

QUEUE_GROUP = 'queue'

QUEUE_CREATED = 'QUEUE_CREATED'
QUEUE_UPDATED = 'QUEUE_UPDATED'
QUEUE_DELETED = 'QUEUE_DELETED'


def _send(event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(QUEUE_GROUP, {'type': 'queue.event', 'event': event})


def broadcast_queue_event(kind: str, queue_id: int, payload: Optional[dict]) -> None:
    event = {
        'type': kind,
        'queueId': queue_id,
        'payload': payload,
        'sentAt': timezone.now().isoformat(),
    }
    logger.debug('Queue event %s for #%s', kind, queue_id)
    transaction.on_commit(lambda: _send(event))
