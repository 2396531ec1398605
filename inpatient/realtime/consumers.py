import json
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from rest_framework.authtoken.models import Token

from inpatient.models import User
from inpatient.services.events import QUEUE_GROUP


@database_sync_to_async
def _user_for_token(key):
    token = Token.objects.select_related('user').filter(key=key).first()
    return token.user if token and token.user.is_active else None


class QueueConsumer(AsyncWebsocketConsumer):
    """Pushes QUEUE_CREATED / QUEUE_UPDATED / QUEUE_DELETED to staff.

    Clients authenticate with the session cookie or ``?token=<key>``.
    """

    async def connect(self):
        user = self.scope.get('user')
        if not getattr(user, 'is_authenticated', False):
            key = (parse_qs(self.scope.get('query_string', b'').decode()).get('token') or [''])[0]
            user = await _user_for_token(key) if key else None
        if user is None or getattr(user, 'role', None) not in dict(User.ROLE_CHOICES):
            await self.close(code=4401)
            return
        await self.channel_layer.group_add(QUEUE_GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({'type': 'welcome', 'group': QUEUE_GROUP}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(QUEUE_GROUP, self.channel_name)

    async def queue_event(self, event):
        # event: {"type": "queue.event", "event": {"type", "queueId", "payload", "sentAt"}}
        await self.send(json.dumps(event['event']))
