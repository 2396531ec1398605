from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from inpatient.realtime.consumers import QueueConsumer


def test_staff_socket_receives_queue_events(nurse):
    async def scenario():
        communicator = WebsocketCommunicator(QueueConsumer.as_asgi(), '/ws/queue/')
        communicator.scope['user'] = nurse
        connected, _ = await communicator.connect()
        assert connected
        welcome = await communicator.receive_json_from()
        await get_channel_layer().group_send('queue', {
            'type': 'queue.event',
            'event': {'type': 'QUEUE_CREATED', 'queueId': 7, 'payload': {'status': 'WAITING'}},
        })
        event = await communicator.receive_json_from()
        await communicator.disconnect()
        return welcome, event

    welcome, event = async_to_sync(scenario)()
    assert welcome == {'type': 'welcome', 'group': 'queue'}
    assert event['type'] == 'QUEUE_CREATED'
    assert event['queueId'] == 7


def test_anonymous_socket_is_closed():
    async def scenario():
        communicator = WebsocketCommunicator(QueueConsumer.as_asgi(), '/ws/queue/')
        connected, code = await communicator.connect()
        return connected, code

    assert async_to_sync(scenario)() == (False, 4401)
