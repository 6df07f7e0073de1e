from flask_socketio import join_room, leave_room, emit
from codeduel import socketio
from codeduel.events import NAMESPACE, room_topic, match_topic


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _topic_from(data):
    data = data or {}
    if data.get('room_id') is not None:
        return room_topic(data['room_id'])
    if data.get('match_id') is not None:
        return match_topic(data['match_id'])
    return None


def handle_watch_room(data):
    room_id = (data or {}).get('room_id')
    if room_id is None:
        emit('error', {'message': 'room_id is required'})
        return
    topic = room_topic(room_id)
    join_room(topic)
    emit('watching', {'topic': topic})


def handle_watch_match(data):
    match_id = (data or {}).get('match_id')
    if match_id is None:
        emit('error', {'message': 'match_id is required'})
        return
    topic = match_topic(match_id)
    join_room(topic)
    emit('watching', {'topic': topic})


def handle_unwatch(data):
    topic = _topic_from(data)
    if not topic:
        emit('error', {'message': 'room_id or match_id is required'})
        return
    leave_room(topic)
    emit('unwatched', {'topic': topic})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('watch_room', handle_watch_room, namespace=ns)
        socketio.on_event('watch_match', handle_watch_match, namespace=ns)
        socketio.on_event('unwatch', handle_unwatch, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
