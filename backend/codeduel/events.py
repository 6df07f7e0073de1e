"""Outbound "state changed" notifications.

Clients subscribe to a room or match topic over Socket.IO (see
``socketio_events``); the engine only announces that something changed and
clients re-read state over HTTP.
"""
from flask import current_app

from codeduel import socketio

NAMESPACE = '/ws'


def room_topic(room_id) -> str:
    return f"room:{room_id}"


def match_topic(match_id) -> str:
    return f"match:{match_id}"


def notify_state_change(topic: str, payload: dict, app=None) -> None:
    """Emit ``state_update`` to every client watching ``topic``.

    Delivery is best effort: a failed emit is logged and never aborts the
    state transition that triggered it.
    """
    logger = (app or current_app).logger
    try:
        socketio.emit('state_update', dict(payload, topic=topic), to=topic, namespace=NAMESPACE)
    except Exception as exc:
        logger.warning(f"[notify-failed] topic={topic} error={exc}")


def notify_room(room, app=None, **extra) -> None:
    notify_state_change(room_topic(room.id), dict(extra, room_id=room.id, status=room.status), app=app)


def notify_match(match, app=None, **extra) -> None:
    notify_state_change(match_topic(match.id), dict(extra, match_id=match.id, room_id=match.room_id), app=app)
