"""Room store and state machine.

Rooms move waiting -> locked -> active -> completed and never back. Every
transition that depends on the current status or occupancy is issued as a
single conditional UPDATE; the affected row count says whether this caller
won. The helpers here do not commit, so a transition can share a
transaction with the writes that go with it.
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError

from codeduel import db
from codeduel.errors import NotFound, RoomCodeExhausted
from codeduel.models import (
    Room, WAITING, LOCKED, ACTIVE, COMPLETED, ROOM_STATUS_ORDER, generate_room_code, utcnow,
)


def is_forward(current: str, target: str) -> bool:
    """True when ``target`` comes strictly after ``current``."""
    return ROOM_STATUS_ORDER.index(target) > ROOM_STATUS_ORDER.index(current)


def get_room(room_id, refresh=False) -> Room:
    room = db.session.get(Room, room_id, populate_existing=refresh)
    if not room:
        raise NotFound('Room not found')
    return room


def get_room_by_code(room_code: str) -> Room:
    room = Room.query.filter_by(room_code=(room_code or '').strip().upper()).first()
    if not room:
        raise NotFound('Room not found')
    return room


def insert_room(**fields) -> Room:
    """Persist a new room, regenerating its code on unique-constraint collisions."""
    attempts = int(current_app.config.get('ROOM_CODE_ATTEMPTS', 5))
    for attempt in range(1, attempts + 1):
        code = generate_room_code()
        room = Room(room_code=code, status=WAITING, **fields)
        db.session.add(room)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.info(f"[room-code-collision] code={code} attempt={attempt}/{attempts}")
            continue
        return room
    raise RoomCodeExhausted()


def _transition(room_id, expected: str, values: dict, *criteria) -> bool:
    target = values['status']
    if not is_forward(expected, target):
        raise ValueError(f"Illegal room transition {expected} -> {target}")
    changed = (
        Room.query
        .filter(Room.id == room_id, Room.status == expected, *criteria)
        .update(values, synchronize_session=False)
    )
    return changed == 1


def try_lock(room_id, player2_id: str) -> bool:
    """Claim the second seat; only succeeds while the room is still open."""
    return _transition(
        room_id,
        WAITING,
        {'player2_id': player2_id, 'status': LOCKED, 'locked_at': utcnow()},
        Room.player2_id.is_(None),
        Room.player1_id != player2_id,
    )


def try_promote_full_room(room_id) -> bool:
    """Lock a waiting room whose second seat is already taken."""
    return _transition(
        room_id,
        WAITING,
        {'status': LOCKED, 'locked_at': utcnow()},
        Room.player2_id.isnot(None),
    )


def try_activate(room_id, started_at) -> bool:
    return _transition(room_id, LOCKED, {'status': ACTIVE, 'started_at': started_at}, Room.player2_id.isnot(None))


def try_complete(room_id, ended_at) -> bool:
    return _transition(room_id, ACTIVE, {'status': COMPLETED, 'ended_at': ended_at})
