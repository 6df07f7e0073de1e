from typing import Optional, Tuple

from flask import current_app

from codeduel import db
from codeduel.errors import InvalidRequest, InvalidRoomState, Unauthorized
from codeduel.events import notify_room
from codeduel.models import Room, WAITING, COMPLETED, QUICKPLAY, CUSTOM, ROOM_MODES, DIFFICULTIES
from codeduel.services import rooms as room_store


def _require_caller(caller):
    if not caller:
        raise InvalidRequest('user_id is required')
    return str(caller)


def _validate_settings(mode, time_limit, difficulty):
    if mode not in ROOM_MODES:
        raise InvalidRequest(f"mode must be one of {', '.join(ROOM_MODES)}")
    if difficulty not in DIFFICULTIES:
        raise InvalidRequest(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    try:
        time_limit = int(time_limit)
    except (TypeError, ValueError):
        raise InvalidRequest('time_limit must be a number of seconds')
    max_limit = int(current_app.config.get('MAX_TIME_LIMIT_SEC', 7200))
    if not 0 < time_limit <= max_limit:
        raise InvalidRequest(f"time_limit must be between 1 and {max_limit} seconds")
    return time_limit


def create_room(mode, time_limit, difficulty, caller) -> Room:
    """Open a waiting room with the caller in the first seat."""
    caller = _require_caller(caller)
    if time_limit is None:
        time_limit = current_app.config.get('DEFAULT_TIME_LIMIT_SEC', 900)
    time_limit = _validate_settings(mode, time_limit, difficulty)
    room = room_store.insert_room(
        created_by=caller,
        player1_id=caller,
        mode=mode,
        difficulty=difficulty,
        time_limit=time_limit,
    )
    current_app.logger.info(f"[room-create] room={room.id} code={room.room_code} mode={mode} difficulty={difficulty}")
    return room


def find_quickplay_candidate(difficulty, caller) -> Optional[Room]:
    return (
        Room.query
        .filter(
            Room.status == WAITING,
            Room.mode == QUICKPLAY,
            Room.difficulty == difficulty,
            Room.created_by != caller,
            Room.player2_id.is_(None),
        )
        .order_by(Room.created_at.asc(), Room.id.asc())
        .first()
    )


def join_quickplay(difficulty, caller, time_limit=None) -> Tuple[Room, bool]:
    """Take the oldest open quick-play room at ``difficulty`` or open a new one.

    Returns ``(room, joined_existing)``. Losing the race for the candidate
    room is not an error: the caller simply gets a fresh room of its own.
    """
    caller = _require_caller(caller)
    if difficulty not in DIFFICULTIES:
        raise InvalidRequest(f"difficulty must be one of {', '.join(DIFFICULTIES)}")

    candidate = find_quickplay_candidate(difficulty, caller)
    if candidate is not None:
        won = room_store.try_lock(candidate.id, caller)
        db.session.commit()
        if won:
            room = room_store.get_room(candidate.id, refresh=True)
            current_app.logger.info(f"[room-lock] room={room.id} player2={caller} via=quickplay")
            notify_room(room, event='player_joined')
            return room, True
        current_app.logger.info(f"[quickplay-race-lost] room={candidate.id} user={caller}")

    room = create_room(QUICKPLAY, time_limit, difficulty, caller)
    return room, False


def join_room(caller, room_id=None, room_code=None) -> Room:
    """Take the second seat of a specific room, by id or shareable code."""
    caller = _require_caller(caller)
    if room_id is not None:
        room = room_store.get_room(room_id)
    elif room_code:
        room = room_store.get_room_by_code(room_code)
    else:
        raise InvalidRequest('room_id or room_code is required')

    if room.player1_id == caller:
        raise InvalidRoomState('You are already in this room')
    if room.status != WAITING or room.player2_id is not None:
        raise InvalidRoomState('This room is no longer open')

    won = room_store.try_lock(room.id, caller)
    db.session.commit()
    if not won:
        raise InvalidRoomState('This room is no longer open')
    room = room_store.get_room(room.id, refresh=True)
    current_app.logger.info(f"[room-lock] room={room.id} player2={caller} via=join")
    notify_room(room, event='player_joined')
    return room


def rematch(room_id, caller) -> Tuple[Room, bool]:
    """Open a fresh room with the settings of a finished one.

    Returns ``(room, joined_existing)`` like ``join_quickplay``.
    """
    caller = _require_caller(caller)
    room = room_store.get_room(room_id)
    if not room.has_player(caller):
        raise Unauthorized()
    if room.status != COMPLETED:
        raise InvalidRoomState('A rematch can only be requested after the match is completed')
    if room.mode == QUICKPLAY:
        new_room, joined = join_quickplay(room.difficulty, caller, time_limit=room.time_limit)
    else:
        new_room, joined = create_room(CUSTOM, room.time_limit, room.difficulty, caller), False
    notify_room(room, event='rematch', rematch_room_id=new_room.id)
    return new_room, joined
