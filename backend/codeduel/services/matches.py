import random

from flask import current_app
from sqlalchemy.exc import IntegrityError

from codeduel import db
from codeduel.errors import InvalidRoomState, NoProblemsAvailable, NotFound, Unauthorized
from codeduel.events import notify_room
from codeduel.models import Match, Problem, Submission, WAITING, LOCKED, ACTIVE, COMPLETED, utcnow
from codeduel.services import rooms as room_store


def get_match(match_id) -> Match:
    match = db.session.get(Match, match_id)
    if not match:
        raise NotFound('Match not found')
    return match


def _payload(match, room, problem, include_solution=False) -> dict:
    return {
        'match': match.to_dict(),
        'room': room.to_dict(),
        'problem': problem.to_dict(include_solution=include_solution) if problem else None,
        'start_time': match.started_at.isoformat() if match.started_at else None,
        'time_limit': room.time_limit,
    }


def _existing_start(room) -> dict:
    match = Match.query.filter_by(room_id=room.id).first()
    if not match:
        raise InvalidRoomState('Room has already started')
    room = room_store.get_room(room.id, refresh=True)
    return _payload(match, room, db.session.get(Problem, match.problem_id))


def pick_problem(difficulty) -> Problem:
    problems = Problem.query.filter_by(difficulty=difficulty, is_active=True).all()
    if not problems:
        raise NoProblemsAvailable()
    return random.choice(problems)


def start_match(room_id, caller) -> dict:
    """Promote a full room to an active match.

    Retrying against a room that is already active returns its match instead
    of creating another one; the unique ``room_id`` on ``Match`` backs this
    up when two starts race.
    """
    room = room_store.get_room(room_id)
    if not room.has_player(caller):
        raise Unauthorized('Not authorized to start this match')

    if room.status == ACTIVE:
        return _existing_start(room)
    if room.status == WAITING and room.player2_id:
        if room_store.try_promote_full_room(room.id):
            current_app.logger.info(f"[room-lock] room={room.id} via=auto-promote")
        db.session.commit()
        room = room_store.get_room(room.id, refresh=True)
    if room.status == ACTIVE:
        return _existing_start(room)
    if room.status != LOCKED:
        raise InvalidRoomState('Room is not ready to start')

    problem = pick_problem(room.difficulty)
    now = utcnow()
    match = Match(
        room_id=room.id,
        problem_id=problem.id,
        player1_id=room.player1_id,
        player2_id=room.player2_id,
        started_at=now,
    )
    db.session.add(match)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(f"[match-start-race] room={room.id} match already exists")
        return _existing_start(room)

    if not room_store.try_activate(room.id, now):
        db.session.rollback()
        current_app.logger.info(f"[match-start-race] room={room.id} activation lost")
        return _existing_start(room_store.get_room(room.id, refresh=True))
    db.session.commit()

    room = room_store.get_room(room.id, refresh=True)
    current_app.logger.info(f"[match-start] room={room.id} match={match.id} problem={problem.id}")
    notify_room(room, event='match_started', match_id=match.id)
    return _payload(match, room, problem)


def get_match_state(match_id) -> dict:
    match = get_match(match_id)
    room = room_store.get_room(match.room_id)
    return _payload(match, room, db.session.get(Problem, match.problem_id))


def get_results(match_id) -> dict:
    """Match summary with every submission, newest first.

    The editorial is only revealed once the room is completed.
    """
    match = get_match(match_id)
    room = room_store.get_room(match.room_id)
    finished = room.status == COMPLETED
    submissions = (
        Submission.query.filter_by(match_id=match.id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )
    payload = _payload(match, room, db.session.get(Problem, match.problem_id), include_solution=finished)
    payload['submissions'] = [s.to_dict(include_code=finished, reveal_hidden=finished) for s in submissions]
    return payload
