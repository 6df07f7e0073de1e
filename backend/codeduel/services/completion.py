from sqlalchemy import or_, select

from codeduel import db
from codeduel.events import notify_match, notify_room
from codeduel.models import Match, Room, Submission, ACTIVE, utcnow
from codeduel.services import rooms as room_store


def evaluated_players(match_id) -> set:
    rows = (
        db.session.query(Submission.user_id)
        .filter(Submission.match_id == match_id, Submission.evaluated_at.isnot(None))
        .distinct()
        .all()
    )
    return {user_id for (user_id,) in rows}


def record_evaluation(app, submission) -> bool:
    """Write ``submission``'s score into its match and close the room if done.

    Once the room is completed a player's score can still be filled in if
    missing, but never overwritten. The room is closed once both frozen
    players have at least one evaluated submission. The close is a
    conditional active -> completed update, so when both players'
    evaluations land together only one caller performs it. Returns True for
    that caller.
    """
    match = db.session.get(Match, submission.match_id)
    if submission.user_id == match.player1_id:
        field = 'player1_score'
    elif submission.user_id == match.player2_id:
        field = 'player2_score'
    else:
        app.logger.warning(f"[score-skip] match={match.id} user={submission.user_id} is not a player")
        return False

    room_is_active = select(Room.id).where(Room.id == match.room_id, Room.status == ACTIVE)
    written = (
        Match.query
        .filter(Match.id == match.id, or_(Match.room_id.in_(room_is_active), getattr(Match, field).is_(None)))
        .update({field: submission.score}, synchronize_session=False)
    )
    db.session.commit()
    if written:
        app.logger.info(f"[score-write] match={match.id} {field}={submission.score}")
    else:
        app.logger.info(f"[score-frozen] match={match.id} submission={submission.id} room already completed")
    notify_match(match, app=app, event='submission_evaluated', submission_id=submission.id, user_id=submission.user_id)

    if not {match.player1_id, match.player2_id} <= evaluated_players(match.id):
        return False

    closed = room_store.try_complete(match.room_id, utcnow())
    db.session.commit()
    if not closed:
        return False
    room = room_store.get_room(match.room_id, refresh=True)
    app.logger.info(f"[match-complete] match={match.id} room={room.id} ended_at={room.ended_at.isoformat()}")
    notify_room(room, app=app, event='match_completed', match_id=match.id)
    return True
