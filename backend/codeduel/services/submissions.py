from flask import current_app
from sqlalchemy.exc import IntegrityError

from codeduel import db
from codeduel.errors import InvalidRequest, InvalidRoomState, NotFound, Unauthorized
from codeduel.events import notify_match
from codeduel.models import Submission, SubmissionDraft, COMPLETED, utcnow
from codeduel.services import rooms as room_store
from codeduel.services.judge import LANGUAGE_IDS
from codeduel.services.matches import get_match
from codeduel.services.scheduler import schedule_evaluation

PENALTY_PER_RESUBMISSION = 2
# Retries when two submissions by the same player race for the same attempt number
ATTEMPT_RETRIES = 3


def _validate_code(code, language):
    if not code or not str(code).strip():
        raise InvalidRequest('code is required')
    if language not in LANGUAGE_IDS:
        raise InvalidRequest(f"Unsupported language: {language}")


def submit(match_id, caller, code, language) -> dict:
    """Accept a submission and hand it off for evaluation.

    Lateness and the resubmission penalty are fixed here, at submit time.
    The caller gets its answer before the judge has run.
    """
    match = get_match(match_id)
    if not match.has_player(caller):
        raise Unauthorized('Not authorized to submit for this match')
    _validate_code(code, language)
    room = room_store.get_room(match.room_id)
    if room.started_at is None:
        raise InvalidRoomState('Match has not started')
    if room.status == COMPLETED:
        raise InvalidRoomState('Match is already completed')

    now = utcnow()
    is_late = (now - room.started_at).total_seconds() > room.time_limit

    for attempt in range(ATTEMPT_RETRIES):
        prior = Submission.query.filter_by(match_id=match.id, user_id=caller).count()
        submission = Submission(
            match_id=match.id,
            user_id=caller,
            problem_id=match.problem_id,
            code=code,
            language=language,
            attempt=prior + 1,
            penalty_points=PENALTY_PER_RESUBMISSION * prior,
            is_late=is_late,
            submitted_at=now,
        )
        db.session.add(submission)
        try:
            db.session.commit()
            break
        except IntegrityError:
            db.session.rollback()
            if attempt == ATTEMPT_RETRIES - 1:
                raise
            current_app.logger.info(f"[submit-retry] match={match.id} user={caller} attempt={prior + 1} taken")

    response = {
        'submission_id': submission.id,
        'is_late': submission.is_late,
        'penalty': submission.penalty_points,
        'message': 'Submission received and being evaluated',
    }
    current_app.logger.info(
        f"[submit] match={match.id} user={caller} submission={submission.id} "
        f"attempt={submission.attempt} late={is_late} penalty={submission.penalty_points}"
    )
    notify_match(match, event='submission_received', submission_id=submission.id, user_id=caller)
    schedule_evaluation(current_app._get_current_object(), submission.id)
    return response


def get_submission(match_id, submission_id, caller) -> dict:
    match = get_match(match_id)
    submission = db.session.get(Submission, submission_id)
    if submission is None or submission.match_id != match.id:
        raise NotFound('Submission not found')
    if submission.user_id != caller:
        raise Unauthorized('You can only view your own submissions')
    return submission.to_dict(include_code=True)


def get_draft(match_id, caller):
    match = get_match(match_id)
    if not match.has_player(caller):
        raise Unauthorized()
    draft = SubmissionDraft.query.filter_by(match_id=match.id, user_id=caller).first()
    return draft.to_dict() if draft else None


def save_draft(match_id, caller, code, language) -> dict:
    """Create or overwrite the caller's in-progress code for a match."""
    match = get_match(match_id)
    if not match.has_player(caller):
        raise Unauthorized()
    if language not in LANGUAGE_IDS:
        raise InvalidRequest(f"Unsupported language: {language}")
    draft = SubmissionDraft.query.filter_by(match_id=match.id, user_id=caller).first()
    if draft is None:
        draft = SubmissionDraft(match_id=match.id, user_id=caller)
    draft.code = code or ''
    draft.language = language
    draft.last_saved_at = utcnow()
    db.session.add(draft)
    db.session.commit()
    return draft.to_dict()
