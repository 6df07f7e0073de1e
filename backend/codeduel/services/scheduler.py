import json

from sqlalchemy import func

from codeduel import db, socketio
from codeduel.errors import JudgeExecutionFailed
from codeduel.models import Match, Room, Submission, TestCase, utcnow
from codeduel.services import judge
from codeduel.services.completion import record_evaluation
from codeduel.services.scoring import score_breakdown, mean, round_half_up


def schedule_evaluation(app, submission_id: int) -> None:
    """Hand a pending submission to the judge without blocking the caller.

    - Runs as a Socket.IO background task so the judge poll loop yields
    - Runs inline in TESTING unless ENABLE_ASYNC_EVALUATION_IN_TESTS is set
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_ASYNC_EVALUATION_IN_TESTS'):
        evaluate_submission(app, submission_id)
        return
    socketio.start_background_task(_worker, app, submission_id)
    app.logger.info(f"[eval-scheduled] submission={submission_id}")


def _worker(app, submission_id: int) -> None:
    with app.app_context():
        try:
            evaluate_submission(app, submission_id)
        finally:
            db.session.remove()


def _first_submitted_at(submission):
    return (
        db.session.query(func.min(Submission.submitted_at))
        .filter(Submission.match_id == submission.match_id, Submission.user_id == submission.user_id)
        .scalar()
    ) or submission.submitted_at


def _scored_values(app, submission, results) -> dict:
    match = db.session.get(Match, submission.match_id)
    room = db.session.get(Room, match.room_id)
    runtimes = [r['runtime_ms'] for r in results]
    memories = [r['memory_kb'] for r in results]
    passed = sum(1 for r in results if r['status'] == judge.ACCEPTED)
    breakdown = score_breakdown(
        passed_tests=passed,
        total_tests=len(results),
        runtimes_ms=runtimes,
        memories_kb=memories,
        started_at=match.started_at,
        first_submitted_at=_first_submitted_at(submission),
        time_limit_sec=room.time_limit,
        penalty_points=submission.penalty_points,
        is_late=submission.is_late,
        clamp_negative=bool(app.config.get('CLAMP_NEGATIVE_SCORES')),
    )
    app.logger.info(
        f"[score] submission={submission.id} passed={passed}/{len(results)} "
        f"correctness={breakdown['correctness']:.2f} efficiency={breakdown['efficiency']:.2f} "
        f"speed={breakdown['speed']:.2f} penalty={submission.penalty_points} late={submission.is_late} "
        f"score={breakdown['score']}"
    )
    return {
        'score': breakdown['score'],
        'passed_tests': passed,
        'total_tests': len(results),
        'runtime_ms': round_half_up(mean(runtimes)),
        'memory_kb': round_half_up(mean(memories)),
        'test_results': json.dumps(results),
        'error': None,
    }


def _failed_values(submission, exc: JudgeExecutionFailed) -> dict:
    total = TestCase.query.filter_by(problem_id=submission.problem_id).count()
    return {
        'score': 0,
        'passed_tests': 0,
        'total_tests': total,
        'runtime_ms': None,
        'memory_kb': None,
        'test_results': json.dumps([{'error': exc.message}]),
        'error': exc.kind,
    }


def evaluate_submission(app, submission_id: int):
    """Judge, score and record one submission exactly once.

    A judge failure still leaves the submission evaluated, with a zero score
    and an error marker, so the match can conclude.
    """
    submission = db.session.get(Submission, submission_id)
    if submission is None or submission.evaluated_at is not None:
        app.logger.info(f"[eval-skip] submission={submission_id} missing or already evaluated")
        return None

    try:
        results = judge.dispatch(submission, app=app, sleep=socketio.sleep)
        values = _scored_values(app, submission, results)
    except JudgeExecutionFailed as exc:
        app.logger.error(f"[eval-failed] submission={submission_id} kind={exc.kind} error={exc.message}")
        values = _failed_values(submission, exc)
    except Exception as exc:
        app.logger.exception(f"[eval-failed] submission={submission_id} unexpected error")
        # A failed query leaves the session unusable until rolled back
        db.session.rollback()
        values = _failed_values(submission, JudgeExecutionFailed(f"Evaluation error: {exc.__class__.__name__}"))

    values['evaluated_at'] = utcnow()
    written = (
        Submission.query
        .filter(Submission.id == submission_id, Submission.evaluated_at.is_(None))
        .update(values, synchronize_session=False)
    )
    db.session.commit()
    if not written:
        app.logger.info(f"[eval-skip] submission={submission_id} evaluated concurrently")
        return None

    submission = db.session.get(Submission, submission_id, populate_existing=True)
    record_evaluation(app, submission)
    return submission
