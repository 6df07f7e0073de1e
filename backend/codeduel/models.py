from codeduel import db
from datetime import datetime, timezone
import json
import string
import random

WAITING = 'waiting'
LOCKED = 'locked'
ACTIVE = 'active'
COMPLETED = 'completed'
# Rooms only ever move forward through this order
ROOM_STATUS_ORDER = (WAITING, LOCKED, ACTIVE, COMPLETED)

QUICKPLAY = 'quickplay'
CUSTOM = 'custom'
ROOM_MODES = (QUICKPLAY, CUSTOM)

DIFFICULTIES = ('easy', 'medium', 'hard')

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6


def utcnow():
    """Naive UTC timestamp, comparable with values read back from the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


def generate_room_code(length=ROOM_CODE_LENGTH):
    """Generate a short, human-shareable room code."""
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(ROOM_CODE_LENGTH), unique=True, nullable=False, index=True)
    created_by = db.Column(db.String(64), nullable=False)
    player1_id = db.Column(db.String(64), nullable=False)
    player2_id = db.Column(db.String(64), nullable=True)
    mode = db.Column(db.String(16), nullable=False, default=QUICKPLAY)
    difficulty = db.Column(db.String(16), nullable=False, default='easy')
    time_limit = db.Column(db.Integer, nullable=False, default=900)  # seconds
    status = db.Column(db.String(16), nullable=False, default=WAITING, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    locked_at = db.Column(db.DateTime, nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    def has_player(self, user_id):
        return user_id is not None and user_id in (self.player1_id, self.player2_id)

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'created_by': self.created_by,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'mode': self.mode,
            'difficulty': self.difficulty,
            'time_limit': self.time_limit,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'locked_at': _iso(self.locked_at),
            'started_at': _iso(self.started_at),
            'ended_at': _iso(self.ended_at),
        }


class Problem(db.Model):
    __tablename__ = 'problem'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    difficulty = db.Column(db.String(16), nullable=False, default='easy', index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    time_limit = db.Column(db.Float, nullable=False, default=2.0)  # seconds per test
    memory_limit = db.Column(db.Integer, nullable=False, default=256)  # MB
    starter_code_python = db.Column(db.Text, nullable=True)
    starter_code_cpp = db.Column(db.Text, nullable=True)
    editorial_solution = db.Column(db.Text, nullable=True)
    test_cases = db.relationship('TestCase', back_populates='problem', order_by='TestCase.order_index')

    def to_dict(self, include_solution=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'difficulty': self.difficulty,
            'time_limit': self.time_limit,
            'memory_limit': self.memory_limit,
            'starter_code_python': self.starter_code_python,
            'starter_code_cpp': self.starter_code_cpp,
        }
        if include_solution:
            data['editorial_solution'] = self.editorial_solution
        return data


class TestCase(db.Model):
    __tablename__ = 'test_case'
    __test__ = False  # keep pytest from collecting this model
    id = db.Column(db.Integer, primary_key=True)
    problem_id = db.Column(db.Integer, db.ForeignKey('problem.id'), nullable=False, index=True)
    input = db.Column(db.Text, nullable=False, default='')
    expected_output = db.Column(db.Text, nullable=False, default='')
    is_hidden = db.Column(db.Boolean, nullable=False, default=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    problem = db.relationship('Problem', back_populates='test_cases')


class Match(db.Model):
    __tablename__ = 'duel_match'
    id = db.Column(db.Integer, primary_key=True)
    # At most one match per room
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), unique=True, nullable=False)
    problem_id = db.Column(db.Integer, db.ForeignKey('problem.id'), nullable=False)
    player1_id = db.Column(db.String(64), nullable=False)
    player2_id = db.Column(db.String(64), nullable=False)
    player1_score = db.Column(db.Integer, nullable=True)
    player2_score = db.Column(db.Integer, nullable=True)
    started_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def has_player(self, user_id):
        return user_id is not None and user_id in (self.player1_id, self.player2_id)

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'problem_id': self.problem_id,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'started_at': _iso(self.started_at),
        }


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'user_id', 'attempt', name='uq_submission_attempt'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('duel_match.id'), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    problem_id = db.Column(db.Integer, db.ForeignKey('problem.id'), nullable=False)
    code = db.Column(db.Text, nullable=False)
    language = db.Column(db.String(16), nullable=False)
    attempt = db.Column(db.Integer, nullable=False, default=1)
    penalty_points = db.Column(db.Integer, nullable=False, default=0)
    is_late = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    evaluated_at = db.Column(db.DateTime, nullable=True)
    score = db.Column(db.Integer, nullable=True)
    passed_tests = db.Column(db.Integer, nullable=True)
    total_tests = db.Column(db.Integer, nullable=True)
    runtime_ms = db.Column(db.Integer, nullable=True)
    memory_kb = db.Column(db.Integer, nullable=True)
    test_results = db.Column(db.Text, nullable=True)  # JSON-encoded list
    error = db.Column(db.String(32), nullable=True)

    def results(self):
        try:
            return json.loads(self.test_results) if self.test_results else []
        except ValueError:
            return []

    def to_dict(self, include_code=False, reveal_hidden=False):
        results = []
        for r in self.results():
            if r.get('is_hidden') and not reveal_hidden:
                r = {k: v for k, v in r.items() if k not in ('stdout', 'stderr')}
            results.append(r)
        data = {
            'id': self.id,
            'match_id': self.match_id,
            'user_id': self.user_id,
            'problem_id': self.problem_id,
            'language': self.language,
            'attempt': self.attempt,
            'penalty_points': self.penalty_points,
            'is_late': self.is_late,
            'submitted_at': _iso(self.submitted_at),
            'evaluated_at': _iso(self.evaluated_at),
            'score': self.score,
            'passed_tests': self.passed_tests,
            'total_tests': self.total_tests,
            'runtime_ms': self.runtime_ms,
            'memory_kb': self.memory_kb,
            'test_results': results,
            'error': self.error,
        }
        if include_code:
            data['code'] = self.code
        return data


class SubmissionDraft(db.Model):
    __tablename__ = 'submission_draft'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'user_id', name='uq_draft_owner'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('duel_match.id'), nullable=False)
    user_id = db.Column(db.String(64), nullable=False)
    code = db.Column(db.Text, nullable=False, default='')
    language = db.Column(db.String(16), nullable=False)
    last_saved_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'match_id': self.match_id,
            'user_id': self.user_id,
            'code': self.code,
            'language': self.language,
            'last_saved_at': _iso(self.last_saved_at),
        }
