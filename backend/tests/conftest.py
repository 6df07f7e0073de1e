import os
import sys
import pytest

# Ensure the backend root (containing the `codeduel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from codeduel import create_app, db, socketio
from codeduel.services.judge import JudgeClient


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JUDGE0_URL = 'http://judge.test'
    JUDGE_POLL_INTERVAL_SEC = 0
    JUDGE_TIMEOUT_SEC = 5
    ROOM_CODE_ATTEMPTS = 5
    DEFAULT_TIME_LIMIT_SEC = 900
    MAX_TIME_LIMIT_SEC = 7200
    CLAMP_NEGATIVE_SCORES = False


class FakeJudge(JudgeClient):
    """In-memory judge: every job finishes with the queued outcome.

    ``outcomes`` is a list of per-test result dicts used for each batch; a
    batch can also be made to fail or to stay "processing" for a number of
    polls.
    """

    def __init__(self):
        self.outcomes = None
        self.fail_with = None
        self.pending_polls = 0
        self.batches = []
        self.polls = 0

    def submit_batch(self, jobs):
        if self.fail_with:
            raise self.fail_with
        self.batches.append(jobs)
        start = sum(len(b) for b in self.batches[:-1])
        return [f"tok-{start + i}" for i in range(len(jobs))]

    def poll_batch(self, tokens):
        self.polls += 1
        if self.pending_polls > 0:
            self.pending_polls -= 1
            return [{'status': {'id': 2, 'description': 'Processing'}} for _ in tokens]
        outcomes = self.outcomes or [accepted()] * len(tokens)
        return [dict(outcomes[i % len(outcomes)]) for i in range(len(tokens))]


def accepted(time='0.05', memory=5120):
    return {'status': {'id': 3, 'description': 'Accepted'}, 'time': time, 'memory': memory,
            'stdout': 'ok\n', 'stderr': None, 'message': None}


def wrong_answer(time='0.05', memory=5120):
    return {'status': {'id': 4, 'description': 'Wrong Answer'}, 'time': time, 'memory': memory,
            'stdout': 'nope\n', 'stderr': None, 'message': None}


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import codeduel.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def fake_judge(flask_app):
    judge = FakeJudge()
    flask_app.extensions['judge_client'] = judge
    return judge


def seed_problem():
    """One active easy problem with ten test cases, the last one hidden."""
    from codeduel.models import Problem, TestCase
    p = Problem(
        title='Sum of Two',
        description='Print a + b.',
        difficulty='easy',
        time_limit=2.0,
        memory_limit=128,
        editorial_solution='print(sum(map(int, input().split())))',
    )
    db.session.add(p)
    db.session.flush()
    for i in range(10):
        db.session.add(TestCase(problem_id=p.id, input=f"{i} {i}\n", expected_output=f"{2 * i}\n",
                                is_hidden=(i == 9), order_index=i))
    db.session.commit()
    return p


@pytest.fixture()
def problem(flask_app):
    return seed_problem()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def open_match(client, p1='alice', p2='bob', time_limit=900, difficulty='easy'):
    """Create a custom room, seat both players and start the match."""
    room = client.post('/api/rooms', json={'user_id': p1, 'mode': 'custom', 'time_limit': time_limit,
                                          'difficulty': difficulty}).get_json()['room']
    client.post('/api/rooms/join', json={'user_id': p2, 'room_id': room['id']})
    res = client.post(f"/api/rooms/{room['id']}/start", json={'user_id': p1})
    assert res.status_code == 200, res.get_json()
    return res.get_json()


