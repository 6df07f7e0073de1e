"""Judge dispatch: drive an external Judge0-style service for one submission.

The judge is a black box with a batch submit/poll contract. A submission is
turned into one job per test case, the batch is polled until every job has a
terminal status, and the raw statuses are normalised.
"""
import time
from typing import Callable, List, Optional

import requests
from flask import current_app

from codeduel import db
from codeduel.errors import JudgeExecutionFailed, JudgeTimeout
from codeduel.models import Problem, TestCase

# Judge0 CE language ids
LANGUAGE_IDS = {
    'python': 71,
    'cpp': 54,
    'c': 50,
    'java': 62,
    'javascript': 63,
}

ACCEPTED = 'Accepted'
UNKNOWN = 'Unknown'
STATUS_DESCRIPTIONS = {
    3: ACCEPTED,
    4: 'Wrong Answer',
    5: 'Time Limit Exceeded',
    6: 'Compilation Error',
    7: 'Runtime Error',
    8: 'Memory Limit Exceeded',
}
# Ids 1 (in queue) and 2 (processing) are the only non-terminal states
FIRST_TERMINAL_STATUS = 3


def map_status(status_id) -> str:
    try:
        return STATUS_DESCRIPTIONS.get(int(status_id), UNKNOWN)
    except (TypeError, ValueError):
        return UNKNOWN


def _status_id(result: dict) -> int:
    status = result.get('status') or {}
    try:
        return int(status.get('id') if isinstance(status, dict) else status)
    except (TypeError, ValueError):
        return 0


def is_terminal(result: dict) -> bool:
    return _status_id(result) >= FIRST_TERMINAL_STATUS


class JudgeClient:
    """Batch submit/poll contract implemented by judge backends."""

    def submit_batch(self, jobs: List[dict]) -> List[str]:
        raise NotImplementedError

    def poll_batch(self, tokens: List[str]) -> List[dict]:
        raise NotImplementedError


class Judge0Client(JudgeClient):
    def __init__(self, base_url: str, api_key: str = '', host: str = '', timeout: float = 10.0, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {'Content-Type': 'application/json'}
        if api_key:
            self.headers['X-RapidAPI-Key'] = api_key
            self.headers['X-RapidAPI-Host'] = host

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise JudgeExecutionFailed(f"Judge0 unreachable: {exc}") from exc
        if not response.ok:
            raise JudgeExecutionFailed(f"Judge0 API error {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as exc:
            raise JudgeExecutionFailed('Judge0 returned a non-JSON response') from exc

    def submit_batch(self, jobs):
        data = self._request(
            'POST', '/submissions/batch',
            params={'base64_encoded': 'false'},
            json={'submissions': jobs},
        )
        tokens = [item.get('token') for item in data] if isinstance(data, list) else None
        if not tokens or not all(tokens):
            raise JudgeExecutionFailed('Judge0 did not return a token for every job')
        return tokens

    def poll_batch(self, tokens):
        data = self._request(
            'GET', '/submissions/batch',
            params={'tokens': ','.join(tokens), 'base64_encoded': 'false'},
        )
        results = data.get('submissions') if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise JudgeExecutionFailed('Judge0 returned an unexpected batch payload')
        return results


def get_judge_client(app=None) -> JudgeClient:
    """Return the app's judge client, building a Judge0 client on first use."""
    app = app or current_app._get_current_object()
    client = app.extensions.get('judge_client')
    if client is None:
        cfg = app.config
        client = Judge0Client(
            cfg.get('JUDGE0_URL', ''),
            api_key=cfg.get('JUDGE0_API_KEY', ''),
            host=cfg.get('JUDGE0_HOST', ''),
            timeout=float(cfg.get('JUDGE_REQUEST_TIMEOUT_SEC', 10)),
        )
        app.extensions['judge_client'] = client
    return client


def build_jobs(code: str, language: str, problem: Problem, test_cases: List[TestCase]) -> List[dict]:
    language_id = LANGUAGE_IDS.get(language)
    if language_id is None:
        raise JudgeExecutionFailed(f"Unsupported language: {language}")
    return [
        {
            'source_code': code,
            'language_id': language_id,
            'stdin': tc.input,
            'expected_output': tc.expected_output,
            'cpu_time_limit': problem.time_limit,
            'memory_limit': int(problem.memory_limit * 1024),  # MB -> KB
        }
        for tc in test_cases
    ]


def run_batch(
    client: JudgeClient,
    jobs: List[dict],
    poll_interval: float = 1.0,
    timeout: float = 120.0,
    sleep: Optional[Callable[[float], None]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> List[dict]:
    """Submit ``jobs`` as one batch and poll until every job is terminal."""
    sleep = sleep or time.sleep
    tokens = client.submit_batch(jobs)
    if len(tokens) != len(jobs):
        raise JudgeExecutionFailed(f"Judge0 returned {len(tokens)} tokens for {len(jobs)} jobs")
    deadline = clock() + timeout
    while True:
        sleep(poll_interval)
        results = client.poll_batch(tokens)
        if len(results) != len(tokens):
            raise JudgeExecutionFailed('Judge0 returned a partial batch')
        if all(is_terminal(r) for r in results):
            return results
        if clock() >= deadline:
            raise JudgeTimeout(f"Judge did not finish {len(tokens)} jobs within {timeout:g}s")


def _runtime_ms(raw_time) -> Optional[float]:
    # Judge0 reports CPU time in seconds, as a string
    if raw_time in (None, ''):
        return None
    try:
        return float(raw_time) * 1000
    except (TypeError, ValueError):
        return None


def normalize_results(raw_results: List[dict], test_cases: List[TestCase]) -> List[dict]:
    normalized = []
    for tc, result in zip(test_cases, raw_results):
        memory = result.get('memory')
        normalized.append({
            'test_case_id': tc.id,
            'status': map_status(_status_id(result)),
            'runtime_ms': _runtime_ms(result.get('time')),
            'memory_kb': float(memory) if memory is not None else None,
            'stdout': result.get('stdout'),
            'stderr': result.get('stderr'),
            'message': result.get('message') or result.get('compile_output'),
            'is_hidden': bool(tc.is_hidden),
        })
    return normalized


def dispatch(submission, app=None, sleep=None) -> List[dict]:
    """Evaluate ``submission`` on the judge and return normalised test results.

    Any failure of the batch as a whole raises ``JudgeExecutionFailed`` (or
    ``JudgeTimeout``); per-test failures are reported through each result's
    status.
    """
    app = app or current_app._get_current_object()
    problem = db.session.get(Problem, submission.problem_id)
    if problem is None:
        raise JudgeExecutionFailed('Problem not found')
    test_cases = (
        TestCase.query.filter_by(problem_id=problem.id)
        .order_by(TestCase.order_index.asc(), TestCase.id.asc())
        .all()
    )
    if not test_cases:
        raise JudgeExecutionFailed('No test cases found')

    jobs = build_jobs(submission.code, submission.language, problem, test_cases)
    app.logger.info(f"[judge-submit] submission={submission.id} jobs={len(jobs)}")
    raw = run_batch(
        get_judge_client(app),
        jobs,
        poll_interval=float(app.config.get('JUDGE_POLL_INTERVAL_SEC', 1)),
        timeout=float(app.config.get('JUDGE_TIMEOUT_SEC', 120)),
        sleep=sleep,
    )
    return normalize_results(raw, test_cases)
