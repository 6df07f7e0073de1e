"""Deterministic match scoring.

Everything here is a pure function of its arguments so a score can be
recomputed exactly from stored submission data.
"""
import math
from datetime import datetime
from typing import Iterable, Optional

CORRECTNESS_POINTS = 70
EFFICIENCY_POINTS = 20
SPEED_POINTS = 10
RUNTIME_MS_PER_POINT = 100
MEMORY_KB_PER_POINT = 10 * 1024


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def mean(values: Iterable[Optional[float]]) -> float:
    """Arithmetic mean with missing measurements counted as zero."""
    values = [float(v or 0) for v in values]
    if not values:
        return 0.0
    return sum(values) / len(values)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def correctness_score(passed_tests: int, total_tests: int) -> float:
    if not total_tests:
        return 0.0
    return passed_tests / total_tests * CORRECTNESS_POINTS


def efficiency_score(avg_runtime_ms: float, avg_memory_kb: float) -> float:
    """Runtime and memory sub-scores (0..20 each) averaged together."""
    runtime_part = _clamp(EFFICIENCY_POINTS - avg_runtime_ms / RUNTIME_MS_PER_POINT, 0, EFFICIENCY_POINTS)
    memory_part = _clamp(EFFICIENCY_POINTS - avg_memory_kb / MEMORY_KB_PER_POINT, 0, EFFICIENCY_POINTS)
    return runtime_part / 2 + memory_part / 2


def speed_score(elapsed_ms: float, time_limit_ms: float) -> float:
    if time_limit_ms <= 0:
        return 0.0
    return max(0.0, 100 - 100 * elapsed_ms / time_limit_ms) * (SPEED_POINTS / 100)


def elapsed_ms(started_at: datetime, submitted_at: datetime) -> float:
    return (submitted_at - started_at).total_seconds() * 1000


def score_breakdown(
    passed_tests: int,
    total_tests: int,
    runtimes_ms: Iterable[Optional[float]],
    memories_kb: Iterable[Optional[float]],
    started_at: datetime,
    first_submitted_at: datetime,
    time_limit_sec: float,
    penalty_points: int,
    is_late: bool,
    clamp_negative: bool = False,
) -> dict:
    """Compute every component of a submission's score.

    ``first_submitted_at`` is the player's earliest submission in the match,
    so the speed bonus is fixed by when they first submitted rather than by
    the attempt being scored. A late submission scores exactly 0.
    """
    correctness = correctness_score(passed_tests, total_tests)
    efficiency = efficiency_score(mean(runtimes_ms), mean(memories_kb))
    speed = speed_score(elapsed_ms(started_at, first_submitted_at), time_limit_sec * 1000)
    raw = correctness + efficiency + speed - penalty_points
    if is_late:
        score = 0
    else:
        score = round_half_up(raw)
        if clamp_negative and score < 0:
            score = 0
    return {
        'correctness': correctness,
        'efficiency': efficiency,
        'speed': speed,
        'penalty': penalty_points,
        'raw': raw,
        'score': score,
    }


def compute_score(*args, **kwargs) -> int:
    return score_breakdown(*args, **kwargs)['score']
