"""Endpoint trust score calculation.

Turns a window of the most recent EndpointTest observations for one endpoint
into four sub-scores, a weighted composite, a letter grade and a usage
recommendation.

Formula (weights are configurable, these are the defaults):
- Uptime score (35%): success rate over the window
- Speed score (25%): mean latency of successful tests
- Accuracy score (30%): share of tests that returned a valid manifest sample
- Age score (10%): time since the oldest test in the window

Design notes:
- Every sub-score is a piecewise-linear function onto [0, 100]. They are
  plain functions so the monotonicity of each curve can be tested directly.
- calculate_trust_score() is pure: same window + same `now` gives the same
  snapshot. The stored TrustScore row is only a cache of its output, so
  recomputation simply overwrites it (upsert on endpoint_id).
- Records missing optional fields never raise. A test without a latency still
  counts towards uptime but is left out of the speed sample.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.config import settings
from trustradar.database import dialect_insert
from trustradar.metrics import trust_scores_calculated
from trustradar.models.endpoint import Endpoint, EndpointTest, TrustScore

log = structlog.get_logger()

SECONDS_PER_DAY = 24 * 60 * 60

# (minimum overall score, grade), checked top-down
GRADE_THRESHOLDS: list[tuple[float, str]] = [
    (98, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (60, "D"),
]

RECOMMENDATION_TRUSTED = "TRUSTED"
RECOMMENDATION_CAUTION = "CAUTION"
RECOMMENDATION_AVOID = "AVOID"


def calculate_uptime_score(uptime_percent: float) -> float:
    """Map a success rate (0-100%) onto the uptime score.

    99%+ = 95-100, 95-99% = 85-95, 90-95% = 70-85, 80-90% = 50-70,
    below 80% = 0-50.
    """
    if uptime_percent >= 99:
        return 95 + (uptime_percent - 99) * 5
    if uptime_percent >= 95:
        return 85 + ((uptime_percent - 95) / 4) * 10
    if uptime_percent >= 90:
        return 70 + ((uptime_percent - 90) / 5) * 15
    if uptime_percent >= 80:
        return 50 + ((uptime_percent - 80) / 10) * 20
    return (uptime_percent / 80) * 50


def calculate_speed_score(avg_response_time_ms: float) -> float:
    """Map a mean latency onto the speed score (faster is better).

    <200ms = 95-100, 200-500ms = 85-95, 500-1000ms = 70-85,
    1000-2000ms = 50-70, beyond that decays linearly and floors at 0.
    """
    if avg_response_time_ms < 200:
        return 95 + ((200 - avg_response_time_ms) / 200) * 5
    if avg_response_time_ms < 500:
        return 85 + ((500 - avg_response_time_ms) / 300) * 10
    if avg_response_time_ms < 1000:
        return 70 + ((1000 - avg_response_time_ms) / 500) * 15
    if avg_response_time_ms < 2000:
        return 50 + ((2000 - avg_response_time_ms) / 1000) * 20
    return max(0.0, 50 - ((avg_response_time_ms - 2000) / 2000) * 50)


def calculate_accuracy_score(valid_response_percent: float) -> float:
    """Map the valid-response rate onto the accuracy score.

    Steeper than uptime: 95%+ = 90-100, 85-95% = 75-90, 70-85% = 55-75,
    below 70% = 0-55.
    """
    if valid_response_percent >= 95:
        return 90 + ((valid_response_percent - 95) / 5) * 10
    if valid_response_percent >= 85:
        return 75 + ((valid_response_percent - 85) / 10) * 15
    if valid_response_percent >= 70:
        return 55 + ((valid_response_percent - 70) / 15) * 20
    return (valid_response_percent / 70) * 55


def calculate_age_score(age_days: float) -> float:
    """Map endpoint maturity (days since its oldest test) onto the age score.

    30+ days = 95-100 (one extra point per further 30 days, capped),
    14-30 = 80-95, 7-14 = 60-80, 3-7 = 40-60, under 3 days = 0-40.
    """
    age_days = max(0.0, age_days)
    if age_days >= 30:
        return 95 + min(5.0, (age_days - 30) / 30)
    if age_days >= 14:
        return 80 + ((age_days - 14) / 16) * 15
    if age_days >= 7:
        return 60 + ((age_days - 7) / 7) * 20
    if age_days >= 3:
        return 40 + ((age_days - 3) / 4) * 20
    return (age_days / 3) * 40


def calculate_overall_score(
    uptime_score: float,
    speed_score: float,
    accuracy_score: float,
    age_score: float,
) -> float:
    """Weighted composite of the four sub-scores, rounded to one decimal."""
    score = (
        uptime_score * settings.weight_uptime
        + speed_score * settings.weight_speed
        + accuracy_score * settings.weight_accuracy
        + age_score * settings.weight_age
    )
    return round(min(100.0, max(0.0, score)), 1)


def calculate_grade(score: float) -> str:
    """Letter grade for an overall score. Every score maps to exactly one grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def calculate_recommendation(score: float) -> str:
    if score >= 85:
        return RECOMMENDATION_TRUSTED
    if score >= 65:
        return RECOMMENDATION_CAUTION
    return RECOMMENDATION_AVOID


def calculate_uptime_percent(tests: Sequence[EndpointTest]) -> float:
    if not tests:
        return 0.0
    successful = sum(1 for t in tests if t.is_successful)
    return successful / len(tests) * 100


def calculate_avg_response_time(tests: Sequence[EndpointTest]) -> float:
    """Mean latency over successful tests that recorded one; 0.0 if none did."""
    latencies = [
        t.response_time_ms
        for t in tests
        if t.is_successful and t.response_time_ms is not None
    ]
    if not latencies:
        return 0.0
    return sum(latencies) / len(latencies)


def calculate_valid_response_percent(tests: Sequence[EndpointTest]) -> float:
    if not tests:
        return 0.0
    valid = sum(1 for t in tests if t.is_successful and t.response_sample)
    return valid / len(tests) * 100


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TrustScoreSnapshot:
    """Computed trust score for one endpoint; mirrors the trust_scores row."""

    uptime_score: float
    speed_score: float
    accuracy_score: float
    age_score: float
    overall_score: float
    grade: str
    recommendation: str
    total_tests: int
    successful_tests: int
    failed_tests: int
    avg_response_time_ms: int
    first_tested_at: Optional[datetime]
    last_calculated_at: datetime

    def as_row(self) -> dict:
        return {
            "uptime_score": self.uptime_score,
            "speed_score": self.speed_score,
            "accuracy_score": self.accuracy_score,
            "age_score": self.age_score,
            "overall_score": self.overall_score,
            "grade": self.grade,
            "recommendation": self.recommendation,
            "total_tests": self.total_tests,
            "successful_tests": self.successful_tests,
            "failed_tests": self.failed_tests,
            "avg_response_time_ms": self.avg_response_time_ms,
            "first_tested_at": self.first_tested_at,
            "last_calculated_at": self.last_calculated_at,
        }


def calculate_trust_score(
    tests: Sequence[EndpointTest],
    now: Optional[datetime] = None,
) -> TrustScoreSnapshot:
    """Compute the trust score snapshot for a window of tests.

    Args:
        tests: Most recent tests for a single endpoint, newest first. Any
            objects exposing the EndpointTest attributes work.
        now: Reference time for the age score. Defaults to the current UTC
            time; pass it explicitly for reproducible results.

    Returns:
        A TrustScoreSnapshot. An empty window yields the zero-data snapshot
        (all scores 0, grade F, AVOID) rather than an error.
    """
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)

    if not tests:
        return TrustScoreSnapshot(
            uptime_score=0.0,
            speed_score=0.0,
            accuracy_score=0.0,
            age_score=0.0,
            overall_score=0.0,
            grade="F",
            recommendation=RECOMMENDATION_AVOID,
            total_tests=0,
            successful_tests=0,
            failed_tests=0,
            avg_response_time_ms=0,
            first_tested_at=None,
            last_calculated_at=now,
        )

    avg_response_time = calculate_avg_response_time(tests)
    first_tested_at = min(as_utc(t.tested_at) for t in tests)
    age_days = (now - first_tested_at).total_seconds() / SECONDS_PER_DAY

    uptime_score = calculate_uptime_score(calculate_uptime_percent(tests))
    speed_score = calculate_speed_score(avg_response_time)
    accuracy_score = calculate_accuracy_score(calculate_valid_response_percent(tests))
    age_score = calculate_age_score(age_days)

    overall_score = calculate_overall_score(uptime_score, speed_score, accuracy_score, age_score)
    successful_tests = sum(1 for t in tests if t.is_successful)

    return TrustScoreSnapshot(
        uptime_score=round(uptime_score, 1),
        speed_score=round(speed_score, 1),
        accuracy_score=round(accuracy_score, 1),
        age_score=round(age_score, 1),
        overall_score=overall_score,
        grade=calculate_grade(overall_score),
        recommendation=calculate_recommendation(overall_score),
        total_tests=len(tests),
        successful_tests=successful_tests,
        failed_tests=len(tests) - successful_tests,
        avg_response_time_ms=round(avg_response_time),
        first_tested_at=first_tested_at,
        last_calculated_at=now,
    )


async def get_recent_tests(
    db: AsyncSession,
    endpoint_id: uuid.UUID,
    limit: Optional[int] = None,
) -> list[EndpointTest]:
    """Load the scoring window for an endpoint, newest first."""
    result = await db.execute(
        select(EndpointTest)
        .where(EndpointTest.endpoint_id == endpoint_id)
        .order_by(EndpointTest.tested_at.desc())
        .limit(limit or settings.trust_window_size)
    )
    return list(result.scalars().all())


async def save_trust_score(
    db: AsyncSession,
    endpoint_id: uuid.UUID,
    snapshot: TrustScoreSnapshot,
) -> None:
    """Insert or overwrite the cached trust score row for an endpoint.

    Single upsert statement on the endpoint_id unique constraint, so two
    workers recomputing the same endpoint just overwrite each other with
    identical data. Caller manages commit.
    """
    row = snapshot.as_row()
    stmt = (
        dialect_insert(db, TrustScore)
        .values(id=uuid.uuid4(), endpoint_id=endpoint_id, **row)
        .on_conflict_do_update(index_elements=["endpoint_id"], set_=row)
    )
    await db.execute(stmt)


async def recalculate_endpoint_trust_score(
    db: AsyncSession,
    endpoint_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> TrustScoreSnapshot:
    """Recompute and store the trust score for one endpoint (caller commits)."""
    tests = await get_recent_tests(db, endpoint_id)
    snapshot = calculate_trust_score(tests, now=now)
    await save_trust_score(db, endpoint_id, snapshot)

    trust_scores_calculated.labels(grade=snapshot.grade).inc()
    log.info(
        "trust_score_calculated",
        endpoint_id=str(endpoint_id),
        overall_score=snapshot.overall_score,
        grade=snapshot.grade,
        total_tests=snapshot.total_tests,
    )
    return snapshot


async def recalculate_all_trust_scores(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> int:
    """Recompute trust scores for every active endpoint that has been tested.

    Returns:
        Number of endpoints whose trust score was recalculated.
    """
    result = await db.execute(
        select(Endpoint.id)
        .where(Endpoint.is_active.is_(True))
        .where(select(EndpointTest.id).where(EndpointTest.endpoint_id == Endpoint.id).exists())
    )
    endpoint_ids = list(result.scalars().all())

    for endpoint_id in endpoint_ids:
        await recalculate_endpoint_trust_score(db, endpoint_id, now=now)

    log.info("trust_scores_recalculated", count=len(endpoint_ids))
    return len(endpoint_ids)
