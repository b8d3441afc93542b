"""Evaluator reputation updates driven by prediction discrepancies.

Each resolved prediction moves the evaluator's running-average accuracy
metrics and its bounded 0-1000 trust score, and appends a ReputationSnapshot
so the trajectory can be inspected later.

Design notes:
- The profile is updated incrementally, never replayed from the discrepancy
  log. Running averages use mean_{n+1} = (mean_n * n + x) / (n + 1).
- All counter updates use column expressions inside ONE UPDATE statement.
  Every SET clause reads the row's pre-update values, so two discrepancies
  for the same evaluator arriving concurrently serialize on the row lock and
  both land. There is no Python-side read-modify-write on this path.
- Evaluators are never pre-registered. An insert-if-absent on the unique
  evaluator_url runs first, seeding trust_score at the configured initial
  value (500). Concurrent first sightings collapse into a single row.
- consistency_score needs a square root, which SQLite lacks, so it is derived
  from the RETURNING values and written by a second UPDATE in the same
  transaction. The row lock taken by the first UPDATE is held until commit,
  so nothing can interleave between the two.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.config import settings
from trustradar.database import dialect_insert
from trustradar.metrics import reputation_updates
from trustradar.models.evaluation import AccuracyCategory
from trustradar.models.evaluator import Evaluator, ReputationSnapshot
from trustradar.services.discrepancy import DiscrepancyResult

log = structlog.get_logger()

CHANGE_REASONS: dict[AccuracyCategory, str] = {
    AccuracyCategory.excellent: "accurate_prediction",
    AccuracyCategory.good: "good_prediction",
    AccuracyCategory.fair: "fair_prediction",
    AccuracyCategory.poor: "poor_prediction",
}


@dataclass(frozen=True)
class ReputationUpdate:
    """Post-update state of an evaluator after one discrepancy was applied."""

    evaluator_id: uuid.UUID
    trust_score: int
    score_change: int
    change_reason: str
    total_predictions: int
    avg_absolute_error: float
    grade_accuracy_rate: float
    prediction_accuracy_rate: float
    consistency_score: float


def reputation_delta(category: AccuracyCategory) -> int:
    """Trust score reward or penalty for one discrepancy of this category."""
    return {
        AccuracyCategory.excellent: settings.reputation_delta_excellent,
        AccuracyCategory.good: settings.reputation_delta_good,
        AccuracyCategory.fair: settings.reputation_delta_fair,
        AccuracyCategory.poor: settings.reputation_delta_poor,
    }[AccuracyCategory(category)]


def accuracy_from_error(absolute_error: float) -> float:
    """Turn a 0-100 score error into an accuracy rate in [0, 1]."""
    return max(0.0, min(1.0, 1.0 - absolute_error / 100))


def consistency_from_variance(error_m2: float, count: int) -> float:
    """Consistency in [0, 1]: one minus the population stddev of errors, over 100."""
    if count <= 0:
        return 0.0
    stddev = math.sqrt(max(0.0, error_m2) / count)
    return max(0.0, min(1.0, 1.0 - stddev / 100))


def _clamp_expr(expr, low, high):
    return case((expr < low, low), (expr > high, high), else_=expr)


async def ensure_evaluator(
    db: AsyncSession,
    evaluator_url: str,
    evaluator_name: Optional[str] = None,
) -> None:
    """Create the evaluator profile with default reputation if it does not exist.

    Single INSERT ... ON CONFLICT DO NOTHING, safe under concurrent first
    sightings of the same evaluator. Caller manages commit.
    """
    now = datetime.now(timezone.utc)
    stmt = (
        dialect_insert(db, Evaluator)
        .values(
            id=uuid.uuid4(),
            evaluator_url=evaluator_url,
            evaluator_name=evaluator_name,
            trust_score=settings.evaluator_initial_trust,
            registered_at=now,
            last_active_at=now,
        )
        .on_conflict_do_nothing(index_elements=["evaluator_url"])
    )
    await db.execute(stmt)


async def record_discrepancy_for_evaluator(
    db: AsyncSession,
    evaluator_url: str,
    discrepancy: DiscrepancyResult,
    confidence: float,
    evaluator_name: Optional[str] = None,
) -> ReputationUpdate:
    """Apply one discrepancy to an evaluator's reputation and log a snapshot.

    Steps, all inside the caller's transaction:
    1. Insert the profile if this is the evaluator's first sighting.
    2. One UPDATE computing every running average, the clamped trust score
       and the derived accuracy rate from the row's current values.
    3. Write the consistency score derived from the returned accumulator.
    4. Append a ReputationSnapshot with the post-update trust score.

    Args:
        db: Async SQLAlchemy session (caller manages commit).
        evaluator_url: Identity of the evaluator.
        discrepancy: Result of analyze_discrepancy() for the resolved prediction.
        confidence: The prediction's confidence level in [0, 1].
        evaluator_name: Optional display name, stored on first sighting only.

    Returns:
        ReputationUpdate describing the profile after the update.
    """
    await ensure_evaluator(db, evaluator_url, evaluator_name)

    category = AccuracyCategory(discrepancy.accuracy_category)
    delta = reputation_delta(category)
    change_reason = CHANGE_REASONS[category]

    error = float(discrepancy.absolute_error)
    grade_hit = 1.0 if discrepancy.grade_match else 0.0
    calibration = 1.0 - abs(confidence - accuracy_from_error(error))
    now = datetime.now(timezone.utc)

    n = Evaluator.total_predictions
    new_avg_error = (Evaluator.avg_absolute_error * n + error) / (n + 1)

    result = await db.execute(
        update(Evaluator)
        .where(Evaluator.evaluator_url == evaluator_url)
        .values(
            total_predictions=n + 1,
            avg_absolute_error=new_avg_error,
            grade_accuracy_rate=(Evaluator.grade_accuracy_rate * n + grade_hit) / (n + 1),
            prediction_accuracy_rate=_clamp_expr(1.0 - new_avg_error / 100.0, 0.0, 1.0),
            avg_confidence=(Evaluator.avg_confidence * n + confidence) / (n + 1),
            calibration_score=(Evaluator.calibration_score * n + calibration) / (n + 1),
            # Welford: M2 += (x - old_mean) * (x - new_mean)
            error_m2=Evaluator.error_m2
            + (error - Evaluator.avg_absolute_error) * (error - new_avg_error),
            trust_score=_clamp_expr(
                Evaluator.trust_score + delta,
                settings.evaluator_trust_min,
                settings.evaluator_trust_max,
            ),
            last_active_at=now,
        )
        .returning(
            Evaluator.id,
            Evaluator.trust_score,
            Evaluator.total_predictions,
            Evaluator.avg_absolute_error,
            Evaluator.grade_accuracy_rate,
            Evaluator.prediction_accuracy_rate,
            Evaluator.error_m2,
        )
        .execution_options(synchronize_session=False)
    )
    row = result.one()

    consistency = consistency_from_variance(row.error_m2, row.total_predictions)
    await db.execute(
        update(Evaluator)
        .where(Evaluator.id == row.id)
        .values(consistency_score=consistency)
        .execution_options(synchronize_session=False)
    )

    db.add(
        ReputationSnapshot(
            evaluator_id=row.id,
            recorded_at=now,
            trust_score=row.trust_score,
            score_change=delta,
            change_reason=change_reason,
        )
    )
    await db.flush()

    reputation_updates.labels(accuracy_category=category.value).inc()
    log.info(
        "reputation_updated",
        evaluator_url=evaluator_url,
        accuracy_category=category.value,
        score_change=delta,
        trust_score=row.trust_score,
        total_predictions=row.total_predictions,
    )

    return ReputationUpdate(
        evaluator_id=row.id,
        trust_score=row.trust_score,
        score_change=delta,
        change_reason=change_reason,
        total_predictions=row.total_predictions,
        avg_absolute_error=row.avg_absolute_error,
        grade_accuracy_rate=row.grade_accuracy_rate,
        prediction_accuracy_rate=row.prediction_accuracy_rate,
        consistency_score=consistency,
    )


async def record_evaluation_for_evaluator(
    db: AsyncSession,
    evaluator_url: str,
    evaluator_name: Optional[str] = None,
) -> None:
    """Count a submitted evaluation against the evaluator (caller commits)."""
    await ensure_evaluator(db, evaluator_url, evaluator_name)
    await db.execute(
        update(Evaluator)
        .where(Evaluator.evaluator_url == evaluator_url)
        .values(
            total_evaluations=Evaluator.total_evaluations + 1,
            last_active_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
