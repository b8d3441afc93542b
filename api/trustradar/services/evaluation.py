"""Resolution of predictions once the matching evaluation arrives.

An evaluator first files a Prediction for a target, then tests the target and
submits an Evaluation. resolve_evaluation() pairs the two, stores the
Discrepancy and feeds it to the reputation engine, all in the caller's
transaction so an intake either lands completely or not at all.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.models.evaluation import Discrepancy, Evaluation, Prediction
from trustradar.services.discrepancy import DiscrepancyResult, analyze_discrepancy
from trustradar.services.reputation import (
    ReputationUpdate,
    record_discrepancy_for_evaluator,
    record_evaluation_for_evaluator,
)

log = structlog.get_logger()


class PredictionNotFoundError(LookupError):
    """Raised when an explicit prediction_id does not match the evaluation."""


@dataclass(frozen=True)
class ResolvedEvaluation:
    discrepancy_id: uuid.UUID
    prediction_id: uuid.UUID
    result: DiscrepancyResult
    reputation: ReputationUpdate


async def find_prediction_for_evaluation(
    db: AsyncSession,
    evaluation: Evaluation,
    prediction_id: Optional[uuid.UUID] = None,
) -> Optional[Prediction]:
    """Locate the unresolved prediction an evaluation answers.

    With an explicit prediction_id the prediction must belong to the same
    evaluator and target and must not be resolved yet. Without one, the most
    recent unresolved prediction of that evaluator for that target is used.

    Raises:
        PredictionNotFoundError: prediction_id was given but does not match.
    """
    query = (
        select(Prediction)
        .where(Prediction.evaluator_url == evaluation.evaluator_url)
        .where(Prediction.target_url == evaluation.target_url)
        .where(Prediction.evaluation_id.is_(None))
    )
    if prediction_id is not None:
        result = await db.execute(query.where(Prediction.id == prediction_id))
        prediction = result.scalar_one_or_none()
        if prediction is None:
            raise PredictionNotFoundError(
                f"No unresolved prediction {prediction_id} for this evaluator and target"
            )
        return prediction

    result = await db.execute(
        query.order_by(Prediction.predicted_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_evaluation(
    db: AsyncSession,
    evaluation: Evaluation,
    prediction_id: Optional[uuid.UUID] = None,
    evaluator_name: Optional[str] = None,
) -> Optional[ResolvedEvaluation]:
    """Count the evaluation and, if it answers a prediction, score the prediction.

    The evaluation must already be flushed (it needs an id). Caller commits.

    Returns:
        ResolvedEvaluation when a prediction was resolved, otherwise None.
    """
    await record_evaluation_for_evaluator(db, evaluation.evaluator_url, evaluator_name)

    prediction = await find_prediction_for_evaluation(db, evaluation, prediction_id)
    if prediction is None:
        log.info(
            "evaluation_without_prediction",
            evaluator_url=evaluation.evaluator_url,
            target_url=evaluation.target_url,
        )
        return None

    analysis = analyze_discrepancy(
        predicted_score=prediction.predicted_score,
        predicted_grade=prediction.predicted_grade,
        actual_score=evaluation.score,
        actual_grade=evaluation.grade,
    )

    # Claim the prediction with a guarded UPDATE so a concurrent intake for
    # the same prediction cannot resolve it twice
    claimed = await db.execute(
        update(Prediction)
        .where(Prediction.id == prediction.id)
        .where(Prediction.evaluation_id.is_(None))
        .values(evaluation_id=evaluation.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        log.info("prediction_already_resolved", prediction_id=str(prediction.id))
        return None

    discrepancy = Discrepancy(
        prediction_id=prediction.id,
        evaluation_id=evaluation.id,
        evaluator_url=evaluation.evaluator_url,
        target_url=evaluation.target_url,
        predicted_score=analysis.predicted_score,
        actual_score=analysis.actual_score,
        score_difference=analysis.score_difference,
        absolute_error=analysis.absolute_error,
        predicted_grade=analysis.predicted_grade,
        actual_grade=analysis.actual_grade,
        grade_match=analysis.grade_match,
        confidence_was=prediction.confidence_level,
        accuracy_category=analysis.accuracy_category.value,
        overestimated=analysis.overestimated,
    )
    db.add(discrepancy)
    await db.flush()

    reputation = await record_discrepancy_for_evaluator(
        db,
        evaluation.evaluator_url,
        analysis,
        confidence=prediction.confidence_level,
        evaluator_name=evaluator_name,
    )

    log.info(
        "prediction_resolved",
        prediction_id=str(prediction.id),
        evaluation_id=str(evaluation.id),
        absolute_error=analysis.absolute_error,
        accuracy_category=analysis.accuracy_category.value,
    )
    return ResolvedEvaluation(
        discrepancy_id=discrepancy.id,
        prediction_id=prediction.id,
        result=analysis,
        reputation=reputation,
    )
