"""Prediction and evaluation intake.

POST /api/v1/predictions  -- file a prediction before testing a target
POST /api/v1/evaluations  -- report the realized outcome; resolves the
                             matching prediction and updates reputation
GET  /api/v1/evaluations  -- list stored evaluations, newest first
"""

import math
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import select

from trustradar.dependencies import DbSession
from trustradar.models.evaluation import Evaluation, Prediction
from trustradar.schemas.evaluation import (
    DiscrepancyResponse,
    EvaluationAccepted,
    EvaluationCreate,
    EvaluationItem,
    EvaluationListResponse,
    EvaluationSummary,
    LearningInsightsResponse,
    PredictionCreate,
    PredictionResponse,
)
from trustradar.services.discrepancy import DiscrepancyInputError, learning_insights
from trustradar.services.evaluation import PredictionNotFoundError, resolve_evaluation
from trustradar.services.reputation import ensure_evaluator

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["evaluations"])


@router.post("/predictions", response_model=PredictionResponse, status_code=201)
async def submit_prediction(body: PredictionCreate, db: DbSession) -> PredictionResponse:
    """Store a prediction. The evaluator profile is created on first sighting."""
    await ensure_evaluator(db, body.evaluator_url, body.evaluator_name)

    prediction = Prediction(
        evaluator_url=body.evaluator_url,
        target_url=body.target_url,
        predicted_score=body.predicted_score,
        predicted_grade=body.predicted_grade,
        confidence_level=body.confidence_level,
        basis=body.basis.value,
        predicted_at=datetime.now(timezone.utc),
    )
    db.add(prediction)
    await db.commit()

    log.info(
        "prediction_submitted",
        prediction_id=str(prediction.id),
        evaluator_url=prediction.evaluator_url,
        target_url=prediction.target_url,
    )
    return PredictionResponse.model_validate(prediction)


@router.post("/evaluations", response_model=EvaluationAccepted, status_code=201)
async def submit_evaluation(body: EvaluationCreate, db: DbSession) -> EvaluationAccepted:
    """Store an evaluation and resolve the prediction it answers.

    The evaluation, discrepancy, prediction link and reputation update commit
    together. When no unresolved prediction matches, only the evaluation is
    stored and the response carries no discrepancy.
    """
    evaluation = Evaluation(
        evaluator_url=body.evaluator_url,
        target_url=body.target_url,
        score=body.score,
        grade=body.grade,
        recommendation=body.recommendation,
        test_level=body.test_level,
        total_tests=body.total_tests,
        evaluated_at=datetime.now(timezone.utc),
    )
    db.add(evaluation)
    await db.flush()

    try:
        resolved = await resolve_evaluation(
            db,
            evaluation,
            prediction_id=body.prediction_id,
            evaluator_name=body.evaluator_name,
        )
    except PredictionNotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except DiscrepancyInputError as e:
        await db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    await db.commit()

    if resolved is None:
        return EvaluationAccepted(
            evaluation_id=evaluation.id,
            message="Evaluation stored; no open prediction to resolve",
        )

    result = resolved.result
    insights = learning_insights(result.accuracy_category)
    return EvaluationAccepted(
        evaluation_id=evaluation.id,
        message="Evaluation stored and prediction resolved",
        discrepancy=DiscrepancyResponse(
            id=resolved.discrepancy_id,
            prediction_id=resolved.prediction_id,
            predicted_score=result.predicted_score,
            actual_score=result.actual_score,
            score_difference=result.score_difference,
            absolute_error=result.absolute_error,
            grade_match=result.grade_match,
            accuracy_category=result.accuracy_category,
            overestimated=result.overestimated,
        ),
        learning_insights=LearningInsightsResponse(
            evaluator_performance=insights.evaluator_performance,
            suggested_adjustments=list(insights.suggested_adjustments),
        ),
        evaluator_trust_score=resolved.reputation.trust_score,
    )


@router.get("/evaluations", response_model=EvaluationListResponse)
async def list_evaluations(
    db: DbSession,
    target_url: Optional[str] = None,
    evaluator_url: Optional[str] = None,
    min_score: Optional[int] = Query(None, ge=0, le=100),
    limit: int = Query(20, ge=1, le=100),
) -> EvaluationListResponse:
    """Query stored evaluations by target, evaluator and minimum score."""
    query = select(Evaluation)
    if target_url is not None:
        query = query.where(Evaluation.target_url == target_url)
    if evaluator_url is not None:
        query = query.where(Evaluation.evaluator_url == evaluator_url)
    if min_score is not None:
        query = query.where(Evaluation.score >= min_score)
    query = query.order_by(Evaluation.evaluated_at.desc(), Evaluation.id).limit(limit)

    result = await db.execute(query)
    evaluations = [EvaluationItem.model_validate(row) for row in result.scalars().all()]

    summary = None
    if target_url is not None and evaluations:
        summary = EvaluationSummary(
            # half rounds up
            avg_score=math.floor(sum(e.score for e in evaluations) / len(evaluations) + 0.5),
            total_evaluations=len(evaluations),
            latest_grade=evaluations[0].grade,
        )
    return EvaluationListResponse(evaluations=evaluations, summary=summary)
