"""Evaluator reputation read endpoints.

GET /api/v1/evaluators/{evaluator_url}/reputation -- profile, stats, history
GET /api/v1/leaderboard                            -- evaluators ranked by trust
"""

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import func, select

from trustradar.dependencies import DbSession
from trustradar.models.evaluation import AccuracyCategory, Discrepancy
from trustradar.models.evaluator import Evaluator, ReputationSnapshot
from trustradar.schemas.reputation import (
    EvaluatorProfile,
    EvaluatorReputationResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    PredictionStats,
    ReputationSnapshotItem,
)

router = APIRouter(prefix="/api/v1", tags=["reputation"])

HISTORY_LIMIT = 20


@router.get(
    "/evaluators/{evaluator_url:path}/reputation",
    response_model=EvaluatorReputationResponse,
)
async def get_evaluator_reputation(
    evaluator_url: str,
    db: DbSession,
) -> EvaluatorReputationResponse:
    """Get an evaluator's profile, prediction breakdown and trust history.

    The evaluator URL is taken verbatim from the path, so it may contain
    slashes. History is the latest 20 snapshots, newest first.
    """
    result = await db.execute(
        select(Evaluator).where(Evaluator.evaluator_url == evaluator_url)
    )
    evaluator = result.scalar_one_or_none()
    if evaluator is None:
        raise HTTPException(status_code=404, detail="Evaluator not found")

    counts_result = await db.execute(
        select(Discrepancy.accuracy_category, func.count())
        .where(Discrepancy.evaluator_url == evaluator_url)
        .group_by(Discrepancy.accuracy_category)
    )
    counts = {category: count for category, count in counts_result.all()}
    total = sum(counts.values())

    over_result = await db.execute(
        select(func.count())
        .select_from(Discrepancy)
        .where(Discrepancy.evaluator_url == evaluator_url)
        .where(Discrepancy.overestimated.is_(True))
    )
    overestimated = over_result.scalar_one()

    history_result = await db.execute(
        select(ReputationSnapshot)
        .where(ReputationSnapshot.evaluator_id == evaluator.id)
        .order_by(ReputationSnapshot.recorded_at.desc())
        .limit(HISTORY_LIMIT)
    )

    return EvaluatorReputationResponse(
        evaluator=EvaluatorProfile.model_validate(evaluator),
        prediction_stats=PredictionStats(
            total_predictions=total,
            excellent_predictions=counts.get(AccuracyCategory.excellent.value, 0),
            good_predictions=counts.get(AccuracyCategory.good.value, 0),
            fair_predictions=counts.get(AccuracyCategory.fair.value, 0),
            poor_predictions=counts.get(AccuracyCategory.poor.value, 0),
            overestimation_rate=overestimated / total if total else 0.0,
        ),
        trust_score_history=[
            ReputationSnapshotItem.model_validate(snapshot)
            for snapshot in history_result.scalars().all()
        ],
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    db: DbSession,
    limit: int = Query(10, ge=1, le=100),
    min_predictions: int = Query(0, ge=0),
) -> LeaderboardResponse:
    """Rank evaluators by trust score, highest first (ties by accuracy)."""
    result = await db.execute(
        select(Evaluator)
        .where(Evaluator.total_predictions >= min_predictions)
        .order_by(
            Evaluator.trust_score.desc(),
            Evaluator.prediction_accuracy_rate.desc(),
            Evaluator.evaluator_url,
        )
        .limit(limit)
    )
    return LeaderboardResponse(
        evaluators=[
            LeaderboardEntry(
                rank=index + 1,
                **EvaluatorProfile.model_validate(evaluator).model_dump(),
            )
            for index, evaluator in enumerate(result.scalars().all())
        ]
    )
