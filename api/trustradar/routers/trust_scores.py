"""Trust score lookup, comparison and recalculation.

POST /api/v1/trust-score                        -- cached score for one endpoint URL
POST /api/v1/compare                            -- side-by-side comparison of 2-5 URLs
POST /api/v1/internal/trust-scores/recalculate  -- recompute every score now
"""

from typing import Optional

from fastapi import APIRouter, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.dependencies import DbSession
from trustradar.models.endpoint import Endpoint, TrustScore
from trustradar.schemas.endpoint import (
    CompareRequest,
    CompareResponse,
    ComparisonItem,
    ComparisonWinner,
    RecalculateResponse,
    TrustScoreBreakdown,
    TrustScoreRequest,
    TrustScoreResponse,
    TrustScoreStats,
)
from trustradar.services.trust_score import RECOMMENDATION_AVOID, recalculate_all_trust_scores

router = APIRouter(prefix="/api/v1", tags=["trust-scores"])


async def _load_scored_endpoint(
    db: AsyncSession, url: str
) -> tuple[Optional[Endpoint], Optional[TrustScore]]:
    result = await db.execute(
        select(Endpoint, TrustScore)
        .outerjoin(TrustScore, TrustScore.endpoint_id == Endpoint.id)
        .where(Endpoint.url == url)
    )
    row = result.first()
    if row is None:
        return None, None
    return row[0], row[1]


def _uptime_percentage(score: TrustScore) -> float:
    if score.total_tests == 0:
        return 0.0
    return round(score.successful_tests / score.total_tests * 100, 1)


@router.post("/trust-score", response_model=TrustScoreResponse)
async def get_trust_score(body: TrustScoreRequest, db: DbSession) -> TrustScoreResponse:
    """Return the cached trust score for an endpoint URL.

    404 when the URL is unknown or has never been scored.
    """
    endpoint, score = await _load_scored_endpoint(db, body.endpoint_url)
    if endpoint is None:
        raise HTTPException(status_code=404, detail="Endpoint not found")
    if score is None:
        raise HTTPException(status_code=404, detail="Endpoint has not been scored yet")

    return TrustScoreResponse(
        endpoint=endpoint.url,
        trust_score=TrustScoreBreakdown(
            overall=score.overall_score,
            uptime=score.uptime_score,
            speed=score.speed_score,
            accuracy=score.accuracy_score,
            age=score.age_score,
            grade=score.grade,
            recommendation=score.recommendation,
        ),
        stats=TrustScoreStats(
            total_tests=score.total_tests,
            successful_tests=score.successful_tests,
            failed_tests=score.failed_tests,
            avg_response_time_ms=score.avg_response_time_ms,
            first_tested_at=score.first_tested_at,
        ),
        last_updated=score.last_calculated_at,
    )


@router.post("/compare", response_model=CompareResponse)
async def compare_endpoints(body: CompareRequest, db: DbSession) -> CompareResponse:
    """Compare endpoints by trust score.

    Unknown or unscored URLs still appear, with a zero score and AVOID, so the
    comparison always has one row per requested URL. The winner is the first
    row with the highest overall score.
    """
    comparison = []
    for url in body.endpoint_urls:
        endpoint, score = await _load_scored_endpoint(db, url)
        if score is None:
            comparison.append(
                ComparisonItem(
                    url=url,
                    name=endpoint.name if endpoint is not None else "Not Found",
                    trust_score=0.0,
                    grade="F",
                    recommendation=RECOMMENDATION_AVOID,
                    avg_response_time_ms=0,
                    uptime_percentage=0.0,
                )
            )
            continue
        comparison.append(
            ComparisonItem(
                url=url,
                name=endpoint.name,
                trust_score=score.overall_score,
                grade=score.grade,
                recommendation=score.recommendation,
                avg_response_time_ms=score.avg_response_time_ms,
                uptime_percentage=_uptime_percentage(score),
            )
        )

    winner = comparison[0]
    for item in comparison[1:]:
        if item.trust_score > winner.trust_score:
            winner = item

    return CompareResponse(
        comparison=comparison,
        winner=ComparisonWinner(
            url=winner.url,
            reason=(
                f"Highest trust score ({winner.trust_score}) "
                f"with {winner.uptime_percentage}% uptime"
            ),
        ),
    )


@router.post("/internal/trust-scores/recalculate", response_model=RecalculateResponse)
async def recalculate_trust_scores(db: DbSession) -> RecalculateResponse:
    """Recompute and store the trust score of every active, tested endpoint."""
    count = await recalculate_all_trust_scores(db)
    await db.commit()
    return RecalculateResponse(recalculated=count)
