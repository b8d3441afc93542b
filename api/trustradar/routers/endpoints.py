"""Endpoint registration, test intake and on-demand checks.

POST /api/v1/endpoints              -- register (or reactivate) an endpoint
POST /api/v1/endpoints/{id}/tests   -- append one test observation
POST /api/v1/verify-live            -- check an endpoint now and rescore it
"""

import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from trustradar.database import dialect_insert
from trustradar.dependencies import DbSession, HttpClient
from trustradar.models.endpoint import Endpoint, EndpointTest
from trustradar.schemas.endpoint import (
    EndpointCreate,
    EndpointResponse,
    EndpointTestCreate,
    EndpointTestResponse,
    LiveTestResult,
    LiveTrustScore,
    VerifyLiveRequest,
    VerifyLiveResponse,
)
from trustradar.services.prober import mark_endpoint_checked, probe_endpoint
from trustradar.services.trust_score import as_utc, recalculate_endpoint_trust_score

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["endpoints"])

UNKNOWN_ENDPOINT_NAME = "Unknown"


@router.post("/endpoints", response_model=EndpointResponse, status_code=201)
async def register_endpoint(body: EndpointCreate, db: DbSession) -> EndpointResponse:
    """Register an endpoint to monitor.

    Registration is idempotent on the URL: a known endpoint is reactivated and
    its last_seen_at refreshed, name and description are left untouched.
    """
    now = datetime.now(timezone.utc)
    stmt = (
        dialect_insert(db, Endpoint)
        .values(
            id=uuid.uuid4(),
            url=body.url,
            name=body.name,
            description=body.description,
            category=body.category,
            is_active=True,
            discovered_at=now,
            last_seen_at=now,
        )
        .on_conflict_do_update(
            index_elements=["url"],
            set_={"is_active": True, "last_seen_at": now},
        )
    )
    await db.execute(stmt)
    await db.commit()

    result = await db.execute(select(Endpoint).where(Endpoint.url == body.url))
    endpoint = result.scalar_one()
    log.info("endpoint_registered", endpoint_id=str(endpoint.id), url=endpoint.url)
    return EndpointResponse.model_validate(endpoint)


@router.post(
    "/endpoints/{endpoint_id}/tests",
    response_model=EndpointTestResponse,
    status_code=201,
)
async def record_endpoint_test(
    endpoint_id: uuid.UUID,
    body: EndpointTestCreate,
    db: DbSession,
) -> EndpointTestResponse:
    """Append a test observation and refresh the endpoint's cached trust score.

    Test rows are immutable; the score recompute reads the latest window in
    the same transaction so the cache never lags the stored observations.
    Backfilled observations are stored but leave last_checked_at alone when
    a newer check is already recorded.
    """
    endpoint = await db.get(Endpoint, endpoint_id)
    if endpoint is None:
        raise HTTPException(status_code=404, detail="Endpoint not found")

    tested_at = as_utc(body.tested_at) if body.tested_at else datetime.now(timezone.utc)
    test = EndpointTest(
        endpoint_id=endpoint.id,
        tested_at=tested_at,
        is_successful=body.is_successful,
        status_code=body.status_code,
        response_time_ms=body.response_time_ms,
        error_message=body.error_message,
        response_sample=body.response_sample,
    )
    db.add(test)
    await db.flush()
    await mark_endpoint_checked(db, endpoint.id, tested_at)

    await recalculate_endpoint_trust_score(db, endpoint.id)
    await db.commit()

    return EndpointTestResponse.model_validate(test)


@router.post("/verify-live", response_model=VerifyLiveResponse)
async def verify_live(
    body: VerifyLiveRequest,
    db: DbSession,
    http_client: HttpClient,
) -> VerifyLiveResponse:
    """Check an endpoint right now, store the result and return its new score.

    Unknown URLs are registered on the spot under the name "Unknown". A known
    endpoint keeps its name and active flag.
    """
    now = datetime.now(timezone.utc)
    await db.execute(
        dialect_insert(db, Endpoint)
        .values(
            id=uuid.uuid4(),
            url=body.endpoint_url,
            name=UNKNOWN_ENDPOINT_NAME,
            is_active=True,
            discovered_at=now,
            last_seen_at=now,
        )
        .on_conflict_do_nothing(index_elements=["url"])
    )
    result = await db.execute(select(Endpoint).where(Endpoint.url == body.endpoint_url))
    endpoint = result.scalar_one()

    test = await probe_endpoint(endpoint, http_client)
    db.add(test)
    await db.flush()
    await mark_endpoint_checked(db, endpoint.id, test.tested_at)

    snapshot = await recalculate_endpoint_trust_score(db, endpoint.id)
    await db.commit()

    log.info(
        "endpoint_verified_live",
        endpoint_id=str(endpoint.id),
        success=test.is_successful,
        overall_score=snapshot.overall_score,
    )
    return VerifyLiveResponse(
        endpoint=endpoint.url,
        endpoint_id=endpoint.id,
        test_result=LiveTestResult(
            success=test.is_successful,
            status_code=test.status_code,
            response_time_ms=test.response_time_ms,
            error=test.error_message,
        ),
        trust_score=LiveTrustScore(
            overall=snapshot.overall_score,
            grade=snapshot.grade,
            recommendation=snapshot.recommendation,
        ),
        tested_at=test.tested_at,
    )
