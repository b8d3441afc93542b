"""Pydantic schemas for endpoint registration, test intake and trust scores."""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional

import httpx
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

Recommendation = Literal["TRUSTED", "CAUTION", "AVOID"]


def _check_endpoint_url(value: str) -> str:
    """Reject URLs httpx would refuse to send; the input string is returned unchanged."""
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ValueError(f"invalid URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError("URL must be an absolute http or https URL")
    return value


EndpointUrl = Annotated[
    str, Field(min_length=1, max_length=2048), AfterValidator(_check_endpoint_url)
]


class EndpointCreate(BaseModel):
    """Request schema for registering an endpoint to monitor."""

    url: EndpointUrl
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)


class EndpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    url: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool
    discovered_at: datetime
    last_seen_at: datetime
    last_checked_at: Optional[datetime] = None


class EndpointTestCreate(BaseModel):
    """One observation reported by an external test runner.

    Latency, status code and sample are optional; a test without a latency
    still counts towards uptime.
    """

    is_successful: bool
    tested_at: Optional[datetime] = None  # defaults to now
    status_code: Optional[int] = Field(None, ge=0, le=999)
    response_time_ms: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = Field(None, max_length=2000)
    response_sample: Optional[str] = Field(None, max_length=4000)


class EndpointTestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    endpoint_id: uuid.UUID
    tested_at: datetime
    is_successful: bool
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None


class TrustScoreRequest(BaseModel):
    endpoint_url: str = Field(min_length=1, max_length=2048)


class TrustScoreBreakdown(BaseModel):
    overall: float
    uptime: float
    speed: float
    accuracy: float
    age: float
    grade: str
    recommendation: Recommendation


class TrustScoreStats(BaseModel):
    total_tests: int
    successful_tests: int
    failed_tests: int
    avg_response_time_ms: int
    first_tested_at: Optional[datetime] = None


class TrustScoreResponse(BaseModel):
    endpoint: str
    trust_score: TrustScoreBreakdown
    stats: TrustScoreStats
    last_updated: datetime


class CompareRequest(BaseModel):
    endpoint_urls: list[str] = Field(min_length=2, max_length=5)


class ComparisonItem(BaseModel):
    url: str
    name: str
    trust_score: float
    grade: str
    recommendation: Recommendation
    avg_response_time_ms: int
    uptime_percentage: float


class ComparisonWinner(BaseModel):
    url: str
    reason: str


class CompareResponse(BaseModel):
    comparison: list[ComparisonItem]
    winner: ComparisonWinner


class RecalculateResponse(BaseModel):
    recalculated: int


class VerifyLiveRequest(BaseModel):
    endpoint_url: EndpointUrl


class LiveTestResult(BaseModel):
    success: bool
    status_code: int
    response_time_ms: Optional[int] = None
    error: Optional[str] = None


class LiveTrustScore(BaseModel):
    overall: float
    grade: str
    recommendation: Recommendation


class VerifyLiveResponse(BaseModel):
    """Outcome of an on-demand check and the trust score it produced."""

    endpoint: str
    endpoint_id: uuid.UUID
    test_result: LiveTestResult
    trust_score: LiveTrustScore
    tested_at: datetime
