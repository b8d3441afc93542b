"""TrustRadar Pydantic schemas package.

Re-exports all request and response schemas for convenient importing:

    from trustradar.schemas import EndpointCreate, PredictionCreate, ...
"""

from trustradar.schemas.endpoint import (
    CompareRequest,
    CompareResponse,
    EndpointCreate,
    EndpointResponse,
    EndpointTestCreate,
    EndpointTestResponse,
    RecalculateResponse,
    TrustScoreRequest,
    TrustScoreResponse,
    VerifyLiveRequest,
    VerifyLiveResponse,
)
from trustradar.schemas.evaluation import (
    EvaluationAccepted,
    EvaluationCreate,
    EvaluationListResponse,
    PredictionCreate,
    PredictionResponse,
)
from trustradar.schemas.health_report import AgentHealthReportAccepted, AgentHealthReportCreate
from trustradar.schemas.reputation import EvaluatorReputationResponse, LeaderboardResponse

__all__ = [
    # Endpoint
    "EndpointCreate",
    "EndpointResponse",
    "EndpointTestCreate",
    "EndpointTestResponse",
    # Trust score
    "TrustScoreRequest",
    "TrustScoreResponse",
    "CompareRequest",
    "CompareResponse",
    "RecalculateResponse",
    "VerifyLiveRequest",
    "VerifyLiveResponse",
    # Prediction / evaluation
    "PredictionCreate",
    "PredictionResponse",
    "EvaluationCreate",
    "EvaluationAccepted",
    "EvaluationListResponse",
    # Agent health
    "AgentHealthReportCreate",
    "AgentHealthReportAccepted",
    # Reputation
    "EvaluatorReputationResponse",
    "LeaderboardResponse",
]
