"""Pydantic schemas for evaluator reputation read endpoints.

EvaluatorReputationResponse is the response for
GET /api/v1/evaluators/{evaluator_url}/reputation.
LeaderboardResponse ranks evaluators by trust score.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EvaluatorProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    evaluator_url: str
    evaluator_name: Optional[str] = None
    trust_score: int
    prediction_accuracy_rate: float
    calibration_score: float
    consistency_score: float
    total_evaluations: int
    total_predictions: int
    avg_absolute_error: float
    grade_accuracy_rate: float
    avg_confidence: float
    registered_at: datetime
    last_active_at: datetime


class ReputationSnapshotItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recorded_at: datetime
    trust_score: int
    score_change: int
    change_reason: str


class PredictionStats(BaseModel):
    total_predictions: int
    excellent_predictions: int
    good_predictions: int
    fair_predictions: int
    poor_predictions: int
    overestimation_rate: float


class EvaluatorReputationResponse(BaseModel):
    evaluator: EvaluatorProfile
    prediction_stats: PredictionStats
    trust_score_history: list[ReputationSnapshotItem]


class LeaderboardEntry(EvaluatorProfile):
    rank: int


class LeaderboardResponse(BaseModel):
    evaluators: list[LeaderboardEntry]
