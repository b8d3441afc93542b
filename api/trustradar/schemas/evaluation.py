"""Pydantic schemas for predictions, evaluations and discrepancy feedback."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from trustradar.models.evaluation import AccuracyCategory, PredictionBasis


class PredictionCreate(BaseModel):
    """A forecast an evaluator files before testing a target.

    confidence_level outside [0, 1] and scores outside [0, 100] are rejected
    here, before anything reaches the scoring engine.
    """

    evaluator_url: str = Field(min_length=1, max_length=2048)
    evaluator_name: Optional[str] = Field(None, max_length=255)
    target_url: str = Field(min_length=1, max_length=2048)
    predicted_score: int = Field(ge=0, le=100)
    predicted_grade: str = Field(min_length=1, max_length=2)
    confidence_level: float = Field(ge=0.0, le=1.0)
    basis: PredictionBasis = PredictionBasis.combined


class PredictionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    evaluator_url: str
    target_url: str
    predicted_score: int
    predicted_grade: str
    confidence_level: float
    basis: str
    predicted_at: datetime
    evaluation_id: Optional[uuid.UUID] = None


class EvaluationCreate(BaseModel):
    """Realized outcome of an evaluator testing a target.

    prediction_id pins the prediction this evaluation answers; without it the
    most recent unresolved prediction for the same evaluator and target is used.
    """

    evaluator_url: str = Field(min_length=1, max_length=2048)
    evaluator_name: Optional[str] = Field(None, max_length=255)
    target_url: str = Field(min_length=1, max_length=2048)
    score: int = Field(ge=0, le=100)
    grade: str = Field(min_length=1, max_length=2)
    recommendation: Optional[str] = Field(None, max_length=30)
    test_level: str = Field("quick", max_length=20)
    total_tests: int = Field(0, ge=0)
    prediction_id: Optional[uuid.UUID] = None


class DiscrepancyResponse(BaseModel):
    id: uuid.UUID
    prediction_id: uuid.UUID
    predicted_score: int
    actual_score: int
    score_difference: int
    absolute_error: int
    grade_match: bool
    accuracy_category: AccuracyCategory
    overestimated: bool


class LearningInsightsResponse(BaseModel):
    evaluator_performance: str
    suggested_adjustments: list[str]


class EvaluationAccepted(BaseModel):
    """Response after an evaluation is stored (and its prediction resolved)."""

    evaluation_id: uuid.UUID
    message: str
    discrepancy: Optional[DiscrepancyResponse] = None
    learning_insights: Optional[LearningInsightsResponse] = None
    evaluator_trust_score: Optional[int] = None


class EvaluationItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    evaluator_url: str
    target_url: str
    score: int
    grade: str
    recommendation: Optional[str] = None
    test_level: str
    evaluated_at: datetime


class EvaluationSummary(BaseModel):
    avg_score: int
    total_evaluations: int
    latest_grade: str


class EvaluationListResponse(BaseModel):
    """Matching evaluations, newest first.

    summary is present only when the query is scoped to one target_url and
    returned at least one row; it describes the returned page.
    """

    evaluations: list[EvaluationItem]
    summary: Optional[EvaluationSummary] = None
