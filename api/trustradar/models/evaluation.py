"""Prediction, Evaluation and Discrepancy ORM models.

An evaluator files a Prediction before it tests a target, and later an
Evaluation carrying the realized score. The Discrepancy row links exactly one
Prediction to the Evaluation that resolved it and is never edited afterwards.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PredictionBasis(str, enum.Enum):
    historical = "historical"
    pattern = "pattern"
    metadata = "metadata"
    combined = "combined"


class AccuracyCategory(str, enum.Enum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"


class Prediction(Base):
    __tablename__ = "predictions"
    __table_args__ = (
        Index("ix_predictions_evaluator_target", "evaluator_url", "target_url"),
        CheckConstraint(
            "predicted_score >= 0 AND predicted_score <= 100",
            name="ck_predictions_predicted_score_range",
        ),
        CheckConstraint(
            "confidence_level >= 0 AND confidence_level <= 1",
            name="ck_predictions_confidence_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    evaluator_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    target_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    predicted_score: Mapped[int] = mapped_column(Integer, nullable=False)
    predicted_grade: Mapped[str] = mapped_column(String(2), nullable=False)
    confidence_level: Mapped[float] = mapped_column(Float, nullable=False)
    basis: Mapped[str] = mapped_column(String(20), nullable=False)
    predicted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # Set once, when the evaluation that resolves this prediction arrives
    evaluation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("evaluations.id", ondelete="SET NULL"), nullable=True
    )


class Evaluation(Base):
    __tablename__ = "evaluations"
    __table_args__ = (
        Index("ix_evaluations_evaluator_url", "evaluator_url"),
        Index("ix_evaluations_target_url", "target_url"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    evaluator_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    target_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    grade: Mapped[str] = mapped_column(String(2), nullable=False)
    recommendation: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    test_level: Mapped[str] = mapped_column(String(20), default="quick", nullable=False)
    total_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    evaluated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Discrepancy(Base):
    __tablename__ = "discrepancies"
    __table_args__ = (
        # One discrepancy per prediction: a prediction is resolved at most once
        UniqueConstraint("prediction_id", name="uq_discrepancies_prediction_id"),
        Index("ix_discrepancies_evaluator_url", "evaluator_url"),
        Index("ix_discrepancies_accuracy_category", "accuracy_category"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    prediction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    evaluation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False
    )
    evaluator_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    target_url: Mapped[str] = mapped_column(String(2048), nullable=False)

    predicted_score: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_score: Mapped[int] = mapped_column(Integer, nullable=False)
    score_difference: Mapped[int] = mapped_column(Integer, nullable=False)  # actual - predicted
    absolute_error: Mapped[int] = mapped_column(Integer, nullable=False)
    predicted_grade: Mapped[str] = mapped_column(String(2), nullable=False)
    actual_grade: Mapped[str] = mapped_column(String(2), nullable=False)
    grade_match: Mapped[bool] = mapped_column(Boolean, nullable=False)
    confidence_was: Mapped[float] = mapped_column(Float, nullable=False)
    accuracy_category: Mapped[str] = mapped_column(String(10), nullable=False)
    overestimated: Mapped[bool] = mapped_column(Boolean, nullable=False)
    analyzed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
