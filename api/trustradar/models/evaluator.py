"""Evaluator (reputation profile) and ReputationSnapshot ORM models.

Evaluator rows hold running-average accuracy metrics and the bounded 0-1000
trust score. They are created lazily on first sighting and only ever changed
through the single compute-in-place UPDATE in services.reputation, never by
assigning attributes on a loaded instance.

The unique constraint on evaluator_url backs the insert-if-absent step of that
update (ON CONFLICT on the evaluator_url column).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

EVALUATOR_URL_CONSTRAINT = "uq_evaluators_evaluator_url"


class Evaluator(Base):
    __tablename__ = "evaluators"
    __table_args__ = (
        UniqueConstraint("evaluator_url", name=EVALUATOR_URL_CONSTRAINT),
        CheckConstraint(
            "trust_score >= 0 AND trust_score <= 1000",
            name="ck_evaluators_trust_score_range",
        ),
        Index("ix_evaluators_trust_score", "trust_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    evaluator_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    evaluator_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    trust_score: Mapped[int] = mapped_column(Integer, default=500, nullable=False)
    prediction_accuracy_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    calibration_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    consistency_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_evaluations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_predictions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_absolute_error: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    grade_accuracy_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    avg_confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    # Welford accumulator: sum of squared deviations of absolute_error from the mean
    error_m2: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    snapshots: Mapped[list["ReputationSnapshot"]] = relationship(
        "ReputationSnapshot", back_populates="evaluator", lazy="raise"
    )


class ReputationSnapshot(Base):
    """Append-only audit row: one per applied reputation change."""

    __tablename__ = "reputation_snapshots"
    __table_args__ = (
        Index("ix_reputation_snapshots_evaluator_recorded", "evaluator_id", "recorded_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    evaluator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("evaluators.id", ondelete="CASCADE"), nullable=False
    )
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False)
    score_change: Mapped[int] = mapped_column(Integer, nullable=False)
    change_reason: Mapped[str] = mapped_column(String(50), nullable=False)

    evaluator: Mapped["Evaluator"] = relationship(
        "Evaluator", back_populates="snapshots", lazy="raise"
    )
