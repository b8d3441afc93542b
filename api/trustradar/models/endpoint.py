"""Endpoint, EndpointTest and TrustScore ORM models.

EndpointTest rows are append-only observations produced by the prober (or an
external test runner). TrustScore is a denormalized cache with exactly one row
per endpoint; it can always be rebuilt from the most recent EndpointTest rows
by trust_score.calculate_trust_score().
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

# One cached score per endpoint; save_trust_score upserts against this constraint
TRUST_SCORE_ENDPOINT_CONSTRAINT = "uq_trust_scores_endpoint_id"


class Endpoint(Base):
    __tablename__ = "endpoints"
    __table_args__ = (UniqueConstraint("url", name="uq_endpoints_url"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    discovered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # Null until the first probe; the worker probes never-checked endpoints first
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    trust_score: Mapped[Optional["TrustScore"]] = relationship(
        "TrustScore", back_populates="endpoint", lazy="raise", uselist=False
    )


class EndpointTest(Base):
    __tablename__ = "endpoint_tests"
    __table_args__ = (
        Index("ix_endpoint_tests_endpoint_id_tested_at", "endpoint_id", "tested_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    endpoint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False
    )
    tested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_successful: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Compact JSON sample of a valid manifest response, drives the accuracy score
    response_sample: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class TrustScore(Base):
    __tablename__ = "trust_scores"
    __table_args__ = (
        UniqueConstraint("endpoint_id", name=TRUST_SCORE_ENDPOINT_CONSTRAINT),
        Index("ix_trust_scores_overall_score", "overall_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    endpoint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False
    )

    # Sub-scores and composite, all on a 0-100 scale
    uptime_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    speed_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    accuracy_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    age_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    overall_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    grade: Mapped[str] = mapped_column(String(2), default="F", nullable=False)
    recommendation: Mapped[str] = mapped_column(String(10), default="AVOID", nullable=False)

    total_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_response_time_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_tested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    endpoint: Mapped["Endpoint"] = relationship(
        "Endpoint", back_populates="trust_score", lazy="raise"
    )
