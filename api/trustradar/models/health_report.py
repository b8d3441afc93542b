"""AgentHealthReport ORM model.

Self-reported operating metrics pushed by monitored agents. Reports are
append-only; endpoint_id links a report to a registered endpoint when the
agent_url matches one at intake time.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class HealthStatus(str, enum.Enum):
    excellent = "EXCELLENT"
    good = "GOOD"
    fair = "FAIR"
    poor = "POOR"
    critical = "CRITICAL"


class AgentHealthReport(Base):
    __tablename__ = "agent_health_reports"
    __table_args__ = (
        Index("ix_agent_health_reports_agent_url", "agent_url"),
        Index("ix_agent_health_reports_received_at", "received_at"),
        CheckConstraint(
            "health_status IN ('EXCELLENT', 'GOOD', 'FAIR', 'POOR', 'CRITICAL')",
            name="ck_agent_health_reports_health_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    agent_name: Mapped[str] = mapped_column(String(255), nullable=False)
    report_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    total_queries: Mapped[int] = mapped_column(Integer, nullable=False)
    success_rate: Mapped[float] = mapped_column(Float, nullable=False)
    error_rate: Mapped[float] = mapped_column(Float, nullable=False)
    avg_response_time_ms: Mapped[float] = mapped_column(Float, nullable=False)
    p95_response_time_ms: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    p99_response_time_ms: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    errors_by_type: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    adjustments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    health_status: Mapped[str] = mapped_column(String(10), nullable=False)

    endpoint_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("endpoints.id", ondelete="SET NULL"), nullable=True
    )
