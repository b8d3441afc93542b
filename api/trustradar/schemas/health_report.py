"""Pydantic schemas for agent health report intake."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from trustradar.models.health_report import HealthStatus


class HealthMetricsIn(BaseModel):
    total_queries: int = Field(ge=0)
    success_rate: float = Field(ge=0.0, le=1.0)
    error_rate: float = Field(ge=0.0, le=1.0)
    avg_response_time_ms: float = Field(ge=0.0)
    p95_response_time_ms: Optional[float] = Field(None, ge=0.0)
    p99_response_time_ms: Optional[float] = Field(None, ge=0.0)
    errors_by_type: dict[str, int] = Field(default_factory=dict)


class AgentHealthReportCreate(BaseModel):
    """A health report an agent pushes about itself.

    adjustments is free-form: whatever self-tuning the agent applied since
    its last report. It is stored, never interpreted.
    """

    agent_url: str = Field(min_length=1, max_length=2048)
    agent_name: str = Field(min_length=1, max_length=255)
    timestamp: Optional[datetime] = None  # defaults to receipt time
    metrics: HealthMetricsIn
    health_status: HealthStatus
    adjustments: list = Field(default_factory=list)


class HealthFeedbackResponse(BaseModel):
    recommendation: str
    suggested_optimizations: list[str]


class AgentHealthReportAccepted(BaseModel):
    report_id: uuid.UUID
    message: str
    feedback: HealthFeedbackResponse
