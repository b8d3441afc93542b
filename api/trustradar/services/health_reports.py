"""Agent health report intake and feedback.

Agents push their own operating metrics; each report is stored as-is and
answered with a recommendation plus concrete optimizations picked from the
reported numbers. health_feedback() is pure; record_health_report() persists
the report and leaves the commit to the caller.

Feedback rules by reported status:
    CRITICAL, POOR  error_rate > 0.2, avg response > 10000 ms,
                    more than 5 TIMEOUT or more than 3 RATE_LIMIT errors
    FAIR            avg response > 5000 ms, success_rate < 0.95
    GOOD, EXCELLENT fixed maintenance suggestions
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.metrics import health_reports
from trustradar.models.endpoint import Endpoint
from trustradar.models.health_report import AgentHealthReport, HealthStatus

log = structlog.get_logger()

CRITICAL_ERROR_RATE = 0.2
CRITICAL_AVG_RESPONSE_MS = 10000
CRITICAL_TIMEOUT_ERRORS = 5
CRITICAL_RATE_LIMIT_ERRORS = 3
FAIR_AVG_RESPONSE_MS = 5000
FAIR_MIN_SUCCESS_RATE = 0.95


@dataclass(frozen=True)
class HealthMetrics:
    total_queries: int
    success_rate: float
    error_rate: float
    avg_response_time_ms: float
    p95_response_time_ms: Optional[float] = None
    p99_response_time_ms: Optional[float] = None
    errors_by_type: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class HealthFeedback:
    recommendation: str
    suggested_optimizations: list[str] = field(default_factory=list)


def health_feedback(status: HealthStatus, metrics: HealthMetrics) -> HealthFeedback:
    """Pick a recommendation and optimizations for a reported status."""
    if status in (HealthStatus.critical, HealthStatus.poor):
        suggestions = []
        if metrics.error_rate > CRITICAL_ERROR_RATE:
            suggestions.append(
                "High error rate detected. Implement retry logic with exponential backoff."
            )
        if metrics.avg_response_time_ms > CRITICAL_AVG_RESPONSE_MS:
            suggestions.append(
                "Response time exceeds 10s. Enable caching for frequently requested data."
            )
        if metrics.errors_by_type.get("TIMEOUT", 0) > CRITICAL_TIMEOUT_ERRORS:
            suggestions.append(
                "Multiple timeout errors. Increase timeout threshold or optimize upstream dependencies."
            )
        if metrics.errors_by_type.get("RATE_LIMIT", 0) > CRITICAL_RATE_LIMIT_ERRORS:
            suggestions.append(
                "Rate limiting detected. Implement request throttling and queuing."
            )
        return HealthFeedback(
            recommendation=(
                "Agent performance is below acceptable levels. Review error logs and "
                "consider implementing suggested optimizations."
            ),
            suggested_optimizations=suggestions,
        )

    if status == HealthStatus.fair:
        suggestions = []
        if metrics.avg_response_time_ms > FAIR_AVG_RESPONSE_MS:
            suggestions.append("Consider implementing caching to improve response times.")
        if metrics.success_rate < FAIR_MIN_SUCCESS_RATE:
            suggestions.append(
                "Improve error handling and retry logic to increase success rate."
            )
        return HealthFeedback(
            recommendation=(
                "Agent performance is acceptable but could be improved with optimizations."
            ),
            suggested_optimizations=suggestions,
        )

    return HealthFeedback(
        recommendation="Agent performance is excellent. Continue monitoring for anomalies.",
        suggested_optimizations=[
            "Maintain current optimization strategies.",
            "Consider documenting successful patterns for other agents.",
        ],
    )


async def record_health_report(
    db: AsyncSession,
    agent_url: str,
    agent_name: str,
    status: HealthStatus,
    metrics: HealthMetrics,
    adjustments: Optional[list] = None,
    report_timestamp: Optional[datetime] = None,
) -> tuple[AgentHealthReport, HealthFeedback]:
    """Store one health report and compute its feedback (caller commits).

    The report is linked to the registered endpoint with the same URL, if any.
    """
    endpoint_id = await db.scalar(select(Endpoint.id).where(Endpoint.url == agent_url))

    report = AgentHealthReport(
        agent_url=agent_url,
        agent_name=agent_name,
        report_timestamp=report_timestamp or datetime.now(timezone.utc),
        received_at=datetime.now(timezone.utc),
        total_queries=metrics.total_queries,
        success_rate=metrics.success_rate,
        error_rate=metrics.error_rate,
        avg_response_time_ms=metrics.avg_response_time_ms,
        p95_response_time_ms=metrics.p95_response_time_ms,
        p99_response_time_ms=metrics.p99_response_time_ms,
        errors_by_type=dict(metrics.errors_by_type),
        adjustments=list(adjustments or []),
        health_status=status.value,
        endpoint_id=endpoint_id,
    )
    db.add(report)
    await db.flush()

    health_reports.labels(health_status=status.value).inc()
    log.info(
        "agent_health_report_received",
        report_id=str(report.id),
        agent_url=agent_url,
        health_status=status.value,
        linked_endpoint=endpoint_id is not None,
    )
    return report, health_feedback(status, metrics)
