"""Agent health report intake.

POST /api/v1/internal/agent-reports  -- store a self-reported health report
"""

from fastapi import APIRouter

from trustradar.dependencies import DbSession
from trustradar.schemas.health_report import (
    AgentHealthReportAccepted,
    AgentHealthReportCreate,
    HealthFeedbackResponse,
)
from trustradar.services.health_reports import HealthMetrics, record_health_report

router = APIRouter(prefix="/api/v1", tags=["health-reports"])


@router.post(
    "/internal/agent-reports",
    response_model=AgentHealthReportAccepted,
    status_code=201,
)
async def submit_health_report(
    body: AgentHealthReportCreate, db: DbSession
) -> AgentHealthReportAccepted:
    report, feedback = await record_health_report(
        db,
        agent_url=body.agent_url,
        agent_name=body.agent_name,
        status=body.health_status,
        metrics=HealthMetrics(**body.metrics.model_dump()),
        adjustments=body.adjustments,
        report_timestamp=body.timestamp,
    )
    await db.commit()

    return AgentHealthReportAccepted(
        report_id=report.id,
        message="Health report received and stored",
        feedback=HealthFeedbackResponse(
            recommendation=feedback.recommendation,
            suggested_optimizations=list(feedback.suggested_optimizations),
        ),
    )
