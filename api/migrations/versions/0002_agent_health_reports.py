"""Agent health reports

Revision ID: 3f8d52c6e0a1
Revises: 7c1e2a9b4d30
Create Date: 2026-10-17 00:00:00.000000

Written manually (not via autogenerate) consistent with project migration policy.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON, UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f8d52c6e0a1"
down_revision: Union[str, None] = "7c1e2a9b4d30"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "agent_health_reports",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("agent_url", sa.String(2048), nullable=False),
        sa.Column("agent_name", sa.String(255), nullable=False),
        sa.Column("report_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("total_queries", sa.Integer(), nullable=False),
        sa.Column("success_rate", sa.Float(), nullable=False),
        sa.Column("error_rate", sa.Float(), nullable=False),
        sa.Column("avg_response_time_ms", sa.Float(), nullable=False),
        sa.Column("p95_response_time_ms", sa.Float(), nullable=True),
        sa.Column("p99_response_time_ms", sa.Float(), nullable=True),
        sa.Column("errors_by_type", JSON, nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("adjustments", JSON, nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("health_status", sa.String(10), nullable=False),
        sa.Column(
            "endpoint_id",
            UUID(as_uuid=True),
            sa.ForeignKey("endpoints.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.CheckConstraint(
            "health_status IN ('EXCELLENT', 'GOOD', 'FAIR', 'POOR', 'CRITICAL')",
            name="ck_agent_health_reports_health_status",
        ),
    )
    op.create_index("ix_agent_health_reports_agent_url", "agent_health_reports", ["agent_url"])
    op.create_index(
        "ix_agent_health_reports_received_at", "agent_health_reports", ["received_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_agent_health_reports_received_at", table_name="agent_health_reports")
    op.drop_index("ix_agent_health_reports_agent_url", table_name="agent_health_reports")
    op.drop_table("agent_health_reports")
