"""Initial schema: endpoints, trust scores, predictions, evaluator reputation

Revision ID: 7c1e2a9b4d30
Revises:
Create Date: 2026-10-17 00:00:00.000000

Written manually (not via autogenerate) consistent with project migration policy.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c1e2a9b4d30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "endpoints",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "discovered_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "last_seen_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("url", name="uq_endpoints_url"),
    )

    op.create_table(
        "endpoint_tests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "endpoint_id",
            UUID(as_uuid=True),
            sa.ForeignKey("endpoints.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_successful", sa.Boolean(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("response_sample", sa.Text(), nullable=True),
    )
    # Window query: latest N tests of one endpoint
    op.create_index(
        "ix_endpoint_tests_endpoint_id_tested_at",
        "endpoint_tests",
        ["endpoint_id", "tested_at"],
    )

    op.create_table(
        "trust_scores",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "endpoint_id",
            UUID(as_uuid=True),
            sa.ForeignKey("endpoints.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("uptime_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("speed_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("accuracy_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("age_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("overall_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("grade", sa.String(2), nullable=False, server_default="F"),
        sa.Column("recommendation", sa.String(10), nullable=False, server_default="AVOID"),
        sa.Column("total_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_response_time_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_tested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("endpoint_id", name="uq_trust_scores_endpoint_id"),
    )
    op.create_index("ix_trust_scores_overall_score", "trust_scores", ["overall_score"])

    op.create_table(
        "evaluators",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("evaluator_url", sa.String(2048), nullable=False),
        sa.Column("evaluator_name", sa.String(255), nullable=True),
        sa.Column("trust_score", sa.Integer(), nullable=False, server_default="500"),
        sa.Column("prediction_accuracy_rate", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("calibration_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("consistency_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("total_evaluations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_predictions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_absolute_error", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("grade_accuracy_rate", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("avg_confidence", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("error_m2", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column(
            "registered_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "last_active_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("evaluator_url", name="uq_evaluators_evaluator_url"),
        sa.CheckConstraint(
            "trust_score >= 0 AND trust_score <= 1000",
            name="ck_evaluators_trust_score_range",
        ),
    )
    op.create_index("ix_evaluators_trust_score", "evaluators", ["trust_score"])

    op.create_table(
        "reputation_snapshots",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "evaluator_id",
            UUID(as_uuid=True),
            sa.ForeignKey("evaluators.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("trust_score", sa.Integer(), nullable=False),
        sa.Column("score_change", sa.Integer(), nullable=False),
        sa.Column("change_reason", sa.String(50), nullable=False),
    )
    op.create_index(
        "ix_reputation_snapshots_evaluator_recorded",
        "reputation_snapshots",
        ["evaluator_id", "recorded_at"],
    )

    # evaluations before predictions: predictions.evaluation_id references it
    op.create_table(
        "evaluations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("evaluator_url", sa.String(2048), nullable=False),
        sa.Column("target_url", sa.String(2048), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("grade", sa.String(2), nullable=False),
        sa.Column("recommendation", sa.String(30), nullable=True),
        sa.Column("test_level", sa.String(20), nullable=False, server_default="quick"),
        sa.Column("total_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "evaluated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_evaluations_evaluator_url", "evaluations", ["evaluator_url"])
    op.create_index("ix_evaluations_target_url", "evaluations", ["target_url"])

    op.create_table(
        "predictions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("evaluator_url", sa.String(2048), nullable=False),
        sa.Column("target_url", sa.String(2048), nullable=False),
        sa.Column("predicted_score", sa.Integer(), nullable=False),
        sa.Column("predicted_grade", sa.String(2), nullable=False),
        sa.Column("confidence_level", sa.Float(), nullable=False),
        sa.Column("basis", sa.String(20), nullable=False),
        sa.Column(
            "predicted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "evaluation_id",
            UUID(as_uuid=True),
            sa.ForeignKey("evaluations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.CheckConstraint(
            "predicted_score >= 0 AND predicted_score <= 100",
            name="ck_predictions_predicted_score_range",
        ),
        sa.CheckConstraint(
            "confidence_level >= 0 AND confidence_level <= 1",
            name="ck_predictions_confidence_range",
        ),
    )
    op.create_index(
        "ix_predictions_evaluator_target",
        "predictions",
        ["evaluator_url", "target_url"],
    )

    op.create_table(
        "discrepancies",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "prediction_id",
            UUID(as_uuid=True),
            sa.ForeignKey("predictions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "evaluation_id",
            UUID(as_uuid=True),
            sa.ForeignKey("evaluations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("evaluator_url", sa.String(2048), nullable=False),
        sa.Column("target_url", sa.String(2048), nullable=False),
        sa.Column("predicted_score", sa.Integer(), nullable=False),
        sa.Column("actual_score", sa.Integer(), nullable=False),
        sa.Column("score_difference", sa.Integer(), nullable=False),
        sa.Column("absolute_error", sa.Integer(), nullable=False),
        sa.Column("predicted_grade", sa.String(2), nullable=False),
        sa.Column("actual_grade", sa.String(2), nullable=False),
        sa.Column("grade_match", sa.Boolean(), nullable=False),
        sa.Column("confidence_was", sa.Float(), nullable=False),
        sa.Column("accuracy_category", sa.String(10), nullable=False),
        sa.Column("overestimated", sa.Boolean(), nullable=False),
        sa.Column(
            "analyzed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("prediction_id", name="uq_discrepancies_prediction_id"),
    )
    op.create_index("ix_discrepancies_evaluator_url", "discrepancies", ["evaluator_url"])
    op.create_index(
        "ix_discrepancies_accuracy_category", "discrepancies", ["accuracy_category"]
    )


def downgrade() -> None:
    op.drop_table("discrepancies")
    op.drop_table("predictions")
    op.drop_table("evaluations")
    op.drop_table("reputation_snapshots")
    op.drop_table("evaluators")
    op.drop_table("trust_scores")
    op.drop_table("endpoint_tests")
    op.drop_table("endpoints")
