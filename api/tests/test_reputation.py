"""Tests for evaluator reputation updates in trustradar.services.reputation.

All tests run against a real (SQLite) database because the update is a single
SQL statement; the arithmetic lives in the statement, not in Python.
"""

import asyncio

import pytest
from sqlalchemy import select

from trustradar.models import Evaluator, ReputationSnapshot
from trustradar.services.discrepancy import analyze_discrepancy
from trustradar.services.reputation import (
    consistency_from_variance,
    ensure_evaluator,
    record_discrepancy_for_evaluator,
    record_evaluation_for_evaluator,
    reputation_delta,
)

EVALUATOR = "https://evaluator.example.com"


def discrepancy(predicted, actual, predicted_grade="B", actual_grade="B"):
    return analyze_discrepancy(predicted, predicted_grade, actual, actual_grade)


async def load_evaluator(session_factory, url=EVALUATOR) -> Evaluator:
    async with session_factory() as session:
        return await session.scalar(select(Evaluator).where(Evaluator.evaluator_url == url))


class TestDeltaTable:
    def test_default_deltas(self):
        assert [reputation_delta(c) for c in ("excellent", "good", "fair", "poor")] == [10, 5, -5, -15]

    def test_consistency_guards_zero_count(self):
        assert consistency_from_variance(0.0, 0) == 0.0
        assert consistency_from_variance(0.0, 3) == 1.0


class TestRecordDiscrepancy:
    async def test_first_excellent_prediction_moves_trust_to_510(self, db, session_factory):
        """Unseen evaluator, one discrepancy with error 2."""
        update = await record_discrepancy_for_evaluator(db, EVALUATOR, discrepancy(80, 82), confidence=0.9)
        await db.commit()

        assert update.trust_score == 510
        assert update.score_change == 10
        assert update.change_reason == "accurate_prediction"

        evaluator = await load_evaluator(session_factory)
        assert evaluator.trust_score == 510
        assert evaluator.total_predictions == 1
        assert evaluator.avg_absolute_error == pytest.approx(2.0)
        assert evaluator.prediction_accuracy_rate == pytest.approx(0.98)
        assert evaluator.grade_accuracy_rate == pytest.approx(1.0)
        assert evaluator.avg_confidence == pytest.approx(0.9)
        # |0.9 - 0.98| off perfect calibration
        assert evaluator.calibration_score == pytest.approx(0.92)
        assert evaluator.consistency_score == pytest.approx(1.0)

    async def test_running_averages_are_exact(self, db, session_factory):
        errors = [2, 8, 15, 30, 0]
        for i, error in enumerate(errors):
            grade = "B" if i % 2 == 0 else "C"
            await record_discrepancy_for_evaluator(
                db, EVALUATOR, discrepancy(50, 50 + error, actual_grade=grade), confidence=0.5
            )
        await db.commit()

        evaluator = await load_evaluator(session_factory)
        mean = sum(errors) / len(errors)
        variance = sum((e - mean) ** 2 for e in errors) / len(errors)
        assert evaluator.total_predictions == 5
        assert evaluator.avg_absolute_error == pytest.approx(mean)
        assert evaluator.grade_accuracy_rate == pytest.approx(3 / 5)
        assert evaluator.error_m2 == pytest.approx(variance * len(errors))
        assert evaluator.consistency_score == pytest.approx(1 - variance ** 0.5 / 100)
        # +10 +5 -5 -15 +10
        assert evaluator.trust_score == 505

    async def test_trust_score_is_clamped_at_zero(self, db, session_factory):
        for _ in range(40):
            await record_discrepancy_for_evaluator(db, EVALUATOR, discrepancy(0, 100), confidence=1.0)
        await db.commit()

        evaluator = await load_evaluator(session_factory)
        assert evaluator.trust_score == 0
        assert evaluator.prediction_accuracy_rate == 0.0

    async def test_trust_score_is_clamped_at_1000(self, db, session_factory):
        for _ in range(60):
            await record_discrepancy_for_evaluator(db, EVALUATOR, discrepancy(70, 70), confidence=1.0)
        await db.commit()

        evaluator = await load_evaluator(session_factory)
        assert evaluator.trust_score == 1000
        assert evaluator.total_predictions == 60

    async def test_every_update_appends_a_snapshot(self, db, session_factory):
        await record_discrepancy_for_evaluator(db, EVALUATOR, discrepancy(50, 52), confidence=0.7)
        await record_discrepancy_for_evaluator(db, EVALUATOR, discrepancy(50, 90), confidence=0.7)
        await db.commit()

        async with session_factory() as session:
            rows = (
                await session.scalars(select(ReputationSnapshot).order_by(ReputationSnapshot.recorded_at))
            ).all()
        assert [(r.trust_score, r.score_change, r.change_reason) for r in rows] == [
            (510, 10, "accurate_prediction"),
            (495, -15, "poor_prediction"),
        ]

    async def test_concurrent_discrepancies_are_not_lost(self, session_factory):
        """Two sessions updating the same evaluator at once both land."""
        async with session_factory() as session:
            await record_discrepancy_for_evaluator(session, EVALUATOR, discrepancy(50, 54), confidence=0.5)
            await session.commit()

        async def apply(error):
            async with session_factory() as session:
                await record_discrepancy_for_evaluator(
                    session, EVALUATOR, discrepancy(50, 50 + error), confidence=0.5
                )
                await session.commit()

        await asyncio.gather(apply(6), apply(12))

        evaluator = await load_evaluator(session_factory)
        assert evaluator.total_predictions == 3
        assert evaluator.avg_absolute_error == pytest.approx((4 + 6 + 12) / 3)
        # +10, +5, -5
        assert evaluator.trust_score == 510


class TestEvaluatorProfile:
    async def test_ensure_evaluator_is_idempotent(self, db, session_factory):
        await ensure_evaluator(db, EVALUATOR, "First Name")
        await ensure_evaluator(db, EVALUATOR, "Second Name")
        await db.commit()

        async with session_factory() as session:
            rows = (await session.scalars(select(Evaluator))).all()
        assert len(rows) == 1
        assert rows[0].trust_score == 500
        assert rows[0].evaluator_name == "First Name"
        assert rows[0].total_predictions == 0

    async def test_record_evaluation_counts_evaluations_only(self, db, session_factory):
        await record_evaluation_for_evaluator(db, EVALUATOR)
        await record_evaluation_for_evaluator(db, EVALUATOR)
        await db.commit()

        evaluator = await load_evaluator(session_factory)
        assert evaluator.total_evaluations == 2
        assert evaluator.total_predictions == 0
        assert evaluator.trust_score == 500
