"""Tests for resolve_evaluation: pairing evaluations with open predictions."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from trustradar.models import Discrepancy, Evaluation, Evaluator, Prediction
from trustradar.services.evaluation import PredictionNotFoundError, resolve_evaluation

EVALUATOR = "https://evaluator.example.com"
TARGET = "https://agent.example.com"


async def add_prediction(db, score=80, grade="B-", confidence=0.8, age_minutes=0, evaluator=EVALUATOR):
    prediction = Prediction(
        evaluator_url=evaluator,
        target_url=TARGET,
        predicted_score=score,
        predicted_grade=grade,
        confidence_level=confidence,
        basis="historical",
        predicted_at=datetime.now(timezone.utc) - timedelta(minutes=age_minutes),
    )
    db.add(prediction)
    await db.flush()
    return prediction


async def add_evaluation(db, score=72, grade="C", evaluator=EVALUATOR):
    evaluation = Evaluation(
        evaluator_url=evaluator,
        target_url=TARGET,
        score=score,
        grade=grade,
        evaluated_at=datetime.now(timezone.utc),
    )
    db.add(evaluation)
    await db.flush()
    return evaluation


class TestResolveEvaluation:
    async def test_resolves_most_recent_open_prediction(self, db):
        older = await add_prediction(db, score=40, age_minutes=30)
        newer = await add_prediction(db, score=80, age_minutes=5)
        evaluation = await add_evaluation(db, score=72)

        resolved = await resolve_evaluation(db, evaluation)
        await db.commit()

        assert resolved.prediction_id == newer.id
        assert resolved.result.absolute_error == 8
        assert resolved.result.overestimated is True
        assert resolved.reputation.trust_score == 505

        open_ids = (
            await db.scalars(select(Prediction.id).where(Prediction.evaluation_id.is_(None)))
        ).all()
        assert open_ids == [older.id]

    async def test_evaluation_without_prediction_only_counts(self, db):
        evaluation = await add_evaluation(db)
        assert await resolve_evaluation(db, evaluation) is None
        await db.commit()

        evaluator = await db.scalar(select(Evaluator).where(Evaluator.evaluator_url == EVALUATOR))
        assert evaluator.total_evaluations == 1
        assert evaluator.total_predictions == 0
        assert await db.scalar(select(func.count()).select_from(Discrepancy)) == 0

    async def test_prediction_is_resolved_only_once(self, db):
        await add_prediction(db)
        first = await resolve_evaluation(db, await add_evaluation(db))
        second = await resolve_evaluation(db, await add_evaluation(db))
        await db.commit()

        assert first is not None
        assert second is None
        assert await db.scalar(select(func.count()).select_from(Discrepancy)) == 1

    async def test_explicit_prediction_id(self, db):
        pinned = await add_prediction(db, score=70, age_minutes=60)
        await add_prediction(db, score=10)
        evaluation = await add_evaluation(db, score=72)

        resolved = await resolve_evaluation(db, evaluation, prediction_id=pinned.id)
        assert resolved.prediction_id == pinned.id
        assert resolved.result.absolute_error == 2

    async def test_explicit_prediction_from_other_evaluator_is_rejected(self, db):
        foreign = await add_prediction(db, evaluator="https://someone-else.example.com")
        evaluation = await add_evaluation(db)

        with pytest.raises(PredictionNotFoundError):
            await resolve_evaluation(db, evaluation, prediction_id=foreign.id)

    async def test_unknown_prediction_id_is_rejected(self, db):
        evaluation = await add_evaluation(db)
        with pytest.raises(PredictionNotFoundError):
            await resolve_evaluation(db, evaluation, prediction_id=uuid.uuid4())

    async def test_discrepancy_row_links_both_sides(self, db):
        prediction = await add_prediction(db, score=80, grade="B-", confidence=0.6)
        evaluation = await add_evaluation(db, score=72, grade="C")
        await resolve_evaluation(db, evaluation)
        await db.commit()

        row = await db.scalar(select(Discrepancy))
        assert row.prediction_id == prediction.id
        assert row.evaluation_id == evaluation.id
        assert row.score_difference == -8
        assert row.accuracy_category == "good"
        assert row.confidence_was == pytest.approx(0.6)
        assert row.grade_match is False
