"""End-to-end API tests through httpx.AsyncClient + ASGITransport."""

from urllib.parse import quote

import httpx
import pytest

from trustradar.dependencies import get_http_client
from trustradar.main import app

EVALUATOR = "https://evaluator.example.com/agents/alpha"
TARGET = "https://agent.example.com"


async def register(client, url=TARGET, name="Example Agent"):
    resp = await client.post("/api/v1/endpoints", json={"url": url, "name": name})
    assert resp.status_code == 201
    return resp.json()


async def add_tests(client, endpoint_id, count, latency=150, failures=0):
    for i in range(count):
        failed = i < failures
        resp = await client.post(
            f"/api/v1/endpoints/{endpoint_id}/tests",
            json={
                "is_successful": not failed,
                "status_code": 0 if failed else 200,
                "response_time_ms": None if failed else latency,
                "response_sample": None if failed else '{"name": "agent"}',
            },
        )
        assert resp.status_code == 201


class TestHealthAndMetrics:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_metrics_exposition(self, client):
        await client.get("/health")
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "trustradar_http_requests_total" in resp.text

    async def test_request_id_header(self, client):
        resp = await client.get("/health")
        assert resp.headers.get("x-request-id")


class TestEndpointsAndTrustScores:
    async def test_registration_is_idempotent(self, client):
        first = await register(client)
        second = await register(client, name="Renamed")
        assert first["id"] == second["id"]
        assert second["name"] == "Example Agent"
        assert second["is_active"] is True

    async def test_test_for_unknown_endpoint_is_404(self, client):
        resp = await client.post(
            "/api/v1/endpoints/00000000-0000-0000-0000-000000000000/tests",
            json={"is_successful": True},
        )
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "url",
        ["https://bad.example.com/a\tb", "ftp://files.example.com", "agent.example.com", "https://"],
    )
    async def test_registration_rejects_unusable_urls(self, client, url):
        """URLs httpx cannot send, or that are not absolute http(s), never get stored."""
        resp = await client.post("/api/v1/endpoints", json={"url": url, "name": "Bad"})
        assert resp.status_code == 422

    async def test_backfilled_test_keeps_latest_check_time(self, client):
        """An older observation arriving late does not move last_checked_at backwards."""
        endpoint = await register(client)
        for tested_at in ("2026-03-01T12:00:00Z", "2026-02-01T12:00:00+00:00"):
            resp = await client.post(
                f"/api/v1/endpoints/{endpoint['id']}/tests",
                json={"is_successful": True, "tested_at": tested_at},
            )
            assert resp.status_code == 201

        refreshed = await register(client)
        assert refreshed["last_checked_at"].startswith("2026-03-01T12:00:00")

    async def test_newer_test_advances_check_time(self, client):
        endpoint = await register(client)
        for tested_at in ("2026-02-01T12:00:00Z", "2026-03-01T14:00:00+02:00"):
            await client.post(
                f"/api/v1/endpoints/{endpoint['id']}/tests",
                json={"is_successful": True, "tested_at": tested_at},
            )

        refreshed = await register(client)
        assert refreshed["last_checked_at"].startswith("2026-03-01T12:00:00")

        assert resp.status_code == 404

    async def test_trust_score_after_tests(self, client):
        endpoint = await register(client)
        await add_tests(client, endpoint["id"], 10, latency=150)

        resp = await client.post("/api/v1/trust-score", json={"endpoint_url": TARGET})
        assert resp.status_code == 200
        body = resp.json()
        assert body["endpoint"] == TARGET
        assert body["trust_score"]["uptime"] == 100.0
        assert body["stats"]["total_tests"] == 10
        assert body["stats"]["avg_response_time_ms"] == 150
        # Brand new endpoint: age score pulls the composite down
        assert body["trust_score"]["age"] == 0.0
        assert 0 <= body["trust_score"]["overall"] <= 100

    async def test_trust_score_unknown_or_unscored_is_404(self, client):
        resp = await client.post("/api/v1/trust-score", json={"endpoint_url": "https://nope.example.com"})
        assert resp.status_code == 404

        await register(client)
        resp = await client.post("/api/v1/trust-score", json={"endpoint_url": TARGET})
        assert resp.status_code == 404

    async def test_compare_picks_highest_score(self, client):
        fast = await register(client, "https://fast.example.com", "Fast")
        slow = await register(client, "https://slow.example.com", "Slow")
        await add_tests(client, fast["id"], 5, latency=100)
        await add_tests(client, slow["id"], 5, latency=3000, failures=2)

        resp = await client.post(
            "/api/v1/compare",
            json={
                "endpoint_urls": [
                    "https://slow.example.com",
                    "https://fast.example.com",
                    "https://missing.example.com",
                ]
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [item["url"] for item in body["comparison"]] == [
            "https://slow.example.com",
            "https://fast.example.com",
            "https://missing.example.com",
        ]
        assert body["comparison"][2]["name"] == "Not Found"
        assert body["comparison"][2]["recommendation"] == "AVOID"
        assert body["winner"]["url"] == "https://fast.example.com"

    async def test_compare_requires_two_to_five_urls(self, client):
        resp = await client.post("/api/v1/compare", json={"endpoint_urls": ["https://a.example.com"]})
        assert resp.status_code == 422
        resp = await client.post(
            "/api/v1/compare",
            json={"endpoint_urls": [f"https://{i}.example.com" for i in range(6)]},
        )
        assert resp.status_code == 422

    async def test_recalculate_all(self, client):
        endpoint = await register(client)
        await add_tests(client, endpoint["id"], 2)
        resp = await client.post("/api/v1/internal/trust-scores/recalculate")
        assert resp.status_code == 200
        assert resp.json() == {"recalculated": 1}


class TestPredictionFlow:
    async def predict(self, client, **overrides):
        payload = {
            "evaluator_url": EVALUATOR,
            "evaluator_name": "Alpha",
            "target_url": TARGET,
            "predicted_score": 80,
            "predicted_grade": "B-",
            "confidence_level": 0.8,
            "basis": "historical",
        }
        payload.update(overrides)
        return await client.post("/api/v1/predictions", json=payload)

    async def evaluate(self, client, **overrides):
        payload = {"evaluator_url": EVALUATOR, "target_url": TARGET, "score": 72, "grade": "C"}
        payload.update(overrides)
        return await client.post("/api/v1/evaluations", json=payload)

    async def test_confidence_out_of_range_is_rejected(self, client):
        assert (await self.predict(client, confidence_level=1.5)).status_code == 422
        assert (await self.predict(client, confidence_level=-0.1)).status_code == 422
        assert (await self.predict(client, predicted_score=101)).status_code == 422

    async def test_prediction_then_evaluation_updates_reputation(self, client):
        resp = await self.predict(client)
        assert resp.status_code == 201
        prediction = resp.json()
        assert prediction["evaluation_id"] is None

        resp = await self.evaluate(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["discrepancy"]["prediction_id"] == prediction["id"]
        assert body["discrepancy"]["score_difference"] == -8
        assert body["discrepancy"]["absolute_error"] == 8
        assert body["discrepancy"]["overestimated"] is True
        assert body["discrepancy"]["accuracy_category"] == "good"
        assert len(body["learning_insights"]["suggested_adjustments"]) == 1
        assert body["evaluator_trust_score"] == 505

        resp = await client.get(f"/api/v1/evaluators/{quote(EVALUATOR, safe='')}/reputation")
        assert resp.status_code == 200
        rep = resp.json()
        assert rep["evaluator"]["evaluator_name"] == "Alpha"
        assert rep["evaluator"]["trust_score"] == 505
        assert rep["evaluator"]["total_predictions"] == 1
        assert rep["evaluator"]["total_evaluations"] == 1
        assert rep["prediction_stats"]["good_predictions"] == 1
        assert rep["prediction_stats"]["overestimation_rate"] == 1.0
        assert rep["trust_score_history"] == [
            {
                "recorded_at": rep["trust_score_history"][0]["recorded_at"],
                "trust_score": 505,
                "score_change": 5,
                "change_reason": "good_prediction",
            }
        ]

    async def test_evaluation_without_prediction(self, client):
        resp = await self.evaluate(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["discrepancy"] is None
        assert body["learning_insights"] is None

    async def test_unknown_prediction_id_is_404(self, client):
        resp = await self.evaluate(client, prediction_id="00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    async def test_unknown_evaluator_reputation_is_404(self, client):
        resp = await client.get(f"/api/v1/evaluators/{quote('https://ghost.example.com', safe='')}/reputation")
        assert resp.status_code == 404

    async def test_leaderboard_ranks_by_trust(self, client):
        for evaluator, actual in (("https://good.example.com", 80), ("https://bad.example.com", 20)):
            await self.predict(client, evaluator_url=evaluator)
            await self.evaluate(client, evaluator_url=evaluator, score=actual)
        await self.predict(client, evaluator_url="https://idle.example.com")

        resp = await client.get("/api/v1/leaderboard", params={"min_predictions": 1})
        assert resp.status_code == 200
        ranked = [(e["rank"], e["evaluator_url"], e["trust_score"]) for e in resp.json()["evaluators"]]
        assert ranked == [(1, "https://good.example.com", 510), (2, "https://bad.example.com", 485)]

        resp = await client.get("/api/v1/leaderboard", params={"limit": 1})
        assert len(resp.json()["evaluators"]) == 1


@pytest.fixture
def manifest_client():
    """Route on-demand checks through a MockTransport instead of the network."""

    def handler(request):
        if request.url.host == "down.example.com":
            return httpx.Response(503)
        return httpx.Response(200, json={"name": "Example Agent", "version": "2.0"})

    async def override_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            yield http_client

    app.dependency_overrides[get_http_client] = override_http_client
    yield
    app.dependency_overrides.pop(get_http_client, None)


class TestVerifyLive:
    async def test_unknown_url_is_registered_and_scored(self, client, manifest_client):
        resp = await client.post("/api/v1/verify-live", json={"endpoint_url": TARGET})
        assert resp.status_code == 200
        body = resp.json()
        assert body["endpoint"] == TARGET
        assert body["test_result"]["success"] is True
        assert body["test_result"]["status_code"] == 200
        assert body["test_result"]["error"] is None
        assert 0 <= body["trust_score"]["overall"] <= 100

        resp = await client.post("/api/v1/trust-score", json={"endpoint_url": TARGET})
        assert resp.status_code == 200
        assert resp.json()["stats"]["total_tests"] == 1

        registered = await register(client)
        assert registered["id"] == body["endpoint_id"]
        assert registered["name"] == "Unknown"
        assert registered["last_checked_at"] is not None

    async def test_known_endpoint_keeps_name_and_history(self, client, manifest_client):
        endpoint = await register(client, "https://down.example.com", "Down Agent")
        await add_tests(client, endpoint["id"], 3)

        resp = await client.post(
            "/api/v1/verify-live", json={"endpoint_url": "https://down.example.com"}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["endpoint_id"] == endpoint["id"]
        assert body["test_result"] == {
            "success": False,
            "status_code": 503,
            "response_time_ms": body["test_result"]["response_time_ms"],
            "error": "HTTP 503",
        }

        resp = await client.post(
            "/api/v1/trust-score", json={"endpoint_url": "https://down.example.com"}
        )
        stats = resp.json()["stats"]
        assert (stats["total_tests"], stats["failed_tests"]) == (4, 1)
        assert (await register(client, "https://down.example.com"))["name"] == "Down Agent"

    async def test_unsendable_url_is_rejected(self, client, manifest_client):
        resp = await client.post(
            "/api/v1/verify-live", json={"endpoint_url": "https://bad.example.com/a\tb"}
        )
        assert resp.status_code == 422


class TestEvaluationQuery:
    async def store(self, client, evaluator, target, score, grade):
        resp = await client.post(
            "/api/v1/evaluations",
            json={"evaluator_url": evaluator, "target_url": target, "score": score, "grade": grade},
        )
        assert resp.status_code == 201
        return resp.json()["evaluation_id"]

    async def test_filters_and_orders_newest_first(self, client):
        first = await self.store(client, EVALUATOR, TARGET, 60, "D")
        second = await self.store(client, EVALUATOR, TARGET, 85, "B")
        await self.store(client, "https://other.example.com", TARGET, 90, "A")
        await self.store(client, EVALUATOR, "https://elsewhere.example.com", 70, "C")

        resp = await client.get(
            "/api/v1/evaluations", params={"target_url": TARGET, "evaluator_url": EVALUATOR}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [e["id"] for e in body["evaluations"]] == [second, first]
        assert body["summary"] == {"avg_score": 73, "total_evaluations": 2, "latest_grade": "B"}

        resp = await client.get("/api/v1/evaluations", params={"min_score": 80})
        assert sorted(e["score"] for e in resp.json()["evaluations"]) == [85, 90]

    async def test_summary_only_for_a_target(self, client):
        await self.store(client, EVALUATOR, TARGET, 60, "D")

        body = (await client.get("/api/v1/evaluations")).json()
        assert len(body["evaluations"]) == 1
        assert body["summary"] is None

        body = (
            await client.get("/api/v1/evaluations", params={"target_url": "https://none.example.com"})
        ).json()
        assert body == {"evaluations": [], "summary": None}

    async def test_limit_bounds(self, client):
        for score in (10, 20, 30):
            await self.store(client, EVALUATOR, TARGET, score, "F")

        body = (await client.get("/api/v1/evaluations", params={"limit": 2})).json()
        assert len(body["evaluations"]) == 2
        assert (await client.get("/api/v1/evaluations", params={"limit": 0})).status_code == 422


class TestAgentHealthReports:
    def report(self, status, **metrics):
        payload_metrics = {
            "total_queries": 1000,
            "success_rate": 0.99,
            "error_rate": 0.01,
            "avg_response_time_ms": 800,
            "p95_response_time_ms": 1500,
            "p99_response_time_ms": 2500,
        }
        payload_metrics.update(metrics)
        return {
            "agent_url": TARGET,
            "agent_name": "Example Agent",
            "metrics": payload_metrics,
            "health_status": status,
            "adjustments": [{"setting": "cache_ttl", "value": 300}],
        }

    async def test_critical_report_gets_targeted_optimizations(self, client):
        resp = await client.post(
            "/api/v1/internal/agent-reports",
            json=self.report(
                "CRITICAL",
                success_rate=0.6,
                error_rate=0.4,
                avg_response_time_ms=12000,
                errors_by_type={"TIMEOUT": 9, "RATE_LIMIT": 2},
            ),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["report_id"]
        optimizations = body["feedback"]["suggested_optimizations"]
        assert len(optimizations) == 3
        assert any("retry" in o for o in optimizations)
        assert any("caching" in o for o in optimizations)
        assert any("timeout" in o for o in optimizations)
        assert not any("throttling" in o for o in optimizations)

    async def test_healthy_report_gets_maintenance_advice(self, client):
        resp = await client.post("/api/v1/internal/agent-reports", json=self.report("EXCELLENT"))
        assert resp.status_code == 201
        assert len(resp.json()["feedback"]["suggested_optimizations"]) == 2

    async def test_unknown_status_or_bad_rate_is_rejected(self, client):
        resp = await client.post("/api/v1/internal/agent-reports", json=self.report("SUPERB"))
        assert resp.status_code == 422
        resp = await client.post(
            "/api/v1/internal/agent-reports", json=self.report("GOOD", error_rate=1.5)
        )
        assert resp.status_code == 422
