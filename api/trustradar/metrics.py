from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Scoring engine metrics
trust_scores_calculated = Counter(
    "trustradar_trust_scores_calculated_total",
    "Endpoint trust scores recomputed and stored",
    ["grade"],
)

reputation_updates = Counter(
    "trustradar_reputation_updates_total",
    "Evaluator reputation updates applied from prediction discrepancies",
    ["accuracy_category"],
)

# Agent self-reports
health_reports = Counter(
    "trustradar_agent_health_reports_total",
    "Agent health reports received",
    ["health_status"],
)

# Prober metrics
probes = Counter(
    "trustradar_probes_total",
    "Endpoint probes performed",
    ["outcome"],  # outcome: success | failure | error
)

probe_duration = Histogram(
    "trustradar_probe_duration_seconds",
    "Time to probe one endpoint manifest",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# HTTP request metrics (from middleware)
http_requests = Counter(
    "trustradar_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration = Histogram(
    "trustradar_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


async def metrics_endpoint():
    """FastAPI endpoint handler that returns Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
