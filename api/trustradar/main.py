import asyncio
import contextlib
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from trustradar.config import settings
from trustradar.logging_config import configure_logging
from trustradar.metrics import metrics_endpoint
from trustradar.middleware.logging_middleware import RequestLoggingMiddleware
from trustradar.routers import endpoints, evaluations, health_reports, reputation, trust_scores
from trustradar.worker.scoring_worker import scoring_worker_loop

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    worker_task = None
    if settings.scoring_worker_enabled:
        worker_task = asyncio.create_task(scoring_worker_loop())
    try:
        yield
    finally:
        if worker_task is not None:
            worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker_task
            log.info("scoring_worker_stopped")


app = FastAPI(title=f"{settings.app_name} API", version="0.1.0", lifespan=lifespan)

# Register request logging middleware (runs on every request)
app.add_middleware(RequestLoggingMiddleware)

# Endpoint registry and trust scores
app.include_router(endpoints.router)
app.include_router(trust_scores.router)

# Prediction / evaluation intake and evaluator reputation
app.include_router(evaluations.router)
app.include_router(reputation.router)

# Agent self-reported health
app.include_router(health_reports.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
