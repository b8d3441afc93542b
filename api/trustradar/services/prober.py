"""Endpoint prober: one HTTP check of an endpoint's agent manifest.

Fetches {endpoint_url}/.well-known/agent.json and turns the outcome into an
EndpointTest row for the trust score engine.

Design notes:
- A probe never raises for network trouble. Timeouts, refused connections,
  TLS failures and URLs httpx refuses to send become a failed test with
  status_code 0 and the error message recorded, so an unreachable endpoint
  still counts against uptime.
- Success means HTTP 200. A compact JSON sample (name, version, truncated
  description) is kept only when the body parses as a JSON object; that
  sample is what the accuracy score counts as a valid response.
- The caller may pass a shared httpx.AsyncClient so a batch of probes reuses
  one connection pool.
- last_checked_at only moves forward; see mark_endpoint_checked.
"""

import json
import time
from datetime import datetime, timezone
from typing import Optional

import httpx
import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.config import settings
from trustradar.metrics import probe_duration, probes
from trustradar.models.endpoint import Endpoint, EndpointTest
from trustradar.services.trust_score import as_utc

log = structlog.get_logger()

MANIFEST_PATH = ".well-known/agent.json"
SAMPLE_DESCRIPTION_LENGTH = 200


def manifest_url(endpoint_url: str) -> str:
    if endpoint_url.endswith("/"):
        return f"{endpoint_url}{MANIFEST_PATH}"
    return f"{endpoint_url}/{MANIFEST_PATH}"


def build_response_sample(response: httpx.Response) -> Optional[str]:
    """Compact JSON sample of a manifest body, or None if it is not a JSON object."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    description = data.get("description")
    if isinstance(description, str):
        description = description[:SAMPLE_DESCRIPTION_LENGTH]
    return json.dumps(
        {
            "name": data.get("name"),
            "version": data.get("version"),
            "description": description,
        }
    )


async def probe_endpoint(
    endpoint: Endpoint,
    client: Optional[httpx.AsyncClient] = None,
) -> EndpointTest:
    """Probe one endpoint and return an unsaved EndpointTest.

    Args:
        endpoint: The endpoint to probe.
        client: Optional shared client. When omitted a client with the
            configured timeout and User-Agent is created for this probe.

    Returns:
        EndpointTest (not added to any session) describing the outcome.
    """
    tested_at = datetime.now(timezone.utc)
    start = time.monotonic()

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            timeout=settings.probe_timeout_seconds,
            headers={"User-Agent": settings.probe_user_agent},
        )

    try:
        response = await client.get(manifest_url(endpoint.url), follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        elapsed = time.monotonic() - start
        probe_duration.observe(elapsed)
        probes.labels(outcome="error").inc()
        log.info("probe_failed", endpoint_url=endpoint.url, error=str(exc))
        return EndpointTest(
            endpoint_id=endpoint.id,
            tested_at=tested_at,
            is_successful=False,
            status_code=0,
            response_time_ms=round(elapsed * 1000),
            error_message=str(exc) or exc.__class__.__name__,
        )
    finally:
        if owns_client:
            await client.aclose()

    elapsed = time.monotonic() - start
    probe_duration.observe(elapsed)

    is_successful = response.status_code == 200
    probes.labels(outcome="success" if is_successful else "failure").inc()

    return EndpointTest(
        endpoint_id=endpoint.id,
        tested_at=tested_at,
        is_successful=is_successful,
        status_code=response.status_code,
        response_time_ms=round(elapsed * 1000),
        error_message=None if is_successful else f"HTTP {response.status_code}",
        response_sample=build_response_sample(response) if is_successful else None,
    )


async def mark_endpoint_checked(db: AsyncSession, endpoint_id, tested_at: datetime) -> None:
    """Advance last_checked_at to tested_at; an older observation never moves it back."""
    tested_at = as_utc(tested_at)
    await db.execute(
        update(Endpoint)
        .where(Endpoint.id == endpoint_id)
        .where(or_(Endpoint.last_checked_at.is_(None), Endpoint.last_checked_at < tested_at))
        .values(last_checked_at=tested_at)
        .execution_options(synchronize_session=False)
    )
