"""Scoring worker: periodic probe + trust score refresh.

Each cycle runs two phases:
1. Probing: active endpoints not checked within probe_min_interval_minutes,
   never-checked first, up to probe_batch_limit, probed concurrently in
   batches of probe_batch_size. Every outcome is stored as an EndpointTest.
2. Scoring: trust scores recalculated for every active, tested endpoint.

Phases run independently; a failing phase is logged and the cycle reports
partial status instead of aborting.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trustradar.config import settings
from trustradar.database import async_session_factory
from trustradar.models.endpoint import Endpoint
from trustradar.services.prober import mark_endpoint_checked, probe_endpoint
from trustradar.services.trust_score import recalculate_all_trust_scores

log = structlog.get_logger()


async def _endpoints_due_for_probe(session: AsyncSession) -> list[Endpoint]:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.probe_min_interval_minutes)
    result = await session.execute(
        select(Endpoint)
        .where(Endpoint.is_active.is_(True))
        .where(or_(Endpoint.last_checked_at.is_(None), Endpoint.last_checked_at < cutoff))
        .order_by(Endpoint.last_checked_at.asc().nulls_first())
        .limit(settings.probe_batch_limit)
    )
    return list(result.scalars().all())


async def _probe_due_endpoints(session: AsyncSession, transport=None) -> dict:
    """Probe due endpoints in concurrent batches and store the results."""
    endpoints = await _endpoints_due_for_probe(session)
    successful = 0
    failed = 0

    async with httpx.AsyncClient(
        timeout=settings.probe_timeout_seconds,
        headers={"User-Agent": settings.probe_user_agent},
        transport=transport,
    ) as client:
        batch_size = max(1, settings.probe_batch_size)
        for i in range(0, len(endpoints), batch_size):
            batch = endpoints[i : i + batch_size]
            tests = await asyncio.gather(
                *(probe_endpoint(endpoint, client) for endpoint in batch)
            )
            for test in tests:
                session.add(test)
                await mark_endpoint_checked(session, test.endpoint_id, test.tested_at)
                if test.is_successful:
                    successful += 1
                else:
                    failed += 1
            await session.flush()

    return {"probed": len(endpoints), "probe_successful": successful, "probe_failed": failed}


async def run_scoring_cycle(
    session_factory: async_sessionmaker = async_session_factory,
    transport=None,
) -> dict:
    """Execute one probe + score cycle.

    Args:
        session_factory: Session factory to use (tests pass a SQLite one).
        transport: Optional httpx transport for the probe client.

    Returns:
        Stats dict for the cycle.
    """
    stats: dict = {}
    errors = []

    async with session_factory() as session:
        phases = [
            ("probing", lambda: _probe_due_endpoints(session, transport)),
            ("trust_scores_calculated", lambda: recalculate_all_trust_scores(session)),
        ]
        for phase_name, run_phase in phases:
            try:
                result = await run_phase()
                await session.commit()
                if isinstance(result, dict):
                    stats.update(result)
                else:
                    stats[phase_name] = result
            except Exception:
                await session.rollback()
                log.error("scoring_phase_failed", phase=phase_name, exc_info=True)
                stats[phase_name] = "error"
                errors.append(phase_name)

    if errors:
        log.warning("scoring_cycle_partial", failed_phases=errors, stats=stats)
    else:
        log.info("scoring_cycle_completed", stats=stats)
    return stats


async def scoring_worker_loop():
    """Background loop that runs scoring cycles on a configurable interval."""
    interval = settings.scoring_interval_minutes * 60
    log.info("scoring_worker_started", interval_minutes=settings.scoring_interval_minutes)

    while True:
        try:
            await run_scoring_cycle()
        except Exception:
            log.error("scoring_worker_error", exc_info=True)
        await asyncio.sleep(interval)
