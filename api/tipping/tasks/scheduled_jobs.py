"""Celery tasks wrapping the async scheduler jobs.

Each task runs its job under ``asyncio.run`` with a fresh engine bound to that
event loop, avoiding the "Future attached to a different loop" error an engine
created at import time would raise.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any

from ..celery_app import celery_app
from ..db import fresh_session_factory
from ..logging import logger
from ..services import build_services
from ..services.scheduler import SchedulerService
from ..squiggle.client import SquiggleClient


async def _run_job_async(job_id: str, manual: bool) -> dict[str, Any]:
    async with fresh_session_factory() as session_factory:
        scheduler = SchedulerService(session_factory, SquiggleClient(), build_services())
        outcome = await scheduler.run_job(job_id, manual=manual)
    return asdict(outcome)


def run_job_sync(job_id: str, manual: bool = False) -> dict[str, Any]:
    result = asyncio.run(_run_job_async(job_id, manual))
    logger.info("celery_job_finished", job_id=job_id, status=result["status"])
    return result


@celery_app.task(name="run_live_scores")
def run_live_scores(manual: bool = False) -> dict[str, Any]:
    return run_job_sync("live-scores", manual)


@celery_app.task(name="run_full_sync")
def run_full_sync(manual: bool = False) -> dict[str, Any]:
    return run_job_sync("full-sync", manual)


@celery_app.task(name="run_round_status")
def run_round_status(manual: bool = False) -> dict[str, Any]:
    return run_job_sync("round-status", manual)


@celery_app.task(name="run_tip_correctness")
def run_tip_correctness(manual: bool = False) -> dict[str, Any]:
    return run_job_sync("tip-correctness", manual)
