"""Admin control of the sync scheduler, round lockouts and the results cache."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...db import get_db
from ...dependencies.services import get_scheduler, get_services
from ...services import Services
from ...services.scheduler import JobOutcome, SchedulerService
from ..schemas import (
    CacheClearResponse,
    CacheStatsResponse,
    JobOutcomeResponse,
    LockoutOverrideRequest,
    RoundResponse,
    SchedulerJobResponse,
    SchedulerStatusResponse,
)

router = APIRouter(prefix="/scheduler")


def _outcome_response(outcome: JobOutcome) -> JobOutcomeResponse:
    return JobOutcomeResponse(
        job_id=outcome.job_id,
        status=outcome.status,
        records_processed=outcome.records_processed,
        summary=outcome.summary,
        error=outcome.error,
        reason=outcome.reason,
        sync_log_id=outcome.sync_log_id,
    )


@router.get("/status", response_model=SchedulerStatusResponse)
async def scheduler_status(scheduler: SchedulerService = Depends(get_scheduler)) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(**await scheduler.get_status())


@router.get("/jobs", response_model=list[SchedulerJobResponse])
async def list_jobs(scheduler: SchedulerService = Depends(get_scheduler)) -> list[SchedulerJobResponse]:
    return [
        SchedulerJobResponse(
            id=status.job.id,
            name=status.job.name,
            description=status.job.description,
            cron=status.job.cron,
            seasonal=status.job.seasonal,
            runs=status.runs,
            errors=status.errors,
            last_run_at=status.last_run_at,
            last_status=status.last_status,
            last_error=status.last_error,
        )
        for status in await scheduler.list_jobs()
    ]


@router.post("/trigger/{job_id}", response_model=JobOutcomeResponse)
async def trigger_job(job_id: str, scheduler: SchedulerService = Depends(get_scheduler)) -> JobOutcomeResponse:
    """Run a job now, inline. Ignores the enable switch and the season window."""
    return _outcome_response(await scheduler.run_job(job_id, manual=True))


@router.post("/sync-all", response_model=list[JobOutcomeResponse])
async def sync_all(scheduler: SchedulerService = Depends(get_scheduler)) -> list[JobOutcomeResponse]:
    return [_outcome_response(outcome) for outcome in await scheduler.run_all()]


@router.post("/enable", response_model=SchedulerStatusResponse)
async def enable_scheduler(scheduler: SchedulerService = Depends(get_scheduler)) -> SchedulerStatusResponse:
    await scheduler.set_enabled(True)
    return SchedulerStatusResponse(**await scheduler.get_status())


@router.post("/disable", response_model=SchedulerStatusResponse)
async def disable_scheduler(scheduler: SchedulerService = Depends(get_scheduler)) -> SchedulerStatusResponse:
    await scheduler.set_enabled(False)
    return SchedulerStatusResponse(**await scheduler.get_status())


@router.post("/rounds/{round_id}/lockout", response_model=RoundResponse)
async def override_round_lockout(
    round_id: int,
    payload: LockoutOverrideRequest,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> RoundResponse:
    round_ = await services.round_status.override_lockout(session, round_id, payload.lockout_time)
    return RoundResponse.model_validate(round_)


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(scheduler: SchedulerService = Depends(get_scheduler)) -> CacheStatsResponse:
    return CacheStatsResponse(**scheduler.client.cache_stats())


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(scheduler: SchedulerService = Depends(get_scheduler)) -> CacheClearResponse:
    return CacheClearResponse(cleared=scheduler.client.clear_cache())
