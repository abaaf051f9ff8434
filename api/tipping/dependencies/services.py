"""Access to the process-wide service container from request handlers."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..services import Services
from ..services.scheduler import SchedulerService


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_scheduler(request: Request) -> SchedulerService:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Scheduler not configured")
    return scheduler
