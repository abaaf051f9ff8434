"""Celery application and beat schedule for the sync jobs."""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from .config import settings
from .services.scheduler import JOB_DEFINITIONS

celery_app = Celery(
    "footy_tipping",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=["tipping.tasks.scheduled_jobs"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Fixture times are Melbourne-local; crontab hours below are Melbourne hours.
    timezone="Australia/Melbourne",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_time_limit=900,
    task_soft_time_limit=840,
    task_default_queue=settings.celery_default_queue,
    result_expires=86400,
)

# live-scores      */30 * * * *   in season only
# full-sync        0 6,18 * * *
# round-status     0 */2 * * *
# tip-correctness  15 * * * *     in season only
celery_app.conf.beat_schedule = {
    job.id: {
        "task": job.task_name,
        "schedule": crontab(minute=job.minute, hour=job.hour),
        "options": {"queue": settings.celery_default_queue},
    }
    for job in JOB_DEFINITIONS
}
