"""Scheduled sync jobs and their manual-trigger path.

Celery beat fires the jobs on their crontab schedules (see ``celery_app``);
the admin API calls ``run_job(..., manual=True)``. Both paths run the same
job body. Jobs may overlap, and every write they make is an upsert or a
conditional update.

A failing job is recorded in ``sync_logs`` and logged; it never raises into
the caller and does not affect the next run.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..db.ops import SchedulerState
from ..db.upsert import upsert
from ..errors import UnknownJob
from ..logging import logger
from ..squiggle.client import SquiggleClient
from ..squiggle.models import process_games
from ..utils.date_utils import is_afl_season, season_year
from ..utils.datetime_utils import ensure_utc
from .container import Services
from .sync_logs import SyncLogTracker, summarize_sync_logs, track_sync

_STATE_ID = 1


@dataclass(frozen=True)
class JobDefinition:
    id: str
    name: str
    description: str
    minute: str
    hour: str
    seasonal: bool
    task_name: str

    @property
    def cron(self) -> str:
        return f"{self.minute} {self.hour} * * *"


JOB_DEFINITIONS: tuple[JobDefinition, ...] = (
    JobDefinition(
        id="live-scores",
        name="Live score updates",
        description="Pull in-progress and finished games, refresh their rounds, score tips",
        minute="*/30",
        hour="*",
        seasonal=True,
        task_name="run_live_scores",
    ),
    JobDefinition(
        id="full-sync",
        name="Full fixture sync",
        description="Sync teams and every game of the season, refresh all rounds, score tips",
        minute="0",
        hour="6,18",
        seasonal=False,
        task_name="run_full_sync",
    ),
    JobDefinition(
        id="round-status",
        name="Round status refresh",
        description="Recompute status and lockout for every round of the season",
        minute="0",
        hour="*/2",
        seasonal=False,
        task_name="run_round_status",
    ),
    JobDefinition(
        id="tip-correctness",
        name="Tip correctness and margins",
        description="Mark tips on completed games and recompute finals margin winners",
        minute="15",
        hour="*",
        seasonal=True,
        task_name="run_tip_correctness",
    ),
)

JOB_REGISTRY: dict[str, JobDefinition] = {job.id: job for job in JOB_DEFINITIONS}

# Order used by "sync all".
SYNC_ALL_ORDER = ("full-sync", "round-status", "tip-correctness")


@dataclass
class JobOutcome:
    job_id: str
    status: str
    records_processed: int = 0
    summary: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    reason: str | None = None
    sync_log_id: int | None = None


@dataclass
class JobStatus:
    job: JobDefinition
    runs: int
    errors: int
    last_run_at: datetime | None
    last_status: str | None
    last_error: str | None


JobBody = Callable[[AsyncSession, SyncLogTracker, int], Awaitable[None]]


class SchedulerService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: SquiggleClient,
        services: Services,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._services = services
        self._bodies: dict[str, JobBody] = {
            "live-scores": self._live_scores,
            "full-sync": self._full_sync,
            "round-status": self._round_status,
            "tip-correctness": self._tip_correctness,
        }

    @property
    def client(self) -> SquiggleClient:
        return self._client

    def now(self) -> datetime:
        return ensure_utc(self._services.clock())

    async def is_enabled(self) -> bool:
        async with self._session_factory() as session:
            state = await session.get(SchedulerState, _STATE_ID)
            return settings.scheduler.enabled if state is None else state.enabled

    async def set_enabled(self, enabled: bool) -> bool:
        async with self._session_factory() as session:
            await upsert(
                session,
                SchedulerState,
                {"id": _STATE_ID, "enabled": enabled, "updated_at": self.now()},
                conflict_columns=["id"],
            )
            await session.commit()
        logger.info("scheduler_enabled_changed", enabled=enabled)
        return enabled

    async def run_job(self, job_id: str, manual: bool = False) -> JobOutcome:
        """Run one job. Timer-driven runs respect the enable switch and season."""
        job = JOB_REGISTRY.get(job_id)
        if job is None:
            raise UnknownJob(job_id)

        now = self.now()
        if not manual:
            if not await self.is_enabled():
                logger.info("scheduler_job_skipped", job_id=job_id, reason="scheduler_disabled")
                return JobOutcome(job_id=job_id, status="skipped", reason="scheduler_disabled")
            if job.seasonal and not is_afl_season(now):
                logger.info("scheduler_job_skipped", job_id=job_id, reason="off_season")
                return JobOutcome(job_id=job_id, status="skipped", reason="off_season")

        year = season_year(now)
        body = self._bodies[job_id]
        logger.info("scheduler_job_started", job_id=job_id, year=year, manual=manual)
        tracker: SyncLogTracker | None = None
        try:
            async with track_sync(self._session_factory, job_id, manual=manual) as tracker:
                async with self._session_factory() as session:
                    await body(session, tracker, year)
                    await session.commit()
        except Exception as exc:
            logger.exception("scheduler_job_failed", job_id=job_id, error=str(exc))
            return JobOutcome(
                job_id=job_id,
                status="error",
                records_processed=tracker.records_processed if tracker else 0,
                summary=tracker.summary_data if tracker else {},
                error=str(exc)[:500],
                sync_log_id=tracker.log_id if tracker else None,
            )

        logger.info(
            "scheduler_job_complete",
            job_id=job_id,
            records_processed=tracker.records_processed,
            **tracker.summary_data,
        )
        return JobOutcome(
            job_id=job_id,
            status="success",
            records_processed=tracker.records_processed,
            summary=tracker.summary_data,
            sync_log_id=tracker.log_id,
        )

    async def run_all(self) -> list[JobOutcome]:
        """Manual full refresh: sync, then round status, then correctness."""
        outcomes = []
        for job_id in SYNC_ALL_ORDER:
            outcomes.append(await self.run_job(job_id, manual=True))
        return outcomes

    async def get_status(self) -> dict[str, Any]:
        return {
            "enabled": await self.is_enabled(),
            "job_count": len(JOB_REGISTRY),
            "in_season": is_afl_season(self.now()),
            "season_year": season_year(self.now()),
        }

    async def list_jobs(self) -> list[JobStatus]:
        async with self._session_factory() as session:
            summaries = await summarize_sync_logs(session)
        statuses = []
        for job in JOB_DEFINITIONS:
            summary = summaries.get(job.id)
            statuses.append(
                JobStatus(
                    job=job,
                    runs=summary.runs if summary else 0,
                    errors=summary.errors if summary else 0,
                    last_run_at=summary.last_run_at if summary else None,
                    last_status=summary.last_status if summary else None,
                    last_error=summary.last_error if summary else None,
                )
            )
        return statuses

    async def _live_scores(self, session: AsyncSession, tracker: SyncLogTracker, year: int) -> None:
        games = process_games(await self._client.fetch_games(year), year)
        result = await self._services.game_sync.update_live_scores(session, games)
        tracker.add_records(result.games_saved)
        tracker.set("games_updated", result.games_saved)

        rounds = await self._services.round_status.refresh_rounds(session, result.round_ids)
        tracker.set("rounds_status_changed", rounds["status_changed"])

        for game_id in sorted(result.completed_game_ids):
            scored = await self._services.scoring.process_completed_game(session, game_id)
            tracker.increment("tips_marked", scored["tips_marked"])

    async def _full_sync(self, session: AsyncSession, tracker: SyncLogTracker, year: int) -> None:
        teams = await self._client.fetch_teams()
        tracker.set("teams_saved", await self._services.game_sync.save_teams(session, teams))

        games = process_games(await self._client.fetch_games(year), year)
        result = await self._services.game_sync.save_games(session, games)
        tracker.add_records(result.games_saved)
        tracker.set("games_saved", result.games_saved)
        tracker.set("games_skipped", result.games_skipped)

        rounds = await self._services.round_status.refresh_year(session, year)
        tracker.set("rounds_status_changed", rounds["status_changed"])

        scored = await self._services.scoring.score_completed_games(session, year)
        tracker.set("tips_marked", scored["tips_marked"])

    async def _round_status(self, session: AsyncSession, tracker: SyncLogTracker, year: int) -> None:
        counts = await self._services.round_status.refresh_year(session, year)
        tracker.add_records(counts["checked"])
        tracker.set("rounds_status_changed", counts["status_changed"])
        tracker.set("lockouts_set", counts["lockout_set"])

    async def _tip_correctness(self, session: AsyncSession, tracker: SyncLogTracker, year: int) -> None:
        counts = await self._services.scoring.score_completed_games(session, year)
        tracker.add_records(counts["tips_marked"])
        for key, value in counts.items():
            tracker.set(key, value)
