"""Helpers for recording scheduler job runs in ``sync_logs``.

Log rows are written through their own short sessions so a job whose work
is rolled back still leaves its error row behind.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.ops import SyncLog
from ..logging import logger
from ..utils.datetime_utils import ensure_utc, now_utc


async def start_sync_log(
    session_factory: async_sessionmaker[AsyncSession],
    sync_type: str,
    manual: bool = False,
) -> int:
    """Create a running log row and return its ID."""
    async with session_factory() as session:
        log = SyncLog(sync_type=sync_type, status="running", manual=manual, started_at=now_utc())
        session.add(log)
        await session.commit()
        logger.info("sync_started", sync_log_id=log.id, sync_type=sync_type, manual=manual)
        return int(log.id)


async def complete_sync_log(
    session_factory: async_sessionmaker[AsyncSession],
    log_id: int,
    status: str,
    records_processed: int = 0,
    error_message: str | None = None,
    summary_data: dict[str, Any] | None = None,
) -> None:
    """Finalize a log row with status and duration."""
    async with session_factory() as session:
        log = await session.get(SyncLog, log_id)
        if log is None:
            logger.error("sync_log_missing", sync_log_id=log_id)
            return
        finished_at = now_utc()
        log.status = status
        log.finished_at = finished_at
        log.duration_seconds = (finished_at - ensure_utc(log.started_at)).total_seconds()
        log.records_processed = records_processed
        log.error_message = error_message
        if summary_data is not None:
            log.summary_data = summary_data
        await session.commit()
        logger.info("sync_completed", sync_log_id=log_id, sync_type=log.sync_type, status=status)


class SyncLogTracker:
    """Mutable tracker for accumulating summary data during a job run."""

    def __init__(self, log_id: int) -> None:
        self.log_id = log_id
        self.records_processed = 0
        self.summary_data: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        self.summary_data[key] = value

    def increment(self, key: str, amount: int = 1) -> None:
        self.summary_data[key] = self.summary_data.get(key, 0) + amount

    def add_records(self, amount: int) -> None:
        self.records_processed += amount


@asynccontextmanager
async def track_sync(
    session_factory: async_sessionmaker[AsyncSession],
    sync_type: str,
    manual: bool = False,
) -> AsyncIterator[SyncLogTracker]:
    """Create a log row on enter and finalize it on exit.

    Usage:
        async with track_sync(factory, "full-sync") as tracker:
            tracker.add_records(saved)
            tracker.set("rounds_refreshed", 12)

    On normal exit: status="success". On exception: status="error" with the
    first 500 characters of the message, then the exception propagates.
    """
    log_id = await start_sync_log(session_factory, sync_type, manual=manual)
    tracker = SyncLogTracker(log_id)
    try:
        yield tracker
    except Exception as exc:
        await complete_sync_log(
            session_factory,
            log_id,
            status="error",
            records_processed=tracker.records_processed,
            error_message=str(exc)[:500],
            summary_data=tracker.summary_data or None,
        )
        raise
    else:
        await complete_sync_log(
            session_factory,
            log_id,
            status="success",
            records_processed=tracker.records_processed,
            summary_data=tracker.summary_data or None,
        )


@dataclass
class SyncTypeSummary:
    sync_type: str
    runs: int
    errors: int
    last_run_at: datetime | None
    last_status: str | None
    last_error: str | None
    last_error_at: datetime | None


async def list_sync_logs(
    session: AsyncSession,
    limit: int = 50,
    sync_type: str | None = None,
    status: str | None = None,
) -> list[SyncLog]:
    stmt = select(SyncLog).order_by(SyncLog.created_at.desc(), SyncLog.id.desc()).limit(limit)
    if sync_type:
        stmt = stmt.where(SyncLog.sync_type == sync_type)
    if status:
        stmt = stmt.where(SyncLog.status == status)
    return list((await session.execute(stmt)).scalars())


async def summarize_sync_logs(session: AsyncSession) -> dict[str, SyncTypeSummary]:
    """Per job type: run count, error count, last run and last error."""
    counts = (
        await session.execute(
            select(
                SyncLog.sync_type,
                func.count(SyncLog.id).label("runs"),
                func.count(case((SyncLog.status == "error", 1))).label("errors"),
            ).group_by(SyncLog.sync_type)
        )
    ).all()

    summaries: dict[str, SyncTypeSummary] = {}
    for row in counts:
        last = (await list_sync_logs(session, limit=1, sync_type=row.sync_type))[0]
        last_errors = await list_sync_logs(session, limit=1, sync_type=row.sync_type, status="error")
        last_error = last_errors[0] if last_errors else None
        summaries[row.sync_type] = SyncTypeSummary(
            sync_type=row.sync_type,
            runs=row.runs,
            errors=row.errors,
            last_run_at=ensure_utc(last.started_at),
            last_status=last.status,
            last_error=last_error.error_message if last_error else None,
            last_error_at=ensure_utc(last_error.started_at) if last_error else None,
        )
    return summaries
