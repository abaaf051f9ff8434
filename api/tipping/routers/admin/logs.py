"""Read-only view of scheduler job runs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...db import get_db
from ...services.sync_logs import list_sync_logs, summarize_sync_logs
from ..schemas import SyncLogResponse, SyncLogSummaryResponse

router = APIRouter(prefix="/logs")


@router.get("", response_model=list[SyncLogResponse])
async def get_sync_logs(
    limit: int = Query(50, ge=1, le=500),
    sync_type: str | None = Query(None),
    status: str | None = Query(None, description="running, success or error"),
    session: AsyncSession = Depends(get_db),
) -> list[SyncLogResponse]:
    logs = await list_sync_logs(session, limit=limit, sync_type=sync_type, status=status)
    return [SyncLogResponse.model_validate(log) for log in logs]


@router.get("/summary", response_model=list[SyncLogSummaryResponse])
async def get_sync_log_summary(session: AsyncSession = Depends(get_db)) -> list[SyncLogSummaryResponse]:
    summaries = await summarize_sync_logs(session)
    return [SyncLogSummaryResponse.model_validate(summaries[key]) for key in sorted(summaries)]
