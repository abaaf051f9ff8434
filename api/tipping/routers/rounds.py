"""Round endpoints: current round, season listing, games, tips and lockout state."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..db.sports import Round
from ..dependencies.services import get_services
from ..services import Services
from .schemas import (
    GameResponse,
    RoundGamesResponse,
    RoundOpenResponse,
    RoundResponse,
    RoundStatsResponse,
    RoundStatusResponse,
    RoundSummaryResponse,
    TippingGameResponse,
    TipResponse,
    tip_response,
)

router = APIRouter(prefix="/api/rounds", tags=["rounds"])


@router.get("/current/{year}", response_model=RoundResponse)
async def get_current_round(
    year: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> RoundResponse:
    round_ = await services.round_status.get_current_round(session, year)
    if round_ is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No rounds for {year}")
    return RoundResponse.model_validate(round_)


@router.get("/{year}", response_model=list[RoundSummaryResponse])
async def list_rounds(
    year: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[RoundSummaryResponse]:
    summaries = await services.round_status.list_rounds(session, year)
    return [
        RoundSummaryResponse(
            **RoundResponse.model_validate(summary.round).model_dump(),
            game_count=summary.game_count,
            completed_games=summary.completed_games,
            first_game_time=summary.first_game_time,
            last_game_time=summary.last_game_time,
        )
        for summary in summaries
    ]


@router.get("/{round_id}/games", response_model=RoundGamesResponse)
async def get_round_games(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> RoundGamesResponse:
    """Games in start order, each flagged with its lockout and margin state."""
    round_, games = await services.tips.get_games_for_tipping(session, round_id)
    is_open = await services.round_status.is_round_open(session, round_id)
    return RoundGamesResponse(
        round=RoundResponse.model_validate(round_),
        is_open=is_open,
        games=[
            TippingGameResponse(
                **GameResponse.model_validate(item.game).model_dump(),
                is_margin_game=item.is_margin_game,
                is_locked=item.is_locked,
            )
            for item in games
        ],
    )


@router.get("/{round_id}/tips", response_model=list[TipResponse])
async def get_round_tips(
    round_id: int,
    user_id: int | None = Query(None, description="Limit to one user's tips"),
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[TipResponse]:
    details = await services.tips.get_tips_for_round(session, round_id, user_id=user_id)
    return [tip_response(detail) for detail in details]


@router.get("/{round_id}/stats", response_model=RoundStatsResponse)
async def get_round_stats(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> RoundStatsResponse:
    stats = await services.tips.get_round_stats(session, round_id)
    return RoundStatsResponse(**vars(stats))


@router.post("/{round_id}/update-status", response_model=RoundStatusResponse)
async def update_round_status(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> RoundStatusResponse:
    resolution = await services.round_status.refresh_round(session, round_id)
    return RoundStatusResponse(
        round_id=round_id,
        status=resolution.status.value,
        lockout_time=resolution.lockout_time,
    )


@router.get("/{round_id}/is-open", response_model=RoundOpenResponse)
async def is_round_open(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> RoundOpenResponse:
    is_open = await services.round_status.is_round_open(session, round_id)
    round_ = await session.get(Round, round_id)
    return RoundOpenResponse(round_id=round_id, is_open=is_open, lockout_time=round_.lockout_time)
