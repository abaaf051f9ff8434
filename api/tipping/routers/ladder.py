"""Season ladder, family standings, per-user performance and tip popularity."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..dependencies.services import get_services
from ..services import Services
from .schemas import (
    FamilyStandingResponse,
    HeadToHeadResponse,
    LadderEntryResponse,
    LadderResponse,
    RoundPerformanceResponse,
    StreakResponse,
    TipPopularityResponse,
)

router = APIRouter(prefix="/api/ladder", tags=["ladder"])


@router.get("/round/{round_id}/popularity", response_model=list[TipPopularityResponse])
async def get_round_popularity(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[TipPopularityResponse]:
    rows = await services.ladder.get_round_tip_popularity(session, round_id)
    return [TipPopularityResponse.model_validate(row) for row in rows]


@router.get("/{year}", response_model=LadderResponse)
async def get_ladder(
    year: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> LadderResponse:
    ladder = await services.ladder.get_ladder(session, year)
    return LadderResponse(
        year=ladder.year,
        ladder=[LadderEntryResponse.model_validate(entry) for entry in ladder.entries],
        total_rounds=ladder.total_rounds,
        completed_rounds=ladder.completed_rounds,
        last_updated=ladder.last_updated,
    )


@router.get("/{year}/family-groups", response_model=list[FamilyStandingResponse])
async def get_family_group_standings(
    year: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[FamilyStandingResponse]:
    standings = await services.ladder.get_family_group_standings(session, year)
    return [FamilyStandingResponse.model_validate(standing) for standing in standings]


@router.get("/{year}/user/{user_id}", response_model=LadderEntryResponse)
async def get_user_position(
    year: int,
    user_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> LadderEntryResponse:
    await services.users.get_user(session, user_id)
    entry = await services.ladder.get_user_position(session, user_id, year)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} has no tips in {year}",
        )
    return LadderEntryResponse.model_validate(entry)


@router.get("/{year}/user/{user_id}/performance", response_model=list[RoundPerformanceResponse])
async def get_round_by_round(
    year: int,
    user_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[RoundPerformanceResponse]:
    await services.users.get_user(session, user_id)
    rounds = await services.ladder.get_round_by_round(session, user_id, year)
    return [RoundPerformanceResponse.model_validate(row) for row in rounds]


@router.get("/{year}/user/{user_id}/streaks", response_model=StreakResponse)
async def get_streaks(
    year: int,
    user_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> StreakResponse:
    await services.users.get_user(session, user_id)
    return StreakResponse.model_validate(await services.ladder.get_streaks(session, user_id, year))


@router.get("/{year}/head-to-head/{user1_id}/{user2_id}", response_model=HeadToHeadResponse)
async def get_head_to_head(
    year: int,
    user1_id: int,
    user2_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> HeadToHeadResponse:
    result = await services.ladder.get_head_to_head(session, user1_id, user2_id, year)
    return HeadToHeadResponse.model_validate(result)
