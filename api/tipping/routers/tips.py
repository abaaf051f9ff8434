"""Tip submission, deletion, correctness and finals margin endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..dependencies.services import get_services
from ..services import Services
from ..services.tips import TipSubmission
from .schemas import (
    CorrectnessResponse,
    FinalsConfigResponse,
    RoundWinnerResponse,
    TipBatchRequest,
    TipBatchResponse,
    TipResponse,
    TipResultResponse,
    tip_response,
)

router = APIRouter(prefix="/api/tips", tags=["tips"])


@router.post("/", response_model=TipBatchResponse)
async def submit_tips(
    payload: TipBatchRequest,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> TipBatchResponse:
    """Submit tips for yourself or, with permission, for another user.

    A forbidden or unknown user fails the whole request. Individual tips that
    are locked or invalid come back with their outcome and the rest are saved.
    """
    target_user_id = payload.target_user_id or payload.acting_user_id
    batch = await services.tips.submit_tips(
        session,
        payload.acting_user_id,
        target_user_id,
        [
            TipSubmission(
                game_id=tip.game_id,
                selected_team=tip.selected_team,
                margin_prediction=tip.margin_prediction,
            )
            for tip in payload.tips
        ],
    )
    return TipBatchResponse(
        target_user_id=batch.target_user_id,
        submitted_count=batch.submitted_count,
        total_attempted=batch.total_attempted,
        results=[
            TipResultResponse(
                game_id=result.game_id,
                outcome=result.outcome.value,
                reason=result.reason,
                tip_id=result.tip_id,
            )
            for result in batch.results
        ],
    )


@router.get("/user/{user_id}/round/{round_id}", response_model=list[TipResponse])
async def get_user_round_tips(
    user_id: int,
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[TipResponse]:
    details = await services.tips.get_user_tips_for_round(session, user_id, round_id)
    return [tip_response(detail) for detail in details]


@router.get("/user/{user_id}", response_model=list[TipResponse])
async def get_user_tips(
    user_id: int,
    year: int | None = Query(None),
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[TipResponse]:
    await services.users.get_user(session, user_id)
    details = await services.tips.get_all_user_tips(session, user_id, year=year)
    return [tip_response(detail) for detail in details]


@router.delete("/{tip_id}")
async def delete_tip(
    tip_id: int,
    acting_user_id: int = Query(..., description="User performing the deletion"),
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> dict[str, object]:
    await services.tips.delete_tip(session, tip_id, acting_user_id)
    return {"deleted": True, "tip_id": tip_id}


@router.post("/game/{game_id}/update-correctness", response_model=CorrectnessResponse)
async def update_game_correctness(
    game_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> CorrectnessResponse:
    counts = await services.scoring.process_completed_game(session, game_id)
    return CorrectnessResponse(game_id=game_id, **counts)


@router.get("/finals-config/{round_number}", response_model=FinalsConfigResponse)
async def get_finals_config(
    round_number: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> FinalsConfigResponse:
    config = await services.finals.get_config(session, round_number)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Round {round_number} has no finals configuration",
        )
    return FinalsConfigResponse.model_validate(config)


@router.post("/round/{round_id}/calculate-margin-winner", response_model=list[RoundWinnerResponse])
async def calculate_margin_winner(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[RoundWinnerResponse]:
    winners = await services.scoring.calculate_round_winners(session, round_id)
    return [RoundWinnerResponse.model_validate(winner) for winner in winners]


@router.get("/round/{round_id}/winners", response_model=list[RoundWinnerResponse])
async def get_round_winners(
    round_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[RoundWinnerResponse]:
    winners = await services.scoring.get_round_winners(session, round_id)
    return [RoundWinnerResponse.model_validate(winner) for winner in winners]
