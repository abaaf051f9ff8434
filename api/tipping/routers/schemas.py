"""Pydantic request/response schemas for the tipping API."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from ..utils.datetime_utils import ensure_utc

if TYPE_CHECKING:
    from ..services.tips import TipDetail

# SQLite hands back naive datetimes; every timestamp leaves the API in UTC.
UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Users and family groups


class UserResponse(ORMModel):
    id: int
    name: str
    email: str | None = None
    family_group_id: int | None = None
    role: str


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    family_group_id: int | None = None
    role: str = "user"
    email: str | None = None


class UserUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    family_group_id: int | None = None
    role: str | None = None
    email: str | None = None


class CanTipForResponse(BaseModel):
    acting_user_id: int
    target_user_id: int
    can_tip: bool


class UserStatsResponse(BaseModel):
    user_id: int
    total_tips: int
    correct_tips: int
    incorrect_tips: int
    pending_tips: int
    rounds_tipped: int
    percentage: float


class FamilyGroupResponse(BaseModel):
    id: int
    name: str
    member_count: int


class FamilyGroupDetailResponse(BaseModel):
    id: int
    name: str
    members: list[UserResponse]


class FamilyGroupCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


# Rounds and games


class RoundResponse(ORMModel):
    id: int
    round_number: int
    year: int
    status: str
    lockout_time: UTCDateTime | None = None


class RoundSummaryResponse(RoundResponse):
    game_count: int
    completed_games: int
    first_game_time: UTCDateTime | None = None
    last_game_time: UTCDateTime | None = None


class GameResponse(ORMModel):
    id: int
    squiggle_game_key: str
    round_id: int
    home_team: str
    away_team: str
    home_score: int | None = None
    away_score: int | None = None
    start_time: UTCDateTime
    venue: str | None = None
    completion: int
    is_complete: bool
    winner: str | None = None
    is_final: bool = False
    is_grand_final: bool = False


class TippingGameResponse(GameResponse):
    is_margin_game: bool
    is_locked: bool


class RoundGamesResponse(BaseModel):
    round: RoundResponse
    is_open: bool
    games: list[TippingGameResponse]


class RoundOpenResponse(BaseModel):
    round_id: int
    is_open: bool
    lockout_time: UTCDateTime | None = None


class RoundStatusResponse(BaseModel):
    round_id: int
    status: str
    lockout_time: UTCDateTime | None = None


class RoundStatsResponse(BaseModel):
    round_id: int
    users_tipped: int
    total_tips: int
    correct_tips: int
    incorrect_tips: int
    pending_tips: int
    games_with_tips: int


class LockoutOverrideRequest(BaseModel):
    lockout_time: UTCDateTime | None = None


# Tips


class TipIn(BaseModel):
    game_id: int
    selected_team: str
    # Checked per tip by the service so a bad margin rejects one tip, not the batch.
    margin_prediction: Any = None


class TipBatchRequest(BaseModel):
    acting_user_id: int
    target_user_id: int | None = None
    tips: list[TipIn] = Field(..., min_length=1)


class TipResultResponse(BaseModel):
    game_id: int
    outcome: str
    reason: str | None = None
    tip_id: int | None = None


class TipBatchResponse(BaseModel):
    target_user_id: int
    submitted_count: int
    total_attempted: int
    results: list[TipResultResponse]


class TipResponse(BaseModel):
    id: int
    user_id: int
    user_name: str
    game_id: int
    round_id: int
    round_number: int
    year: int
    selected_team: str
    is_correct: bool | None = None
    margin_prediction: int | None = None
    is_margin_game: bool
    margin_difference: int | None = None
    home_team: str
    away_team: str
    venue: str | None = None
    start_time: UTCDateTime
    is_complete: bool
    home_score: int | None = None
    away_score: int | None = None


class CorrectnessResponse(BaseModel):
    game_id: int
    tips_marked: int
    margins_updated: int
    round_winners: int


class FinalsConfigResponse(ORMModel):
    round_number: int
    requires_margin: bool
    margin_game_position: str


class RoundWinnerResponse(ORMModel):
    round_id: int
    user_id: int
    win_type: str
    margin_difference: int | None = None
    points_awarded: int


# Ladder


class LadderEntryResponse(ORMModel):
    rank: int
    user_id: int
    name: str
    family_group_id: int | None = None
    family_group_name: str | None = None
    total_tips: int
    correct_tips: int
    completed_tips: int
    percentage: float
    latest_round: int | None = None


class LadderResponse(BaseModel):
    year: int
    ladder: list[LadderEntryResponse]
    total_rounds: int
    completed_rounds: int
    last_updated: UTCDateTime


class FamilyStandingResponse(ORMModel):
    rank: int
    family_group_id: int
    family_group_name: str
    member_count: int
    total_tips: int
    correct_tips: int
    completed_tips: int
    percentage: float
    average_correct_per_member: float


class RoundPerformanceResponse(ORMModel):
    round_id: int
    round_number: int
    status: str
    total_tips: int
    correct_tips: int
    incorrect_tips: int
    pending_tips: int
    percentage: float


class StreakResponse(ORMModel):
    current_streak: int
    current_streak_type: str | None = None
    longest_correct_streak: int
    longest_incorrect_streak: int
    total_decided_tips: int


class HeadToHeadResponse(ORMModel):
    user1_id: int
    user2_id: int
    user1_wins: int
    user2_wins: int
    draws: int
    total_compared: int


class TipPopularityResponse(ORMModel):
    game_id: int
    home_team: str
    away_team: str
    venue: str | None = None
    home_tips: int
    away_tips: int
    total_tips: int
    home_percentage: float | None = None


# Scheduler and logs


class SchedulerStatusResponse(BaseModel):
    enabled: bool
    job_count: int
    in_season: bool
    season_year: int


class SchedulerJobResponse(BaseModel):
    id: str
    name: str
    description: str
    cron: str
    seasonal: bool
    runs: int
    errors: int
    last_run_at: UTCDateTime | None = None
    last_status: str | None = None
    last_error: str | None = None


class JobOutcomeResponse(BaseModel):
    job_id: str
    status: str
    records_processed: int = 0
    summary: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    reason: str | None = None
    sync_log_id: int | None = None


class CacheStatsResponse(BaseModel):
    namespace: str
    entries: int
    items: list[dict[str, Any]]


class CacheClearResponse(BaseModel):
    cleared: int


class SyncLogResponse(ORMModel):
    id: int
    sync_type: str
    status: str
    records_processed: int
    error_message: str | None = None
    summary_data: dict[str, Any] | None = None
    manual: bool
    started_at: UTCDateTime | None = None
    finished_at: UTCDateTime | None = None
    duration_seconds: float | None = None
    created_at: UTCDateTime


class SyncLogSummaryResponse(ORMModel):
    sync_type: str
    runs: int
    errors: int
    last_run_at: UTCDateTime | None = None
    last_status: str | None = None
    last_error: str | None = None
    last_error_at: UTCDateTime | None = None


def tip_response(detail: TipDetail) -> TipResponse:
    tip, game = detail.tip, detail.game
    return TipResponse(
        id=tip.id,
        user_id=tip.user_id,
        user_name=detail.user_name,
        game_id=tip.game_id,
        round_id=tip.round_id,
        round_number=detail.round_number,
        year=detail.year,
        selected_team=tip.selected_team,
        is_correct=tip.is_correct,
        margin_prediction=tip.margin_prediction,
        is_margin_game=tip.is_margin_game,
        margin_difference=tip.margin_difference,
        home_team=game.home_team,
        away_team=game.away_team,
        venue=game.venue,
        start_time=game.start_time,
        is_complete=game.is_complete,
        home_score=game.home_score,
        away_score=game.away_score,
    )
