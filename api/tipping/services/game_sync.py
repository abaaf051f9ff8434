"""Persist Squiggle fixtures and results into rounds, games and teams.

Rounds are insert-or-ignore on (round_number, year); games are upserted on
(year, squiggle_game_key). Rerunning a sync with the same payload rewrites the
same values.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.sports import Game, Round, RoundStatus, Team
from ..db.upsert import upsert
from ..logging import logger
from ..squiggle.models import ProcessedGame, SquiggleTeam
from ..utils.datetime_utils import now_utc

_GAME_UPDATE_COLUMNS = [
    "round_id",
    "home_team",
    "away_team",
    "home_score",
    "away_score",
    "start_time",
    "venue",
    "completion",
    "is_complete",
    "winner",
    "external_id",
    "is_final",
    "is_grand_final",
    "external_payload",
    "updated_at",
]


@dataclass
class SyncResult:
    games_saved: int = 0
    games_skipped: int = 0
    round_ids: set[int] = field(default_factory=set)
    completed_game_ids: set[int] = field(default_factory=set)


class GameSyncService:
    def __init__(self, clock: Callable[[], datetime] = now_utc) -> None:
        self._clock = clock

    async def _ensure_round(self, session: AsyncSession, round_number: int, year: int) -> int:
        await upsert(
            session,
            Round,
            {"round_number": round_number, "year": year, "status": RoundStatus.upcoming.value},
            conflict_columns=["round_number", "year"],
            update_columns=[],
        )
        return (
            await session.execute(
                select(Round.id).where(Round.round_number == round_number, Round.year == year)
            )
        ).scalar_one()

    async def save_games(self, session: AsyncSession, games: Iterable[ProcessedGame]) -> SyncResult:
        """Upsert fixtures. Games without both teams, a kick-off or a venue are skipped."""
        result = SyncResult()
        round_ids: dict[tuple[int, int], int] = {}
        now = self._clock()

        for game in games:
            if not game.has_teams or game.start_time is None or not game.venue:
                result.games_skipped += 1
                logger.debug(
                    "squiggle_game_skipped",
                    squiggle_key=game.squiggle_key,
                    external_id=game.external_id,
                    reason="incomplete_fixture",
                )
                continue

            round_key = (game.round_number, game.year)
            if round_key not in round_ids:
                round_ids[round_key] = await self._ensure_round(session, game.round_number, game.year)
            round_id = round_ids[round_key]

            await upsert(
                session,
                Game,
                {
                    "year": game.year,
                    "squiggle_game_key": game.squiggle_key,
                    "round_id": round_id,
                    "home_team": game.home_team,
                    "away_team": game.away_team,
                    "home_score": game.home_score,
                    "away_score": game.away_score,
                    "start_time": game.start_time,
                    "venue": game.venue,
                    "completion": game.completion,
                    "is_complete": game.is_complete,
                    "winner": game.winner,
                    "external_id": game.external_id,
                    "is_final": game.is_final,
                    "is_grand_final": game.is_grand_final,
                    "external_payload": game.payload,
                    "updated_at": now,
                },
                conflict_columns=["year", "squiggle_game_key"],
                update_columns=_GAME_UPDATE_COLUMNS,
            )
            result.games_saved += 1
            result.round_ids.add(round_id)
            if game.is_complete:
                game_id = (
                    await session.execute(
                        select(Game.id).where(
                            Game.year == game.year, Game.squiggle_game_key == game.squiggle_key
                        )
                    )
                ).scalar_one()
                result.completed_game_ids.add(game_id)

        await session.flush()
        logger.info(
            "games_saved",
            saved=result.games_saved,
            skipped=result.games_skipped,
            rounds=len(result.round_ids),
            completed=len(result.completed_game_ids),
        )
        return result

    async def update_live_scores(self, session: AsyncSession, games: Iterable[ProcessedGame]) -> SyncResult:
        """Only games that have started reporting (progress or scores)."""
        live = [g for g in games if g.completion > 0 or g.home_score is not None]
        return await self.save_games(session, live)

    async def save_teams(self, session: AsyncSession, teams: Iterable[SquiggleTeam]) -> int:
        saved = 0
        now = self._clock()
        for team in teams:
            await upsert(
                session,
                Team,
                {
                    "id": team.id,
                    "name": team.name,
                    "abbreviation": team.abbrev,
                    "logo": team.logo,
                    "primary_colour": team.primarycolour,
                    "secondary_colour": team.secondarycolour,
                    "updated_at": now,
                },
                conflict_columns=["id"],
            )
            saved += 1
        await session.flush()
        logger.info("teams_saved", teams=saved)
        return saved
