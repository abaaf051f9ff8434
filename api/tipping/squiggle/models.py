"""Squiggle API payloads and their processing into fixture rows."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..logging import logger
from ..utils.datetime_utils import MELBOURNE


class SquiggleGame(BaseModel):
    """One record from ``?q=games``."""

    model_config = ConfigDict(extra="allow")

    id: int
    round: int
    year: int | None = None
    hteam: str | None = None
    ateam: str | None = None
    date: str | None = None
    localtime: str | None = None
    tz: str | None = None
    unixtime: int | None = None
    venue: str | None = None
    complete: int = 0
    hscore: int | None = None
    ascore: int | None = None
    hgoals: int | None = None
    agoals: int | None = None
    hbehinds: int | None = None
    abehinds: int | None = None
    hmargin: int | None = None
    winner: str | None = None
    is_final: int = 0
    is_grand_final: int = 0

    def start_time(self) -> datetime | None:
        """Kick-off in UTC.

        Prefers ``unixtime``; otherwise ``date`` with the ``tz`` offset, falling
        back to Melbourne time when no offset is published.
        """
        if self.unixtime:
            return datetime.fromtimestamp(self.unixtime, tz=timezone.utc)
        raw = self.date or self.localtime
        if not raw:
            return None
        parsed = datetime.fromisoformat(raw.replace(" ", "T"))
        if parsed.tzinfo is None:
            if self.tz:
                parsed = datetime.fromisoformat(f"{raw.replace(' ', 'T')}{self.tz}")
            else:
                parsed = parsed.replace(tzinfo=MELBOURNE)
        return parsed.astimezone(timezone.utc)


class SquiggleTeam(BaseModel):
    """One record from ``?q=teams``."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    abbrev: str | None = None
    logo: str | None = None
    primarycolour: str | None = None
    secondarycolour: str | None = None


class ProcessedGame(BaseModel):
    """A Squiggle game with its fixture key and parsed kick-off."""

    squiggle_key: str
    year: int
    round_number: int
    ordinal: int
    external_id: int
    home_team: str | None
    away_team: str | None
    start_time: datetime | None
    venue: str | None
    completion: int = Field(ge=0, le=100)
    home_score: int | None = None
    away_score: int | None = None
    winner: str | None = None
    is_final: bool = False
    is_grand_final: bool = False
    payload: dict[str, Any]

    @property
    def is_complete(self) -> bool:
        return self.completion == 100

    @property
    def has_teams(self) -> bool:
        return bool(self.home_team and self.away_team)


def game_key(round_number: int, ordinal: int) -> str:
    """Two-digit zero-padded round followed by the game's ordinal in the round.

    Round 7, third game -> "073". Round 1, sixth game -> "016".
    """
    return f"{round_number:02d}{ordinal}"


def _order_key(game: SquiggleGame) -> tuple:
    start = game.start_time()
    return (start is None, start or datetime.max.replace(tzinfo=timezone.utc), game.id)


def process_games(raw_games: Iterable[SquiggleGame], year: int) -> list[ProcessedGame]:
    """Group by round, order each round by kick-off, and number games from 1."""
    by_round: dict[int, list[SquiggleGame]] = defaultdict(list)
    for game in raw_games:
        by_round[game.round].append(game)

    processed: list[ProcessedGame] = []
    for round_number in sorted(by_round):
        games = sorted(by_round[round_number], key=_order_key)
        if len(games) > 9:
            logger.warning("squiggle_round_ordinal_overflow", round_number=round_number, games=len(games))
        for ordinal, game in enumerate(games, start=1):
            processed.append(
                ProcessedGame(
                    squiggle_key=game_key(round_number, ordinal),
                    year=game.year or year,
                    round_number=round_number,
                    ordinal=ordinal,
                    external_id=game.id,
                    home_team=game.hteam,
                    away_team=game.ateam,
                    start_time=game.start_time(),
                    venue=game.venue,
                    completion=max(0, min(100, game.complete)),
                    home_score=game.hscore,
                    away_score=game.ascore,
                    winner=game.winner,
                    is_final=bool(game.is_final),
                    is_grand_final=bool(game.is_grand_final),
                    payload=game.model_dump(),
                )
            )
    return processed
