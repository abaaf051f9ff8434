"""Round lifecycle: status and lockout derived from a round's games.

The stored ``Round.status`` is a cache. ``resolve_status`` is the only place
the value is computed, and ``RoundStatusService.refresh_*`` are the only
writers. Every refresh is idempotent and skips the write when nothing changed.

Status priority (first match wins):
    1. every game at completion 100          -> completed
    2. any game with 0 < completion < 100    -> active
    3. now >= earliest game start            -> active
    4. otherwise                             -> upcoming
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.sports import Game, Round, RoundStatus
from ..errors import NotFoundError
from ..logging import logger
from ..utils.datetime_utils import ensure_utc, now_utc


class GameState(Protocol):
    completion: int
    start_time: datetime


@dataclass(frozen=True)
class RoundResolution:
    status: RoundStatus
    lockout_time: datetime | None


@dataclass
class RoundSummary:
    round: Round
    game_count: int
    completed_games: int
    first_game_time: datetime | None
    last_game_time: datetime | None


def resolve_status(
    games: Sequence[GameState],
    now: datetime,
    lockout_time: datetime | None = None,
) -> RoundResolution:
    """Compute a round's status and lockout time from its games.

    ``lockout_time`` is the value currently stored on the round. Once set it is
    returned unchanged; otherwise it becomes the earliest game start.
    """
    now = ensure_utc(now)
    starts = [ensure_utc(game.start_time) for game in games]
    first_start = min(starts) if starts else None

    if games and all(game.completion == 100 for game in games):
        status = RoundStatus.completed
    elif any(0 < game.completion < 100 for game in games):
        status = RoundStatus.active
    elif first_start is not None and now >= first_start:
        status = RoundStatus.active
    else:
        status = RoundStatus.upcoming

    if lockout_time is None:
        lockout_time = first_start
    return RoundResolution(status=status, lockout_time=ensure_utc(lockout_time))


class RoundStatusService:
    """Refreshes cached round status and answers "which round is current"."""

    def __init__(
        self,
        clock: Callable[[], datetime] = now_utc,
        grace_days: int | None = None,
    ) -> None:
        self._clock = clock
        if grace_days is None:
            grace_days = settings.scheduler.current_round_grace_days
        self._grace = timedelta(days=grace_days)

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    async def _get_round(self, session: AsyncSession, round_id: int) -> Round:
        round_ = await session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError("Round", round_id)
        return round_

    def _apply(self, round_: Round, games: Sequence[Game], now: datetime) -> tuple[RoundResolution, bool, bool]:
        resolution = resolve_status(games, now, ensure_utc(round_.lockout_time))
        status_changed = round_.status != resolution.status.value
        lockout_set = round_.lockout_time is None and resolution.lockout_time is not None

        if status_changed:
            logger.info(
                "round_status_changed",
                round_id=round_.id,
                round_number=round_.round_number,
                year=round_.year,
                from_status=round_.status,
                to_status=resolution.status.value,
            )
            round_.status = resolution.status.value
        if lockout_set:
            logger.info(
                "round_lockout_set",
                round_id=round_.id,
                round_number=round_.round_number,
                lockout_time=resolution.lockout_time.isoformat(),
            )
            round_.lockout_time = resolution.lockout_time
        return resolution, status_changed, lockout_set

    async def refresh_round(self, session: AsyncSession, round_id: int) -> RoundResolution:
        """Recompute one round's status and lockout, writing only on change."""
        round_ = await self._get_round(session, round_id)
        games = (
            await session.execute(
                select(Game)
                .where(Game.round_id == round_id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        resolution, status_changed, lockout_set = self._apply(round_, games, self.now())
        if status_changed or lockout_set:
            await session.flush()
        return resolution

    async def refresh_rounds(self, session: AsyncSession, round_ids: Iterable[int]) -> dict[str, int]:
        counts = {"checked": 0, "status_changed": 0, "lockout_set": 0}
        for round_id in sorted(set(round_ids)):
            round_ = await self._get_round(session, round_id)
            games = (
                await session.execute(
                    select(Game)
                    .where(Game.round_id == round_id)
                    .execution_options(populate_existing=True)
                )
            ).scalars().all()
            _, status_changed, lockout_set = self._apply(round_, games, self.now())
            counts["checked"] += 1
            counts["status_changed"] += int(status_changed)
            counts["lockout_set"] += int(lockout_set)
        await session.flush()
        return counts

    async def refresh_year(self, session: AsyncSession, year: int) -> dict[str, int]:
        """Refresh every round of a season. Returns transition counts."""
        rounds = (
            await session.execute(
                select(Round).where(Round.year == year).order_by(Round.round_number)
            )
        ).scalars().all()
        games = (
            await session.execute(
                select(Game)
                .join(Round, Game.round_id == Round.id)
                .where(Round.year == year)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        games_by_round: dict[int, list[Game]] = defaultdict(list)
        for game in games:
            games_by_round[game.round_id].append(game)

        now = self.now()
        counts = {"checked": 0, "status_changed": 0, "lockout_set": 0}
        for round_ in rounds:
            _, status_changed, lockout_set = self._apply(round_, games_by_round[round_.id], now)
            counts["checked"] += 1
            counts["status_changed"] += int(status_changed)
            counts["lockout_set"] += int(lockout_set)

        if counts["status_changed"] or counts["lockout_set"]:
            await session.flush()
            logger.info("round_status_refresh_complete", year=year, **counts)
        return counts

    async def get_current_round(self, session: AsyncSession, year: int) -> Round | None:
        """The round the UI should show right now.

        A just-completed round stays current for the grace window after its
        last game's start so results remain visible.
        """
        await self.refresh_year(session, year)
        rows = (
            await session.execute(
                select(Round, func.max(Game.start_time).label("last_game_time"))
                .outerjoin(Game, Game.round_id == Round.id)
                .where(Round.year == year)
                .group_by(Round.id)
                .order_by(Round.round_number)
            )
        ).all()
        if not rows:
            return None

        now = self.now()
        completed = [
            (row.Round, ensure_utc(row.last_game_time))
            for row in rows
            if row.Round.status == RoundStatus.completed.value and row.last_game_time is not None
        ]
        if completed:
            latest_round, last_game_time = max(completed, key=lambda item: item[1])
            if now <= last_game_time + self._grace:
                return latest_round

        for wanted in (RoundStatus.active, RoundStatus.upcoming):
            for row in rows:
                if row.Round.status == wanted.value:
                    return row.Round
        return rows[-1].Round

    async def is_round_open(self, session: AsyncSession, round_id: int) -> bool:
        """Open while the round's lockout time is unset or still ahead."""
        round_ = await self._get_round(session, round_id)
        lockout_time = ensure_utc(round_.lockout_time)
        return lockout_time is None or self.now() <= lockout_time

    async def override_lockout(
        self, session: AsyncSession, round_id: int, lockout_time: datetime | None
    ) -> Round:
        """Administrative override of a round's lockout (demo and test tooling)."""
        round_ = await self._get_round(session, round_id)
        logger.warning(
            "round_lockout_overridden",
            round_id=round_id,
            previous=round_.lockout_time.isoformat() if round_.lockout_time else None,
            lockout_time=lockout_time.isoformat() if lockout_time else None,
        )
        round_.lockout_time = ensure_utc(lockout_time)
        await session.flush()
        return round_

    async def list_rounds(self, session: AsyncSession, year: int) -> list[RoundSummary]:
        """Rounds of a season with game counts and first/last start times."""
        stmt = (
            select(
                Round,
                func.count(Game.id).label("game_count"),
                func.count(case((Game.is_complete.is_(True), 1))).label("completed_games"),
                func.min(Game.start_time).label("first_game_time"),
                func.max(Game.start_time).label("last_game_time"),
            )
            .outerjoin(Game, Game.round_id == Round.id)
            .where(Round.year == year)
            .group_by(Round.id)
            .order_by(Round.round_number)
        )
        rows = (await session.execute(stmt)).all()
        return [
            RoundSummary(
                round=row.Round,
                game_count=row.game_count,
                completed_games=row.completed_games,
                first_game_time=ensure_utc(row.first_game_time),
                last_game_time=ensure_utc(row.last_game_time),
            )
            for row in rows
        ]
