"""Tip submission and lockout authority.

Checks run in a fixed order and stop at the first failure:

    1. permission          hard error (TippingForbidden), whole request fails
    2. game exists         soft: outcome ``not_found``
    3. team / margin       soft: outcome ``validation``
    4. game lockout        soft: outcome ``game_locked``
    5. round commitment    soft: outcome ``round_locked``

Game lockout applies once a game has started or reported any progress.
Round-commitment lockout applies once the round's first game has started and
the user already holds at least one tip in that round. From then on every one
of their tips for the round is frozen, including tips on games that have not
started. A user holding no tips in the round can still tip each game up to its
own start.

Check-then-write is not atomic. A lockout change racing a submission is
accepted; the (user_id, game_id) upsert still guarantees one tip per game.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.competition import Tip, User
from ..db.sports import Game, Round
from ..db.upsert import upsert
from ..errors import NotFoundError, TipLocked, TipNotFound, TippingForbidden
from ..logging import logger
from ..utils.datetime_utils import ensure_utc, now_utc
from .finals import FinalsService
from .users import UserService, can_act_for


class TipOutcome(str, Enum):
    submitted = "submitted"
    not_found = "not_found"
    validation = "validation"
    game_locked = "game_locked"
    round_locked = "round_locked"


@dataclass
class TipSubmission:
    game_id: int
    selected_team: str
    margin_prediction: Any = None


@dataclass
class TipResult:
    game_id: int
    outcome: TipOutcome
    reason: str | None = None
    tip_id: int | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome is TipOutcome.submitted


@dataclass
class BatchResult:
    target_user_id: int
    submitted_count: int = 0
    total_attempted: int = 0
    results: list[TipResult] = field(default_factory=list)


@dataclass
class TipDetail:
    tip: Tip
    game: Game
    user_name: str
    round_number: int
    year: int


@dataclass
class RoundTipStats:
    round_id: int
    users_tipped: int
    total_tips: int
    correct_tips: int
    incorrect_tips: int
    pending_tips: int
    games_with_tips: int


@dataclass
class GameForTipping:
    game: Game
    is_margin_game: bool
    is_locked: bool


def _valid_margin(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def game_is_locked(game: Game, now: datetime) -> bool:
    """Started, or the results source already reports progress."""
    return ensure_utc(game.start_time) <= now or game.completion > 0


class TipsService:
    def __init__(
        self,
        users: UserService,
        finals: FinalsService,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._users = users
        self._finals = finals
        self._clock = clock

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    async def _authorize(self, session: AsyncSession, acting_user_id: int, target_user_id: int) -> User:
        acting = await self._users.get_user(session, acting_user_id)
        target = await self._users.get_user(session, target_user_id)
        if not can_act_for(acting, target):
            logger.warning(
                "tip_permission_denied",
                acting_user_id=acting_user_id,
                target_user_id=target_user_id,
            )
            raise TippingForbidden(acting_user_id, target_user_id)
        return target

    async def _first_game_time(self, session: AsyncSession, round_id: int) -> datetime | None:
        value = (
            await session.execute(select(func.min(Game.start_time)).where(Game.round_id == round_id))
        ).scalar_one_or_none()
        return ensure_utc(value)

    async def _user_tip_count(self, session: AsyncSession, user_id: int, round_id: int) -> int:
        return (
            await session.execute(
                select(func.count(Tip.id)).where(Tip.user_id == user_id, Tip.round_id == round_id)
            )
        ).scalar_one()

    async def _submit_one(
        self,
        session: AsyncSession,
        target_user_id: int,
        submission: TipSubmission,
        now: datetime,
        committed: dict[int, bool] | None = None,
    ) -> TipResult:
        """Check and store one tip.

        ``committed`` maps round id to whether the user already held tips in
        that round when the batch began; tips written earlier in the same
        batch do not count towards round lockout.
        """
        if committed is None:
            committed = {}
        row = (
            await session.execute(
                select(Game, Round).join(Round, Game.round_id == Round.id).where(Game.id == submission.game_id)
            )
        ).one_or_none()
        if row is None:
            return TipResult(submission.game_id, TipOutcome.not_found, "Game not found")
        game, round_ = row.Game, row.Round

        if submission.selected_team not in (game.home_team, game.away_team):
            return TipResult(
                game.id,
                TipOutcome.validation,
                f"{submission.selected_team!r} is not playing in this game",
            )
        if submission.margin_prediction is not None and not _valid_margin(submission.margin_prediction):
            return TipResult(game.id, TipOutcome.validation, "Margin prediction must be a non-negative whole number")

        if game_is_locked(game, now):
            return TipResult(game.id, TipOutcome.game_locked, "This game has already started")

        if round_.id not in committed:
            committed[round_.id] = await self._user_tip_count(session, target_user_id, round_.id) > 0
        first_game_time = await self._first_game_time(session, round_.id)
        if first_game_time is not None and now >= first_game_time:
            if committed[round_.id]:
                return TipResult(
                    game.id,
                    TipOutcome.round_locked,
                    "Tips for this round are locked because the round has started",
                )

        margin_game_ids = await self._finals.margin_game_ids(session, round_.id, round_.round_number)
        is_margin_game = game.id in margin_game_ids
        margin_prediction = submission.margin_prediction if is_margin_game else None

        await upsert(
            session,
            Tip,
            {
                "user_id": target_user_id,
                "game_id": game.id,
                "round_id": round_.id,
                "selected_team": submission.selected_team,
                "margin_prediction": margin_prediction,
                "is_margin_game": is_margin_game,
                "updated_at": now,
            },
            conflict_columns=["user_id", "game_id"],
        )
        tip_id = (
            await session.execute(
                select(Tip.id).where(Tip.user_id == target_user_id, Tip.game_id == game.id)
            )
        ).scalar_one()
        return TipResult(game.id, TipOutcome.submitted, tip_id=tip_id)

    async def submit_tip(
        self,
        session: AsyncSession,
        acting_user_id: int,
        target_user_id: int,
        submission: TipSubmission,
    ) -> TipResult:
        await self._authorize(session, acting_user_id, target_user_id)
        result = await self._submit_one(session, target_user_id, submission, self.now())
        self._log_result(acting_user_id, target_user_id, result)
        return result

    async def submit_tips(
        self,
        session: AsyncSession,
        acting_user_id: int,
        target_user_id: int,
        submissions: Sequence[TipSubmission],
    ) -> BatchResult:
        """Submit a batch; a rejected tip is skipped, never fatal to the batch."""
        await self._authorize(session, acting_user_id, target_user_id)
        now = self.now()
        batch = BatchResult(target_user_id=target_user_id)
        committed: dict[int, bool] = {}
        for submission in submissions:
            result = await self._submit_one(session, target_user_id, submission, now, committed)
            self._log_result(acting_user_id, target_user_id, result)
            batch.results.append(result)
            batch.total_attempted += 1
            batch.submitted_count += int(result.accepted)
        await session.flush()
        logger.info(
            "tips_batch_submitted",
            acting_user_id=acting_user_id,
            target_user_id=target_user_id,
            submitted=batch.submitted_count,
            attempted=batch.total_attempted,
        )
        return batch

    @staticmethod
    def _log_result(acting_user_id: int, target_user_id: int, result: TipResult) -> None:
        if result.accepted:
            logger.debug("tip_submitted", game_id=result.game_id, target_user_id=target_user_id)
            return
        logger.warning(
            "tip_skipped",
            game_id=result.game_id,
            outcome=result.outcome.value,
            reason=result.reason,
            acting_user_id=acting_user_id,
            target_user_id=target_user_id,
        )

    async def delete_tip(self, session: AsyncSession, tip_id: int, acting_user_id: int) -> None:
        """Delete a tip while its round is still open. Lockout is a hard error."""
        tip = await session.get(Tip, tip_id)
        if tip is None:
            raise TipNotFound(tip_id)
        await self._authorize(session, acting_user_id, tip.user_id)

        round_ = await session.get(Round, tip.round_id)
        lockout_time = ensure_utc(round_.lockout_time)
        if lockout_time is None:
            lockout_time = await self._first_game_time(session, tip.round_id)
        if lockout_time is not None and self.now() > lockout_time:
            raise TipLocked(
                f"Round {round_.round_number} locked at {lockout_time.isoformat()}; tips can no longer be deleted",
                scope="round",
            )

        await session.delete(tip)
        await session.flush()
        logger.info("tip_deleted", tip_id=tip_id, user_id=tip.user_id, acting_user_id=acting_user_id)

    async def _tip_details(self, session: AsyncSession, *conditions: Any) -> list[TipDetail]:
        stmt = (
            select(Tip, Game, User.name, Round.round_number, Round.year)
            .join(Game, Tip.game_id == Game.id)
            .join(User, Tip.user_id == User.id)
            .join(Round, Tip.round_id == Round.id)
            .where(*conditions)
            .order_by(Round.round_number, Game.start_time, User.name)
        )
        rows = (await session.execute(stmt)).all()
        return [
            TipDetail(tip=row[0], game=row[1], user_name=row[2], round_number=row[3], year=row[4])
            for row in rows
        ]

    async def get_tips_for_round(
        self, session: AsyncSession, round_id: int, user_id: int | None = None
    ) -> list[TipDetail]:
        conditions = [Tip.round_id == round_id]
        if user_id is not None:
            conditions.append(Tip.user_id == user_id)
        return await self._tip_details(session, *conditions)

    async def get_user_tips_for_round(self, session: AsyncSession, user_id: int, round_id: int) -> list[TipDetail]:
        return await self._tip_details(session, Tip.user_id == user_id, Tip.round_id == round_id)

    async def get_all_user_tips(self, session: AsyncSession, user_id: int, year: int | None = None) -> list[TipDetail]:
        conditions = [Tip.user_id == user_id]
        if year is not None:
            conditions.append(Round.year == year)
        return await self._tip_details(session, *conditions)

    async def get_round_stats(self, session: AsyncSession, round_id: int) -> RoundTipStats:
        if await session.get(Round, round_id) is None:
            raise NotFoundError("Round", round_id)
        row = (
            await session.execute(
                select(
                    func.count(func.distinct(Tip.user_id)).label("users_tipped"),
                    func.count(Tip.id).label("total"),
                    func.count(case((Tip.is_correct.is_(True), 1))).label("correct"),
                    func.count(case((Tip.is_correct.is_(False), 1))).label("incorrect"),
                    func.count(case((Tip.is_correct.is_(None), 1))).label("pending"),
                    func.count(func.distinct(Tip.game_id)).label("games_with_tips"),
                ).where(Tip.round_id == round_id)
            )
        ).one()
        return RoundTipStats(
            round_id=round_id,
            users_tipped=row.users_tipped,
            total_tips=row.total,
            correct_tips=row.correct,
            incorrect_tips=row.incorrect,
            pending_tips=row.pending,
            games_with_tips=row.games_with_tips,
        )

    async def get_games_for_tipping(self, session: AsyncSession, round_id: int) -> tuple[Round, list[GameForTipping]]:
        """A round's games in start order, flagged for lockout and margin."""
        round_ = await session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError("Round", round_id)
        games = (
            await session.execute(
                select(Game).where(Game.round_id == round_id).order_by(Game.start_time, Game.id)
            )
        ).scalars().all()
        margin_game_ids = await self._finals.margin_game_ids(session, round_.id, round_.round_number)
        now = self.now()
        return round_, [
            GameForTipping(game=game, is_margin_game=game.id in margin_game_ids, is_locked=game_is_locked(game, now))
            for game in games
        ]
