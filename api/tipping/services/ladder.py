"""Ladder, rank, family standings and streaks.

Nothing here is persisted: each view is aggregated from tips on every call.
Ranking uses one total order everywhere: correct tips desc, percentage desc,
name asc, then user id. The full ladder and the single-user rank both go
through ``ladder_sort_key`` so they cannot disagree.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.competition import FamilyGroup, Tip, User
from ..db.sports import Game, Round, RoundStatus
from ..errors import NotFoundError
from ..utils.datetime_utils import now_utc


def accuracy(correct: int, completed: int) -> float:
    if not completed:
        return 0.0
    return round(correct / completed * 100, 2)


@dataclass
class LadderEntry:
    user_id: int
    name: str
    family_group_id: int | None
    family_group_name: str | None
    total_tips: int
    correct_tips: int
    completed_tips: int
    latest_round: int | None
    percentage: float = 0.0
    rank: int = 0

    def __post_init__(self) -> None:
        self.percentage = accuracy(self.correct_tips, self.completed_tips)


@dataclass
class Ladder:
    year: int
    entries: list[LadderEntry]
    total_rounds: int
    completed_rounds: int
    last_updated: datetime


@dataclass
class FamilyStanding:
    family_group_id: int
    family_group_name: str
    member_count: int
    total_tips: int = 0
    correct_tips: int = 0
    completed_tips: int = 0
    percentage: float = 0.0
    average_correct_per_member: float = 0.0
    rank: int = 0


@dataclass
class RoundPerformance:
    round_id: int
    round_number: int
    status: str
    total_tips: int
    correct_tips: int
    incorrect_tips: int
    pending_tips: int
    percentage: float


@dataclass
class StreakInfo:
    current_streak: int = 0
    current_streak_type: str | None = None
    longest_correct_streak: int = 0
    longest_incorrect_streak: int = 0
    total_decided_tips: int = 0


@dataclass
class HeadToHead:
    user1_id: int
    user2_id: int
    user1_wins: int = 0
    user2_wins: int = 0
    draws: int = 0
    total_compared: int = 0


@dataclass
class TipPopularity:
    game_id: int
    home_team: str
    away_team: str
    venue: str | None
    home_tips: int
    away_tips: int
    total_tips: int
    home_percentage: float | None = field(default=None)


def ladder_sort_key(entry: LadderEntry) -> tuple:
    return (-entry.correct_tips, -entry.percentage, entry.name, entry.user_id)


def rank_ladder(entries: Iterable[LadderEntry]) -> list[LadderEntry]:
    ordered = sorted(entries, key=ladder_sort_key)
    for position, entry in enumerate(ordered, start=1):
        entry.rank = position
    return ordered


def beats(other: LadderEntry, target: LadderEntry) -> bool:
    """True when ``other`` sits strictly above ``target`` on the ladder."""
    return ladder_sort_key(other) < ladder_sort_key(target)


def compute_rank(target: LadderEntry, entries: Sequence[LadderEntry]) -> int:
    """1 + the number of other users that beat the target."""
    return 1 + sum(1 for other in entries if other.user_id != target.user_id and beats(other, target))


def compute_streaks(results: Iterable[bool]) -> StreakInfo:
    """Walk decided tips in chronological order."""
    info = StreakInfo()
    for is_correct in results:
        streak_type = "correct" if is_correct else "incorrect"
        if info.current_streak_type == streak_type:
            info.current_streak += 1
        else:
            info.current_streak = 1
            info.current_streak_type = streak_type
        if is_correct:
            info.longest_correct_streak = max(info.longest_correct_streak, info.current_streak)
        else:
            info.longest_incorrect_streak = max(info.longest_incorrect_streak, info.current_streak)
        info.total_decided_tips += 1
    return info


_CORRECT = func.count(case((Tip.is_correct.is_(True), 1)))
_INCORRECT = func.count(case((Tip.is_correct.is_(False), 1)))
_COMPLETED = func.count(case((Tip.is_correct.is_not(None), 1)))


class LadderService:
    def __init__(self, clock: Callable[[], datetime] = now_utc) -> None:
        self._clock = clock

    async def _entries(self, session: AsyncSession, year: int, user_id: int | None = None) -> list[LadderEntry]:
        stmt = (
            select(
                User.id,
                User.name,
                User.family_group_id,
                FamilyGroup.name.label("family_group_name"),
                func.count(Tip.id).label("total_tips"),
                _CORRECT.label("correct_tips"),
                _COMPLETED.label("completed_tips"),
                func.max(Round.round_number).label("latest_round"),
            )
            .select_from(Tip)
            .join(Round, Tip.round_id == Round.id)
            .join(User, Tip.user_id == User.id)
            .outerjoin(FamilyGroup, User.family_group_id == FamilyGroup.id)
            .where(Round.year == year)
            .group_by(User.id, User.name, User.family_group_id, FamilyGroup.name)
        )
        if user_id is not None:
            stmt = stmt.where(User.id == user_id)
        rows = (await session.execute(stmt)).all()
        return [
            LadderEntry(
                user_id=row.id,
                name=row.name,
                family_group_id=row.family_group_id,
                family_group_name=row.family_group_name,
                total_tips=row.total_tips,
                correct_tips=row.correct_tips,
                completed_tips=row.completed_tips,
                latest_round=row.latest_round,
            )
            for row in rows
        ]

    async def get_ladder(self, session: AsyncSession, year: int) -> Ladder:
        entries = rank_ladder(await self._entries(session, year))
        summary = (
            await session.execute(
                select(
                    func.count(Round.id).label("total_rounds"),
                    func.count(case((Round.status == RoundStatus.completed.value, 1))).label("completed_rounds"),
                ).where(Round.year == year)
            )
        ).one()
        return Ladder(
            year=year,
            entries=entries,
            total_rounds=summary.total_rounds,
            completed_rounds=summary.completed_rounds,
            last_updated=self._clock(),
        )

    async def get_user_position(self, session: AsyncSession, user_id: int, year: int) -> LadderEntry | None:
        """Rank of one user, counted against everyone else with tips this year."""
        target = await self._entries(session, year, user_id=user_id)
        if not target:
            return None
        entry = target[0]
        entry.rank = compute_rank(entry, await self._entries(session, year))
        return entry

    async def get_family_group_standings(self, session: AsyncSession, year: int) -> list[FamilyStanding]:
        member_rows = (
            await session.execute(
                select(FamilyGroup.id, FamilyGroup.name, func.count(User.id).label("member_count"))
                .outerjoin(User, User.family_group_id == FamilyGroup.id)
                .group_by(FamilyGroup.id, FamilyGroup.name)
            )
        ).all()
        standings = {
            row.id: FamilyStanding(
                family_group_id=row.id,
                family_group_name=row.name,
                member_count=row.member_count,
            )
            for row in member_rows
        }
        for entry in await self._entries(session, year):
            standing = standings.get(entry.family_group_id)
            if standing is None:
                continue
            standing.total_tips += entry.total_tips
            standing.correct_tips += entry.correct_tips
            standing.completed_tips += entry.completed_tips

        tipped = [s for s in standings.values() if s.total_tips > 0]
        for standing in tipped:
            standing.percentage = accuracy(standing.correct_tips, standing.completed_tips)
            standing.average_correct_per_member = (
                round(standing.correct_tips / standing.member_count, 2) if standing.member_count else 0.0
            )
        tipped.sort(key=lambda s: (-s.correct_tips, -s.percentage, s.family_group_name))
        for position, standing in enumerate(tipped, start=1):
            standing.rank = position
        return tipped

    async def get_round_by_round(self, session: AsyncSession, user_id: int, year: int) -> list[RoundPerformance]:
        """Every round of the year, including rounds the user skipped."""
        stmt = (
            select(
                Round.id,
                Round.round_number,
                Round.status,
                func.count(Tip.id).label("total_tips"),
                _CORRECT.label("correct_tips"),
                _INCORRECT.label("incorrect_tips"),
                func.count(case((and_(Tip.id.is_not(None), Tip.is_correct.is_(None)), 1))).label("pending_tips"),
            )
            .select_from(Round)
            .outerjoin(Tip, and_(Tip.round_id == Round.id, Tip.user_id == user_id))
            .where(Round.year == year)
            .group_by(Round.id, Round.round_number, Round.status)
            .order_by(Round.round_number)
        )
        rows = (await session.execute(stmt)).all()
        return [
            RoundPerformance(
                round_id=row.id,
                round_number=row.round_number,
                status=row.status,
                total_tips=row.total_tips,
                correct_tips=row.correct_tips,
                incorrect_tips=row.incorrect_tips,
                pending_tips=row.pending_tips,
                percentage=accuracy(row.correct_tips, row.correct_tips + row.incorrect_tips),
            )
            for row in rows
        ]

    async def get_streaks(self, session: AsyncSession, user_id: int, year: int) -> StreakInfo:
        stmt = (
            select(Tip.is_correct)
            .join(Game, Tip.game_id == Game.id)
            .join(Round, Tip.round_id == Round.id)
            .where(Tip.user_id == user_id, Round.year == year, Tip.is_correct.is_not(None))
            .order_by(Game.start_time, Game.id)
        )
        return compute_streaks((await session.execute(stmt)).scalars())

    async def get_head_to_head(self, session: AsyncSession, user1_id: int, user2_id: int, year: int) -> HeadToHead:
        """Compare two users on the games both of them tipped and that are decided."""
        for user_id in (user1_id, user2_id):
            if await session.get(User, user_id) is None:
                raise NotFoundError("User", user_id)
        first = Tip.__table__.alias("t1")
        second = Tip.__table__.alias("t2")
        stmt = (
            select(first.c.is_correct, second.c.is_correct)
            .select_from(first)
            .join(second, first.c.game_id == second.c.game_id)
            .join(Round, first.c.round_id == Round.id)
            .where(
                first.c.user_id == user1_id,
                second.c.user_id == user2_id,
                Round.year == year,
                first.c.is_correct.is_not(None),
                second.c.is_correct.is_not(None),
            )
        )
        result = HeadToHead(user1_id=user1_id, user2_id=user2_id)
        for user1_correct, user2_correct in (await session.execute(stmt)).all():
            result.total_compared += 1
            if user1_correct == user2_correct:
                result.draws += 1
            elif user1_correct:
                result.user1_wins += 1
            else:
                result.user2_wins += 1
        return result

    async def get_round_tip_popularity(self, session: AsyncSession, round_id: int) -> list[TipPopularity]:
        if await session.get(Round, round_id) is None:
            raise NotFoundError("Round", round_id)
        stmt = (
            select(
                Game.id,
                Game.home_team,
                Game.away_team,
                Game.venue,
                func.count(case((Tip.selected_team == Game.home_team, 1))).label("home_tips"),
                func.count(case((Tip.selected_team == Game.away_team, 1))).label("away_tips"),
                func.count(Tip.id).label("total_tips"),
            )
            .join(Tip, Tip.game_id == Game.id)
            .where(Game.round_id == round_id)
            .group_by(Game.id, Game.home_team, Game.away_team, Game.venue, Game.start_time)
            .order_by(Game.start_time, Game.id)
        )
        rows = (await session.execute(stmt)).all()
        return [
            TipPopularity(
                game_id=row.id,
                home_team=row.home_team,
                away_team=row.away_team,
                venue=row.venue,
                home_tips=row.home_tips,
                away_tips=row.away_tips,
                total_tips=row.total_tips,
                home_percentage=round(row.home_tips * 100 / row.total_tips, 1) if row.total_tips else None,
            )
            for row in rows
        ]
