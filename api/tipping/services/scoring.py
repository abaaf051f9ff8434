"""Tip correctness and finals margin tie-break.

Both passes are safe to rerun. Correctness only touches tips whose
``is_correct`` is still NULL; margin differences are recomputed from the final
score; round winners are upserted and stale winner rows removed.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import case, delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.competition import RoundWinner, Tip
from ..db.sports import FinalsConfig, Game, Round
from ..db.upsert import upsert
from ..errors import NotFoundError
from ..logging import logger
from .finals import FinalsService

MARGIN_WIN = "margin"


def _is_decided(game: Game) -> bool:
    """Complete with a known winner. Drawn games have no winner and stay unscored."""
    return game.completion == 100 and bool(game.winner)


def pick_margin_winners(candidates: Iterable[tuple[int, int]]) -> dict[int, int]:
    """Every user achieving the minimum margin difference.

    ``candidates`` are (user_id, margin_difference) pairs from eligible tips.
    A user with several eligible tips competes with their best one.
    """
    best: dict[int, int] = {}
    for user_id, difference in candidates:
        if user_id not in best or difference < best[user_id]:
            best[user_id] = difference
    if not best:
        return {}
    minimum = min(best.values())
    return {user_id: diff for user_id, diff in best.items() if diff == minimum}


class ScoringService:
    def __init__(self, finals: FinalsService) -> None:
        self._finals = finals

    async def mark_game_tips(self, session: AsyncSession, game_id: int) -> int:
        """Set is_correct on every unscored tip for a decided game."""
        game = await session.get(Game, game_id, populate_existing=True)
        if game is None:
            raise NotFoundError("Game", game_id)
        if not _is_decided(game):
            return 0

        result = await session.execute(
            update(Tip)
            .where(Tip.game_id == game_id, Tip.is_correct.is_(None))
            .values(is_correct=case((Tip.selected_team == game.winner, True), else_=False))
            .execution_options(synchronize_session=False)
        )
        marked = result.rowcount or 0
        if marked:
            logger.info("tips_marked", game_id=game_id, winner=game.winner, tips=marked)
        return marked

    async def update_margin_differences(self, session: AsyncSession, game_id: int) -> int:
        """|actual margin - predicted margin| for the margin tips on a finished game."""
        game = await session.get(Game, game_id, populate_existing=True)
        if game is None:
            raise NotFoundError("Game", game_id)
        actual_margin = game.actual_margin
        if game.completion != 100 or actual_margin is None:
            return 0

        result = await session.execute(
            update(Tip)
            .where(
                Tip.game_id == game_id,
                Tip.is_margin_game.is_(True),
                Tip.margin_prediction.is_not(None),
            )
            .values(margin_difference=func.abs(Tip.margin_prediction - actual_margin))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def calculate_round_winners(self, session: AsyncSession, round_id: int) -> list[RoundWinner]:
        """Closest correct margin prediction(s) for a margin round. Ties all win."""
        round_ = await session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError("Round", round_id)
        if not await self._finals.requires_margin(session, round_.round_number):
            return []

        rows = (
            await session.execute(
                select(Tip.user_id, Tip.margin_difference).where(
                    Tip.round_id == round_id,
                    Tip.is_margin_game.is_(True),
                    Tip.margin_prediction.is_not(None),
                    Tip.margin_difference.is_not(None),
                    Tip.is_correct.is_(True),
                )
            )
        ).all()
        winners = pick_margin_winners((row.user_id, row.margin_difference) for row in rows)

        for user_id, difference in winners.items():
            await upsert(
                session,
                RoundWinner,
                {
                    "round_id": round_id,
                    "user_id": user_id,
                    "win_type": MARGIN_WIN,
                    "margin_difference": difference,
                    "points_awarded": 1,
                },
                conflict_columns=["round_id", "user_id", "win_type"],
            )
        stale = delete(RoundWinner).where(
            RoundWinner.round_id == round_id,
            RoundWinner.win_type == MARGIN_WIN,
        )
        if winners:
            stale = stale.where(RoundWinner.user_id.not_in(list(winners)))
        await session.execute(stale.execution_options(synchronize_session=False))

        if winners:
            logger.info(
                "round_margin_winners",
                round_id=round_id,
                round_number=round_.round_number,
                winners=sorted(winners),
                margin_difference=min(winners.values()),
            )
        return await self.get_round_winners(session, round_id)

    async def process_completed_game(self, session: AsyncSession, game_id: int) -> dict[str, int]:
        """Everything that follows a game reaching completion."""
        marked = await self.mark_game_tips(session, game_id)
        margins = await self.update_margin_differences(session, game_id)
        game = await session.get(Game, game_id, populate_existing=True)
        winners = await self.calculate_round_winners(session, game.round_id)
        return {"tips_marked": marked, "margins_updated": margins, "round_winners": len(winners)}

    async def score_completed_games(self, session: AsyncSession, year: int | None = None) -> dict[str, int]:
        """Correctness for every decided game with unscored tips, then margin rounds."""
        unscored = exists().where(Tip.game_id == Game.id, Tip.is_correct.is_(None))
        stmt = select(Game.id).where(Game.completion == 100, Game.winner.is_not(None), unscored)
        if year is not None:
            stmt = stmt.where(Game.year == year)
        game_ids = list((await session.execute(stmt)).scalars())

        counts = {"games_scored": 0, "tips_marked": 0, "margins_updated": 0, "margin_rounds": 0, "round_winners": 0}
        for game_id in game_ids:
            counts["tips_marked"] += await self.mark_game_tips(session, game_id)
            counts["games_scored"] += 1

        margin_rounds = select(Round).join(
            FinalsConfig, FinalsConfig.round_number == Round.round_number
        ).where(FinalsConfig.requires_margin.is_(True))
        if year is not None:
            margin_rounds = margin_rounds.where(Round.year == year)
        for round_ in (await session.execute(margin_rounds)).scalars().all():
            completed = (
                await session.execute(
                    select(Game.id).where(Game.round_id == round_.id, Game.completion == 100)
                )
            ).scalars().all()
            if not completed:
                continue
            for game_id in completed:
                counts["margins_updated"] += await self.update_margin_differences(session, game_id)
            winners = await self.calculate_round_winners(session, round_.id)
            counts["margin_rounds"] += 1
            counts["round_winners"] += len(winners)

        logger.info("score_completed_games_complete", year=year, **counts)
        return counts

    async def get_round_winners(self, session: AsyncSession, round_id: int) -> list[RoundWinner]:
        stmt = (
            select(RoundWinner)
            .where(RoundWinner.round_id == round_id)
            .order_by(RoundWinner.margin_difference, RoundWinner.user_id)
            .execution_options(populate_existing=True)
        )
        return list((await session.execute(stmt)).scalars())
