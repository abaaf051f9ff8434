"""Finals margin configuration and margin-game designation."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.sports import FINALS_ROUNDS, FinalsConfig, Game, MarginGamePosition
from ..db.upsert import upsert
from ..logging import logger
from ..utils.datetime_utils import ensure_utc


def designate_margin_games(games: list[Game], position: str) -> list[Game]:
    """Pick the game(s) carrying the margin prediction.

    Games are ordered chronologically (start time, then id for a stable pick
    when two games share a start time).
    """
    if not games:
        return []
    ordered = sorted(games, key=lambda g: (ensure_utc(g.start_time), g.id))
    if position == MarginGamePosition.first.value:
        return ordered[:1]
    if position == MarginGamePosition.all.value:
        return ordered
    return ordered[-1:]


class FinalsService:
    async def get_config(self, session: AsyncSession, round_number: int) -> FinalsConfig | None:
        return await session.get(FinalsConfig, round_number)

    async def requires_margin(self, session: AsyncSession, round_number: int) -> bool:
        config = await self.get_config(session, round_number)
        return bool(config and config.requires_margin)

    async def margin_game_ids(self, session: AsyncSession, round_id: int, round_number: int) -> set[int]:
        """Ids of the margin-carrying games of a round (empty when not a margin round)."""
        config = await self.get_config(session, round_number)
        if config is None or not config.requires_margin:
            return set()
        games = list(
            (await session.execute(select(Game).where(Game.round_id == round_id))).scalars()
        )
        return {game.id for game in designate_margin_games(games, config.margin_game_position)}


async def seed_finals_config(session: AsyncSession) -> int:
    """Every finals week breaks ties on the margin of its last game."""
    for round_number in FINALS_ROUNDS:
        await upsert(
            session,
            FinalsConfig,
            {
                "round_number": round_number,
                "requires_margin": True,
                "margin_game_position": MarginGamePosition.last.value,
            },
            conflict_columns=["round_number"],
            update_columns=[],
        )
    logger.info("finals_config_seeded", rounds=list(FINALS_ROUNDS))
    return len(FINALS_ROUNDS)
