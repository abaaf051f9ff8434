"""Async client for the Squiggle AFL API.

Endpoints use Squiggle's semicolon query syntax:
  {base}/?q=games;year=2025;format=json[;round=7]
  {base}/?q=teams;format=json

Every response goes through ``CachedFetcher``. Games are cached for a short
time on game days, longer mid-week, longest off-season; teams for a day.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

from ..config import settings
from ..logging import logger
from ..utils.date_utils import is_afl_season, is_game_day
from ..utils.datetime_utils import now_utc
from .cache import CachedFetcher
from .models import SquiggleGame, SquiggleTeam


def games_ttl_seconds(moment: datetime) -> int:
    config = settings.squiggle
    if not is_afl_season(moment):
        return config.off_season_ttl_seconds
    if is_game_day(moment):
        return config.game_day_ttl_seconds
    return config.in_season_ttl_seconds


def _is_retryable(exc: BaseException) -> bool:
    """Connection failures and 5xx responses; 4xx are not retried."""
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


class SquiggleClient:
    def __init__(
        self,
        base_url: str | None = None,
        cache: CachedFetcher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = now_utc,
        retry_wait_seconds: float = 1.0,
    ) -> None:
        self.base_url = (base_url or settings.squiggle_api_url).rstrip("/")
        self._clock = clock
        self._transport = transport
        self._retry_wait_seconds = retry_wait_seconds
        self.cache = cache or CachedFetcher(settings.squiggle.cache_dir, "squiggle", clock=clock)

    async def _get_json(self, query: str) -> dict[str, Any]:
        url = f"{self.base_url}/?{query}"
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.squiggle.retry_attempts),
            wait=wait_fixed(self._retry_wait_seconds),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(
                    timeout=settings.squiggle.timeout_seconds,
                    headers={"User-Agent": settings.squiggle.user_agent},
                    transport=self._transport,
                ) as client:
                    logger.info("squiggle_request", url=url)
                    response = await client.get(url)
                    response.raise_for_status()
                    return response.json()

    async def fetch_games(self, year: int, round_number: int | None = None) -> list[SquiggleGame]:
        query = f"q=games;year={year};format=json"
        cache_key = f"games_{year}_all"
        if round_number is not None:
            query += f";round={round_number}"
            cache_key = f"games_{year}_{round_number}"

        data = await self.cache.get(
            cache_key,
            lambda: self._get_json(query),
            ttl_seconds=games_ttl_seconds(self._clock()),
        )
        games = [SquiggleGame.model_validate(item) for item in data.get("games", [])]
        logger.info("squiggle_games_fetched", year=year, round=round_number, games=len(games))
        return games

    async def fetch_teams(self) -> list[SquiggleTeam]:
        data = await self.cache.get(
            "teams",
            lambda: self._get_json("q=teams;format=json"),
            ttl_seconds=settings.squiggle.teams_ttl_seconds,
        )
        return [SquiggleTeam.model_validate(item) for item in data.get("teams", [])]

    def clear_cache(self) -> int:
        return self.cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()
