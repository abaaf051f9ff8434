"""Tests for the Squiggle client, its cache and fixture processing."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from tipping.errors import UpstreamUnavailable
from tipping.squiggle import CachedFetcher, SquiggleClient, game_key, process_games
from tipping.squiggle.client import games_ttl_seconds
from tipping.squiggle.models import SquiggleGame

WEDNESDAY = datetime(2025, 4, 23, 2, 0, tzinfo=timezone.utc)


def _raw(game_id: int, round_number: int, date: str, **kwargs) -> SquiggleGame:
    payload = {
        "id": game_id,
        "round": round_number,
        "year": 2025,
        "hteam": "Carlton",
        "ateam": "Collingwood",
        "date": date,
        "tz": "+10:00",
        "venue": "M.C.G.",
        "complete": 0,
    }
    payload.update(kwargs)
    return SquiggleGame.model_validate(payload)


class TestGameKey:
    """External fixture keys."""

    def test_round_seven_game_three(self) -> None:
        assert game_key(7, 3) == "073"

    def test_round_one_game_six(self) -> None:
        assert game_key(1, 6) == "016"

    def test_finals_round(self) -> None:
        assert game_key(25, 1) == "251"


class TestProcessGames:
    """Grouping, ordering and ordinal assignment."""

    def test_ordinals_follow_kick_off_not_feed_order(self) -> None:
        raw = [
            _raw(30, 7, "2025-04-26 19:40:00"),
            _raw(10, 7, "2025-04-24 19:30:00"),
            _raw(20, 7, "2025-04-25 16:20:00"),
        ]

        processed = process_games(raw, 2025)

        assert [(g.external_id, g.squiggle_key) for g in processed] == [(10, "071"), (20, "072"), (30, "073")]

    def test_rounds_numbered_independently(self) -> None:
        raw = [_raw(1, 2, "2025-03-20 19:30:00"), _raw(2, 1, "2025-03-13 19:30:00")]

        processed = process_games(raw, 2025)

        assert [g.squiggle_key for g in processed] == ["011", "021"]

    def test_same_kick_off_breaks_tie_on_id(self) -> None:
        raw = [_raw(9, 3, "2025-03-29 13:45:00"), _raw(4, 3, "2025-03-29 13:45:00")]

        assert [g.external_id for g in process_games(raw, 2025)] == [4, 9]

    def test_start_time_uses_published_offset(self) -> None:
        (game,) = process_games([_raw(1, 1, "2025-03-13 19:30:00")], 2025)
        assert game.start_time == datetime(2025, 3, 13, 9, 30, tzinfo=timezone.utc)

    def test_unixtime_wins_over_date(self) -> None:
        (game,) = process_games([_raw(1, 1, "2025-03-13 19:30:00", unixtime=1741858200)], 2025)
        assert game.start_time == datetime.fromtimestamp(1741858200, tz=timezone.utc)

    def test_completion_and_scores(self) -> None:
        (game,) = process_games(
            [_raw(1, 1, "2025-03-13 19:30:00", complete=100, hscore=88, ascore=70, winner="Carlton")],
            2025,
        )
        assert game.is_complete
        assert (game.home_score, game.away_score, game.winner) == (88, 70, "Carlton")

    def test_unknown_teams_kept_but_flagged(self) -> None:
        (game,) = process_games([_raw(1, 25, "2025-09-05 19:40:00", hteam=None, ateam=None)], 2025)
        assert game.has_teams is False


class TestGamesTtl:
    """Cache lifetime depends on the season phase."""

    def test_in_season_weekday(self) -> None:
        assert games_ttl_seconds(WEDNESDAY) == 3600

    def test_game_day(self) -> None:
        assert games_ttl_seconds(WEDNESDAY + timedelta(days=3)) == 300

    def test_off_season(self) -> None:
        assert games_ttl_seconds(datetime(2025, 12, 3, 2, 0, tzinfo=timezone.utc)) == 21600


class TestCachedFetcher:
    """TTL and stale fallback."""

    @pytest.mark.asyncio
    async def test_fresh_entry_skips_fetch(self, tmp_path) -> None:
        now = {"value": WEDNESDAY}
        cache = CachedFetcher(tmp_path, "squiggle", clock=lambda: now["value"])
        calls = []

        async def fetch():
            calls.append(1)
            return {"games": [len(calls)]}

        assert await cache.get("games", fetch, ttl_seconds=60) == {"games": [1]}
        now["value"] += timedelta(seconds=30)
        assert await cache.get("games", fetch, ttl_seconds=60) == {"games": [1]}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refetches(self, tmp_path) -> None:
        now = {"value": WEDNESDAY}
        cache = CachedFetcher(tmp_path, "squiggle", clock=lambda: now["value"])
        calls = []

        async def fetch():
            calls.append(1)
            return {"n": len(calls)}

        await cache.get("games", fetch, ttl_seconds=60)
        now["value"] += timedelta(seconds=61)

        assert await cache.get("games", fetch, ttl_seconds=60) == {"n": 2}

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_stale_entry(self, tmp_path) -> None:
        now = {"value": WEDNESDAY}
        cache = CachedFetcher(tmp_path, "squiggle", clock=lambda: now["value"])

        async def good():
            return {"games": ["cached"]}

        async def bad():
            raise httpx.ConnectTimeout("timed out")

        await cache.get("games", good, ttl_seconds=60)
        now["value"] += timedelta(days=30)

        assert await cache.get("games", bad, ttl_seconds=60) == {"games": ["cached"]}

    @pytest.mark.asyncio
    async def test_failure_without_cache_raises(self, tmp_path) -> None:
        cache = CachedFetcher(tmp_path, "squiggle", clock=lambda: WEDNESDAY)

        async def bad():
            raise httpx.ConnectError("refused")

        with pytest.raises(UpstreamUnavailable):
            await cache.get("games", bad, ttl_seconds=60)

    @pytest.mark.asyncio
    async def test_stats_and_clear(self, tmp_path) -> None:
        cache = CachedFetcher(tmp_path, "squiggle", clock=lambda: WEDNESDAY)

        async def fetch():
            return {"ok": True}

        await cache.get("teams", fetch, ttl_seconds=60)
        await cache.get("games_2025_all", fetch, ttl_seconds=60)

        stats = cache.stats()
        assert stats["entries"] == 2
        assert sorted(item["key"] for item in stats["items"]) == ["games_2025_all", "teams"]
        assert cache.clear() == 2
        assert cache.stats()["entries"] == 0

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_ignored(self, tmp_path) -> None:
        cache = CachedFetcher(tmp_path, "squiggle", clock=lambda: WEDNESDAY)
        path = tmp_path / "squiggle" / "games.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        async def fetch():
            return {"fresh": True}

        assert await cache.get("games", fetch, ttl_seconds=60) == {"fresh": True}


class TestSquiggleClient:
    """HTTP behaviour through a mock transport."""

    def _client(self, tmp_path, handler) -> SquiggleClient:
        return SquiggleClient(
            base_url="https://squiggle.test",
            cache=CachedFetcher(tmp_path, "squiggle", clock=lambda: WEDNESDAY),
            transport=httpx.MockTransport(handler),
            clock=lambda: WEDNESDAY,
            retry_wait_seconds=0,
        )

    @pytest.mark.asyncio
    async def test_fetch_games(self, tmp_path) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"games": [{"id": 1, "round": 7, "year": 2025, "hteam": "Carlton", "ateam": "Collingwood"}]},
            )

        games = await self._client(tmp_path, handler).fetch_games(2025, round_number=7)

        assert [g.id for g in games] == [1]
        assert "q=games;year=2025;format=json;round=7" in str(seen[0].url)
        assert seen[0].headers["User-Agent"].startswith("footy-tipping")

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, tmp_path) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, json={"teams": [{"id": 1, "name": "Adelaide"}]})

        teams = await self._client(tmp_path, handler).fetch_teams()

        assert [t.name for t in teams] == ["Adelaide"]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_bad_gateway_is_retried(self, tmp_path) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) == 1:
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json={"teams": [{"id": 1, "name": "Adelaide"}]})

        teams = await self._client(tmp_path, handler).fetch_teams()

        assert [t.name for t in teams] == ["Adelaide"]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, tmp_path) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(404, json={"error": "no such query"})

        with pytest.raises(UpstreamUnavailable):
            await self._client(tmp_path, handler).fetch_teams()

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_without_cache_is_unavailable(self, tmp_path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "boom"})

        with pytest.raises(UpstreamUnavailable):
            await self._client(tmp_path, handler).fetch_games(2025)

    @pytest.mark.asyncio
    async def test_server_error_serves_cached_games(self, tmp_path) -> None:
        cache_dir = tmp_path / "squiggle"
        cache_dir.mkdir()
        (cache_dir / "games_2025_all.json").write_text(
            json.dumps(
                {
                    "fetched_at": (WEDNESDAY - timedelta(days=2)).isoformat(),
                    "data": {"games": [{"id": 5, "round": 7}]},
                }
            ),
            encoding="utf-8",
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        games = await self._client(tmp_path, handler).fetch_games(2025)

        assert [g.id for g in games] == [5]
