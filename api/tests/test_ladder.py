"""Tests for the ladder, family standings, streaks and head-to-head."""

from __future__ import annotations

from datetime import timedelta

import pytest

from tipping.errors import NotFoundError
from tipping.services.ladder import LadderEntry, accuracy, compute_rank, compute_streaks, rank_ladder


def _entry(user_id: int, name: str, correct: int, completed: int) -> LadderEntry:
    return LadderEntry(
        user_id=user_id,
        name=name,
        family_group_id=None,
        family_group_name=None,
        total_tips=completed,
        correct_tips=correct,
        completed_tips=completed,
        latest_round=1,
    )


class TestPureHelpers:
    """Ordering, rank and streak helpers."""

    def test_accuracy_rounds_to_two_places(self) -> None:
        assert accuracy(2, 3) == 66.67
        assert accuracy(0, 0) == 0.0

    def test_rank_orders_by_correct_then_percentage_then_name(self) -> None:
        entries = [
            _entry(1, "Cara", 10, 20),
            _entry(2, "Ben", 12, 20),
            _entry(3, "Abe", 10, 15),
            _entry(4, "Ann", 10, 20),
        ]

        ranked = rank_ladder(entries)

        assert [e.name for e in ranked] == ["Ben", "Abe", "Ann", "Cara"]
        assert [e.rank for e in ranked] == [1, 2, 3, 4]

    def test_single_user_rank_matches_full_ladder(self) -> None:
        """Rank computed for one user equals their position on the full ladder."""
        entries = [_entry(i, f"User {i:02d}", correct=i % 4, completed=4) for i in range(1, 13)]
        ranked = rank_ladder([_entry(e.user_id, e.name, e.correct_tips, e.completed_tips) for e in entries])
        positions = {e.user_id: e.rank for e in ranked}

        for entry in entries:
            assert compute_rank(entry, entries) == positions[entry.user_id]

    def test_streaks(self) -> None:
        info = compute_streaks([True, True, False, True, True, True, False, False])

        assert info.current_streak == 2
        assert info.current_streak_type == "incorrect"
        assert info.longest_correct_streak == 3
        assert info.longest_incorrect_streak == 2
        assert info.total_decided_tips == 8

    def test_streaks_empty(self) -> None:
        info = compute_streaks([])
        assert info.current_streak == 0
        assert info.current_streak_type is None


class TestLadderService:
    """Aggregates over persisted tips."""

    async def _season(self, factory, clock):
        smiths = await factory.family("Smiths")
        jones = await factory.family("Joneses")
        alice = await factory.user("Alice", smiths)
        bob = await factory.user("Bob", smiths)
        cat = await factory.user("Cat", jones)
        await factory.user("Dormant", jones)
        r1 = await factory.round(1)
        g1 = await factory.game(r1, clock.now - timedelta(days=14), completion=100, is_complete=True)
        g2 = await factory.game(r1, clock.now - timedelta(days=13), "Geelong", "Sydney", completion=100, is_complete=True)
        r2 = await factory.round(2)
        g3 = await factory.game(r2, clock.now + timedelta(days=1))

        await factory.tip(alice, g1, "Carlton", is_correct=True)
        await factory.tip(alice, g2, "Geelong", is_correct=True)
        await factory.tip(alice, g3, "Carlton")
        await factory.tip(bob, g1, "Collingwood", is_correct=False)
        await factory.tip(bob, g2, "Geelong", is_correct=True)
        await factory.tip(cat, g1, "Carlton", is_correct=True)
        await factory.tip(cat, g2, "Sydney", is_correct=False)
        return {"alice": alice, "bob": bob, "cat": cat, "r1": r1, "r2": r2, "g1": g1, "g2": g2, "g3": g3}

    @pytest.mark.asyncio
    async def test_ladder(self, session, factory, services, clock) -> None:
        s = await self._season(factory, clock)

        ladder = await services.ladder.get_ladder(session, 2025)

        assert [(e.name, e.rank, e.correct_tips, e.completed_tips) for e in ladder.entries] == [
            ("Alice", 1, 2, 2),
            ("Bob", 2, 1, 2),
            ("Cat", 3, 1, 2),
        ]
        assert ladder.entries[0].total_tips == 3
        assert ladder.entries[0].percentage == 100.0
        assert ladder.entries[0].latest_round == 2
        assert ladder.total_rounds == 2
        assert s["alice"].id == ladder.entries[0].user_id

    @pytest.mark.asyncio
    async def test_users_without_tips_are_not_on_ladder(self, session, factory, services, clock) -> None:
        await self._season(factory, clock)

        ladder = await services.ladder.get_ladder(session, 2025)

        assert "Dormant" not in [e.name for e in ladder.entries]

    @pytest.mark.asyncio
    async def test_user_position(self, session, factory, services, clock) -> None:
        s = await self._season(factory, clock)

        position = await services.ladder.get_user_position(session, s["cat"].id, 2025)

        assert position.rank == 3
        assert position.percentage == 50.0

    @pytest.mark.asyncio
    async def test_user_position_without_tips(self, session, factory, services) -> None:
        user = await factory.user("Nobody")

        assert await services.ladder.get_user_position(session, user.id, 2025) is None

    @pytest.mark.asyncio
    async def test_family_standings(self, session, factory, services, clock) -> None:
        await self._season(factory, clock)

        standings = await services.ladder.get_family_group_standings(session, 2025)

        assert [(s.family_group_name, s.rank, s.correct_tips) for s in standings] == [
            ("Smiths", 1, 3),
            ("Joneses", 2, 1),
        ]
        assert standings[0].member_count == 2
        assert standings[0].average_correct_per_member == 1.5
        assert standings[1].average_correct_per_member == 0.5

    @pytest.mark.asyncio
    async def test_round_by_round_includes_skipped_rounds(self, session, factory, services, clock) -> None:
        s = await self._season(factory, clock)

        rounds = await services.ladder.get_round_by_round(session, s["bob"].id, 2025)

        assert [(r.round_number, r.total_tips, r.correct_tips, r.incorrect_tips) for r in rounds] == [
            (1, 2, 1, 1),
            (2, 0, 0, 0),
        ]
        assert rounds[0].percentage == 50.0

    @pytest.mark.asyncio
    async def test_streaks_in_chronological_order(self, session, factory, services, clock) -> None:
        s = await self._season(factory, clock)

        info = await services.ladder.get_streaks(session, s["bob"].id, 2025)

        assert info.current_streak == 1
        assert info.current_streak_type == "correct"
        assert info.total_decided_tips == 2

    @pytest.mark.asyncio
    async def test_head_to_head(self, session, factory, services, clock) -> None:
        s = await self._season(factory, clock)

        result = await services.ladder.get_head_to_head(session, s["alice"].id, s["cat"].id, 2025)

        assert (result.user1_wins, result.user2_wins, result.draws, result.total_compared) == (1, 0, 1, 2)

    @pytest.mark.asyncio
    async def test_head_to_head_unknown_user(self, session, factory, services) -> None:
        user = await factory.user("Alice")

        with pytest.raises(NotFoundError):
            await services.ladder.get_head_to_head(session, user.id, 404, 2025)

    @pytest.mark.asyncio
    async def test_tip_popularity(self, session, factory, services, clock) -> None:
        s = await self._season(factory, clock)

        rows = await services.ladder.get_round_tip_popularity(session, s["r1"].id)

        assert [(r.home_tips, r.away_tips, r.total_tips, r.home_percentage) for r in rows] == [
            (2, 1, 3, 66.7),
            (2, 1, 3, 66.7),
        ]
