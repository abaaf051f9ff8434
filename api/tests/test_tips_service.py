"""Tests for tip submission, lockout and deletion."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from tipping.db.competition import Tip
from tipping.errors import NotFoundError, TipLocked, TipNotFound, TippingForbidden
from tipping.services.tips import TipOutcome, TipSubmission


class TestGameAndRoundLockout:
    """Per-game lockout and the round-commitment rule."""

    @pytest.mark.asyncio
    async def test_open_round_accepts_all_tips(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        g1 = await factory.game(round_, clock.now + timedelta(days=1))
        g2 = await factory.game(round_, clock.now + timedelta(days=2), "Geelong", "Sydney")

        batch = await services.tips.submit_tips(
            session,
            user.id,
            user.id,
            [TipSubmission(g1.id, "Carlton"), TipSubmission(g2.id, "Sydney")],
        )

        assert batch.submitted_count == 2
        assert batch.total_attempted == 2
        assert all(r.outcome is TipOutcome.submitted for r in batch.results)

    @pytest.mark.asyncio
    async def test_started_game_is_locked(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now - timedelta(minutes=1))

        result = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(game.id, "Carlton"))

        assert result.outcome is TipOutcome.game_locked

    @pytest.mark.asyncio
    async def test_game_reporting_progress_is_locked_before_start(self, session, factory, services, clock) -> None:
        """The results feed occasionally reports progress ahead of the fixture time."""
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(hours=1), completion=5)

        result = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(game.id, "Carlton"))

        assert result.outcome is TipOutcome.game_locked

    @pytest.mark.asyncio
    async def test_user_without_tips_can_tip_remaining_games(self, session, factory, services, clock) -> None:
        """Once the round starts, a user with no tips can still tip unstarted games."""
        user = await factory.user("Late Larry")
        round_ = await factory.round(7)
        started = await factory.game(round_, clock.now - timedelta(hours=1))
        later = await factory.game(round_, clock.now + timedelta(days=1), "Geelong", "Sydney")

        batch = await services.tips.submit_tips(
            session,
            user.id,
            user.id,
            [TipSubmission(started.id, "Carlton"), TipSubmission(later.id, "Geelong")],
        )

        assert [r.outcome for r in batch.results] == [TipOutcome.game_locked, TipOutcome.submitted]
        assert batch.submitted_count == 1

    @pytest.mark.asyncio
    async def test_late_batch_keeps_every_unstarted_tip(self, session, factory, services, clock) -> None:
        """Tips saved earlier in the same batch do not lock the rest of it."""
        user = await factory.user("Late Larry")
        round_ = await factory.round(7)
        await factory.game(round_, clock.now - timedelta(hours=1))
        g2 = await factory.game(round_, clock.now + timedelta(days=1), "Geelong", "Sydney")
        g3 = await factory.game(round_, clock.now + timedelta(days=2), "Richmond", "Essendon")

        batch = await services.tips.submit_tips(
            session,
            user.id,
            user.id,
            [TipSubmission(g2.id, "Geelong"), TipSubmission(g3.id, "Richmond")],
        )

        assert [r.outcome for r in batch.results] == [TipOutcome.submitted, TipOutcome.submitted]
        assert batch.submitted_count == 2

        retry = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(g3.id, "Essendon"))
        assert retry.outcome is TipOutcome.round_locked

    @pytest.mark.asyncio
    async def test_committed_user_is_locked_for_whole_round(self, session, factory, services, clock) -> None:
        """A user already holding a tip cannot change unstarted games after the round starts."""
        user = await factory.user("Early Emma")
        round_ = await factory.round(7)
        first = await factory.game(round_, clock.now - timedelta(hours=1))
        later = await factory.game(round_, clock.now + timedelta(days=1), "Geelong", "Sydney")
        await factory.tip(user, first, "Carlton")

        result = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(later.id, "Geelong"))

        assert result.outcome is TipOutcome.round_locked

    @pytest.mark.asyncio
    async def test_lockout_asymmetry_between_users(self, session, factory, services, clock) -> None:
        """Same game, same moment: the uncommitted user is accepted, the committed one is not."""
        committed = await factory.user("Committed")
        fresh = await factory.user("Fresh")
        round_ = await factory.round(7)
        first = await factory.game(round_, clock.now - timedelta(minutes=30))
        later = await factory.game(round_, clock.now + timedelta(hours=20), "Geelong", "Sydney")
        await factory.tip(committed, first, "Collingwood")

        blocked = await services.tips.submit_tip(
            session, committed.id, committed.id, TipSubmission(later.id, "Sydney")
        )
        accepted = await services.tips.submit_tip(session, fresh.id, fresh.id, TipSubmission(later.id, "Sydney"))

        assert blocked.outcome is TipOutcome.round_locked
        assert accepted.outcome is TipOutcome.submitted

    @pytest.mark.asyncio
    async def test_resubmission_updates_existing_tip(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        first = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(game.id, "Carlton"))
        second = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(game.id, "Collingwood"))

        rows = (
            await session.execute(select(Tip.id, Tip.selected_team).where(Tip.user_id == user.id))
        ).all()
        assert first.tip_id == second.tip_id
        assert [(row.id, row.selected_team) for row in rows] == [(first.tip_id, "Collingwood")]


class TestValidation:
    """Soft per-tip validation outcomes."""

    @pytest.mark.asyncio
    async def test_unknown_game(self, session, factory, services) -> None:
        user = await factory.user("Alice")

        result = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(4242, "Carlton"))

        assert result.outcome is TipOutcome.not_found

    @pytest.mark.asyncio
    async def test_team_not_playing(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        result = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(game.id, "Richmond"))

        assert result.outcome is TipOutcome.validation
        assert "Richmond" in result.reason

    @pytest.mark.asyncio
    @pytest.mark.parametrize("margin", [-1, 12.5, "ten", True])
    async def test_bad_margin(self, session, factory, services, clock, margin) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        result = await services.tips.submit_tip(
            session, user.id, user.id, TipSubmission(game.id, "Carlton", margin_prediction=margin)
        )

        assert result.outcome is TipOutcome.validation

    @pytest.mark.asyncio
    async def test_validation_checked_before_lockout(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now - timedelta(hours=1))

        result = await services.tips.submit_tip(session, user.id, user.id, TipSubmission(game.id, "Richmond"))

        assert result.outcome is TipOutcome.validation

    @pytest.mark.asyncio
    async def test_rejected_tip_does_not_fail_batch(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        batch = await services.tips.submit_tips(
            session,
            user.id,
            user.id,
            [TipSubmission(999, "Carlton"), TipSubmission(game.id, "Carlton")],
        )

        assert batch.submitted_count == 1
        assert batch.total_attempted == 2


class TestPermissions:
    """Tipping on behalf of other users."""

    @pytest.mark.asyncio
    async def test_family_member_may_tip_for_relative(self, session, factory, services, clock) -> None:
        family = await factory.family("Smiths")
        parent = await factory.user("Pat Smith", family)
        child = await factory.user("Kid Smith", family)
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        result = await services.tips.submit_tip(session, parent.id, child.id, TipSubmission(game.id, "Carlton"))

        assert result.outcome is TipOutcome.submitted
        owner = (await session.execute(select(Tip.user_id).where(Tip.id == result.tip_id))).scalar_one()
        assert owner == child.id

    @pytest.mark.asyncio
    async def test_other_family_forbidden(self, session, factory, services, clock) -> None:
        smiths = await factory.family("Smiths")
        jones = await factory.family("Joneses")
        pat = await factory.user("Pat Smith", smiths)
        jo = await factory.user("Jo Jones", jones)
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        with pytest.raises(TippingForbidden):
            await services.tips.submit_tips(session, pat.id, jo.id, [TipSubmission(game.id, "Carlton")])

    @pytest.mark.asyncio
    async def test_users_without_family_cannot_tip_for_each_other(self, session, factory, services, clock) -> None:
        a = await factory.user("Loner A")
        b = await factory.user("Loner B")

        with pytest.raises(TippingForbidden):
            await services.tips.submit_tips(session, a.id, b.id, [])

    @pytest.mark.asyncio
    async def test_admin_may_tip_for_anyone(self, session, factory, services, clock) -> None:
        admin = await factory.user("Admin", role="admin")
        other = await factory.user("Someone", await factory.family("Others"))
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        result = await services.tips.submit_tip(session, admin.id, other.id, TipSubmission(game.id, "Carlton"))

        assert result.outcome is TipOutcome.submitted

    @pytest.mark.asyncio
    async def test_unknown_user(self, session, factory, services) -> None:
        user = await factory.user("Alice")

        with pytest.raises(NotFoundError):
            await services.tips.submit_tips(session, user.id, 9999, [])


class TestFinalsMargin:
    """Margin predictions only stick to the designated margin game."""

    @pytest.mark.asyncio
    async def test_margin_game_flag_and_prediction(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        finals = await factory.round(25)
        early = await factory.game(finals, clock.now + timedelta(days=1))
        last = await factory.game(finals, clock.now + timedelta(days=2), "Geelong", "Sydney")

        batch = await services.tips.submit_tips(
            session,
            user.id,
            user.id,
            [
                TipSubmission(early.id, "Carlton", margin_prediction=20),
                TipSubmission(last.id, "Sydney", margin_prediction=12),
            ],
        )

        assert batch.submitted_count == 2
        rows = {
            row.game_id: row
            for row in (
                await session.execute(
                    select(Tip.game_id, Tip.is_margin_game, Tip.margin_prediction).where(Tip.user_id == user.id)
                )
            ).all()
        }
        assert rows[early.id].is_margin_game is False
        assert rows[early.id].margin_prediction is None
        assert rows[last.id].is_margin_game is True
        assert rows[last.id].margin_prediction == 12

    @pytest.mark.asyncio
    async def test_home_and_away_rounds_have_no_margin_game(self, session, factory, services, clock) -> None:
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))

        _, games = await services.tips.get_games_for_tipping(session, round_.id)

        assert [(g.game.id, g.is_margin_game, g.is_locked) for g in games] == [(game.id, False, False)]


class TestDeleteTip:
    """Deletion obeys the round lockout as a hard error."""

    @pytest.mark.asyncio
    async def test_delete_before_lockout(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))
        tip = await factory.tip(user, game, "Carlton")

        await services.tips.delete_tip(session, tip.id, user.id)

        assert (await session.execute(select(Tip.id))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_delete_after_lockout(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1), completion=0)
        tip = await factory.tip(user, game, "Carlton")
        clock.advance(days=1, minutes=1)

        with pytest.raises(TipLocked) as exc_info:
            await services.tips.delete_tip(session, tip.id, user.id)

        assert exc_info.value.scope == "round"

    @pytest.mark.asyncio
    async def test_delete_uses_stored_lockout(self, session, factory, services, clock) -> None:
        user = await factory.user("Alice")
        round_ = await factory.round(7, lockout_time=clock.now - timedelta(minutes=1))
        game = await factory.game(round_, clock.now + timedelta(days=1))
        tip = await factory.tip(user, game, "Carlton")

        with pytest.raises(TipLocked):
            await services.tips.delete_tip(session, tip.id, user.id)

    @pytest.mark.asyncio
    async def test_delete_missing_tip(self, session, factory, services) -> None:
        user = await factory.user("Alice")

        with pytest.raises(TipNotFound):
            await services.tips.delete_tip(session, 31337, user.id)

    @pytest.mark.asyncio
    async def test_delete_someone_elses_tip(self, session, factory, services, clock) -> None:
        owner = await factory.user("Owner")
        stranger = await factory.user("Stranger")
        round_ = await factory.round(7)
        game = await factory.game(round_, clock.now + timedelta(days=1))
        tip = await factory.tip(owner, game, "Carlton")

        with pytest.raises(TippingForbidden):
            await services.tips.delete_tip(session, tip.id, stranger.id)


class TestQueries:
    """Read paths used by the rounds and tips endpoints."""

    @pytest.mark.asyncio
    async def test_round_stats(self, session, factory, services, clock) -> None:
        alice = await factory.user("Alice")
        bob = await factory.user("Bob")
        round_ = await factory.round(7)
        g1 = await factory.game(round_, clock.now - timedelta(days=1), completion=100, is_complete=True)
        g2 = await factory.game(round_, clock.now + timedelta(days=1))
        await factory.tip(alice, g1, "Carlton", is_correct=True)
        await factory.tip(bob, g1, "Collingwood", is_correct=False)
        await factory.tip(alice, g2, "Carlton")

        stats = await services.tips.get_round_stats(session, round_.id)

        assert stats.users_tipped == 2
        assert stats.total_tips == 3
        assert (stats.correct_tips, stats.incorrect_tips, stats.pending_tips) == (1, 1, 1)
        assert stats.games_with_tips == 2

    @pytest.mark.asyncio
    async def test_user_tips_filtered_by_year(self, session, factory, services, clock) -> None:
        alice = await factory.user("Alice")
        old = await factory.round(7, year=2024)
        new = await factory.round(7)
        await factory.tip(alice, await factory.game(old, clock.now - timedelta(days=365)), "Carlton")
        await factory.tip(alice, await factory.game(new, clock.now + timedelta(days=1)), "Carlton")

        all_tips = await services.tips.get_all_user_tips(session, alice.id)
        this_year = await services.tips.get_all_user_tips(session, alice.id, year=2025)

        assert len(all_tips) == 2
        assert [d.year for d in this_year] == [2025]
        assert this_year[0].user_name == "Alice"
