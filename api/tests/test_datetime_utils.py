"""Tests for datetime_utils and the season calendar helpers."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tipping.utils.date_utils import is_afl_season, is_game_day, season_year
from tipping.utils.datetime_utils import ensure_utc, melbourne_date, now_utc, today_utc


class TestNowUtc:
    """Tests for now_utc function."""

    def test_is_timezone_aware(self):
        """Returned datetime is UTC."""
        result = now_utc()
        assert result.tzinfo == timezone.utc

    def test_today_is_a_date(self):
        assert isinstance(today_utc(), date)


class TestEnsureUtc:
    """Tests for ensure_utc function."""

    def test_none_passes_through(self):
        assert ensure_utc(None) is None

    def test_naive_treated_as_utc(self):
        """SQLite returns naive values for aware columns."""
        result = ensure_utc(datetime(2025, 4, 23, 2, 0))
        assert result == datetime(2025, 4, 23, 2, 0, tzinfo=timezone.utc)

    def test_offset_converted(self):
        melbourne = timezone(timedelta(hours=10))
        result = ensure_utc(datetime(2025, 4, 24, 19, 30, tzinfo=melbourne))
        assert result == datetime(2025, 4, 24, 9, 30, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc


class TestMelbourneDate:
    def test_evening_utc_is_next_day_in_melbourne(self):
        assert melbourne_date(datetime(2025, 4, 25, 15, 0, tzinfo=timezone.utc)) == date(2025, 4, 26)

    def test_morning_utc_same_day(self):
        assert melbourne_date(datetime(2025, 4, 25, 1, 0, tzinfo=timezone.utc)) == date(2025, 4, 25)


class TestSeasonCalendar:
    """is_afl_season, is_game_day and season_year."""

    @pytest.mark.parametrize(
        "moment,expected",
        [
            (datetime(2025, 3, 13, 9, 0, tzinfo=timezone.utc), True),
            (datetime(2025, 9, 27, 4, 0, tzinfo=timezone.utc), True),
            (datetime(2025, 12, 3, 2, 0, tzinfo=timezone.utc), False),
            # 28 Feb 14:00 UTC is already 1 March in Melbourne.
            (datetime(2025, 2, 28, 14, 0, tzinfo=timezone.utc), True),
            (datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc), False),
        ],
    )
    def test_is_afl_season(self, moment, expected):
        assert is_afl_season(moment) is expected

    def test_game_day_is_melbourne_weekend(self):
        # Friday 15:00 UTC is Saturday 01:00 in Melbourne.
        assert is_game_day(datetime(2025, 4, 25, 15, 0, tzinfo=timezone.utc)) is True
        assert is_game_day(datetime(2025, 4, 23, 2, 0, tzinfo=timezone.utc)) is False

    def test_season_year_uses_melbourne_calendar(self):
        assert season_year(datetime(2025, 12, 31, 14, 0, tzinfo=timezone.utc)) == 2026
        assert season_year(datetime(2025, 6, 1, tzinfo=timezone.utc)) == 2025
