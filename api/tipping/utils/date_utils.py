"""AFL season calendar helpers."""

from __future__ import annotations

from datetime import datetime

from ..config import settings
from .datetime_utils import MELBOURNE, ensure_utc


def is_afl_season(moment: datetime) -> bool:
    """True when the Melbourne calendar month falls inside the season window."""
    month = ensure_utc(moment).astimezone(MELBOURNE).month
    return settings.scheduler.season_start_month <= month <= settings.scheduler.season_end_month


def is_game_day(moment: datetime) -> bool:
    """Weekend in Melbourne, when most of the round is played."""
    weekday = ensure_utc(moment).astimezone(MELBOURNE).weekday()
    return weekday in (5, 6)


def season_year(moment: datetime) -> int:
    """The AFL season runs within a single calendar year."""
    return ensure_utc(moment).astimezone(MELBOURNE).year
