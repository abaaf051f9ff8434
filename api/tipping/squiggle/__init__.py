"""Squiggle (api.squiggle.com.au) results source: models, cache and client."""

from .cache import CachedFetcher
from .client import SquiggleClient
from .models import ProcessedGame, SquiggleGame, SquiggleTeam, game_key, process_games

__all__ = [
    "CachedFetcher",
    "ProcessedGame",
    "SquiggleClient",
    "SquiggleGame",
    "SquiggleTeam",
    "game_key",
    "process_games",
]
