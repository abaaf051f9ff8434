"""Explicit wiring of the domain services.

Services hold no per-request state; every method takes the session it works
in. One ``Services`` instance is built at process start and passed to the API
(``app.state.services``) and to the scheduler.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..utils.datetime_utils import now_utc
from .finals import FinalsService
from .game_sync import GameSyncService
from .ladder import LadderService
from .round_status import RoundStatusService
from .scoring import ScoringService
from .tips import TipsService
from .users import UserService


@dataclass
class Services:
    users: UserService
    finals: FinalsService
    round_status: RoundStatusService
    tips: TipsService
    scoring: ScoringService
    ladder: LadderService
    game_sync: GameSyncService
    clock: Callable[[], datetime]


def build_services(clock: Callable[[], datetime] = now_utc, grace_days: int | None = None) -> Services:
    users = UserService()
    finals = FinalsService()
    return Services(
        users=users,
        finals=finals,
        round_status=RoundStatusService(clock=clock, grace_days=grace_days),
        tips=TipsService(users=users, finals=finals, clock=clock),
        scoring=ScoringService(finals=finals),
        ladder=LadderService(clock=clock),
        game_sync=GameSyncService(clock=clock),
        clock=clock,
    )
