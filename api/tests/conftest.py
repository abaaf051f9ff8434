"""pytest configuration and fixtures."""

import os

# Set required environment variables for testing before any imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SQUIGGLE__CACHE_DIR", "/tmp/footy-tipping-test-cache")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tipping.db import init_db, make_session_factory  # noqa: E402
from tipping.db.competition import FamilyGroup, Tip, User  # noqa: E402
from tipping.db.sports import Game, Round  # noqa: E402
from tipping.services import build_services  # noqa: E402
from tipping.services.finals import seed_finals_config  # noqa: E402
from tipping.services.scheduler import SchedulerService  # noqa: E402

# Wednesday of round 7, well inside the season window.
NOW = datetime(2025, 4, 23, 2, 0, tzinfo=timezone.utc)


class FixedClock:
    """Settable clock shared by every service in a test."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def services(clock: FixedClock):
    return build_services(clock=clock)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        await seed_finals_config(session)
        await session.commit()
        yield session


class Factory:
    """Builders for rows the tests need. Everything is flushed, nothing committed."""

    def __init__(self, session) -> None:
        self.session = session
        self._game_counter = 0

    async def family(self, name: str) -> FamilyGroup:
        group = FamilyGroup(name=name)
        self.session.add(group)
        await self.session.flush()
        return group

    async def user(self, name: str, family: FamilyGroup | None = None, role: str = "user") -> User:
        user = User(name=name, family_group_id=family.id if family else None, role=role)
        self.session.add(user)
        await self.session.flush()
        return user

    async def round(self, round_number: int, year: int = 2025, **kwargs) -> Round:
        round_ = Round(round_number=round_number, year=year, **kwargs)
        self.session.add(round_)
        await self.session.flush()
        return round_

    async def game(
        self,
        round_: Round,
        start_time: datetime,
        home_team: str = "Carlton",
        away_team: str = "Collingwood",
        **kwargs,
    ) -> Game:
        self._game_counter += 1
        game = Game(
            year=round_.year,
            squiggle_game_key=kwargs.pop("squiggle_game_key", f"{round_.round_number:02d}{self._game_counter}"),
            round_id=round_.id,
            home_team=home_team,
            away_team=away_team,
            start_time=start_time,
            venue=kwargs.pop("venue", "MCG"),
            **kwargs,
        )
        self.session.add(game)
        await self.session.flush()
        return game

    async def tip(self, user: User, game: Game, selected_team: str, **kwargs) -> Tip:
        tip = Tip(
            user_id=user.id,
            game_id=game.id,
            round_id=game.round_id,
            selected_team=selected_team,
            **kwargs,
        )
        self.session.add(tip)
        await self.session.flush()
        return tip


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


class FakeSquiggle:
    """Stands in for SquiggleClient; tests set ``games``, ``teams`` or ``error``."""

    def __init__(self) -> None:
        self.games = []
        self.teams = []
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def fetch_games(self, year: int, round_number: int | None = None):
        self.calls.append(f"games:{year}")
        if self.error is not None:
            raise self.error
        return list(self.games)

    async def fetch_teams(self):
        self.calls.append("teams")
        if self.error is not None:
            raise self.error
        return list(self.teams)

    def cache_stats(self):
        return {"namespace": "squiggle", "entries": 0, "items": []}

    def clear_cache(self) -> int:
        return 3


@pytest.fixture
def fake_squiggle() -> FakeSquiggle:
    return FakeSquiggle()


@pytest.fixture
def scheduler(session_factory, fake_squiggle, services) -> SchedulerService:
    return SchedulerService(session_factory, fake_squiggle, services)
