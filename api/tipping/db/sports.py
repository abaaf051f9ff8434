"""Fixture models: teams, rounds, games and finals configuration."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONPayload


class RoundStatus(str, Enum):
    """Round lifecycle.

    Happy path: upcoming → active → completed
    """

    upcoming = "upcoming"
    active = "active"
    completed = "completed"


class MarginGamePosition(str, Enum):
    first = "first"
    last = "last"
    all = "all"


# Round numbers used by the finals series.
FINALS_ROUNDS = (25, 26, 27, 28)


class Team(Base):
    """AFL clubs as published by Squiggle (primary key is the Squiggle team id)."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    abbreviation: Mapped[str | None] = mapped_column(String(10))
    logo: Mapped[str | None] = mapped_column(String(255))
    primary_colour: Mapped[str | None] = mapped_column(String(20))
    secondary_colour: Mapped[str | None] = mapped_column(String(20))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Round(Base):
    """A weekly slate of games (finals weeks use round numbers 25-28).

    ``status`` is a cache of the value computed from the round's games and
    must be refreshed before it is relied upon.
    """

    __tablename__ = "rounds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RoundStatus.upcoming.value
    )
    lockout_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    games: Mapped[list["Game"]] = relationship("Game", back_populates="round")

    __table_args__ = (
        UniqueConstraint("round_number", "year", name="uq_round_number_year"),
    )


class Game(Base):
    """The single authoritative record of one fixture.

    Promoted columns hold what the application queries on; ``external_payload``
    keeps the full Squiggle record for the game.
    """

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    squiggle_game_key: Mapped[str] = mapped_column(String(8), nullable=False)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    home_team: Mapped[str] = mapped_column(String(100), nullable=False)
    away_team: Mapped[str] = mapped_column(String(100), nullable=False)
    home_score: Mapped[int | None] = mapped_column(Integer)
    away_score: Mapped[int | None] = mapped_column(Integer)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    venue: Mapped[str | None] = mapped_column(String(100))
    completion: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winner: Mapped[str | None] = mapped_column(String(100))
    external_id: Mapped[int | None] = mapped_column(Integer)
    is_final: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_grand_final: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    external_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    round: Mapped[Round] = relationship("Round", back_populates="games")

    __table_args__ = (
        UniqueConstraint("year", "squiggle_game_key", name="uq_game_year_key"),
        Index("idx_games_start_time", "start_time"),
    )

    @property
    def actual_margin(self) -> int | None:
        if self.home_score is None or self.away_score is None:
            return None
        return abs(self.home_score - self.away_score)


class FinalsConfig(Base):
    """Which finals rounds break ties on margin, and which game carries it."""

    __tablename__ = "finals_config"

    round_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    requires_margin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    margin_game_position: Mapped[str] = mapped_column(
        String(10), nullable=False, default=MarginGamePosition.last.value
    )
