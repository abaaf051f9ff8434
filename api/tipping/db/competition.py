"""Competition models: family groups, users, tips and round winners."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

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

from .base import Base


class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class FamilyGroup(Base):
    __tablename__ = "family_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    members: Mapped[list["User"]] = relationship("User", back_populates="family_group")


class User(Base):
    """A tipper. Family group members may tip on behalf of one another."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255))
    family_group_id: Mapped[int | None] = mapped_column(
        ForeignKey("family_groups.id", ondelete="SET NULL"), index=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.user.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    family_group: Mapped[FamilyGroup | None] = relationship(
        "FamilyGroup", back_populates="members"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value


class Tip(Base):
    """One user's pick for one game; at most one per (user, game)."""

    __tablename__ = "tips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    round_id: Mapped[int] = mapped_column(
        ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False
    )
    selected_team: Mapped[str] = mapped_column(String(100), nullable=False)
    is_correct: Mapped[bool | None] = mapped_column(Boolean)
    margin_prediction: Mapped[int | None] = mapped_column(Integer)
    is_margin_game: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    margin_difference: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_tip_user_game"),
        Index("idx_tips_user_round", "user_id", "round_id"),
    )


class RoundWinner(Base):
    """Cached result of a finals margin tie-break."""

    __tablename__ = "round_winners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    win_type: Mapped[str] = mapped_column(String(20), nullable=False, default="margin")
    margin_difference: Mapped[int | None] = mapped_column(Integer)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("round_id", "user_id", "win_type", name="uq_round_winner"),
    )
