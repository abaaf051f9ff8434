"""Users, family groups and the tip-on-behalf permission rule."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.competition import FamilyGroup, Tip, User, UserRole
from ..db.sports import Round
from ..errors import NotFoundError, ValidationFailed
from ..logging import logger


def can_act_for(acting: User, target: User) -> bool:
    """Self, any admin, or a member of the same family group."""
    if acting.id == target.id:
        return True
    if acting.role == UserRole.admin.value:
        return True
    return acting.family_group_id is not None and acting.family_group_id == target.family_group_id


@dataclass
class UserStats:
    user_id: int
    total_tips: int
    correct_tips: int
    incorrect_tips: int
    pending_tips: int
    rounds_tipped: int
    percentage: float


@dataclass
class FamilyGroupSummary:
    group: FamilyGroup
    member_count: int


class UserService:
    async def get_user(self, session: AsyncSession, user_id: int) -> User:
        user = await session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def get_user_by_name(self, session: AsyncSession, name: str) -> User:
        user = (
            await session.execute(select(User).where(User.name == name))
        ).scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", name)
        return user

    async def list_users(self, session: AsyncSession) -> list[User]:
        return list((await session.execute(select(User).order_by(User.name))).scalars())

    async def can_tip_for(self, session: AsyncSession, acting_user_id: int, target_user_id: int) -> bool:
        acting = await self.get_user(session, acting_user_id)
        target = await self.get_user(session, target_user_id)
        return can_act_for(acting, target)

    async def users_can_tip_for(self, session: AsyncSession, acting_user_id: int) -> list[User]:
        """Everyone the acting user may tip on behalf of, themselves included."""
        acting = await self.get_user(session, acting_user_id)
        stmt = select(User).order_by(User.name)
        if acting.role != UserRole.admin.value:
            conditions = [User.id == acting.id]
            if acting.family_group_id is not None:
                conditions.append(User.family_group_id == acting.family_group_id)
            stmt = stmt.where(or_(*conditions))
        return list((await session.execute(stmt)).scalars())

    async def create_user(
        self,
        session: AsyncSession,
        name: str,
        family_group_id: int | None = None,
        role: str = UserRole.user.value,
        email: str | None = None,
    ) -> User:
        name = name.strip()
        if not name:
            raise ValidationFailed("User name must not be empty")
        if role not in {r.value for r in UserRole}:
            raise ValidationFailed(f"Unknown role {role!r}")
        existing = (
            await session.execute(select(User.id).where(User.name == name))
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationFailed(f"User {name!r} already exists")
        if family_group_id is not None and await session.get(FamilyGroup, family_group_id) is None:
            raise NotFoundError("FamilyGroup", family_group_id)

        user = User(name=name, family_group_id=family_group_id, role=role, email=email)
        session.add(user)
        await session.flush()
        logger.info("user_created", user_id=user.id, family_group_id=family_group_id, role=role)
        return user

    async def update_user(
        self,
        session: AsyncSession,
        user_id: int,
        *,
        name: str | None = None,
        family_group_id: int | None = None,
        role: str | None = None,
        email: str | None = None,
    ) -> User:
        user = await self.get_user(session, user_id)
        if name is not None and name.strip() != user.name:
            clash = (
                await session.execute(select(User.id).where(User.name == name.strip()))
            ).scalar_one_or_none()
            if clash is not None:
                raise ValidationFailed(f"User {name!r} already exists")
            user.name = name.strip()
        if family_group_id is not None:
            if await session.get(FamilyGroup, family_group_id) is None:
                raise NotFoundError("FamilyGroup", family_group_id)
            user.family_group_id = family_group_id
        if role is not None:
            if role not in {r.value for r in UserRole}:
                raise ValidationFailed(f"Unknown role {role!r}")
            user.role = role
        if email is not None:
            user.email = email
        await session.flush()
        return user

    async def get_user_stats(self, session: AsyncSession, user_id: int, year: int | None = None) -> UserStats:
        await self.get_user(session, user_id)
        stmt = (
            select(
                func.count(Tip.id).label("total"),
                func.count(case((Tip.is_correct.is_(True), 1))).label("correct"),
                func.count(case((Tip.is_correct.is_(False), 1))).label("incorrect"),
                func.count(case((Tip.is_correct.is_(None), 1))).label("pending"),
                func.count(func.distinct(Tip.round_id)).label("rounds_tipped"),
            )
            .select_from(Tip)
            .join(Round, Tip.round_id == Round.id)
            .where(Tip.user_id == user_id)
        )
        if year is not None:
            stmt = stmt.where(Round.year == year)
        row = (await session.execute(stmt)).one()
        decided = row.correct + row.incorrect
        return UserStats(
            user_id=user_id,
            total_tips=row.total,
            correct_tips=row.correct,
            incorrect_tips=row.incorrect,
            pending_tips=row.pending,
            rounds_tipped=row.rounds_tipped,
            percentage=round(row.correct / decided * 100, 2) if decided else 0.0,
        )

    async def list_family_groups(self, session: AsyncSession) -> list[FamilyGroupSummary]:
        stmt = (
            select(FamilyGroup, func.count(User.id).label("member_count"))
            .outerjoin(User, User.family_group_id == FamilyGroup.id)
            .group_by(FamilyGroup.id)
            .order_by(FamilyGroup.name)
        )
        rows = (await session.execute(stmt)).all()
        return [FamilyGroupSummary(group=row.FamilyGroup, member_count=row.member_count) for row in rows]

    async def get_family_group(self, session: AsyncSession, group_id: int) -> tuple[FamilyGroup, list[User]]:
        group = await session.get(FamilyGroup, group_id)
        if group is None:
            raise NotFoundError("FamilyGroup", group_id)
        members = (
            await session.execute(
                select(User).where(User.family_group_id == group_id).order_by(User.name)
            )
        ).scalars()
        return group, list(members)

    async def create_family_group(self, session: AsyncSession, name: str) -> FamilyGroup:
        name = name.strip()
        if not name:
            raise ValidationFailed("Family group name must not be empty")
        existing = (
            await session.execute(select(FamilyGroup.id).where(FamilyGroup.name == name))
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationFailed(f"Family group {name!r} already exists")
        group = FamilyGroup(name=name)
        session.add(group)
        await session.flush()
        logger.info("family_group_created", family_group_id=group.id)
        return group
