"""User and family-group endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..dependencies.services import get_services
from ..services import Services
from .schemas import (
    CanTipForResponse,
    FamilyGroupCreateRequest,
    FamilyGroupDetailResponse,
    FamilyGroupResponse,
    UserCreateRequest,
    UserResponse,
    UserStatsResponse,
    UserUpdateRequest,
)

router = APIRouter(prefix="/api/users", tags=["users"])
family_groups_router = APIRouter(prefix="/api/family-groups", tags=["family-groups"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in await services.users.list_users(session)]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> UserResponse:
    user = await services.users.create_user(
        session,
        payload.name,
        family_group_id=payload.family_group_id,
        role=payload.role,
        email=payload.email,
    )
    return UserResponse.model_validate(user)


@router.get("/by-name/{name}", response_model=UserResponse)
async def get_user_by_name(
    name: str,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> UserResponse:
    return UserResponse.model_validate(await services.users.get_user_by_name(session, name))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> UserResponse:
    return UserResponse.model_validate(await services.users.get_user(session, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> UserResponse:
    user = await services.users.update_user(
        session,
        user_id,
        name=payload.name,
        family_group_id=payload.family_group_id,
        role=payload.role,
        email=payload.email,
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}/can-tip-for", response_model=list[UserResponse])
async def list_tippable_users(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[UserResponse]:
    """Users this user may tip for: themselves, their family group, or everyone for an admin."""
    users = await services.users.users_can_tip_for(session, user_id)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/{user_id}/can-tip-for/{target_user_id}", response_model=CanTipForResponse)
async def can_tip_for(
    user_id: int,
    target_user_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> CanTipForResponse:
    allowed = await services.users.can_tip_for(session, user_id, target_user_id)
    return CanTipForResponse(acting_user_id=user_id, target_user_id=target_user_id, can_tip=allowed)


@router.get("/{user_id}/stats", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: int,
    year: int | None = Query(None),
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> UserStatsResponse:
    stats = await services.users.get_user_stats(session, user_id, year=year)
    return UserStatsResponse(**vars(stats))


@family_groups_router.get("", response_model=list[FamilyGroupResponse])
async def list_family_groups(
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[FamilyGroupResponse]:
    summaries = await services.users.list_family_groups(session)
    return [
        FamilyGroupResponse(id=s.group.id, name=s.group.name, member_count=s.member_count)
        for s in summaries
    ]


@family_groups_router.post("", response_model=FamilyGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_family_group(
    payload: FamilyGroupCreateRequest,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> FamilyGroupResponse:
    group = await services.users.create_family_group(session, payload.name)
    return FamilyGroupResponse(id=group.id, name=group.name, member_count=0)


@family_groups_router.get("/{group_id}", response_model=FamilyGroupDetailResponse)
async def get_family_group(
    group_id: int,
    session: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> FamilyGroupDetailResponse:
    group, members = await services.users.get_family_group(session, group_id)
    return FamilyGroupDetailResponse(
        id=group.id,
        name=group.name,
        members=[UserResponse.model_validate(member) for member in members],
    )
