from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash, verify_password
from app.db.operations import flush_async, refresh_async
from app.models.user import User
from app.schemas.user import UserCreate, UserProfileUpdate
from app.services import rbac_service
from app.services.exceptions import ConflictError, ResourceNotFoundError


async def get_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == email).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_user(db: AsyncSession, user_id: str | uuid.UUID) -> User:
    try:
        key = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
    except ValueError:
        raise ResourceNotFoundError("User not found") from None
    user = await db.get(User, key)
    if not user:
        raise ResourceNotFoundError("User not found")
    return user


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    if await get_by_email(db, data.email):
        raise ConflictError("Email already registered")
    user = User(
        email=data.email,
        full_name=data.full_name,
        phone=data.phone,
        hashed_password=get_password_hash(data.password),
        roles=await rbac_service.load_roles(db, data.role_names),
    )
    db.add(user)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def update_profile(db: AsyncSession, user: User, payload: UserProfileUpdate) -> User:
    if payload.full_name is not None:
        user.full_name = payload.full_name
    if payload.phone is not None:
        user.phone = payload.phone
    db.add(user)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def assign_roles(db: AsyncSession, user_id: str, role_names: list[str]) -> User:
    user = await get_user(db, user_id)
    user.roles = await rbac_service.load_roles(db, role_names)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def assign_direct_permissions(db: AsyncSession, user_id: str, codes: list[str]) -> User:
    user = await get_user(db, user_id)
    user.direct_permissions = await rbac_service.load_permissions(db, codes)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user
