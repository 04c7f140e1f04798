from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import ALL_PERMISSIONS, PERMISSION_DESCRIPTIONS
from app.db.operations import flush_async, refresh_async
from app.models.user import Permission, Role, User
from app.schemas.rbac import RoleCreate
from app.services.exceptions import ConflictError, DomainValidationError


async def ensure_permission_catalog(db: AsyncSession) -> list[Permission]:
    """Insert any catalog permission missing from the table."""
    result = await db.execute(select(Permission))
    existing = {permission.code: permission for permission in result.scalars().all()}
    for code, description in PERMISSION_DESCRIPTIONS.items():
        if code not in existing:
            permission = Permission(code=code, description=description)
            db.add(permission)
            existing[code] = permission
    await flush_async(db)
    return [existing[code] for code in sorted(existing)]


async def list_permissions(db: AsyncSession) -> list[Permission]:
    result = await db.execute(select(Permission).order_by(Permission.code))
    return list(result.scalars().all())


async def load_permissions(db: AsyncSession, codes: Iterable[str]) -> list[Permission]:
    wanted = sorted(set(codes))
    if not wanted:
        return []
    result = await db.execute(select(Permission).where(Permission.code.in_(wanted)))
    found = {permission.code: permission for permission in result.scalars().all()}
    missing = [code for code in wanted if code not in found]
    if missing:
        raise DomainValidationError(f"Unknown permissions: {', '.join(missing)}")
    return [found[code] for code in wanted]


async def list_roles(db: AsyncSession) -> list[Role]:
    result = await db.execute(select(Role).order_by(Role.name))
    return list(result.scalars().all())


async def get_role_by_name(db: AsyncSession, name: str) -> Role | None:
    result = await db.execute(select(Role).where(Role.name == name).limit(1))
    return result.scalars().first()


async def load_roles(db: AsyncSession, names: Iterable[str]) -> list[Role]:
    wanted = sorted(set(names))
    if not wanted:
        return []
    result = await db.execute(select(Role).where(Role.name.in_(wanted)))
    found = {role.name: role for role in result.scalars().all()}
    missing = [name for name in wanted if name not in found]
    if missing:
        raise DomainValidationError(f"Unknown roles: {', '.join(missing)}")
    return [found[name] for name in wanted]


async def create_role(db: AsyncSession, payload: RoleCreate) -> Role:
    name = payload.name.strip().upper()
    if await get_role_by_name(db, name):
        raise ConflictError(f"Role {name} already exists")
    role = Role(
        name=name,
        description=payload.description,
        permissions=await load_permissions(db, payload.permissions),
    )
    db.add(role)
    await flush_async(db, role)
    await refresh_async(db, role)
    return role


def effective_permissions(user: User) -> list[str]:
    """Union of role permissions and direct grants; superusers hold everything."""
    if user.is_superuser:
        return sorted(ALL_PERMISSIONS)
    codes = {permission.code for permission in user.direct_permissions}
    for role in user.roles:
        codes.update(permission.code for permission in role.permissions)
    return sorted(codes)
