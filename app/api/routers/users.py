from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_permissions
from app.core.permissions import PERMISSIONS
from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.models.user import User
from app.schemas.user import (
    PermissionAssignment,
    RoleAssignment,
    UserCreate,
    UserPermissionsRead,
    UserProfileUpdate,
    UserRead,
)
from app.services import rbac_service, user_service

router = APIRouter(prefix="/users", tags=["users"])


def _permissions_view(user: User) -> UserPermissionsRead:
    return UserPermissionsRead(
        user_id=user.id,
        roles=user.role_names,
        direct_permissions=[permission.code for permission in user.direct_permissions],
        effective_permissions=rbac_service.effective_permissions(user),
    )


@router.get("/me", response_model=UserRead)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user


# /me antes que /{user_id} para que no lo capture la ruta parametrizada.
@router.put("/me", response_model=UserRead)
async def update_me(
    payload: UserProfileUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.UPDATE_OWN_PROFILE)),
):
    user = await user_service.update_profile(db, current_user, payload)
    await commit_async(db)
    return user


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.CREATE_USER)),
):
    user = await user_service.create_user(db, payload)
    await commit_async(db)
    return user


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.VIEW_USERS)),
):
    return await user_service.get_user(db, user_id)


@router.get("/{user_id}/permissions", response_model=UserPermissionsRead)
async def get_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.VIEW_USERS)),
):
    return _permissions_view(await user_service.get_user(db, user_id))


@router.put("/{user_id}/roles", response_model=UserRead)
async def assign_roles(
    user_id: str,
    payload: RoleAssignment,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.ASSIGN_ROLES)),
):
    user = await user_service.assign_roles(db, user_id, payload.role_names)
    await commit_async(db)
    return user


@router.put("/{user_id}/permissions", response_model=UserPermissionsRead)
async def assign_direct_permissions(
    user_id: str,
    payload: PermissionAssignment,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.ASSIGN_PERMISSIONS)),
):
    user = await user_service.assign_direct_permissions(db, user_id, payload.permissions)
    await commit_async(db)
    return _permissions_view(user)
