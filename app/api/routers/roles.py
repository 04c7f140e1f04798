from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permissions
from app.core.permissions import PERMISSIONS
from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.models.user import User
from app.schemas.rbac import PermissionRead, RoleCreate, RoleRead
from app.services import rbac_service

router = APIRouter(tags=["roles"])


@router.get("/roles", response_model=list[RoleRead])
async def list_roles(
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.VIEW_ROLES)),
):
    return await rbac_service.list_roles(db)


@router.post("/roles", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.MANAGE_ROLES)),
):
    role = await rbac_service.create_role(db, payload)
    await commit_async(db)
    return role


@router.get("/permissions", response_model=list[PermissionRead])
async def list_permissions(
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_permissions(PERMISSIONS.VIEW_ROLES)),
):
    return await rbac_service.list_permissions(db)
