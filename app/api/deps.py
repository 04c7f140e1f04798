# app/api/deps.py
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import security_alert
from app.core.permissions import PERMISSION_DESCRIPTIONS
from app.core.security import decode_access_token
from app.db.session_async import get_async_db
from app.models.user import User
from app.schemas.auth import TokenPayload
from app.services import rbac_service, user_service
from app.services.exceptions import AuthorizationError, ResourceNotFoundError


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    scopes=PERMISSION_DESCRIPTIONS,
)


def _decode_token(token: str) -> TokenPayload:
    return TokenPayload(**decode_access_token(token))


async def get_current_user(
    security_scopes: SecurityScopes,
    db: AsyncSession = Depends(get_async_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    """Resolve the bearer token to an active user holding every requested permission.

    Permissions are checked against the database rather than the token's
    ``scopes`` claim, so role changes apply without waiting for a new login.
    """
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": f'Bearer scope="{security_scopes.scope_str}"'},
    )

    try:
        token_data = _decode_token(token)
    except JWTError:
        raise cred_exc

    if token_data.sub is None:
        raise cred_exc

    try:
        user = await user_service.get_user(db, token_data.sub)
    except ResourceNotFoundError:
        raise cred_exc
    if not user.is_active:
        raise cred_exc

    if security_scopes.scopes:
        granted = set(rbac_service.effective_permissions(user))
        missing = [scope for scope in security_scopes.scopes if scope not in granted]
        if missing:
            security_alert("Permission denied", user_id=str(user.id), missing=missing)
            raise AuthorizationError("You do not have permission to perform this action")
    return user


def require_permissions(*permissions: str):
    """Dependency factory: ``Depends(require_permissions(PERMISSIONS.X))``."""

    async def _dependency(user: User = Security(get_current_user, scopes=list(permissions))) -> User:
        return user

    return _dependency
