from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger, security_alert
from app.core.metrics import record_login_attempt
from app.core.security import create_access_token, decode_refresh_token, issue_token_pair
from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.schemas.auth import RefreshRequest, TokenPair, TokenRefresh
from app.schemas.user import UserRead
from app.services import rbac_service
from app.services.user_service import authenticate

router = APIRouter(prefix="/auth", tags=["auth"])

auth_logger = get_logger("app.auth")


def _client_ip(request: Request | None) -> str | None:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = request.client
    return client.host if client else None


@router.post("/login", response_model=TokenPair)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_async_db),
):
    user = await authenticate(db, form_data.username, form_data.password)
    if not user:
        record_login_attempt("failure")
        security_alert(
            "Failed login attempt",
            email=form_data.username,
            client_ip=_client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect email or password",
        )

    record_login_attempt("success")
    user_scopes = rbac_service.effective_permissions(user)
    access, refresh = issue_token_pair(user.id, user_scopes)

    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    await commit_async(db)

    auth_logger.info(
        "User authenticated",
        extra={
            "user_id": str(user.id),
            "email": user.email,
            "client_ip": _client_ip(request),
        },
    )

    return {
        "access_token": access,
        "refresh_token": refresh,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": UserRead.model_validate(user),
    }


@router.post("/refresh", response_model=TokenRefresh)
async def refresh_token(payload: RefreshRequest):
    try:
        data = decode_refresh_token(payload.refresh_token)
        user_id = data["sub"]
        token_scopes = data.get("scopes", []) or []
    except (JWTError, KeyError) as exc:
        security_alert("Refresh token validation failed", reason=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        ) from exc

    new_access = create_access_token(subject=user_id, extra={"scopes": token_scopes})
    return {
        "access_token": new_access,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }
