# app/schemas/user.py
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from uuid import UUID


def _names(items: Any, attribute: str) -> Any:
    if items is None:
        return []
    return [getattr(item, attribute, item) for item in items]


class UserBase(BaseModel):
    email: EmailStr
    full_name: str | None = None
    phone: str | None = None


class UserCreate(UserBase):
    password: str = Field(min_length=8)
    role_names: list[str] = Field(default_factory=list)


class UserProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None


class UserRead(UserBase):
    id: UUID
    is_active: bool
    is_superuser: bool
    roles: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("roles", mode="before")
    @classmethod
    def role_names(cls, value: Any) -> Any:
        return _names(value, "name")


class RoleAssignment(BaseModel):
    role_names: list[str]


class PermissionAssignment(BaseModel):
    permissions: list[str]


class UserPermissionsRead(BaseModel):
    user_id: UUID
    roles: list[str]
    direct_permissions: list[str]
    effective_permissions: list[str]
