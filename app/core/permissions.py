"""Permission catalog and the default role bundles built from it."""

from __future__ import annotations


class PERMISSIONS:
    VIEW_PROMOTIONS = "VIEW_PROMOTIONS"
    MANAGE_PROMOTIONS = "MANAGE_PROMOTIONS"
    VIEW_USERS = "VIEW_USERS"
    CREATE_USER = "CREATE_USER"
    ASSIGN_ROLES = "ASSIGN_ROLES"
    ASSIGN_PERMISSIONS = "ASSIGN_PERMISSIONS"
    VIEW_ROLES = "VIEW_ROLES"
    MANAGE_ROLES = "MANAGE_ROLES"
    UPDATE_OWN_PROFILE = "UPDATE_OWN_PROFILE"


PERMISSION_DESCRIPTIONS: dict[str, str] = {
    PERMISSIONS.VIEW_PROMOTIONS: "Read promotions and evaluate them for products.",
    PERMISSIONS.MANAGE_PROMOTIONS: "Create, update and deactivate promotions.",
    PERMISSIONS.VIEW_USERS: "Read users and their effective permissions.",
    PERMISSIONS.CREATE_USER: "Create users.",
    PERMISSIONS.ASSIGN_ROLES: "Assign roles to users.",
    PERMISSIONS.ASSIGN_PERMISSIONS: "Grant permissions directly to users.",
    PERMISSIONS.VIEW_ROLES: "Read roles and the permission catalog.",
    PERMISSIONS.MANAGE_ROLES: "Create roles and edit their permissions.",
    PERMISSIONS.UPDATE_OWN_PROFILE: "Edit the caller's own profile.",
}

ALL_PERMISSIONS: tuple[str, ...] = tuple(PERMISSION_DESCRIPTIONS)

DEFAULT_ROLES: dict[str, tuple[str, ...]] = {
    "ADMIN": ALL_PERMISSIONS,
    "MANAGER": (
        PERMISSIONS.VIEW_PROMOTIONS,
        PERMISSIONS.MANAGE_PROMOTIONS,
        PERMISSIONS.VIEW_USERS,
        PERMISSIONS.VIEW_ROLES,
        PERMISSIONS.UPDATE_OWN_PROFILE,
    ),
    # Cashiers only need to see which promotions apply at the till.
    "CASHIER": (
        PERMISSIONS.VIEW_PROMOTIONS,
        PERMISSIONS.UPDATE_OWN_PROFILE,
    ),
}
