"""Seed the permission catalog, default roles and development users."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.core.config import settings
from app.core.permissions import DEFAULT_ROLES
from app.db.session_async import session_scope
from app.models.user import Role
from app.schemas.user import UserCreate
from app.services import rbac_service, user_service


@dataclass(frozen=True, slots=True)
class DevUser:
    email: str
    full_name: str
    password: str
    role: str
    is_superuser: bool = False


DEV_USERS: tuple[DevUser, ...] = (
    DevUser(
        email="admin.dev@example.com",
        full_name="Dev Admin",
        password="AdminDev123!",
        role="ADMIN",
        is_superuser=True,
    ),
    DevUser(
        email="manager.dev@example.com",
        full_name="Dev Manager",
        password="ManagerDev123!",
        role="MANAGER",
    ),
    DevUser(
        email="cashier.dev@example.com",
        full_name="Dev Cashier",
        password="CashierDev123!",
        role="CASHIER",
    ),
)


def _dev_users() -> tuple[DevUser, ...]:
    if not settings.INITIAL_ADMIN_EMAIL or not settings.INITIAL_ADMIN_PASSWORD:
        return DEV_USERS
    initial = DevUser(
        email=settings.INITIAL_ADMIN_EMAIL,
        full_name="Initial Admin",
        password=settings.INITIAL_ADMIN_PASSWORD,
        role="ADMIN",
        is_superuser=True,
    )
    return (initial, *DEV_USERS)


async def seed_rbac() -> int:
    """Create or refresh permissions, roles and users; safe to run repeatedly."""
    logger = logging.getLogger("seed_rbac")
    logger.info("Seeding roles and users into %s", settings.ASYNC_DATABASE_URL)

    created = 0
    skipped = 0

    async with session_scope() as session:
        await rbac_service.ensure_permission_catalog(session)

        for name, codes in DEFAULT_ROLES.items():
            role = await rbac_service.get_role_by_name(session, name)
            permissions = await rbac_service.load_permissions(session, codes)
            if role is None:
                session.add(Role(name=name, description=f"Default {name.lower()} role", permissions=permissions))
                logger.debug("Created role %s", name)
            else:
                role.permissions = permissions
        await session.flush()

        for dev_user in _dev_users():
            existing = await user_service.get_by_email(session, dev_user.email)
            if existing:
                skipped += 1
                logger.debug("Skipped user %s (already present)", dev_user.email)
                continue

            user = await user_service.create_user(
                session,
                UserCreate(
                    email=dev_user.email,
                    full_name=dev_user.full_name,
                    password=dev_user.password,
                    role_names=[dev_user.role],
                ),
            )
            user.is_superuser = dev_user.is_superuser
            session.add(user)
            created += 1
            logger.debug("Created user %s", dev_user.email)

    logger.info("Seed completed: %s users created, %s skipped", created, skipped)
    return created


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(seed_rbac())
    except KeyboardInterrupt:
        pass
