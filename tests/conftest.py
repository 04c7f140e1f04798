# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Generator

import pytest
import pytest_asyncio
import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.main import app
from app.core.permissions import DEFAULT_ROLES, PERMISSION_DESCRIPTIONS
from app.core.security import get_password_hash
from app.db.session import Base
from app.db.session_async import AsyncSessionLocal
from app.models.user import Permission, Role, User

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

sync_engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create the tables once per test session."""
    import app.models.promotion  # noqa: F401

    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, Any, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ---------- RBAC & users ----------

@pytest.fixture(scope="function")
def roles(db_session: Session) -> dict[str, Role]:
    """Permission catalog plus the default ADMIN / MANAGER / CASHIER roles."""
    permissions = {
        code: Permission(code=code, description=description)
        for code, description in PERMISSION_DESCRIPTIONS.items()
    }
    db_session.add_all(permissions.values())
    created = {
        name: Role(name=name, permissions=[permissions[code] for code in codes])
        for name, codes in DEFAULT_ROLES.items()
    }
    db_session.add_all(created.values())
    db_session.commit()
    return created


def _make_user(db_session: Session, label: str, password: str, *, roles=(), superuser=False) -> User:
    user = User(
        email=f"{label}-{uuid.uuid4()}@example.com",
        full_name=f"Test {label.title()}",
        hashed_password=get_password_hash(password),
        is_superuser=superuser,
        is_active=True,
        roles=list(roles),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db_session: Session, roles: dict[str, Role]) -> User:
    return _make_user(db_session, "admin", "Admin1234", roles=[roles["ADMIN"]], superuser=True)


@pytest.fixture(scope="function")
def manager_user(db_session: Session, roles: dict[str, Role]) -> User:
    return _make_user(db_session, "manager", "Manager1234", roles=[roles["MANAGER"]])


@pytest.fixture(scope="function")
def cashier_user(db_session: Session, roles: dict[str, Role]) -> User:
    return _make_user(db_session, "cashier", "Cashier1234", roles=[roles["CASHIER"]])


async def _login(client: httpx.AsyncClient, email: str, password: str) -> str:
    resp = await client.post(
        "/api/v1/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


@pytest_asyncio.fixture(scope="function")
async def admin_token(client: httpx.AsyncClient, admin_user: User) -> str:
    return await _login(client, admin_user.email, "Admin1234")


@pytest_asyncio.fixture(scope="function")
async def manager_token(client: httpx.AsyncClient, manager_user: User) -> str:
    return await _login(client, manager_user.email, "Manager1234")


@pytest_asyncio.fixture(scope="function")
async def cashier_token(client: httpx.AsyncClient, cashier_user: User) -> str:
    return await _login(client, cashier_user.email, "Cashier1234")


# ---------- Promotion payloads ----------

@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def promotion_payload(now: datetime):
    """Factory for a valid JSON create payload, overridable per test."""

    def _build(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": "Summer10",
            "type": "PERCENTAGE",
            "value": 10,
            "start_date": (now - timedelta(days=1)).isoformat(),
            "end_date": (now + timedelta(days=1)).isoformat(),
            "target_type": "ALL",
        }
        payload.update(overrides)
        return payload

    return _build
