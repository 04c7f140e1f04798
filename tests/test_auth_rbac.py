# tests/test_auth_rbac.py
import pytest

from app.core.permissions import ALL_PERMISSIONS, PERMISSIONS


def _headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_login_returns_tokens_and_user(client, manager_user):
    resp = await client.post(
        "/api/v1/auth/login",
        data={"username": manager_user.email, "password": "Manager1234"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["refresh_token"]
    assert body["user"]["email"] == manager_user.email
    assert body["user"]["roles"] == ["MANAGER"]


@pytest.mark.asyncio
async def test_login_with_wrong_password_fails(client, manager_user):
    resp = await client.post(
        "/api/v1/auth/login",
        data={"username": manager_user.email, "password": "wrong-password"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Incorrect email or password"


@pytest.mark.asyncio
async def test_refresh_issues_new_access_token(client, manager_user):
    login = await client.post(
        "/api/v1/auth/login",
        data={"username": manager_user.email, "password": "Manager1234"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    refresh_token = login.json()["refresh_token"]

    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert resp.status_code == 200
    access = resp.json()["access_token"]

    me = await client.get("/api/v1/users/me", headers=_headers(access))
    assert me.status_code == 200
    assert me.json()["email"] == manager_user.email


@pytest.mark.asyncio
async def test_access_token_cannot_be_used_as_refresh(client, manager_token):
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": manager_token})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_update_own_profile(client, cashier_token):
    resp = await client.put(
        "/api/v1/users/me", json={"full_name": "Till Two", "phone": "555-0102"}, headers=_headers(cashier_token)
    )
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Till Two"
    assert resp.json()["phone"] == "555-0102"


@pytest.mark.asyncio
async def test_admin_creates_user_with_role(client, admin_token):
    resp = await client.post(
        "/api/v1/users",
        json={
            "email": "new.cashier@example.com",
            "password": "Cashier5678",
            "full_name": "New Cashier",
            "role_names": ["CASHIER"],
        },
        headers=_headers(admin_token),
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["roles"] == ["CASHIER"]

    duplicate = await client.post(
        "/api/v1/users",
        json={"email": "new.cashier@example.com", "password": "Cashier5678"},
        headers=_headers(admin_token),
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_create_user_with_unknown_role_fails(client, admin_token):
    resp = await client.post(
        "/api/v1/users",
        json={"email": "ghost@example.com", "password": "Ghost12345", "role_names": ["WIZARD"]},
        headers=_headers(admin_token),
    )
    assert resp.status_code == 400
    assert "WIZARD" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_cashier_cannot_create_users(client, cashier_token):
    resp = await client.post(
        "/api/v1/users",
        json={"email": "sneaky@example.com", "password": "Sneaky1234"},
        headers=_headers(cashier_token),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_superuser_holds_every_permission(client, admin_token, admin_user):
    resp = await client.get(f"/api/v1/users/{admin_user.id}/permissions", headers=_headers(admin_token))
    assert resp.status_code == 200
    assert resp.json()["effective_permissions"] == sorted(ALL_PERMISSIONS)


@pytest.mark.asyncio
async def test_role_change_applies_without_new_login(client, admin_token, cashier_user, cashier_token, promotion_payload):
    denied = await client.post(
        "/api/v1/promotions", json=promotion_payload(), headers=_headers(cashier_token)
    )
    assert denied.status_code == 403

    resp = await client.put(
        f"/api/v1/users/{cashier_user.id}/roles",
        json={"role_names": ["MANAGER"]},
        headers=_headers(admin_token),
    )
    assert resp.status_code == 200
    assert resp.json()["roles"] == ["MANAGER"]

    allowed = await client.post(
        "/api/v1/promotions", json=promotion_payload(), headers=_headers(cashier_token)
    )
    assert allowed.status_code == 201


@pytest.mark.asyncio
async def test_direct_permission_grant(client, admin_token, cashier_user):
    resp = await client.put(
        f"/api/v1/users/{cashier_user.id}/permissions",
        json={"permissions": [PERMISSIONS.MANAGE_PROMOTIONS]},
        headers=_headers(admin_token),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["direct_permissions"] == [PERMISSIONS.MANAGE_PROMOTIONS]
    assert PERMISSIONS.MANAGE_PROMOTIONS in body["effective_permissions"]
    assert PERMISSIONS.VIEW_PROMOTIONS in body["effective_permissions"]

    unknown = await client.put(
        f"/api/v1/users/{cashier_user.id}/permissions",
        json={"permissions": ["launch:rockets"]},
        headers=_headers(admin_token),
    )
    assert unknown.status_code == 400


@pytest.mark.asyncio
async def test_roles_listing_and_creation(client, admin_token, manager_token):
    resp = await client.get("/api/v1/roles", headers=_headers(manager_token))
    assert resp.status_code == 200
    assert {role["name"] for role in resp.json()} == {"ADMIN", "MANAGER", "CASHIER"}

    created = await client.post(
        "/api/v1/roles",
        json={"name": "supervisor", "permissions": [PERMISSIONS.VIEW_PROMOTIONS]},
        headers=_headers(admin_token),
    )
    assert created.status_code == 201
    assert created.json()["name"] == "SUPERVISOR"
    assert created.json()["permissions"] == [PERMISSIONS.VIEW_PROMOTIONS]

    duplicate = await client.post(
        "/api/v1/roles", json={"name": "Supervisor"}, headers=_headers(admin_token)
    )
    assert duplicate.status_code == 409

    forbidden = await client.post(
        "/api/v1/roles", json={"name": "other"}, headers=_headers(manager_token)
    )
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_permission_catalog_listing(client, admin_token):
    resp = await client.get("/api/v1/permissions", headers=_headers(admin_token))
    assert resp.status_code == 200
    assert {item["code"] for item in resp.json()} == set(ALL_PERMISSIONS)


@pytest.mark.asyncio
async def test_unknown_user_returns_404(client, admin_token):
    resp = await client.get("/api/v1/users/not-a-uuid", headers=_headers(admin_token))
    assert resp.status_code == 404

