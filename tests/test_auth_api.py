"""
Auth endpoint & auth gate tests — registration, login, token checks,
role and permission guards.
"""

import asyncio
from datetime import timedelta

import pytest

API = "/api/v1"


# ═══════════════════════════════════════════════════════════════════
# Registration & login
# ═══════════════════════════════════════════════════════════════════
@pytest.mark.asyncio
async def test_register_then_login_case_insensitive(async_client):
    r = await async_client.post(
        f"{API}/auth/register",
        json={"name": "Ada", "email": "Ada@X.com", "password": "longenough1", "role": "student"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["user"]["role"] == "student"
    assert body["user"]["email"] == "ada@x.com"
    assert "password" not in body["user"]
    assert "hashedPassword" not in body["user"]
    assert body["token"]
    user_id = body["user"]["id"]

    r = await async_client.post(
        f"{API}/auth/login", json={"email": "ADA@x.com", "password": "longenough1"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["user"]["id"] == user_id
    assert r.json()["token"]


@pytest.mark.asyncio
async def test_login_wrong_password_issues_no_token(async_client, make_user):
    await make_user(email="ada@x.com", password="longenough1")
    r = await async_client.post(
        f"{API}/auth/login", json={"email": "ada@x.com", "password": "wrong-password"}
    )
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["detail"] == "Invalid email or password"
    assert "token" not in body


@pytest.mark.asyncio
async def test_login_unknown_email_looks_the_same(async_client):
    r = await async_client.post(
        f"{API}/auth/login", json={"email": "nobody@x.com", "password": "whatever1"}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_deactivated_account(async_client, make_user, directory):
    user, _ = await make_user(email="gone@x.com")
    await directory.update(user.id, {"is_active": False})
    r = await async_client.post(
        f"{API}/auth/login", json={"email": "gone@x.com", "password": "password123"}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "Account is deactivated"


@pytest.mark.asyncio
async def test_register_duplicate_email_conflicts(async_client, make_user):
    await make_user(email="ada@x.com")
    r = await async_client.post(
        f"{API}/auth/register",
        json={"name": "Ada 2", "email": "ADA@x.com", "password": "longenough1"},
    )
    assert r.status_code == 409
    # conflict body does not echo which field collided
    assert r.json()["detail"] == "Resource already exists"


@pytest.mark.asyncio
async def test_register_validation_lists_fields(async_client):
    r = await async_client.post(
        f"{API}/auth/register",
        json={"name": "", "email": "bad", "password": "short"},
    )
    assert r.status_code == 422
    fields = r.json()["fields"]
    assert {"name", "email", "password"} <= set(fields)


@pytest.mark.asyncio
async def test_register_rejects_unknown_role(async_client):
    r = await async_client.post(
        f"{API}/auth/register",
        json={"name": "Eve", "email": "eve@x.com", "password": "longenough1", "role": "root"},
    )
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════════════
# Auth gate
# ═══════════════════════════════════════════════════════════════════
@pytest.mark.asyncio
async def test_me_with_token(async_client, make_user):
    user, headers = await make_user()
    r = await async_client.get(f"{API}/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user.id


@pytest.mark.asyncio
async def test_missing_header(async_client):
    r = await async_client.get(f"{API}/auth/me")
    assert r.status_code == 401
    assert r.json()["detail"] == "No authorization header provided"


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Token abc", "bearer abc", "Bearer ", "Bearer a b"])
async def test_malformed_header(async_client, header):
    r = await async_client.get(f"{API}/auth/me", headers={"Authorization": header})
    assert r.status_code == 401
    assert r.json()["detail"] == "Authentication failed"


@pytest.mark.asyncio
async def test_invalid_and_expired_tokens_look_identical(async_client, make_user, tokens):
    user, _ = await make_user()
    expired = tokens.issue_for(user, ttl=timedelta(seconds=-5))

    r1 = await async_client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"})
    r2 = await async_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert r1.status_code == r2.status_code == 401
    assert r1.json() == r2.json() == {"detail": "Authentication failed", "success": False}


@pytest.mark.asyncio
async def test_inactive_user_token_rejected(async_client, make_user, directory):
    user, headers = await make_user()
    await directory.update(user.id, {"is_active": False})
    r = await async_client.get(f"{API}/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["detail"] == "User not found or inactive"


@pytest.mark.asyncio
async def test_token_for_deleted_user_rejected(async_client, tokens):
    from campusdash.schemas.token import TokenClaims

    token = tokens.issue(TokenClaims(id=4242, email="ghost@x.com", role="admin", name="Ghost"))
    r = await async_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_password_change_revokes_older_tokens(async_client, make_user):
    _, old_headers = await make_user(password="password123")
    # iat has one-second resolution
    await asyncio.sleep(1.1)

    r = await async_client.put(
        f"{API}/profile/password",
        json={"currentPassword": "password123", "newPassword": "another-pass-1"},
        headers=old_headers,
    )
    assert r.status_code == 200, r.text
    new_token = r.json()["token"]

    r = await async_client.get(f"{API}/auth/me", headers=old_headers)
    assert r.status_code == 401

    r = await async_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {new_token}"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_logout(async_client, make_user):
    _, headers = await make_user()
    r = await async_client.post(f"{API}/auth/logout", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Logout successful"}


# ═══════════════════════════════════════════════════════════════════
# Role & permission guards
# ═══════════════════════════════════════════════════════════════════
@pytest.mark.asyncio
async def test_admin_dashboard_requires_admin_role(async_client, make_user):
    _, student = await make_user("student")
    _, teacher = await make_user("teacher")
    _, admin = await make_user("admin")

    assert (await async_client.get(f"{API}/dashboard/admin", headers=student)).status_code == 403
    assert (await async_client.get(f"{API}/dashboard/admin", headers=teacher)).status_code == 403
    assert (await async_client.get(f"{API}/dashboard/admin", headers=admin)).status_code == 200


@pytest.mark.asyncio
async def test_manage_users_permission(async_client, make_user):
    target, _ = await make_user("student")
    _, teacher = await make_user("teacher")
    _, admin = await make_user("admin")

    r = await async_client.patch(
        f"{API}/users/{target.id}", json={"role": "teacher"}, headers=teacher
    )
    assert r.status_code == 403
    assert r.json()["success"] is False

    r = await async_client.patch(
        f"{API}/users/{target.id}", json={"role": "teacher"}, headers=admin
    )
    assert r.status_code == 200, r.text
    assert r.json()["role"] == "teacher"


@pytest.mark.asyncio
async def test_guard_runs_after_authentication(async_client):
    r = await async_client.get(f"{API}/dashboard/admin")
    assert r.status_code == 401
