from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from conftest import register_user
from omnimind.core.security import hash_token
from omnimind.models.user import User


async def test_register_returns_user_and_token(client, email_service):
    user, headers = await register_user(client, email="Alice@Example.com")

    assert user["email"] == "alice@example.com"
    assert user["name"] == "Alice Smith"
    assert user["timezone"] == "UTC"
    assert user["role"] == "user"
    assert "password_hash" not in user
    assert "reset_token" not in user
    assert email_service.of_kind("welcome") == [("welcome", "alice@example.com", {})]


async def test_register_duplicate_email(client, auth):
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "ALICE@example.com", "name": "Other Alice", "password": "secret123"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Email already registered"}


async def test_register_validation_errors(client):
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "not-an-email", "name": "R2D2", "password": "123"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"email", "name", "password"} <= fields


async def test_register_rejects_unknown_timezone(client):
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "email": "tz@example.com",
            "name": "Tz User",
            "password": "secret123",
            "timezone": "Mars/Olympus_Mons",
        },
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "timezone"


async def test_login(client, auth):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["last_login"] is not None


async def test_login_wrong_password_and_unknown_email_look_the_same(client, auth):
    wrong = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "nope-nope"}
    )
    unknown = await client.post(
        "/api/v1/auth/login", json={"email": "nobody@example.com", "password": "secret123"}
    )
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"success": False, "error": "Invalid credentials"}


async def test_me_requires_token(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "Access token required"


async def test_me_rejects_garbage_token(client):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


async def test_me(client, auth):
    user, headers = auth
    response = await client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]


async def test_update_profile(client, auth):
    _, headers = auth
    response = await client.put(
        "/api/v1/auth/profile",
        headers=headers,
        json={"name": "Alice O'Neil", "avatar_url": "https://example.com/a.png"},
    )
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["name"] == "Alice O'Neil"
    assert user["avatar_url"] == "https://example.com/a.png"


async def test_update_profile_rejects_unknown_and_empty_bodies(client, auth):
    _, headers = auth
    unknown = await client.put("/api/v1/auth/profile", headers=headers, json={"role": "admin"})
    assert unknown.status_code == 400

    empty = await client.put("/api/v1/auth/profile", headers=headers, json={})
    assert empty.status_code == 400
    assert empty.json()["error"] == "No valid fields to update"

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.json()["user"]["role"] == "user"


async def test_refresh_issues_a_working_token(client, auth):
    _, headers = auth
    response = await client.post("/api/v1/auth/refresh", headers=headers)
    assert response.status_code == 200
    token = response.json()["token"]

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200


async def test_forgot_password_is_generic(client, auth, email_service):
    known = await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(email_service.of_kind("password_reset")) == 1


async def test_password_reset_flow(client, auth, email_service):
    await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
    token = email_service.of_kind("password_reset")[0][2]["token"]

    response = await client.post(
        "/api/v1/auth/reset-password", json={"token": token, "password": "brand-new-pass"}
    )
    assert response.status_code == 200

    old = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"}
    )
    new = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "brand-new-pass"}
    )
    assert old.status_code == 401
    assert new.status_code == 200

    # Single use
    again = await client.post(
        "/api/v1/auth/reset-password", json={"token": token, "password": "another-pass"}
    )
    assert again.status_code == 400


async def test_password_reset_stores_only_a_hash(client, auth, email_service, db):
    await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
    token = email_service.of_kind("password_reset")[0][2]["token"]

    user = (await db.execute(select(User).where(User.email == "alice@example.com"))).scalar_one()
    assert user.reset_token == hash_token(token)
    assert user.reset_token != token


async def test_expired_reset_token_is_rejected(client, auth, email_service, db):
    await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
    token = email_service.of_kind("password_reset")[0][2]["token"]

    user = (await db.execute(select(User).where(User.email == "alice@example.com"))).scalar_one()
    user.reset_token_expires = datetime.now(timezone.utc) - timedelta(minutes=1)
    await db.commit()

    response = await client.post(
        "/api/v1/auth/reset-password", json={"token": token, "password": "brand-new-pass"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired reset token"
