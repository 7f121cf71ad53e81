"""Auth API tests.

Learn: Tests cover the whole session lifecycle through HTTP:
1. Registration + validation + duplicate prevention
2. Login → token pair + cookies
3. Refresh rotation (single use) via body and cookie
4. Logout
5. Email verification (consume, replay, stale link)
6. Forgot / reset password
"""

import uuid

import pytest

from conftest import PASSWORD, create_account, login, register, unique_email
from trellone.auth.jwt import TokenKind, verify_token
from trellone.constants import UserVerifyStatus
from trellone.db.models import User


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client, email_sender):
    email = unique_email("reg")
    r = await register(client, email, display_name="Alice")
    assert r.status_code == 201
    body = r.json()
    assert body["message"].startswith("Register successfully")
    assert body["result"]["email"] == email
    assert body["result"]["display_name"] == "Alice"
    assert body["result"]["verify"] == 0
    assert "password_hash" not in body["result"]
    assert email_sender.last("verify", email)


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    email = unique_email("dup")
    assert (await register(client, email)).status_code == 201
    r = await register(client, email)
    assert r.status_code == 409
    assert r.json()["message"] == "Email already exists"


@pytest.mark.asyncio
async def test_register_weak_password(client):
    r = await register(client, unique_email("weak"), password="abcdef")
    assert r.status_code == 422
    body = r.json()
    assert body["message"] == "Validation error"
    assert "password" in body["errors"]
    assert body["errors"]["password"]["location"] == "body"


@pytest.mark.asyncio
async def test_register_confirm_password_mismatch(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={
            "email": unique_email("mismatch"),
            "password": PASSWORD,
            "confirm_password": "Other123!",
        },
    )
    assert r.status_code == 422
    assert "Confirm password must be the same as password" in r.text


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success_sets_cookies(client):
    email = unique_email("login")
    await register(client, email)
    r = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Login successfully"
    assert body["result"]["access_token"]
    assert body["result"]["refresh_token"]

    cookies = r.headers.get_list("set-cookie")
    assert len(cookies) == 2
    for cookie in cookies:
        lowered = cookie.lower()
        assert "httponly" in lowered
        assert "secure" in lowered
        assert "samesite=none" in lowered
        assert "max-age=604800" in lowered


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    email = unique_email("wrongpw")
    await register(client, email)
    r = await client.post("/api/v1/auth/login", json={"email": email, "password": "Wrong123!"})
    assert r.status_code == 401
    assert r.json()["message"] == "Email or password is incorrect"


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    r = await client.post(
        "/api/v1/auth/login", json={"email": unique_email("ghost"), "password": PASSWORD}
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Email or password is incorrect"


# ═══════════════════════════════════════════════════════════
# Access token chain
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_missing_access_token(client):
    r = await client.get("/api/v1/users/me")
    assert r.status_code == 401
    assert r.json()["message"] == "Access token is required"
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_malformed_bearer_header(client):
    r = await client.get("/api/v1/users/me", headers={"Authorization": "Token abc"})
    assert r.status_code == 401
    assert r.json()["message"] == "Access token is required"


@pytest.mark.asyncio
async def test_invalid_access_token(client):
    r = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    assert r.json()["message"]


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(client, alice):
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {alice.refresh_token}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_access_token_cookie_wins_over_header(client, alice):
    r = await client.get(
        "/api/v1/users/me",
        headers={
            "Cookie": f"access_token={alice.access_token}",
            "Authorization": "Bearer garbage",
        },
    )
    assert r.status_code == 200
    assert r.json()["result"]["id"] == alice.user_id


# ═══════════════════════════════════════════════════════════
# Refresh / logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates_token(client, alice):
    r = await client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": alice.refresh_token}
    )
    assert r.status_code == 200
    result = r.json()["result"]
    assert result["refresh_token"] != alice.refresh_token

    # New access token works
    me = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {result['access_token']}"}
    )
    assert me.status_code == 200

    # Old refresh token is spent
    again = await client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": alice.refresh_token}
    )
    assert again.status_code == 401
    assert again.json()["message"] == "Used refresh token or not exist"


@pytest.mark.asyncio
async def test_refresh_via_cookie(client, alice):
    r = await client.post(
        "/api/v1/auth/refresh-token",
        headers={"Cookie": f"refresh_token={alice.refresh_token}"},
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Refresh token successfully"


@pytest.mark.asyncio
async def test_refresh_without_token(client):
    r = await client.post("/api/v1/auth/refresh-token", json={})
    assert r.status_code == 401
    assert r.json()["message"] == "Refresh token is required"


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(client, alice):
    r = await client.post(
        "/api/v1/auth/logout",
        json={"refresh_token": alice.refresh_token},
        headers=alice.headers,
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Logout successfully"
    assert any("refresh_token=" in c for c in r.headers.get_list("set-cookie"))

    again = await client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": alice.refresh_token}
    )
    assert again.status_code == 401


@pytest.mark.asyncio
async def test_logout_requires_access_token(client, alice):
    r = await client.post("/api/v1/auth/logout", json={"refresh_token": alice.refresh_token})
    assert r.status_code == 401
    assert r.json()["message"] == "Access token is required"


async def ban(db_session, user_id: str) -> None:
    user = await db_session.get(User, uuid.UUID(user_id))
    user.verify = int(UserVerifyStatus.BANNED)
    await db_session.commit()


@pytest.mark.asyncio
async def test_banned_after_login_loses_access(client, db_session, alice):
    await ban(db_session, alice.user_id)

    r = await client.get("/api/v1/users/me", headers=alice.headers)
    assert r.status_code == 403
    assert r.json()["message"] == "User is banned"


@pytest.mark.asyncio
async def test_banned_user_cannot_refresh(client, db_session, alice):
    await ban(db_session, alice.user_id)

    r = await client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": alice.refresh_token}
    )
    assert r.status_code == 403
    assert r.json()["message"] == "User is banned"


@pytest.mark.asyncio
async def test_refresh_carries_current_verify_status(client, db_session):
    """A token minted before verification refreshes into a verified one."""
    email = unique_email("late")
    await register(client, email)
    account = await login(client, email)

    user = await db_session.get(User, uuid.UUID(account.user_id))
    user.verify = int(UserVerifyStatus.VERIFIED)
    await db_session.commit()

    r = await client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": account.refresh_token}
    )
    assert r.status_code == 200
    access = r.json()["result"]["access_token"]
    assert verify_token(access, TokenKind.ACCESS).verify == UserVerifyStatus.VERIFIED


# ═══════════════════════════════════════════════════════════
# Email verification
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_email_logs_in(client, email_sender):
    email = unique_email("verify")
    await register(client, email)
    token = email_sender.last("verify", email).token

    r = await client.post("/api/v1/auth/verify-email", json={"email_verify_token": token})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Email verify successfully"
    assert body["result"]["access_token"]

    me = await client.get(
        "/api/v1/users/me",
        headers={"Authorization": f"Bearer {body['result']['access_token']}"},
    )
    assert me.json()["result"]["verify"] == 1


@pytest.mark.asyncio
async def test_verify_email_twice_is_already_verified(client, email_sender):
    email = unique_email("twice")
    await register(client, email)
    token = email_sender.last("verify", email).token
    await client.post("/api/v1/auth/verify-email", json={"email_verify_token": token})

    r = await client.post("/api/v1/auth/verify-email", json={"email_verify_token": token})
    assert r.status_code == 200
    assert r.json()["message"] == "Email already verified before"


@pytest.mark.asyncio
async def test_stale_verify_link_after_resend(client, email_sender):
    account = await create_account(client, email_sender, "stale", verified=False)
    first = email_sender.last("verify", account.email).token

    r = await client.post("/api/v1/auth/resend-verify-email", headers=account.headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Resend verify email successfully"
    second = email_sender.last("verify", account.email).token
    assert second != first

    r = await client.post("/api/v1/auth/verify-email", json={"email_verify_token": first})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid email verify token"

    r = await client.post("/api/v1/auth/verify-email", json={"email_verify_token": second})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_resend_when_already_verified(client, alice):
    r = await client.post("/api/v1/auth/resend-verify-email", headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Email already verified before"


@pytest.mark.asyncio
async def test_verify_email_requires_token(client):
    r = await client.post("/api/v1/auth/verify-email", json={})
    assert r.status_code == 401
    assert r.json()["message"] == "Email verify token is required"


# ═══════════════════════════════════════════════════════════
# Forgot / reset password
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_forgot_and_reset_password(client, email_sender, alice):
    r = await client.post("/api/v1/auth/forgot-password", json={"email": alice.email})
    assert r.status_code == 200
    assert r.json()["message"] == "Check email to reset password"
    token = email_sender.last("forgot_password", alice.email).token

    r = await client.post(
        "/api/v1/auth/verify-forgot-password", json={"forgot_password_token": token}
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Verify forgot password successfully"

    new_password = "Brand9New!"
    r = await client.post(
        "/api/v1/auth/reset-password",
        json={
            "forgot_password_token": token,
            "password": new_password,
            "confirm_password": new_password,
        },
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Reset password successfully"

    # Old password no longer works, new one does
    r = await client.post(
        "/api/v1/auth/login", json={"email": alice.email, "password": PASSWORD}
    )
    assert r.status_code == 401
    await login(client, alice.email, new_password)

    # Existing sessions were ended
    r = await client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": alice.refresh_token}
    )
    assert r.status_code == 401

    # The reset link is single use
    r = await client.post(
        "/api/v1/auth/verify-forgot-password", json={"forgot_password_token": token}
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid forgot password token"


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(client):
    r = await client.post("/api/v1/auth/forgot-password", json={"email": unique_email("none")})
    assert r.status_code == 404
    assert r.json()["message"] == "User not found"


@pytest.mark.asyncio
async def test_forgot_password_token_cannot_verify_email(client, email_sender, alice):
    await client.post("/api/v1/auth/forgot-password", json={"email": alice.email})
    token = email_sender.last("forgot_password", alice.email).token
    r = await client.post("/api/v1/auth/verify-email", json={"email_verify_token": token})
    assert r.status_code == 401
