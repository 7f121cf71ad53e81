"""AuthService tests that don't need the HTTP layer."""

import pytest
from sqlalchemy import select

from conftest import PASSWORD, RecordingEmailSender
from trellone.auth.jwt import TokenKind, verify_token
from trellone.constants import UserVerifyStatus
from trellone.db.models import RefreshToken
from trellone.errors import (
    EmailAlreadyExists,
    EntityValidationError,
    Forbidden,
    Unauthorized,
)
from trellone.services.auth_service import AuthService


@pytest.fixture()
def svc(db_session):
    return AuthService(db_session, RecordingEmailSender())


async def test_register_stores_verify_token_and_emails_it(svc):
    user = await svc.register("Alice@Example.com", PASSWORD)
    assert user.email == "alice@example.com"
    assert user.display_name == "alice"
    assert user.verify_status == UserVerifyStatus.UNVERIFIED
    assert svc.email.last("verify").token == user.email_verify_token

    payload = verify_token(user.email_verify_token, TokenKind.EMAIL_VERIFY)
    assert payload.user_id == str(user.id)


async def test_register_duplicate_email(svc):
    await svc.register("dup@example.com", PASSWORD)
    with pytest.raises(EmailAlreadyExists):
        await svc.register("DUP@example.com", PASSWORD)


async def test_authenticate_wrong_password_and_unknown_email_look_alike(svc):
    await svc.register("carol@example.com", PASSWORD)
    with pytest.raises(Unauthorized) as wrong_pw:
        await svc.authenticate("carol@example.com", "Wrong123!")
    with pytest.raises(Unauthorized) as unknown:
        await svc.authenticate("nobody@example.com", PASSWORD)
    assert wrong_pw.value.message == unknown.value.message == "Email or password is incorrect"


async def test_banned_user_cannot_authenticate(svc, db_session):
    user = await svc.register("banned@example.com", PASSWORD)
    user.verify = int(UserVerifyStatus.BANNED)
    await db_session.commit()
    with pytest.raises(Forbidden):
        await svc.authenticate("banned@example.com", PASSWORD)


async def test_verify_email_consumes_token(svc):
    user = await svc.register("dave@example.com", PASSWORD)
    user = await svc.verify_email(str(user.id))
    assert user.email_verify_token is None
    assert user.verify_status == UserVerifyStatus.VERIFIED


async def test_resend_replaces_verify_token(svc):
    user = await svc.register("erin@example.com", PASSWORD)
    first = user.email_verify_token
    await svc.resend_verify_email(str(user.id), user.email)
    user = await svc.require_user(user.id)
    assert user.email_verify_token != first
    assert svc.email.last("verify").token == user.email_verify_token


async def test_verify_forgot_password_requires_the_stored_token(svc):
    user = await svc.register("frank@example.com", PASSWORD)
    await svc.forgot_password(str(user.id), user.verify_status, user.email)
    first = svc.email.last("forgot_password").token
    await svc.forgot_password(str(user.id), user.verify_status, user.email)
    second = svc.email.last("forgot_password").token

    with pytest.raises(Unauthorized):
        await svc.verify_forgot_password(str(user.id), first)
    assert (await svc.verify_forgot_password(str(user.id), second)).id == user.id


async def test_reset_password_revokes_every_session(svc, db_session):
    user = await svc.register("gina@example.com", PASSWORD)
    await svc.login(str(user.id), user.verify_status)
    await svc.login(str(user.id), user.verify_status)

    await svc.reset_password(str(user.id), "NewSecret1!")

    rows = await db_session.execute(select(RefreshToken).where(RefreshToken.user_id == user.id))
    assert rows.scalars().all() == []
    user = await svc.require_user(user.id)
    assert user.forgot_password_token is None
    assert (await svc.authenticate("gina@example.com", "NewSecret1!")).id == user.id


async def test_change_password_checks_old_password(svc):
    user = await svc.register("hank@example.com", PASSWORD)
    with pytest.raises(EntityValidationError) as exc:
        await svc.change_password(str(user.id), "Wrong123!", "NewSecret1!")
    assert "old_password" in exc.value.errors

    await svc.change_password(str(user.id), PASSWORD, "NewSecret1!")
    await svc.authenticate("hank@example.com", "NewSecret1!")


async def test_refresh_token_rotates_and_keeps_expiry(svc):
    user = await svc.register("ivan@example.com", PASSWORD)
    pair = await svc.login(str(user.id), user.verify_status)
    old = verify_token(pair.refresh_token, TokenKind.REFRESH)

    new_pair = await svc.refresh_token(
        str(user.id), user.verify_status, pair.refresh_token, old.exp
    )
    new = verify_token(new_pair.refresh_token, TokenKind.REFRESH)
    assert new.exp == old.exp
    assert new_pair.refresh_token != pair.refresh_token
    assert await svc.refresh_tokens.find(pair.refresh_token) is None


async def test_login_with_identity_creates_verified_account(svc):
    result = await svc.login_with_identity("oauth@example.com", "OAuth User", True)
    assert result.new_user is True
    assert result.verify == UserVerifyStatus.VERIFIED
    assert verify_token(result.access_token, TokenKind.ACCESS).verify == UserVerifyStatus.VERIFIED

    again = await svc.login_with_identity("oauth@example.com", "OAuth User", True)
    assert again.new_user is False


async def test_login_with_identity_requires_verified_upstream_email(svc):
    with pytest.raises(Unauthorized):
        await svc.login_with_identity("unverified@example.com", "U", False)
