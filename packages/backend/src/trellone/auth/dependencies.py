"""FastAPI auth dependencies — the per-request authorization chain.

Learn: These are used as Depends() in route handlers. Each step is a
separate dependency so it can be reused and tested on its own:

    extract_access_token   cookie "access_token", else "Authorization: Bearer"
        ↓
    decode_access_token    verify as an ACCESS token → TokenPayload
        ↓
    get_auth_context       AuthContext(payload)          (no DB access)
        ↓
    require_user           AuthContext(payload, user)    (user must exist)

The AuthContext value is the only thing handed from the chain to the
handler. Nothing is stashed on the request object.

Token-kind-specific branches (refresh, email verify, forgot password)
verify their own kind and check server-side state as well: a refresh
token must still be in the store, the other two must equal the value
stored on the user row.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Body, Cookie, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.jwt import InvalidTokenError, TokenKind, TokenPayload, verify_token
from trellone.constants import AUTH_MESSAGES, UserVerifyStatus
from trellone.db.engine import get_db
from trellone.db.models import User, parse_id
from trellone.errors import (
    Forbidden,
    NotFound,
    Unauthorized,
    UsedOrNonexistentRefreshToken,
)
from trellone.schemas.auth import EmailVerifyTokenBody, ForgotPasswordTokenBody
from trellone.services.refresh_tokens import RefreshTokenStore


@dataclass(frozen=True)
class AuthContext:
    """The authenticated identity making the request."""

    payload: TokenPayload
    user: Optional[User] = None

    @property
    def user_id(self) -> str:
        return self.payload.user_id


@dataclass(frozen=True)
class RefreshContext:
    """A refresh token that decoded cleanly and is still in the store."""

    token: str
    payload: TokenPayload
    user: Optional[User] = None


# ─── Access token chain ─────────────────────────────────


def extract_access_token(
    access_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> str:
    """Cookie first, then Bearer header."""
    if access_token:
        return access_token
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    raise Unauthorized(AUTH_MESSAGES["ACCESS_TOKEN_IS_REQUIRED"])


def decode_token(token: str, kind: TokenKind) -> TokenPayload:
    """Verify a token, turning codec failures into 401s with the codec's reason."""
    try:
        return verify_token(token, kind)
    except InvalidTokenError as e:
        raise Unauthorized(e.reason)


def decode_access_token(token: str = Depends(extract_access_token)) -> TokenPayload:
    return decode_token(token, TokenKind.ACCESS)


def get_auth_context(
    payload: TokenPayload = Depends(decode_access_token),
) -> AuthContext:
    """Authenticated identity without a database round-trip."""
    return AuthContext(payload=payload)


async def load_user(db: AsyncSession, user_id: str) -> Optional[User]:
    uid = parse_id(user_id)
    if uid is None:
        return None
    return await db.get(User, uid)


async def load_active_user(db: AsyncSession, user_id: str) -> User:
    """401 if the user is gone, 403 if they were banned after signing in."""
    user = await load_user(db, user_id)
    if not user:
        raise Unauthorized(AUTH_MESSAGES["USER_NOT_FOUND"])
    if user.verify_status == UserVerifyStatus.BANNED:
        raise Forbidden(AUTH_MESSAGES["USER_IS_BANNED"])
    return user


async def require_user(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Identity plus the live, unbanned user row."""
    user = await load_active_user(db, ctx.user_id)
    return AuthContext(payload=ctx.payload, user=user)


async def require_verified_user(
    ctx: AuthContext = Depends(require_user),
) -> AuthContext:
    """Some board actions are reserved for users who verified their email."""
    if ctx.user.verify_status != UserVerifyStatus.VERIFIED:
        raise Forbidden(AUTH_MESSAGES["USER_NOT_VERIFIED"])
    return ctx


# ─── Refresh token ──────────────────────────────────────


async def require_refresh_token(
    refresh_token: Optional[str] = Cookie(None),
    body_refresh_token: Optional[str] = Body(None, alias="refresh_token", embed=True),
    db: AsyncSession = Depends(get_db),
) -> RefreshContext:
    """Cookie (browsers) or JSON body (CLI, mobile). Must still be in the store.

    Decoding alone is not enough: a rotated-out or revoked token still has
    a valid signature until it expires.
    """
    token = refresh_token or body_refresh_token
    if not token:
        raise Unauthorized(AUTH_MESSAGES["REFRESH_TOKEN_IS_REQUIRED"])

    payload = decode_token(token, TokenKind.REFRESH)
    if await RefreshTokenStore(db).find(token) is None:
        raise UsedOrNonexistentRefreshToken()
    user = await load_active_user(db, payload.user_id)
    return RefreshContext(token=token, payload=payload, user=user)


# ─── Email verify / forgot password ─────────────────────


async def require_email_verify_token(
    body: EmailVerifyTokenBody,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Decodes the token AND matches it against the one stored on the user.

    A user who already consumed their token gets a context whose user has
    no stored token; the handler answers "already verified" for that case.
    """
    token = body.email_verify_token
    if not token:
        raise Unauthorized(AUTH_MESSAGES["EMAIL_VERIFY_TOKEN_IS_REQUIRED"])

    payload = decode_token(token, TokenKind.EMAIL_VERIFY)
    user = await load_user(db, payload.user_id)
    if not user:
        raise NotFound(AUTH_MESSAGES["USER_NOT_FOUND"])
    if user.email_verify_token is not None and user.email_verify_token != token:
        raise Unauthorized(AUTH_MESSAGES["INVALID_EMAIL_VERIFY_TOKEN"])
    return AuthContext(payload=payload, user=user)


async def check_forgot_password_token(db: AsyncSession, token: Optional[str]) -> AuthContext:
    """Decodes the token AND matches the single live reset token on the user."""
    if not token:
        raise Unauthorized(AUTH_MESSAGES["FORGOT_PASSWORD_TOKEN_IS_REQUIRED"])

    payload = decode_token(token, TokenKind.FORGOT_PASSWORD)
    user = await load_user(db, payload.user_id)
    if not user:
        raise NotFound(AUTH_MESSAGES["USER_NOT_FOUND"])
    if user.forgot_password_token != token:
        raise Unauthorized(AUTH_MESSAGES["INVALID_FORGOT_PASSWORD_TOKEN"])
    return AuthContext(payload=payload, user=user)


async def require_forgot_password_token(
    body: ForgotPasswordTokenBody,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    return await check_forgot_password_token(db, body.forgot_password_token)
