"""Auth service — account and session lifecycle.

Learn: A session moves through these conceptual states:

    Unauthenticated ─login→ Authenticated ─refresh→ Authenticated(rotated)
                                   └──────────logout──────────→ Revoked

login/refresh always mint the access and refresh token together, and the
refresh token is persisted (or rotated) in the same transaction, so a
client never holds half a pair.

Email-verify and forgot-password tokens live in single-slot columns on
the user row. Issuing a new one overwrites the old one; consuming one
sets the column back to NULL. A presented token is accepted only while
it equals the stored value, which makes stale or replayed links fail.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.jwt import (
    TokenKind,
    sign_token,
    sign_token_pair,
    verify_token,
)
from trellone.auth.password import hash_password, verify_password
from trellone.constants import AUTH_MESSAGES, USERS_MESSAGES, UserVerifyStatus
from trellone.db.models import User, parse_id
from trellone.errors import (
    EmailAlreadyExists,
    EntityValidationError,
    Forbidden,
    Unauthorized,
    UserNotFound,
)
from trellone.services.email import EmailSender
from trellone.services.refresh_tokens import RefreshTokenStore

logger = structlog.get_logger()


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass
class IdentityLoginResult:
    access_token: str
    refresh_token: str
    new_user: bool
    verify: UserVerifyStatus


class AuthService:
    """Business logic for registration, login and token lifecycle."""

    def __init__(self, db: AsyncSession, email_sender: EmailSender):
        self.db = db
        self.email = email_sender
        self.refresh_tokens = RefreshTokenStore(db)

    # ─── Lookups ────────────────────────────────────────

    async def get_user(self, user_id: str | uuid.UUID) -> Optional[User]:
        uid = parse_id(user_id)
        if uid is None:
            return None
        return await self.db.get(User, uid)

    async def require_user(self, user_id: str | uuid.UUID) -> User:
        user = await self.get_user(user_id)
        if not user:
            raise UserNotFound()
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalars().first()

    async def check_email_exist(self, email: str) -> bool:
        return await self.get_user_by_email(email) is not None

    # ─── Register / login ───────────────────────────────

    async def register(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> User:
        """Create an unverified account and email it a verification link."""
        email = email.strip().lower()
        if await self.check_email_exist(email):
            raise EmailAlreadyExists()

        user = User(
            email=email,
            display_name=display_name or email.split("@", 1)[0],
            password_hash=hash_password(password),
            verify=int(UserVerifyStatus.UNVERIFIED),
        )
        self.db.add(user)
        await self.db.flush()  # need the id for the token

        email_verify_token = sign_token(
            str(user.id), TokenKind.EMAIL_VERIFY, UserVerifyStatus.UNVERIFIED
        )
        user.email_verify_token = email_verify_token
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("auth.registered", user_id=str(user.id))
        await self.email.send_verify_register_email(email, email_verify_token)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Resolve credentials to a user. Wrong email and wrong password look alike."""
        user = await self.get_user_by_email(email)
        if (
            not user
            or not user.password_hash
            or not verify_password(password, user.password_hash)
        ):
            raise Unauthorized(AUTH_MESSAGES["EMAIL_OR_PASSWORD_IS_INCORRECT"])
        if user.verify_status == UserVerifyStatus.BANNED:
            raise Forbidden(AUTH_MESSAGES["USER_IS_BANNED"])
        return user

    async def login(self, user_id: str, verify: UserVerifyStatus) -> TokenPair:
        """Mint an access/refresh pair and persist the refresh token."""
        access_token, refresh_token = sign_token_pair(user_id, verify)
        decoded = verify_token(refresh_token, TokenKind.REFRESH)
        await self.refresh_tokens.issue(
            uuid.UUID(str(user_id)),
            refresh_token,
            iat=decoded.issued_at,
            exp=decoded.expires_at,
        )
        logger.info("auth.login", user_id=str(user_id))
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Already-revoked tokens are fine."""
        removed = await self.refresh_tokens.revoke(refresh_token)
        logger.info("auth.logout", revoked=removed)

    async def refresh_token(
        self,
        user_id: str,
        verify: UserVerifyStatus,
        old_refresh_token: str,
        exp: int,
    ) -> TokenPair:
        """Exchange a refresh token for a new pair (single use).

        The new refresh token keeps the expiry of the old one, so a chain
        of refreshes cannot outlive the original login.
        """
        access_token, refresh_token = sign_token_pair(user_id, verify, refresh_exp=exp)
        decoded = verify_token(refresh_token, TokenKind.REFRESH)
        await self.refresh_tokens.rotate(
            old_refresh_token,
            uuid.UUID(str(user_id)),
            refresh_token,
            iat=decoded.issued_at,
            exp=decoded.expires_at,
        )
        logger.info("auth.refreshed", user_id=str(user_id))
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def login_with_identity(
        self, email: str, display_name: str, email_verified: bool
    ) -> IdentityLoginResult:
        """Mint our own token pair for an upstream identity assertion (OAuth).

        Unknown emails get an account without a password; a verified
        upstream email marks the account verified.

        Not routed: the caller is whatever OAuth adapter has already
        validated the provider's assertion. Exposing it directly would let
        anyone claim any email.
        """
        if not email_verified:
            raise Unauthorized("Identity provider email not verified")

        user = await self.get_user_by_email(email)
        new_user = user is None
        if new_user:
            user = User(
                email=email.strip().lower(),
                display_name=display_name or email.split("@", 1)[0],
                password_hash=None,
                verify=int(UserVerifyStatus.VERIFIED),
            )
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
        elif user.verify_status == UserVerifyStatus.BANNED:
            raise Forbidden(AUTH_MESSAGES["USER_IS_BANNED"])

        pair = await self.login(str(user.id), user.verify_status)
        return IdentityLoginResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            new_user=new_user,
            verify=user.verify_status,
        )

    # ─── Email verification ─────────────────────────────

    async def verify_email(self, user_id: str) -> User:
        """Consume the email-verify token and mark the user verified."""
        user = await self.require_user(user_id)
        user.email_verify_token = None
        user.verify = int(UserVerifyStatus.VERIFIED)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("auth.email_verified", user_id=str(user.id))
        return user

    async def resend_verify_email(self, user_id: str, email: str) -> None:
        """Issue a fresh email-verify token; the previous link stops working."""
        user = await self.require_user(user_id)
        token = sign_token(str(user.id), TokenKind.EMAIL_VERIFY, user.verify_status)
        user.email_verify_token = token
        await self.db.commit()
        await self.email.send_verify_register_email(email, token)

    # ─── Forgot / reset password ────────────────────────

    async def forgot_password(
        self, user_id: str, verify: UserVerifyStatus, email: str
    ) -> None:
        user = await self.require_user(user_id)
        token = sign_token(str(user.id), TokenKind.FORGOT_PASSWORD, verify)
        user.forgot_password_token = token
        await self.db.commit()
        logger.info("auth.forgot_password", user_id=str(user.id))
        await self.email.send_forgot_password_email(email, token)

    async def verify_forgot_password(self, user_id: str, token: str) -> User:
        """Proof of possession: the token must equal the stored one."""
        user = await self.require_user(user_id)
        if not user.forgot_password_token or user.forgot_password_token != token:
            raise Unauthorized(AUTH_MESSAGES["INVALID_FORGOT_PASSWORD_TOKEN"])
        return user

    async def reset_password(self, user_id: str, new_password: str) -> None:
        """Set a new password, consume the reset token, end every session."""
        user = await self.require_user(user_id)
        user.password_hash = hash_password(new_password)
        user.forgot_password_token = None
        await self.refresh_tokens.revoke_all_for_user(user.id, commit=False)
        await self.db.commit()
        logger.info("auth.password_reset", user_id=str(user.id))

    # ─── Profile ────────────────────────────────────────

    async def update_me(self, user_id: str, display_name: Optional[str]) -> User:
        user = await self.require_user(user_id)
        if display_name is not None:
            user.display_name = display_name
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def change_password(
        self, user_id: str, old_password: str, new_password: str
    ) -> None:
        user = await self.require_user(user_id)
        if not user.password_hash or not verify_password(old_password, user.password_hash):
            raise EntityValidationError.for_field(
                "old_password", USERS_MESSAGES["OLD_PASSWORD_NOT_MATCH"]
            )
        user.password_hash = hash_password(new_password)
        await self.db.commit()
