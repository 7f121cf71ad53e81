"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. Four kinds
of token exist, each signed with its own secret and carrying its own expiry:
- access: short-lived (minutes), sent on every API call
- refresh: long-lived (days), exchanged once for a new access/refresh pair
- email_verify: proves control of the registration email address
- forgot_password: proves control of the email address during a reset

The kind is also embedded in the payload (`token_type`) and checked on
verify, so a token can never be accepted in another kind's context.
"""

import enum
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from trellone.config import settings
from trellone.constants import UserVerifyStatus


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    EMAIL_VERIFY = "email_verify"
    FORGOT_PASSWORD = "forgot_password"


class TokenError(Exception):
    """Raised when token creation/verification fails."""


class SigningError(TokenError):
    """The signer rejected the payload. Not expected for well-formed input."""


class InvalidTokenError(TokenError):
    """Verification failed. `reason` is safe to show to the client."""

    def __init__(self, reason: str, expired: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.expired = expired


@dataclass(frozen=True)
class TokenPayload:
    """Decoded claims of any token kind. iat/exp are unix timestamps."""

    user_id: str
    token_type: TokenKind
    verify: UserVerifyStatus
    iat: int
    exp: int
    jti: str

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.iat, tz=timezone.utc)

    def to_claims(self) -> dict:
        claims = asdict(self)
        claims["token_type"] = self.token_type.value
        claims["verify"] = int(self.verify)
        return claims


def secret_for(kind: TokenKind) -> str:
    return {
        TokenKind.ACCESS: settings.jwt_secret_access_token,
        TokenKind.REFRESH: settings.jwt_secret_refresh_token,
        TokenKind.EMAIL_VERIFY: settings.jwt_secret_email_verify_token,
        TokenKind.FORGOT_PASSWORD: settings.jwt_secret_forgot_password_token,
    }[kind]


def lifetime_for(kind: TokenKind) -> timedelta:
    return {
        TokenKind.ACCESS: timedelta(minutes=settings.access_token_expire_minutes),
        TokenKind.REFRESH: timedelta(days=settings.refresh_token_expire_days),
        TokenKind.EMAIL_VERIFY: timedelta(days=settings.email_verify_token_expire_days),
        TokenKind.FORGOT_PASSWORD: timedelta(
            minutes=settings.forgot_password_token_expire_minutes
        ),
    }[kind]


def sign_token(
    user_id: str,
    kind: TokenKind,
    verify: UserVerifyStatus = UserVerifyStatus.UNVERIFIED,
    *,
    secret: Optional[str] = None,
    expires_in: Optional[timedelta] = None,
    exp: Optional[int] = None,
) -> str:
    """Sign a token of the given kind.

    `exp` (unix seconds) pins an absolute expiry — used when a rotated
    refresh token keeps the expiry of the one it replaces. Otherwise
    `expires_in` or the configured lifetime of the kind applies.
    """
    now = datetime.now(timezone.utc)
    iat = int(now.timestamp())
    if exp is None:
        exp = int((now + (expires_in or lifetime_for(kind))).timestamp())

    payload = TokenPayload(
        user_id=str(user_id),
        token_type=kind,
        verify=UserVerifyStatus(verify),
        iat=iat,
        exp=exp,
        jti=uuid.uuid4().hex,
    )
    try:
        return jwt.encode(
            payload.to_claims(),
            secret or secret_for(kind),
            algorithm=settings.jwt_algorithm,
        )
    except (jwt.PyJWTError, TypeError, ValueError) as e:
        raise SigningError(f"Could not sign {kind.value} token: {e}") from e


def sign_token_pair(
    user_id: str,
    verify: UserVerifyStatus,
    refresh_exp: Optional[int] = None,
) -> tuple[str, str]:
    """Sign an access + refresh pair. Either both are returned or neither."""
    access_token = sign_token(user_id, TokenKind.ACCESS, verify)
    refresh_token = sign_token(user_id, TokenKind.REFRESH, verify, exp=refresh_exp)
    return access_token, refresh_token


def verify_token(
    token: str,
    kind: TokenKind,
    *,
    secret: Optional[str] = None,
) -> TokenPayload:
    """Verify and decode a token of the expected kind.

    Returns the payload on success.
    Raises InvalidTokenError on failure.
    """
    try:
        claims = jwt.decode(
            token,
            secret or secret_for(kind),
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError(_capitalize(str(e)), expired=True)
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(_capitalize(str(e)))

    try:
        payload = TokenPayload(
            user_id=str(claims["user_id"]),
            token_type=TokenKind(claims["token_type"]),
            verify=UserVerifyStatus(int(claims["verify"])),
            iat=int(claims["iat"]),
            exp=int(claims["exp"]),
            jti=str(claims.get("jti", "")),
        )
    except (KeyError, ValueError, TypeError):
        raise InvalidTokenError("Token payload is malformed")

    if payload.token_type != kind:
        raise InvalidTokenError("Token type mismatch")
    return payload


def _capitalize(message: str) -> str:
    return message[:1].upper() + message[1:] if message else "Invalid token"
