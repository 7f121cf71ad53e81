"""Auth API — registration, session lifecycle, email verify, password reset.

Learn: Routes for the token lifecycle:
- POST /auth/register              → create account, email a verify link
- POST /auth/login                 → email/password → token pair (+ cookies)
- POST /auth/logout                → revoke the refresh token, clear cookies
- POST /auth/refresh-token         → rotate the refresh token (single use)
- POST /auth/verify-email          → consume the email-verify token
- POST /auth/resend-verify-email   → fresh verify link (authenticated)
- POST /auth/forgot-password       → email a reset link
- POST /auth/verify-forgot-password→ check a reset link is still live
- POST /auth/reset-password        → set a new password, end all sessions

Browsers get both tokens as HttpOnly cookies; every response also carries
them in the body so non-browser clients (the CLI) can store them.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.dependencies import (
    AuthContext,
    RefreshContext,
    check_forgot_password_token,
    require_email_verify_token,
    require_forgot_password_token,
    require_refresh_token,
    require_user,
)
from trellone.config import settings
from trellone.constants import AUTH_MESSAGES, UserVerifyStatus
from trellone.db.engine import get_db
from trellone.errors import UsedOrNonexistentRefreshToken, UserNotFound
from trellone.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    ResultResponse,
    TokenResult,
    UserRead,
)
from trellone.services.auth_service import AuthService, TokenPair
from trellone.services.email import EmailSender, get_email_sender

router = APIRouter(prefix="/auth")


def _svc(
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> AuthService:
    return AuthService(db, email_sender)


# ─── Cookies ────────────────────────────────────────────


def set_auth_cookies(response: Response, pair: TokenPair) -> None:
    max_age = settings.cookie_max_age_days * 24 * 60 * 60
    for name, value in (
        ("access_token", pair.access_token),
        ("refresh_token", pair.refresh_token),
    ):
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


def clear_auth_cookies(response: Response) -> None:
    for name in ("access_token", "refresh_token"):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


def _token_result(pair: TokenPair) -> TokenResult:
    return TokenResult(access_token=pair.access_token, refresh_token=pair.refresh_token)


# ─── Register / login / logout ──────────────────────────


@router.post("/register", response_model=ResultResponse[UserRead], status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    """Create an unverified account and email the verify link."""
    user = await svc.register(
        email=body.email, password=body.password, display_name=body.display_name
    )
    return ResultResponse[UserRead](
        message=AUTH_MESSAGES["REGISTER_SUCCESS"],
        result=UserRead.model_validate(user),
    )


@router.post("/login", response_model=ResultResponse[TokenResult])
async def login(body: LoginRequest, response: Response, svc: AuthService = Depends(_svc)):
    user = await svc.authenticate(body.email, body.password)
    pair = await svc.login(str(user.id), user.verify_status)
    set_auth_cookies(response, pair)
    return ResultResponse[TokenResult](
        message=AUTH_MESSAGES["LOGIN_SUCCESS"], result=_token_result(pair)
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    ctx: AuthContext = Depends(require_user),
    refresh: RefreshContext = Depends(require_refresh_token),
    svc: AuthService = Depends(_svc),
):
    if refresh.payload.user_id != ctx.user_id:
        raise UsedOrNonexistentRefreshToken()
    await svc.logout(refresh.token)
    clear_auth_cookies(response)
    return MessageResponse(message=AUTH_MESSAGES["LOGOUT_SUCCESS"])


@router.post("/refresh-token", response_model=ResultResponse[TokenResult])
async def refresh_token(
    response: Response,
    refresh: RefreshContext = Depends(require_refresh_token),
    svc: AuthService = Depends(_svc),
):
    """Rotate: the presented refresh token is spent, a new pair is issued."""
    payload = refresh.payload
    pair = await svc.refresh_token(
        user_id=payload.user_id,
        verify=refresh.user.verify_status,
        old_refresh_token=refresh.token,
        exp=payload.exp,
    )
    set_auth_cookies(response, pair)
    return ResultResponse[TokenResult](
        message=AUTH_MESSAGES["REFRESH_TOKEN_SUCCESS"], result=_token_result(pair)
    )


# ─── Email verification ─────────────────────────────────


@router.post("/verify-email")
async def verify_email(
    response: Response,
    ctx: AuthContext = Depends(require_email_verify_token),
    svc: AuthService = Depends(_svc),
):
    """Consume the verify token and log the user straight in."""
    user = ctx.user
    if user.email_verify_token is None or user.verify_status == UserVerifyStatus.VERIFIED:
        return MessageResponse(message=AUTH_MESSAGES["EMAIL_ALREADY_VERIFIED_BEFORE"])

    user = await svc.verify_email(ctx.user_id)
    pair = await svc.login(str(user.id), user.verify_status)
    set_auth_cookies(response, pair)
    return ResultResponse[TokenResult](
        message=AUTH_MESSAGES["EMAIL_VERIFY_SUCCESS"], result=_token_result(pair)
    )


@router.post("/resend-verify-email", response_model=MessageResponse)
async def resend_verify_email(
    ctx: AuthContext = Depends(require_user),
    svc: AuthService = Depends(_svc),
):
    if ctx.user.verify_status == UserVerifyStatus.VERIFIED:
        return MessageResponse(message=AUTH_MESSAGES["EMAIL_ALREADY_VERIFIED_BEFORE"])
    await svc.resend_verify_email(ctx.user_id, ctx.user.email)
    return MessageResponse(message=AUTH_MESSAGES["RESEND_VERIFY_EMAIL_SUCCESS"])


# ─── Forgot / reset password ────────────────────────────


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(body: ForgotPasswordRequest, svc: AuthService = Depends(_svc)):
    user = await svc.get_user_by_email(body.email)
    if user is None:
        raise UserNotFound()
    await svc.forgot_password(str(user.id), user.verify_status, user.email)
    return MessageResponse(message=AUTH_MESSAGES["CHECK_EMAIL_TO_RESET_PASSWORD"])


@router.post("/verify-forgot-password", response_model=MessageResponse)
async def verify_forgot_password(
    ctx: AuthContext = Depends(require_forgot_password_token),
):
    return MessageResponse(message=AUTH_MESSAGES["VERIFY_FORGOT_PASSWORD_SUCCESS"])


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    svc: AuthService = Depends(_svc),
):
    ctx = await check_forgot_password_token(db, body.forgot_password_token)
    await svc.reset_password(ctx.user_id, body.password)
    return MessageResponse(message=AUTH_MESSAGES["RESET_PASSWORD_SUCCESS"])
