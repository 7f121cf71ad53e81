"""User profile routes for the authenticated caller."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.dependencies import AuthContext, require_user
from trellone.constants import USERS_MESSAGES
from trellone.db.engine import get_db
from trellone.schemas.auth import (
    ChangePasswordRequest,
    MessageResponse,
    ResultResponse,
    UpdateMeRequest,
    UserRead,
)
from trellone.services.auth_service import AuthService
from trellone.services.email import EmailSender, get_email_sender

router = APIRouter(prefix="/users")


def _svc(
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> AuthService:
    return AuthService(db, email_sender)


@router.get("/me", response_model=ResultResponse[UserRead])
async def get_me(ctx: AuthContext = Depends(require_user)):
    return ResultResponse[UserRead](
        message=USERS_MESSAGES["GET_ME_SUCCESS"],
        result=UserRead.model_validate(ctx.user),
    )


@router.patch("/me", response_model=ResultResponse[UserRead])
async def update_me(
    body: UpdateMeRequest,
    ctx: AuthContext = Depends(require_user),
    svc: AuthService = Depends(_svc),
):
    user = await svc.update_me(ctx.user_id, body.display_name)
    return ResultResponse[UserRead](
        message=USERS_MESSAGES["UPDATE_ME_SUCCESS"],
        result=UserRead.model_validate(user),
    )


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    ctx: AuthContext = Depends(require_user),
    svc: AuthService = Depends(_svc),
):
    await svc.change_password(ctx.user_id, body.old_password, body.password)
    return MessageResponse(message=USERS_MESSAGES["CHANGE_PASSWORD_SUCCESS"])
