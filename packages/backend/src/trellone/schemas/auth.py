"""Pydantic schemas for auth and user profile endpoints.

Learn: Pydantic v2 models validate request/response data. Separate
request schemas (input) from read schemas (output) for clean APIs.
Password strength and confirm-password equality are checked here, so
services only ever see well-formed input.
"""

import uuid
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from trellone.auth.password import is_strong_password
from trellone.constants import AUTH_MESSAGES, UserVerifyStatus

T = TypeVar("T")


class MessageResponse(BaseModel):
    message: str


class ResultResponse(BaseModel, Generic[T]):
    message: str
    result: T


# ─── Requests ───────────────────────────────────────────


class _NewPassword(BaseModel):
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def password_must_be_strong(cls, value: str) -> str:
        if not is_strong_password(value):
            raise ValueError(AUTH_MESSAGES["PASSWORD_MUST_BE_STRONG"])
        return value

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError(AUTH_MESSAGES["CONFIRM_PASSWORD_MUST_BE_THE_SAME_AS_PASSWORD"])
        return self


class RegisterRequest(_NewPassword):
    email: EmailStr
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=50)


class EmailVerifyTokenBody(BaseModel):
    email_verify_token: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ForgotPasswordTokenBody(BaseModel):
    forgot_password_token: Optional[str] = None


class ResetPasswordRequest(_NewPassword):
    forgot_password_token: Optional[str] = None


class UpdateMeRequest(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)


class ChangePasswordRequest(_NewPassword):
    old_password: str = Field(..., min_length=1)


# ─── Responses ──────────────────────────────────────────


class TokenResult(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str
    verify: UserVerifyStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
