"""User-facing message strings and shared enums.

Centralizing messages keeps the API responses consistent and lets tests
assert on the exact text the client sees.
"""

import enum


class UserVerifyStatus(enum.IntEnum):
    UNVERIFIED = 0
    VERIFIED = 1
    BANNED = 2


class BoardType(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


COMMON_MESSAGES = {
    "VALIDATION_ERROR": "Validation error",
    "INTERNAL_SERVER_ERROR": "Internal server error",
}

AUTH_MESSAGES = {
    "EMAIL_ALREADY_EXISTS": "Email already exists",
    "PASSWORD_MUST_BE_STRONG": (
        "Password must be 6-50 characters long and contain at least 1 lowercase "
        "letter, 1 uppercase letter, 1 number, and 1 special character"
    ),
    "CONFIRM_PASSWORD_MUST_BE_THE_SAME_AS_PASSWORD": (
        "Confirm password must be the same as password"
    ),
    "REGISTER_SUCCESS": (
        "Register successfully, please check your email to verify your account"
    ),
    "EMAIL_OR_PASSWORD_IS_INCORRECT": "Email or password is incorrect",
    "USER_IS_BANNED": "User is banned",
    "LOGIN_SUCCESS": "Login successfully",
    "ACCESS_TOKEN_IS_REQUIRED": "Access token is required",
    "REFRESH_TOKEN_IS_REQUIRED": "Refresh token is required",
    "USED_REFRESH_TOKEN_OR_NOT_EXIST": "Used refresh token or not exist",
    "LOGOUT_SUCCESS": "Logout successfully",
    "REFRESH_TOKEN_SUCCESS": "Refresh token successfully",
    "EMAIL_VERIFY_TOKEN_IS_REQUIRED": "Email verify token is required",
    "INVALID_EMAIL_VERIFY_TOKEN": "Invalid email verify token",
    "USER_NOT_FOUND": "User not found",
    "USER_NOT_VERIFIED": "User not verified",
    "EMAIL_ALREADY_VERIFIED_BEFORE": "Email already verified before",
    "EMAIL_VERIFY_SUCCESS": "Email verify successfully",
    "RESEND_VERIFY_EMAIL_SUCCESS": "Resend verify email successfully",
    "CHECK_EMAIL_TO_RESET_PASSWORD": "Check email to reset password",
    "FORGOT_PASSWORD_TOKEN_IS_REQUIRED": "Forgot password token is required",
    "INVALID_FORGOT_PASSWORD_TOKEN": "Invalid forgot password token",
    "VERIFY_FORGOT_PASSWORD_SUCCESS": "Verify forgot password successfully",
    "RESET_PASSWORD_SUCCESS": "Reset password successfully",
}

USERS_MESSAGES = {
    "GET_ME_SUCCESS": "Get my profile successfully",
    "UPDATE_ME_SUCCESS": "Update my profile successfully",
    "OLD_PASSWORD_NOT_MATCH": "Old password not match",
    "CHANGE_PASSWORD_SUCCESS": "Change password successfully",
}

BOARDS_MESSAGES = {
    "CREATE_BOARD_SUCCESS": "Board created successfully",
    "INVALID_BOARD_ID": "Invalid board id",
    "BOARD_NOT_FOUND": "Board not found",
    "GET_BOARD_SUCCESS": "Get board successfully",
    "GET_BOARD_ACTIVITY_SUCCESS": "Get board activity successfully",
    "UPDATE_BOARD_SUCCESS": "Board updated successfully",
    "COLUMN_ORDER_IDS_OUT_OF_DATE": "Column order ids are out of date",
    "INVALID_COLUMN_ID": "Invalid column id",
    "INVALID_CARD_ID": "Invalid card id",
    "CARD_NOT_FOUND": "Card not found",
    "COLUMN_NOT_FOUND": "Column not found",
    "CARD_ORDER_IDS_MUST_BE_UNIQUE": "Card order ids must be unique",
    "CARD_ORDER_IDS_OUT_OF_DATE": "Card order ids are out of date",
    "MOVE_CARD_TO_DIFFERENT_COLUMN_SUCCESS": "Move card to different column successfully",
}

COLUMNS_MESSAGES = {
    "CREATE_COLUMN_SUCCESS": "Column created successfully",
    "INVALID_COLUMN_ID": "Invalid column id",
    "COLUMN_NOT_FOUND": "Column not found",
    "UPDATE_COLUMN_SUCCESS": "Column updated successfully",
    "DELETE_COLUMN_SUCCESS": "Column deleted successfully",
}

CARDS_MESSAGES = {
    "CREATE_CARD_SUCCESS": "Card created successfully",
    "GET_CARD_SUCCESS": "Get card successfully",
}
