"""Typed application errors and their HTTP mapping.

Services and auth dependencies raise these; one set of exception handlers
registered in main.py turns them into JSON responses. Every error carries
its status code, so route handlers never translate exceptions by hand.

Response body: {"message": ..., **extra}. Tracebacks are never serialized.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from trellone.constants import AUTH_MESSAGES, BOARDS_MESSAGES, COMMON_MESSAGES

logger = structlog.get_logger()


class AppError(Exception):
    """Base class — an error with an HTTP status and a client-safe message."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, **self.extra}


class EntityValidationError(AppError):
    """Malformed input, aggregated per field."""

    status_code = 422

    def __init__(self, errors: dict[str, dict[str, Any]], message: Optional[str] = None):
        super().__init__(message or COMMON_MESSAGES["VALIDATION_ERROR"], errors=errors)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, msg: str, location: str = "body") -> "EntityValidationError":
        return cls({field: {"msg": msg, "location": location}})


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


# ─── Named failures ─────────────────────────────────────


class UserNotFound(NotFound):
    def __init__(self):
        super().__init__(AUTH_MESSAGES["USER_NOT_FOUND"])


class EmailAlreadyExists(Conflict):
    def __init__(self):
        super().__init__(AUTH_MESSAGES["EMAIL_ALREADY_EXISTS"])


class UsedOrNonexistentRefreshToken(Unauthorized):
    def __init__(self):
        super().__init__(AUTH_MESSAGES["USED_REFRESH_TOKEN_OR_NOT_EXIST"])


class InvalidColumnId(EntityValidationError):
    def __init__(self, field: str = "column_id"):
        super().__init__(
            {field: {"msg": BOARDS_MESSAGES["INVALID_COLUMN_ID"], "location": "body"}},
            message=BOARDS_MESSAGES["INVALID_COLUMN_ID"],
        )


class InvalidCardId(EntityValidationError):
    def __init__(self, field: str = "card_id"):
        super().__init__(
            {field: {"msg": BOARDS_MESSAGES["INVALID_CARD_ID"], "location": "body"}},
            message=BOARDS_MESSAGES["INVALID_CARD_ID"],
        )


# ─── Handlers ───────────────────────────────────────────


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = None
    if exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Reshape pydantic's error list into one entry per field."""
    errors: dict[str, dict[str, Any]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        location = loc[0] if loc else "body"
        field = ".".join(loc[1:]) or location
        # first error per field wins, like the client form expects
        errors.setdefault(field, {"msg": _clean_msg(err.get("msg", "")), "location": location})
    return JSONResponse(
        status_code=422,
        content={"message": COMMON_MESSAGES["VALIDATION_ERROR"], "errors": errors},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("http.unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": COMMON_MESSAGES["INTERNAL_SERVER_ERROR"]},
    )


def _clean_msg(msg: str) -> str:
    # pydantic prefixes custom ValueError messages
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
