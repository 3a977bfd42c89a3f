"""
Domain errors of the streak engine and the FastAPI handlers that render
them as `{code, message, details}`. Clients branch on `code`.

Persistence errors (SQLAlchemy) are not wrapped here: they
propagate unchanged from the write paths and surface as INTERNAL_ERROR.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from habitstreak.schemas.common import FieldError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class HabitStreakException(Exception):
    """Root of every error the engine raises on purpose."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class TaskNotFoundError(HabitStreakException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: int):
        super().__init__(
            message=f"Task {task_id} not found; no streak policy is available.",
            details={"task_id": task_id},
        )


class StreakNotFoundError(HabitStreakException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "STREAK_NOT_FOUND"

    def __init__(self, task_id: int):
        super().__init__(
            message=f"Task {task_id} has no streak record yet.",
            details={"task_id": task_id},
        )


class InvalidStreakPolicyError(HabitStreakException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_STREAK_POLICY"

    def __init__(self, errors: list[str]):
        super().__init__(
            message="Streak policy is invalid.",
            details={"errors": errors},
        )


class InvalidCompletionCountError(HabitStreakException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_COMPLETION_COUNT"

    def __init__(self, count: int, day: date):
        super().__init__(
            message=f"Completion count for {day} must be >= 0. Received {count}.",
            details={"count": count, "day": str(day)},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def habit_streak_exception_handler(
    request: Request, exc: HabitStreakException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = [
        FieldError(
            field=".".join(str(loc) for loc in err["loc"] if loc != "body"),
            message=err["msg"],
            type=err["type"],
        ).model_dump()
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
