"""
Custom exception hierarchy for the couple diary.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class DiaryException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# --- NotFound ---------------------------------------------------------------

class DayNotFoundError(DiaryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "DAY_NOT_FOUND"

    def __init__(self, day_key: str):
        super().__init__(
            message=f"No thread exists for day {day_key}.",
            details={"day_key": day_key},
        )


class AgreementNotFoundError(DiaryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "AGREEMENT_NOT_FOUND"

    def __init__(self, agreement_id: str):
        super().__init__(
            message=f"Agreement {agreement_id} not found.",
            details={"id": agreement_id},
        )


class WeeklyCommentNotFoundError(DiaryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "WEEKLY_COMMENT_NOT_FOUND"

    def __init__(self, week_key: str):
        super().__init__(
            message=f"No weekly comment for {week_key}.",
            details={"week_key": week_key},
        )


class SessionNotFoundError(DiaryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session {session_id} not found or already closed.",
            details={"session_id": session_id},
        )


# --- InvalidArgument --------------------------------------------------------

class InvalidArgumentError(DiaryException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_ARGUMENT"


class InvalidDayKeyError(InvalidArgumentError):
    code = "INVALID_DAY_KEY"

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid day key {value!r}; expected YYYY-MM-DD.",
            details={"value": str(value)},
        )


class InvalidWeekKeyError(InvalidArgumentError):
    code = "INVALID_WEEK_KEY"

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid week key {value!r}; expected YYYY-Www.",
            details={"value": str(value)},
        )


class InvalidMonthKeyError(InvalidArgumentError):
    code = "INVALID_MONTH_KEY"

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid month key {value!r}; expected YYYY-MM.",
            details={"value": str(value)},
        )


class InvalidInstantError(InvalidArgumentError):
    code = "INVALID_INSTANT"

    def __init__(self, value: Any):
        super().__init__(
            message="Instant must be a timezone-aware datetime.",
            details={"value": str(value)},
        )


# --- Store ------------------------------------------------------------------

class TransientStoreError(DiaryException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str | None = None):
        super().__init__(
            message=f"The store could not complete '{operation}'. Retry later.",
            details={"operation": operation, "reason": reason} if reason else {"operation": operation},
        )


class BackfillFailedError(DiaryException):
    """Raised when a day's entries cannot be re-read to rebuild its breakdown.

    Roll-ups catch it and report the day as degraded instead of failing.
    """
    code = "BACKFILL_FAILED"

    def __init__(self, day_key: str, reason: str | None = None):
        super().__init__(
            message=f"Could not rebuild the role breakdown for {day_key}.",
            details={"day_key": day_key, "reason": reason} if reason else {"day_key": day_key},
        )


# --- Identity / permissions -------------------------------------------------

class NotAuthenticatedError(DiaryException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"

    def __init__(self, message: str = "Authentication required."):
        super().__init__(message=message)


class UnknownParticipantError(DiaryException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "UNKNOWN_PARTICIPANT"

    def __init__(self, email: str):
        super().__init__(
            message="This account is not one of the diary participants.",
            details={"email": email},
        )


class ArchiveForbiddenError(DiaryException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "ARCHIVE_FORBIDDEN"

    def __init__(self, role: str):
        super().__init__(
            message="Only the master participant may archive agreements.",
            details={"role": role},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def diary_exception_handler(request: Request, exc: DiaryException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
