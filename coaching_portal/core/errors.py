"""
Custom exception hierarchy for the coaching portal.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class PortalException(Exception):
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


class InvalidSignatureError(PortalException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_SIGNATURE"

    def __init__(self):
        super().__init__(message="Request signature does not match.")


class StaleRequestError(PortalException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "STALE_REQUEST"

    def __init__(self, timestamp: str):
        super().__init__(
            message="Request timestamp is outside the replay window.",
            details={"timestamp": timestamp},
        )


class MissingIdentityError(PortalException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "MISSING_IDENTITY"

    def __init__(self):
        super().__init__(message="No authenticated employee identity on the request.")


class DispatchUnauthorizedError(PortalException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "DISPATCH_UNAUTHORIZED"

    def __init__(self):
        super().__init__(message="Missing or invalid dispatch token.")


class InvalidOAuthStateError(PortalException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "INVALID_OAUTH_STATE"

    def __init__(self):
        super().__init__(message="OAuth state is missing, tampered with, or expired.")


class SlackOAuthError(PortalException):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "SLACK_OAUTH_FAILED"

    def __init__(self, reason: str):
        super().__init__(
            message=f"Slack account linking failed: {reason}.",
            details={"reason": reason},
        )


class SlackNotConnectedError(PortalException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SLACK_NOT_CONNECTED"

    def __init__(self, email: str):
        super().__init__(
            message=f"No Slack connection for {email}.",
            details={"email": email},
        )


class EmployeeNotFoundError(PortalException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, email: str):
        super().__init__(
            message=f"No employee record for {email}.",
            details={"email": email},
        )


class SessionNotFoundError(PortalException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: int):
        super().__init__(
            message=f"Coaching session {session_id} not found.",
            details={"session_id": session_id},
        )


class SurveyAlreadySubmittedError(PortalException):
    http_status = status.HTTP_409_CONFLICT
    code = "SURVEY_ALREADY_SUBMITTED"

    def __init__(self, survey_type: str, session_id: int | None = None):
        target = f"session {session_id}" if session_id is not None else "this employee"
        super().__init__(
            message=f"A {survey_type} survey for {target} was already submitted.",
            details={"survey_type": survey_type, "session_id": session_id},
        )


class UnknownCompetencyError(PortalException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "UNKNOWN_COMPETENCY"

    def __init__(self, names: list[str]):
        super().__init__(
            message="Scores reference competencies that are not active.",
            details={"competencies": names},
        )


class CheckpointAlreadyExistsError(PortalException):
    http_status = status.HTTP_409_CONFLICT
    code = "CHECKPOINT_ALREADY_EXISTS"

    def __init__(self, checkpoint_number: int):
        super().__init__(
            message=f"Checkpoint {checkpoint_number} was already submitted.",
            details={"checkpoint_number": checkpoint_number},
        )


class DispatchCycleError(PortalException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "DISPATCH_FAILED"

    def __init__(self, message: str):
        super().__init__(message=message)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def portal_exception_handler(request: Request, exc: PortalException) -> JSONResponse:
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
    logger.opt(exception=exc).error("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
