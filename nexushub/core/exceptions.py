"""
Domain errors and the FastAPI handlers that render them.

Every failure leaves the API in one envelope:
    {"success": false, "error": <CODE>, "message": <text>}
Validation failures add an "errors" list of {field, message} pairs.
"""
from __future__ import annotations

import logging
from typing import ClassVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ── Error types ───────────────────────────────────────────────────────────────

class NexusHubException(Exception):
    """
    Root of the NexusHub error tree.

    Subclasses pin ``default_status`` and ``default_code``; callers usually
    pass only a message.
    """

    default_status: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ClassVar[str] = "NEXUSHUB_ERROR"
    default_detail: ClassVar[str] = "Request could not be completed"

    def __init__(
        self,
        detail: str | None = None,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.detail = detail or self.default_detail
        self.status_code = status_code or self.default_status
        self.error_code = error_code or self.default_code
        super().__init__(self.detail)


class BadRequestException(NexusHubException):
    default_status = status.HTTP_400_BAD_REQUEST
    default_code = "BAD_REQUEST"


class UnauthorizedException(NexusHubException):
    default_status = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"
    default_detail = "Authentication required"


class InvalidTokenException(UnauthorizedException):
    default_code = "INVALID_TOKEN"
    default_detail = "Invalid or expired token"


class ForbiddenException(NexusHubException):
    """Raised when the permission evaluator denies an action."""

    default_status = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"
    default_detail = "You do not have permission to perform this action"


class NotFoundException(NexusHubException):
    default_status = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        if resource_id:
            super().__init__(f"{resource} with id '{resource_id}' not found")
        else:
            super().__init__(f"{resource} not found")


class ConflictException(NexusHubException):
    default_status = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class BadGatewayException(NexusHubException):
    """An upstream provider answered with an error or not at all."""

    default_status = status.HTTP_502_BAD_GATEWAY
    default_code = "BAD_GATEWAY"
    default_detail = "Upstream provider request failed"


class ServiceUnavailableException(NexusHubException):
    default_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "SERVICE_UNAVAILABLE"


# ── Handlers ──────────────────────────────────────────────────────────────────

def error_envelope(code: str, message: str, **extra: object) -> dict[str, object]:
    return {"success": False, "error": code, "message": message, **extra}


async def handle_domain_error(request: Request, exc: NexusHubException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.error_code, exc.detail),
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope("VALIDATION_ERROR", "Request validation failed", errors=fields),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            "INTERNAL_SERVER_ERROR", "An unexpected internal server error occurred"
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NexusHubException, handle_domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
