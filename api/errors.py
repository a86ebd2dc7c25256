"""
API Error Handling

Standardized error handling for the API. CensusException subclasses are
rendered with the status code registered for their error code.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models.responses import ErrorDetail, ErrorResponse
from census.schemas.errors import CensusException, ErrorCodes


# Census error code -> HTTP status
STATUS_BY_CODE: dict[str, int] = {
    ErrorCodes.ENCODING_ERROR: 422,
    ErrorCodes.ORDERING_VIOLATION: 422,
    ErrorCodes.FEED_DATA_ERROR: 422,
    ErrorCodes.INDEX_OUT_OF_RANGE: 404,
    ErrorCodes.ACCOUNT_NOT_FOUND: 404,
    ErrorCodes.ROOT_MISMATCH: 409,
    ErrorCodes.FEED_UNAVAILABLE: 503,
    ErrorCodes.HASH_ERROR: 503,
    ErrorCodes.CONFIGURATION_ERROR: 500,
    ErrorCodes.CACHE_INTEGRITY_ERROR: 500,
    ErrorCodes.CACHE_WRITE_ERROR: 500,
}


class APIError(Exception):
    """Base API error with structured response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code=self.code,
                message=self.message,
                details=self.details,
            ),
        )


class InvalidRequestError(APIError):
    """Invalid request parameters."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code="INVALID_REQUEST",
            message=message,
            status_code=400,
            details=details,
        )


class NotFoundError(APIError):
    """Requested account or root is not in the census."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCodes.ACCOUNT_NOT_FOUND,
            message=message,
            status_code=404,
            details=details,
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def census_error_handler(request: Request, exc: CensusException) -> JSONResponse:
    """Handle errors raised by the census library."""
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(exc.code, 500),
        content=ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details={**exc.details, "retryable": exc.retryable},
            ),
        ).model_dump(),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
                details={"type": type(exc).__name__},
            ),
        ).model_dump(),
    )
