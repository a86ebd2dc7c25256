"""
Census Schemas - Error Taxonomy
File: errors.py

Purpose: Standard error taxonomy across census reconstruction.
Defines both Pydantic models for structured error communication
and Python exceptions for control flow.

Programming/data errors (EncodingError, IndexOutOfRange, OrderingViolation)
are never recovered silently. HashError and FeedUnavailable are marked
retryable and are retried by the orchestration layer.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Error Codes (Machine-Readable Constants)
# =============================================================================

class ErrorCodes:
    """Stable machine-readable error codes used across the census stack."""

    # Leaf & Tree Errors
    ENCODING_ERROR = "ENCODING_ERROR"
    INDEX_OUT_OF_RANGE = "INDEX_OUT_OF_RANGE"
    HASH_ERROR = "HASH_ERROR"

    # Replay Errors
    ORDERING_VIOLATION = "ORDERING_VIOLATION"

    # Feed Errors
    FEED_UNAVAILABLE = "FEED_UNAVAILABLE"
    FEED_DATA_ERROR = "FEED_DATA_ERROR"

    # Cache Errors
    CACHE_INTEGRITY_ERROR = "CACHE_INTEGRITY_ERROR"
    CACHE_WRITE_ERROR = "CACHE_WRITE_ERROR"

    # Commitment Errors
    ROOT_MISMATCH = "ROOT_MISMATCH"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"

    # Configuration Errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


# =============================================================================
# Pydantic Error Models (Structured Communication)
# =============================================================================

class CensusError(BaseModel):
    """
    Base error model for structured error communication.

    Used by the CLI and the HTTP API to render failures without
    re-raising them.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=False,
        validate_assignment=True,
    )

    code: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=[ErrorCodes.FEED_UNAVAILABLE],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional structured details about the error",
    )
    retryable: bool = Field(
        default=False,
        description="Whether the operation can be retried",
    )

    def to_exception(self) -> "CensusException":
        """Convert this error model to a raised exception."""
        return CensusException(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )


# =============================================================================
# Python Exceptions (Control Flow)
# =============================================================================

class CensusException(Exception):
    """
    Base exception for all census errors.

    Carries structured error information and can be converted to a
    CensusError model.
    """

    def __init__(
        self,
        message: str,
        code: str = "CENSUS_ERROR",
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_error_model(self) -> CensusError:
        """Convert this exception to a CensusError model."""
        return CensusError(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class EncodingError(CensusException):
    """Raised when leaf packing constraints are violated."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCodes.ENCODING_ERROR,
            details=details,
            retryable=False,
        )


class IndexOutOfRange(CensusException):
    """Raised on structural misuse of the tree (bad leaf index)."""

    def __init__(
        self,
        message: str,
        index: int | None = None,
        size: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if index is not None:
            full_details["index"] = index
        if size is not None:
            full_details["size"] = size
        super().__init__(
            message=message,
            code=ErrorCodes.INDEX_OUT_OF_RANGE,
            details=full_details,
            retryable=False,
        )


class HashError(CensusException):
    """Raised when the hash primitive fails."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCodes.HASH_ERROR,
            details=details,
            retryable=True,
        )


class OrderingViolation(CensusException):
    """Raised when event replay receives history out of sequence."""

    def __init__(
        self,
        message: str,
        account_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if account_id:
            full_details["account_id"] = account_id
        super().__init__(
            message=message,
            code=ErrorCodes.ORDERING_VIOLATION,
            details=full_details,
            retryable=False,
        )


class FeedUnavailable(CensusException):
    """Raised when an external source cannot be reached."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if source:
            full_details["source"] = source
        super().__init__(
            message=message,
            code=ErrorCodes.FEED_UNAVAILABLE,
            details=full_details,
            retryable=True,
        )


class FeedDataError(CensusException):
    """Raised when an external source returns a malformed payload."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCodes.FEED_DATA_ERROR,
            details=details,
            retryable=False,
        )


class CacheIntegrityError(CensusException):
    """Raised when a stored cache checksum does not match its leaves."""

    def __init__(
        self,
        message: str,
        root_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if root_key:
            full_details["root_key"] = root_key
        super().__init__(
            message=message,
            code=ErrorCodes.CACHE_INTEGRITY_ERROR,
            details=full_details,
            retryable=False,
        )


class CacheWriteError(CensusException):
    """Raised when persisting a cache entry fails."""

    def __init__(
        self,
        message: str,
        root_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if root_key:
            full_details["root_key"] = root_key
        super().__init__(
            message=message,
            code=ErrorCodes.CACHE_WRITE_ERROR,
            details=full_details,
            retryable=False,
        )


class RootMismatchError(CensusException):
    """Raised when a reconstructed root differs from the authoritative root."""

    def __init__(
        self,
        expected: int,
        actual: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        full_details["expected"] = f"0x{expected:064x}"
        full_details["actual"] = f"0x{actual:064x}"
        super().__init__(
            message=(
                f"root mismatch: expected {full_details['expected']}, "
                f"got {full_details['actual']}"
            ),
            code=ErrorCodes.ROOT_MISMATCH,
            details=full_details,
            retryable=False,
        )
        self.expected = expected
        self.actual = actual


class ConfigurationError(CensusException):
    """Raised when the runtime configuration cannot be honoured."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCodes.CONFIGURATION_ERROR,
            details=details,
            retryable=False,
        )
