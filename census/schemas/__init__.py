"""
Census Schemas

Error taxonomy and canonical serialization. Feed records live in
census.schemas.models and are imported from there directly.
"""

from .canonical import (
    CANONICAL_JSON_SEPARATORS,
    canonicalize_value,
    dumps_canonical,
    ensure_utc,
    format_datetime_canonical,
    utc_now,
)

from .errors import (
    CacheIntegrityError,
    CacheWriteError,
    CensusError,
    CensusException,
    ConfigurationError,
    EncodingError,
    ErrorCodes,
    FeedDataError,
    FeedUnavailable,
    HashError,
    IndexOutOfRange,
    OrderingViolation,
    RootMismatchError,
)

__all__ = [
    # Canonical serialization
    "CANONICAL_JSON_SEPARATORS",
    "canonicalize_value",
    "dumps_canonical",
    "ensure_utc",
    "format_datetime_canonical",
    "utc_now",
    # Errors
    "ErrorCodes",
    "CensusError",
    "CensusException",
    "EncodingError",
    "IndexOutOfRange",
    "HashError",
    "OrderingViolation",
    "FeedUnavailable",
    "FeedDataError",
    "CacheIntegrityError",
    "CacheWriteError",
    "RootMismatchError",
    "ConfigurationError",
]
