"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from councilsearch.config.errors import ErrorCode, CouncilSearchError

    raise CouncilSearchError(ErrorCode.CONNECTOR_NOT_FOUND, "Connector missing")

Validation outcomes ("the proposed change is unsafe") are not exceptions;
see ``councilsearch.domains.sync.models.ValidationResult``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"
    SEARCH_FAILED = "SEARCH_FAILED"
    SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"

    # Filter extraction / location resolution
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    LOCATION_LOOKUP_FAILED = "LOCATION_LOOKUP_FAILED"

    # Connector / sync errors
    CONNECTOR_NOT_FOUND = "CONNECTOR_NOT_FOUND"
    CONNECTOR_REQUEST_FAILED = "CONNECTOR_REQUEST_FAILED"
    SYNC_TEMPLATE_INVALID = "SYNC_TEMPLATE_INVALID"
    SYNC_SCOPE_EMPTY = "SYNC_SCOPE_EMPTY"
    SYNC_SCOPE_UNKNOWN = "SYNC_SCOPE_UNKNOWN"
    SYNC_REMOTE_QUERY_MISSING = "SYNC_REMOTE_QUERY_MISSING"
    SYNC_EMPTY_RESULT = "SYNC_EMPTY_RESULT"
    SYNC_SCHEMA_COLUMN_MISSING = "SYNC_SCHEMA_COLUMN_MISSING"
    SYNC_SCHEMA_TABLE_MISSING = "SYNC_SCHEMA_TABLE_MISSING"
    SYNC_QUERY_FAILED = "SYNC_QUERY_FAILED"

    # Infrastructure errors
    TRANSIENT_INFRA = "TRANSIENT_INFRA"
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class CouncilSearchError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class TransientInfraError(CouncilSearchError):
    """Cold start or connectivity failure. Retryable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.TRANSIENT_INFRA, message, details)


class ConfigurationError(CouncilSearchError):
    """Setup problem that needs operator action. Never retried."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
    ) -> None:
        super().__init__(code, message, details)


class InputError(CouncilSearchError):
    """Caller input rejected before any network call."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ) -> None:
        super().__init__(code, message, details)


class ExtractionError(CouncilSearchError):
    """Filter extraction errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.EXTRACTION_FAILED, message, details)


class SearchError(CouncilSearchError):
    """Search domain errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.SEARCH_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class StorageError(CouncilSearchError):
    """Storage/database errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_READ_FAILED, message, details)
