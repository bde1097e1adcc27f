"""
Custom exception hierarchy for the application.

All application-specific exceptions inherit from AppException,
enabling consistent error handling and structured error responses.

Hierarchy:
    AppException
    ├── ConfigurationException   — Invalid mapping / settings (fatal at startup)
    │   └── FieldMismatchException — Mapped fields missing from the row schema
    ├── TransformationException  — A row cannot be turned into a document
    │   ├── MappingFieldException  — A single field cannot be mapped
    │   └── DocumentRejectedException — Store refuses the built document
    ├── StoreException           — Errors talking to the document store
    │   ├── StoreWriteException    — One failed write attempt (retryable)
    │   └── WriteFailureException  — Retry budget exhausted or cancelled
"""

from typing import Any


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:     Human-readable error description.
        status_code: HTTP status code to return to the client.
        error_code:  Machine-readable error identifier (e.g. "WRITE_FAILED").
        details:     Optional dict with extra context for debugging.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred.",
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the exception into a JSON-friendly dict."""
        payload: dict[str, Any] = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


# ─── Configuration Errors ────────────────────────────────────────────


class ConfigurationException(AppException):
    """Raised when the mapping or write settings cannot be used."""

    def __init__(
        self,
        message: str = "Invalid configuration.",
        status_code: int = 500,
        error_code: str = "CONFIGURATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


class FieldMismatchException(ConfigurationException):
    """Raised when mapped fields are absent from the incoming row schema."""

    def __init__(
        self,
        missing_fields: list[str],
        details: dict[str, Any] | None = None,
    ) -> None:
        names = ", ".join(f"'{name}'" for name in missing_fields)
        super().__init__(
            message=f"Fields not found in incoming rows: {names}",
            error_code="FIELD_MISMATCH",
            details={**(details or {}), "missing_fields": missing_fields},
        )


# ─── Transformation Errors ───────────────────────────────────────────


class TransformationException(AppException):
    """Raised when a row cannot be turned into a document."""

    def __init__(
        self,
        message: str = "Data transformation failed.",
        status_code: int = 422,
        error_code: str = "TRANSFORMATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


class MappingFieldException(TransformationException):
    """Raised when a specific field cannot be mapped."""

    def __init__(
        self,
        field_name: str,
        reason: str = "Field mapping failed.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=f"Failed to map field '{field_name}': {reason}",
            status_code=422,
            error_code="MAPPING_FIELD_ERROR",
            details={**(details or {}), "field": field_name},
        )


class DocumentRejectedException(TransformationException):
    """Raised when the store refuses a document before sending it, e.g. a non-object root."""

    def __init__(
        self,
        message: str = "Document rejected by the store.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=422,
            error_code="DOCUMENT_REJECTED",
            details=details,
        )


# ─── Store Errors ────────────────────────────────────────────────────


class StoreException(AppException):
    """Raised when the document store returns an error or is unreachable."""

    def __init__(
        self,
        message: str = "Document store operation failed.",
        status_code: int = 502,
        error_code: str = "STORE_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


class StoreWriteException(StoreException):
    """A single write attempt failed; the caller may retry."""

    def __init__(
        self,
        message: str = "Write to the document store failed.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=502,
            error_code="STORE_WRITE_ERROR",
            details=details,
        )


class WriteFailureException(StoreException):
    """Raised when a write could not be completed within the retry budget."""

    def __init__(
        self,
        message: str = "Write failed after exhausting retries.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=502,
            error_code="WRITE_FAILED",
            details=details,
        )

