"""Exception hierarchy for the order-form extraction core.

Only unrecoverable conditions are raised to callers; every exception carries
a stable error code from the registry so callers can tell "no usable input"
apart from "degraded but usable output".
"""

from enum import Enum
from typing import Any, Optional

from orderfusion.errors.codes import ErrorCode


class ErrorCategory(str, Enum):
    """Error categories for classification and monitoring."""

    INPUT = "input"
    CONFIGURATION = "configuration"
    SERVER_ERROR = "server_error"


class BaseError(Exception):
    """Base exception for all orderfusion errors.

    Attributes:
        message: Human-readable error message
        error_code: Registry error code (see ``orderfusion.errors.codes``)
        category: Error category for classification
        details: Additional context (dict)
        retryable: Whether the caller may retry with other input
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 Problem Details format."""
        return {
            "type": f"/errors/{self.error_code}",
            "title": self.message,
            "code": self.error_code,
            "int_code": ErrorCode.get_spec(self.error_code).int_code,
            "detail": self.details.get("detail"),
            "category": self.category.value,
            "retryable": self.retryable,
        }


class NoUsableInputError(BaseError):
    """No OCR text at all, or every OCR variant came back empty.

    Args:
        error_code: ``NO_OCR_TEXT`` or ``NO_OCR_VARIANTS``
        details: Additional context
    """

    def __init__(self, error_code: str = "NO_OCR_TEXT", **kwargs):
        spec = ErrorCode.get_spec(error_code)
        super().__init__(
            message=kwargs.pop("message", spec.message_fr),
            error_code=error_code,
            category=ErrorCategory.INPUT,
            retryable=spec.retryable,
            **kwargs,
        )


class CatalogError(BaseError):
    """Reference catalog missing or malformed.

    Args:
        error_code: ``CATALOG_NOT_FOUND`` or ``CATALOG_UNPARSABLE``
        path: Catalog location that failed to load
    """

    def __init__(self, error_code: str, path: str, detail: Optional[str] = None):
        spec = ErrorCode.get_spec(error_code)
        super().__init__(
            message=spec.message_fr,
            error_code=error_code,
            category=ErrorCategory.CONFIGURATION,
            details={"path": path, "detail": detail},
            retryable=False,
        )
