"""Unit tests for the exception hierarchy and error registry."""

import pytest

from orderfusion.core.exceptions import (
    BaseError,
    CatalogError,
    ErrorCategory,
    NoUsableInputError,
)
from orderfusion.errors.codes import ErrorCode, make_error


class TestBaseError:
    """Tests for BaseError class."""

    def test_base_error_creation(self):
        """Test BaseError can be created with all parameters."""
        error = BaseError(
            message="Test error",
            error_code="TEST_ERROR",
            category=ErrorCategory.INPUT,
            details={"detail": "Additional info", "field": "test"},
            retryable=False,
        )

        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.error_code == "TEST_ERROR"
        assert error.category == ErrorCategory.INPUT
        assert error.details == {"detail": "Additional info", "field": "test"}
        assert error.retryable is False

    def test_base_error_to_dict(self):
        """Test BaseError converts to RFC 7807 format."""
        error = BaseError(
            message="Catalogue de références illisible",
            error_code="CATALOG_UNPARSABLE",
            category=ErrorCategory.CONFIGURATION,
            details={"detail": "Additional context"},
        )

        result = error.to_dict()

        assert result["type"] == "/errors/CATALOG_UNPARSABLE"
        assert result["title"] == "Catalogue de références illisible"
        assert result["code"] == "CATALOG_UNPARSABLE"
        assert result["int_code"] == 21
        assert result["category"] == "configuration"
        assert result["detail"] == "Additional context"
        assert result["retryable"] is False

    def test_base_error_default_details(self):
        """Test BaseError with no details provided."""
        error = BaseError(message="Test", error_code="TEST", category=ErrorCategory.SERVER_ERROR)

        assert error.details == {}
        assert error.retryable is False


class TestNoUsableInputError:
    """Tests for input errors."""

    def test_defaults(self):
        """Test the default code and registry message."""
        error = NoUsableInputError()
        assert error.error_code == "NO_OCR_TEXT"
        assert error.category == ErrorCategory.INPUT
        assert error.message == "Aucun texte OCR exploitable"
        assert error.retryable is False

    def test_variants_code_is_retryable(self):
        """Test every variant failing may be retried with new renderings."""
        error = NoUsableInputError("NO_OCR_VARIANTS", details={"variant_count": 3})
        assert error.retryable is True
        assert error.details == {"variant_count": 3}

    def test_custom_message(self):
        """Test an explicit message overrides the registry text."""
        assert NoUsableInputError(message="vide").message == "vide"

    def test_is_catchable_as_base(self):
        """Test callers can catch the base class."""
        with pytest.raises(BaseError):
            raise NoUsableInputError()


class TestCatalogError:
    """Tests for catalog errors."""

    def test_details(self):
        """Test path and detail are kept for diagnostics."""
        error = CatalogError("CATALOG_UNPARSABLE", "/tmp/catalog.json", "bad shape")
        assert error.category == ErrorCategory.CONFIGURATION
        assert error.details == {"path": "/tmp/catalog.json", "detail": "bad shape"}
        assert error.to_dict()["detail"] == "bad shape"


class TestErrorCodes:
    """Tests for the registry helpers."""

    def test_get_spec(self):
        """Test known codes resolve to their spec."""
        spec = ErrorCode.get_spec("LLM_RESPONSE_UNPARSABLE")
        assert spec.int_code == 30
        assert spec.category == "degraded"

    def test_unknown_code(self):
        """Test unknown codes get a generic server error spec."""
        spec = ErrorCode.get_spec("NOPE")
        assert spec.int_code == 0
        assert spec.category == "server_error"

    def test_make_error(self):
        """Test error dicts fall back to the registry message."""
        assert make_error("CATALOG_NOT_FOUND") == {
            "code": 20,
            "message": "Catalogue de références introuvable",
            "details": None,
        }
        assert make_error("NO_OCR_TEXT", "vide", "x")["message"] == "vide"
