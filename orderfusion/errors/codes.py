"""
Centralized error code registry with specifications.

Provides single source of truth for error codes, including French messages
shown to operators, error categories and retryability flags.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ErrorSpec:
    """Specification for a single error type."""

    code: str
    int_code: int
    message_fr: str  # French message for operators
    category: str  # "input", "configuration", "degraded" or "server_error"
    retryable: bool


class ErrorCode(Enum):
    """Centralized error code registry.

    Usage:
        error_spec = ErrorCode.get_spec("NO_OCR_TEXT")
        print(error_spec.message_fr, error_spec.category, error_spec.retryable)
    """

    # ========================================
    # INPUT ERRORS (raised to the caller)
    # ========================================
    NO_OCR_TEXT = ErrorSpec(
        "NO_OCR_TEXT",
        10,
        "Aucun texte OCR exploitable",
        "input",
        False,
    )
    NO_OCR_VARIANTS = ErrorSpec(
        "NO_OCR_VARIANTS",
        11,
        "Aucune variante OCR n'a produit de texte",
        "input",
        True,
    )

    # ========================================
    # CONFIGURATION ERRORS (raised to the caller)
    # ========================================
    CATALOG_NOT_FOUND = ErrorSpec(
        "CATALOG_NOT_FOUND",
        20,
        "Catalogue de références introuvable",
        "configuration",
        False,
    )
    CATALOG_UNPARSABLE = ErrorSpec(
        "CATALOG_UNPARSABLE",
        21,
        "Catalogue de références illisible",
        "configuration",
        False,
    )

    # ========================================
    # DEGRADED (logged, never raised)
    # ========================================
    LLM_RESPONSE_UNPARSABLE = ErrorSpec(
        "LLM_RESPONSE_UNPARSABLE",
        30,
        "Réponse du modèle de langage illisible",
        "degraded",
        True,
    )

    # ========================================
    # FALLBACK
    # ========================================
    UNKNOWN_ERROR = ErrorSpec(
        "UNKNOWN_ERROR",
        0,
        "Erreur inconnue",
        "server_error",
        False,
    )

    @classmethod
    def get_spec(cls, code: str) -> ErrorSpec:
        """Get error specification by code string.

        Returns:
            ErrorSpec with category, message, and retryability.
            Returns default spec for unknown codes.
        """
        for error in cls:
            if error.value.code == code:
                return error.value
        return ErrorSpec(code, 0, f"Erreur : {code}", "server_error", False)


def make_error(
    code: str, message: str | None = None, details: str | None = None
) -> dict[str, str | int | None]:
    """Create error dict with integer code, message, and details.

    Falls back to the French registry message when none is given.
    """
    spec = ErrorCode.get_spec(code)
    return {
        "code": spec.int_code,
        "message": message or spec.message_fr,
        "details": details,
    }
