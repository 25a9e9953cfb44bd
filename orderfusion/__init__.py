"""
Order-form extraction core.

Reconciles a noisy OCR transcript of a mail-order form with an LLM-produced
structure into one normalized ExtractionResult, with a confidence score and
an audit trail of every correction applied.
"""

from orderfusion.core.exceptions import BaseError, CatalogError, NoUsableInputError
from orderfusion.core.logging_config import configure_structured_logging
from orderfusion.models.dto import (
    Correction,
    Delivery,
    ExtractionResult,
    Identity,
    LineItem,
    LlmStructure,
    OcrVariant,
    Totals,
)
from orderfusion.orchestrator import run_extraction
from orderfusion.processors.catalog import ReferenceCatalog, load_catalog
from orderfusion.processors.text_report import render_text_report

__all__ = [
    "run_extraction",
    "render_text_report",
    "load_catalog",
    "configure_structured_logging",
    "ReferenceCatalog",
    "ExtractionResult",
    "Identity",
    "Delivery",
    "LineItem",
    "Totals",
    "Correction",
    "LlmStructure",
    "OcrVariant",
    "BaseError",
    "NoUsableInputError",
    "CatalogError",
]
