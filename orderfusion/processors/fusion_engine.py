"""
Field-level merge of the heuristic and LLM structures.

Identity, delivery and totals: heuristic values with every non-null LLM
field laid on top. Items: the LLM list when non-empty, otherwise the
heuristic list, never merged row by row. Confidence blends OCR, LLM and
heuristic coverage signals.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, TypeVar

from pydantic import BaseModel

from orderfusion.core.config import (
    COVERAGE_CLIENT_NUMBER,
    COVERAGE_FULL_NAME,
    COVERAGE_ITEMS,
    COVERAGE_ORDER_TOTAL,
    DEFAULT_CURRENCY,
    DEFAULT_LLM_CONFIDENCE,
    PAGE_BACKFILL_CONFIDENCE,
    WEIGHT_HEURISTIC,
    WEIGHT_LLM,
    WEIGHT_OCR,
)
from orderfusion.core.const import TABLE_HEADER_PATTERN
from orderfusion.models.dto import (
    Correction,
    ExtractionResult,
    HeuristicStructure,
    Identity,
    LineItem,
    LlmStructure,
    Totals,
)
from orderfusion.processors.totals_computer import reconcile_totals, sum_items

logger = logging.getLogger(__name__)

PAGE_CANDIDATE_PATTERN = re.compile(r"^(\d{1,3})\s+([A-Za-zÀ-ÖØ-öø-ÿ]{2,})")

ModelT = TypeVar("ModelT", bound=BaseModel)


def overlay(base: ModelT, top: Optional[BaseModel]) -> ModelT:
    """Copy of `base` with every non-null, non-blank field of `top` applied."""
    if top is None:
        return base
    updates = {
        key: value
        for key, value in top.model_dump(exclude_none=True).items()
        if not (isinstance(value, str) and not value.strip())
    }
    merged = {**base.model_dump(), **updates}
    return type(base).model_validate(merged)


def guess_page_numbers(raw_text: str, limit: int, exclude: set[str] = frozenset()) -> list[str]:
    """
    Candidate catalog pages in document order: lines opening with a 1-3 digit
    number followed by a word, outside the table header and TOTAL lines.
    """
    pages: list[str] = []
    for raw_line in (raw_text or "").splitlines():
        line = raw_line.strip()
        if not line or TABLE_HEADER_PATTERN.search(line):
            continue
        match = PAGE_CANDIDATE_PATTERN.match(line)
        if not match or match.group(2).upper() == "TOTAL":
            continue
        page = match.group(1)
        if page in exclude or page in pages:
            continue
        pages.append(page)
        if len(pages) >= limit:
            break
    return pages


def backfill_pages(items: list[LineItem], raw_text: str) -> tuple[list[LineItem], list[Correction]]:
    """Give each page-less item the next unused page candidate from the transcript."""
    missing = [i for i, item in enumerate(items) if not item.catalog_page]
    if not missing:
        return items, []
    used = {item.catalog_page for item in items if item.catalog_page}
    candidates = iter(guess_page_numbers(raw_text, len(missing), exclude=used))
    filled = list(items)
    corrections = []
    for index in missing:
        page = next(candidates, None)
        if page is None:
            break
        filled[index] = items[index].model_copy(update={"catalog_page": page})
        corrections.append(
            Correction(
                field=f"items[{index}].catalog_page",
                before=None,
                after=page,
                confidence=PAGE_BACKFILL_CONFIDENCE,
                reason="page_backfill",
            )
        )
    return filled, corrections


def heuristic_coverage(identity: Identity, items: list[LineItem], totals: Totals) -> float:
    return (
        (COVERAGE_FULL_NAME if identity.full_name else 0.0)
        + (COVERAGE_CLIENT_NUMBER if identity.client_number else 0.0)
        + (COVERAGE_ITEMS if items else 0.0)
        + (COVERAGE_ORDER_TOTAL if totals.order_total is not None else 0.0)
    )


def overall_confidence(ocr_confidence: float, llm_confidence: float, coverage: float) -> float:
    score = WEIGHT_OCR * ocr_confidence + WEIGHT_LLM * llm_confidence + WEIGHT_HEURISTIC * coverage
    return round(max(0.0, min(1.0, score)), 4)


def _ratio(value: Optional[float]) -> float:
    if not value:
        return 0.0
    return value / 100.0 if value > 1 else value


def fuse(
    heuristic: HeuristicStructure,
    llm: Optional[LlmStructure],
    raw_text: str,
    ocr_confidence: Optional[float] = None,
) -> ExtractionResult:
    """
    Merge both structures into one ExtractionResult.

    Args:
      heuristic: Structure built from the transcript by regex heuristics.
      llm: Structure returned by the LLM collaborator, or None.
      raw_text: Transcript used for page backfill.
      ocr_confidence: Average OCR confidence, ratio or percentage.
    """
    identity = overlay(heuristic.identity, llm.identity if llm else None)
    delivery = overlay(heuristic.delivery, llm.delivery if llm else None)
    totals = overlay(heuristic.totals, llm.totals if llm else None)
    items = list(llm.items) if llm and llm.items else list(heuristic.items)
    gain = llm.gain if llm and llm.gain is not None else heuristic.gain
    source = "llm" if llm and llm.items else "heuristic"
    corrections: list[Correction] = []

    try:
        items, corrections = backfill_pages(items, raw_text)
    except Exception as exc:
        logger.warning(f"Page backfill skipped: {exc}", extra={"stage": "fusion"})

    if totals.subtotal is None and items:
        totals = totals.model_copy(update={"subtotal": sum_items(items)})
    if totals.currency is None and (totals.order_total is not None or items):
        totals = totals.model_copy(update={"currency": DEFAULT_CURRENCY})
    totals = reconcile_totals(totals)

    if llm is None:
        llm_confidence = 0.0
    else:
        llm_confidence = llm.confidence if llm.confidence is not None else DEFAULT_LLM_CONFIDENCE
    coverage = heuristic_coverage(identity, items, totals)
    confidence = overall_confidence(_ratio(ocr_confidence), llm_confidence, coverage)

    method = (llm.method if llm else None) or ("llm_fusion" if llm else "heuristic")
    logger.debug(
        f"Fusion: items from {source}, coverage={coverage:.2f}, confidence={confidence}",
        extra={"stage": "fusion"},
    )
    return ExtractionResult(
        identity=identity,
        delivery=delivery,
        items=items,
        totals=totals,
        gain=gain,
        confidence=confidence,
        method=method,
        corrections=corrections,
    )
