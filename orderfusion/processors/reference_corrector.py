"""
Cross-check fused line items against the reference catalog.

An exact reference hit overwrites the descriptive fields and the price with
catalog values (confidence 1.0). Otherwise the closest model name above the
similarity threshold may supply a missing reference and fix a price that is
off by more than the tolerance (confidence = similarity). Totals are
recomputed from the corrected items.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from orderfusion.core.config import (
    CATALOG_PRICE_TOLERANCE,
    CATALOG_SIMILARITY_THRESHOLD,
    MONEY_QUANTUM,
)
from orderfusion.models.dto import CatalogEntry, Correction, ExtractionResult, LineItem, Totals
from orderfusion.processors.catalog import ReferenceCatalog
from orderfusion.processors.totals_computer import sum_items

logger = logging.getLogger(__name__)

EXACT_FIELDS = ("product_name", "color", "size_or_code", "unit_price", "line_total")


def _priced(entry_price: Decimal, quantity: int) -> dict[str, Any]:
    return {
        "unit_price": entry_price,
        "line_total": (entry_price * quantity).quantize(MONEY_QUANTUM),
    }


def _apply(item: LineItem, updates: dict[str, Any]) -> LineItem:
    # Re-validate so catalog values obey the same field rules as extracted ones
    return LineItem.model_validate({**item.model_dump(), **updates})


def _diff(
    index: int, before: LineItem, after: LineItem, fields: tuple[str, ...], confidence: float, reason: str
) -> list[Correction]:
    corrections = []
    for name in fields:
        old, new = getattr(before, name), getattr(after, name)
        if old != new:
            corrections.append(
                Correction(
                    field=f"items[{index}].{name}",
                    before=old,
                    after=new,
                    confidence=confidence,
                    reason=reason,
                )
            )
    return corrections


def _exact_correction(index: int, item: LineItem, entry: CatalogEntry) -> tuple[LineItem, list[Correction]]:
    updates: dict[str, Any] = {
        "product_name": entry.model,
        "color": entry.color,
        "size_or_code": entry.size,
    }
    if entry.price is not None:
        updates.update(_priced(entry.price, item.quantity))
    updates = {key: value for key, value in updates.items() if value is not None}
    corrected = _apply(item, updates)
    return corrected, _diff(index, item, corrected, EXACT_FIELDS, 1.0, "catalog_exact_reference")


def _fuzzy_correction(
    index: int, item: LineItem, catalog: ReferenceCatalog, threshold: float
) -> tuple[LineItem, list[Correction]]:
    match = catalog.best_model_match(item.product_name, threshold)
    if match is None:
        return item, []
    entry, similarity = match
    updates: dict[str, Any] = {}
    if item.reference is None:
        updates["reference"] = entry.reference
    current = item.unit_price if item.unit_price is not None else Decimal("0")
    if entry.price is not None and abs(entry.price - current) > CATALOG_PRICE_TOLERANCE:
        updates.update(_priced(entry.price, item.quantity))
    if not updates:
        return item, []
    corrected = _apply(item, updates)
    reason = f"catalog_model_match ({similarity:.0%})"
    fields = ("reference", "unit_price", "line_total")
    return corrected, _diff(index, item, corrected, fields, round(similarity, 4), reason)


def correct_item(
    index: int,
    item: LineItem,
    catalog: ReferenceCatalog,
    threshold: float = CATALOG_SIMILARITY_THRESHOLD,
) -> tuple[LineItem, list[Correction]]:
    """Exact reference first, fuzzy model-name match second; no match passes through."""
    entry = catalog.find(item.reference)
    if entry is not None:
        return _exact_correction(index, item, entry)
    if item.product_name:
        return _fuzzy_correction(index, item, catalog, threshold)
    return item, []


def recompute_totals(totals: Totals, items: list[LineItem]) -> Totals:
    """Subtotal from the items; total with fees whenever the shipping participation is known."""
    if not items:
        return totals
    subtotal = sum_items(items)
    updates: dict[str, Any] = {"subtotal": subtotal}
    if totals.shipping_participation is not None:
        updates["order_total_with_fees"] = (subtotal + totals.shipping_participation).quantize(
            MONEY_QUANTUM
        )
    return totals.model_copy(update=updates)


def correct_references(
    result: ExtractionResult,
    catalog: ReferenceCatalog,
    threshold: float = CATALOG_SIMILARITY_THRESHOLD,
) -> ExtractionResult:
    """
    Apply catalog corrections to every item of a fused result.

    A failure on one item is logged and leaves that item unchanged.
    """
    items: list[LineItem] = []
    corrections: list[Correction] = []
    for index, item in enumerate(result.items):
        try:
            corrected, changes = correct_item(index, item, catalog, threshold)
        except Exception as exc:
            logger.warning(
                f"Catalog correction skipped: {exc}",
                extra={"stage": "reference_correction", "item_index": index},
            )
            corrected, changes = item, []
        for change in changes:
            logger.debug(
                f"{change.field}: {change.before!r} -> {change.after!r} ({change.reason})",
                extra={"item_index": index},
            )
        items.append(corrected)
        corrections.extend(changes)

    return result.model_copy(
        update={
            "items": items,
            "totals": recompute_totals(result.totals, items),
            "corrections": [*result.corrections, *corrections],
        }
    )
