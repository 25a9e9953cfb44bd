"""
Tiered extraction of ordered line items.

Strategies are tried in a fixed order, each only when every earlier one
returned nothing. The last strategy re-reads the whole transcript on the
assumption that segmentation itself failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Literal, Optional

from orderfusion.core.config import DEDUP_NAME_PREFIX
from orderfusion.models.dto import BlockKind, LineItem, SegmentedText, TextBlock
from orderfusion.processors.article_strategies import (
    header_anchored,
    keyword_anchored,
    reference_anchored,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionStrategy:
    """A named extraction tier and the text it reads."""

    name: str
    extract: Callable[[TextBlock], list[LineItem]]
    scope: Literal["table", "raw"] = "table"


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("header_anchored", header_anchored),
    ExtractionStrategy("keyword_anchored", keyword_anchored),
    ExtractionStrategy("reference_anchored", reference_anchored),
    ExtractionStrategy("global_scan", reference_anchored, scope="raw"),
)


def dedupe_items(items: Iterable[LineItem]) -> list[LineItem]:
    """Drop repeats of (reference, name prefix, line total), keeping first order."""
    seen = set()
    unique = []
    for item in items:
        key = (item.reference, (item.product_name or "")[:DEDUP_NAME_PREFIX], item.line_total)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def extract_articles(
    segments: SegmentedText,
    raw_text: str,
    strategies: tuple[ExtractionStrategy, ...] = DEFAULT_STRATEGIES,
) -> tuple[list[LineItem], Optional[str]]:
    """
    Run the strategy chain and return the items with the winning tier name.

    Returns:
      (items, strategy name), or ([], None) when every tier came up empty.
      An empty list is a valid outcome, not an error.
    """
    raw_block = TextBlock(kind=BlockKind.TABLE, content=raw_text or "")
    for strategy in strategies:
        block = raw_block if strategy.scope == "raw" else segments.table
        if block.is_empty:
            logger.debug("Strategy skipped on empty block", extra={"strategy": strategy.name})
            continue
        items = strategy.extract(block)
        if items:
            unique = dedupe_items(items)
            logger.debug(
                f"Strategy produced {len(unique)} item(s)",
                extra={"strategy": strategy.name},
            )
            return unique, strategy.name
        logger.debug("Strategy found nothing, falling through", extra={"strategy": strategy.name})
    return [], None
