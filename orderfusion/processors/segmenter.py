"""
Split a flat OCR transcript into labeled regions.

Each region is cut independently between its start anchor and the first end
anchor that follows it, so regions may overlap. A region whose start anchor
is missing is an empty block: no heuristic signal, not a failure.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional

from orderfusion.core.config import SEGMENT_MAX_CHARS
from orderfusion.core.const import SEGMENT_ANCHORS
from orderfusion.models.dto import BlockKind, SegmentedText, TextBlock

logger = logging.getLogger(__name__)


def extract_section(
    text: str,
    start_pattern: re.Pattern[str],
    end_pattern: Optional[re.Pattern[str]],
    max_chars: int = SEGMENT_MAX_CHARS,
) -> str:
    """Slice from the first start anchor to the next end anchor (or end of text)."""
    start = start_pattern.search(text)
    if not start:
        return ""
    end_index = len(text)
    if end_pattern is not None:
        end = end_pattern.search(text, start.end())
        if end:
            end_index = end.start()
    return text[start.start() : min(end_index, start.start() + max_chars)]


def segment_text(
    raw_text: Optional[str],
    anchors: Mapping[str, tuple[re.Pattern[str], Optional[re.Pattern[str]]]] = SEGMENT_ANCHORS,
) -> SegmentedText:
    """
    Cut the transcript into header, customer, table, payment and footer blocks.

    Args:
      raw_text: Full OCR transcript; None is treated as empty.
      anchors: Region name -> (start pattern, end pattern or None).

    Returns:
      SegmentedText with one (possibly empty) TextBlock per region.
    """
    text = raw_text or ""
    blocks = {}
    for name, (start_pattern, end_pattern) in anchors.items():
        kind = BlockKind(name)
        blocks[name] = TextBlock(kind=kind, content=extract_section(text, start_pattern, end_pattern))

    missing = [name for name, block in blocks.items() if block.is_empty]
    if missing:
        logger.debug(f"Segments without anchor: {', '.join(missing)}")
    return SegmentedText(**blocks)
