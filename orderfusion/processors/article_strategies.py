"""Article extraction strategies - one pure function per pattern family.

Each strategy turns a TextBlock into a list of LineItems and returns an
empty list when its pattern family is absent; the chain in
``article_extractor`` decides which one wins.

Strategies:
- header_anchored: strict rows following the canonical column header
- keyword_anchored: product keyword + code + currency-marked amount
- reference_anchored: rows rebuilt around each catalog reference
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from functools import reduce
from typing import Optional, Sequence

from orderfusion.core.config import (
    BACKWARD_SCAN_LINES,
    DEFAULT_CURRENCY,
    FORWARD_SCAN_LINES,
    HEADER_TABLE_LINES,
    MAX_UNIT_PRICE,
    PRODUCT_NAME_MAX_CHARS,
)
from orderfusion.core.const import (
    AMOUNT_PATTERN,
    CODE_MARKER_PATTERN,
    COLOR_WORDS,
    CURRENCY_AMOUNT_PATTERN,
    CURRENCY_MARKER,
    NAME_TAIL_PATTERN,
    PAGE_LINE_PATTERN,
    PERCENT_LINE_PATTERN,
    PRODUCT_KEYWORDS,
    QUANTITY_LINE_PATTERN,
    REFERENCE_PATTERN,
    ROW_BOUNDARY_PATTERN,
    TABLE_HEADER_PATTERN,
    TABLE_NOISE_LINE,
)
from orderfusion.models.dto import LineItem, TextBlock
from orderfusion.processors.fuzzy_normalizer import normalize_text, parse_price

logger = logging.getLogger(__name__)

KEYWORD_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in PRODUCT_KEYWORDS) + r")s?\b",
    re.IGNORECASE,
)
COLOR_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(c) for c in COLOR_WORDS) + r")s?\b",
    re.IGNORECASE,
)
ROW_START_PATTERN = re.compile(r"^(\d{1,3})[^\S\n]+(?=\D)")
SPLIT_PRICE_HEAD = re.compile(r"^(\d+)[^\S\n]*[,.:][^\S\n]*$")
SPLIT_PRICE_TAIL = re.compile(r"^[^\S\n]*[:;,]?[^\S\n]*(\d{2})\b(.*)$")


# =============================================================================
# Line preparation
# =============================================================================


def prepare_lines(content: str) -> list[str]:
    """
    Non-empty stripped lines with confusions repaired and split prices merged.

    A price broken over two lines ("22," then "99 €") becomes "22,99 €".
    """
    raw = [normalize_text(line.strip()) for line in content.splitlines()]
    raw = [line for line in raw if line]
    merged: list[str] = []
    index = 0
    while index < len(raw):
        current = raw[index]
        head = SPLIT_PRICE_HEAD.match(current)
        tail = SPLIT_PRICE_TAIL.match(raw[index + 1]) if index + 1 < len(raw) else None
        if head and tail:
            merged.append(f"{head.group(1)},{tail.group(1)}{tail.group(2)}")
            index += 2
            continue
        merged.append(current)
        index += 1
    return merged


def mask_references(line: str) -> str:
    """Blank out reference spans so their digits are never read as amounts."""
    return REFERENCE_PATTERN.sub(lambda m: " " * len(m.group(0)), line)


def find_reference(line: str) -> Optional[re.Match[str]]:
    return REFERENCE_PATTERN.search(line)


def find_amounts(line: str) -> list[Decimal]:
    amounts = []
    for match in AMOUNT_PATTERN.finditer(mask_references(line)):
        amount = parse_price(match.group(0))
        if amount is not None:
            amounts.append(amount)
    return amounts


def is_price_line(line: str) -> bool:
    """True when the line carries nothing but amounts and currency marks."""
    rest = AMOUNT_PATTERN.sub(" ", mask_references(line))
    rest = re.sub(r"€|\bEUR\b|\bE\b", " ", rest)
    return bool(AMOUNT_PATTERN.search(line)) and not rest.strip()


# =============================================================================
# Item assembly
# =============================================================================


def split_color(name: str) -> tuple[str, Optional[str]]:
    """Pull the last colour word out of a product description."""
    matches = list(COLOR_PATTERN.finditer(name))
    if not matches:
        return name, None
    last = matches[-1]
    cleaned = (name[: last.start()] + name[last.end() :]).strip()
    return re.sub(r"\s+", " ", cleaned), last.group(0)


def clean_product_name(text: str) -> tuple[Optional[str], Optional[str]]:
    """Product name and colour from free description text."""
    name = NAME_TAIL_PATTERN.sub(" ", text)
    name = re.sub(r"[|_*]+", " ", name)
    name = re.sub(r"\s+", " ", name).strip(" -:;,.")
    name, color = split_color(name)
    name = name[:PRODUCT_NAME_MAX_CHARS].rstrip()
    return name or None, color


def split_size_quantity(tail: str) -> tuple[Optional[str], int]:
    """
    Size and quantity from the digits between a reference and its prices.

    A trailing single digit is the quantity; a remaining 1-4 digit token is
    the size ("42 1" -> size 42, quantity 1; "2" -> quantity 2).
    """
    numbers = [tok for tok in tail.split() if tok.isdigit()]
    quantity = 1
    if numbers and len(numbers[-1]) == 1 and numbers[-1] != "0":
        quantity = int(numbers.pop())
    size = next((tok for tok in numbers if 1 <= len(tok) <= 4), None)
    return size, quantity


def build_item(
    *,
    page: Optional[str],
    description: str,
    reference: Optional[str],
    amounts: Sequence[Decimal],
    quantity: int = 1,
    size: Optional[str] = None,
) -> Optional[LineItem]:
    """
    Assemble a LineItem or reject it as implausible.

    Two amounts: the smaller is the unit price, the larger the line total.
    One amount: line total = unit price x quantity. Unit prices outside
    (0, MAX_UNIT_PRICE] are discarded.
    """
    if not amounts:
        return None
    if len(amounts) >= 2:
        unit_price, line_total = min(amounts[:2]), max(amounts[:2])
    else:
        unit_price = amounts[0]
        line_total = unit_price * quantity
    if unit_price <= 0 or unit_price > MAX_UNIT_PRICE:
        logger.debug(f"Discarded implausible unit price {unit_price} for {reference}")
        return None

    code = CODE_MARKER_PATTERN.search(description)
    name, color = clean_product_name(description)
    if code:
        size = size or code.group(1)
        if color is None:
            color = f"code {code.group(1)}"

    return LineItem(
        catalog_page=page,
        product_name=name,
        color=color,
        reference=reference,
        size_or_code=size,
        quantity=quantity,
        unit_price=unit_price,
        line_total=line_total,
        currency=DEFAULT_CURRENCY,
    )


def _canonical(match: re.Match[str]) -> str:
    return f"{match.group(1)}.{match.group(2)}"


# =============================================================================
# Tier 1: canonical column header
# =============================================================================


def _parse_header_row(line: str) -> Optional[LineItem]:
    start = ROW_START_PATTERN.match(line)
    masked = mask_references(line)
    priced = list(CURRENCY_AMOUNT_PATTERN.finditer(masked))
    if not start or not priced or line[priced[-1].end() :].strip():
        return None

    first_amount = AMOUNT_PATTERN.search(masked, start.end())
    body = line[start.end() : first_amount.start()]
    reference = find_reference(body)
    size, quantity = None, 1
    if reference:
        size, quantity = split_size_quantity(body[reference.end() :])
        description = body[: reference.start()]
    else:
        description = body
    if not reference and not description.strip():
        return None
    return build_item(
        page=start.group(1),
        description=description,
        reference=_canonical(reference) if reference else None,
        amounts=find_amounts(line[start.end() :]),
        quantity=quantity,
        size=size,
    )


def header_anchored(block: TextBlock) -> list[LineItem]:
    """Strict rows in the fixed window following the canonical table header."""
    lines = prepare_lines(block.content)
    header_index = next(
        (i for i, line in enumerate(lines) if TABLE_HEADER_PATTERN.search(line)), None
    )
    if header_index is None:
        return []
    rows = lines[header_index + 1 : header_index + 1 + HEADER_TABLE_LINES]
    return [item for item in map(_parse_header_row, rows) if item is not None]


# =============================================================================
# Tier 2: product keyword + code + currency-marked amount
# =============================================================================


class Phase(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSH = "flush"


@dataclass(frozen=True)
class KeywordScan:
    """Fold state for the keyword tier; one candidate row is buffered at a time."""

    phase: Phase = Phase.IDLE
    items: tuple[LineItem, ...] = ()
    page: Optional[str] = None
    description: str = ""
    reference: Optional[str] = None
    code: Optional[str] = None
    amounts: tuple[Decimal, ...] = ()
    lines_left: int = 0

    @property
    def is_complete(self) -> bool:
        return bool(self.reference or self.code) and bool(self.amounts)

    def absorb(self, line: str) -> "KeywordScan":
        reference = find_reference(line)
        code = CODE_MARKER_PATTERN.search(line)
        amounts = [
            a
            for a in (
                parse_price(m.group("amount"))
                for m in CURRENCY_AMOUNT_PATTERN.finditer(mask_references(line))
            )
            if a is not None
        ]
        return replace(
            self,
            reference=self.reference or (_canonical(reference) if reference else None),
            code=self.code or (code.group(1) if code else None),
            amounts=self.amounts + tuple(amounts),
        )

    def flushed(self) -> "KeywordScan":
        item = None
        if self.is_complete:
            item = build_item(
                page=self.page,
                description=self.description,
                reference=self.reference,
                amounts=self.amounts,
                size=self.code,
            )
        items = self.items + ((item,) if item is not None else ())
        return KeywordScan(items=items)


def _keyword_description(line: str) -> tuple[Optional[str], str]:
    page = ROW_START_PATTERN.match(line)
    text = mask_references(line)
    text = CURRENCY_AMOUNT_PATTERN.sub(" ", text)
    text = AMOUNT_PATTERN.sub(" ", text)
    if page:
        text = text[page.end() :]
    return (page.group(1) if page else None), text


def _keyword_step(state: KeywordScan, line: str) -> KeywordScan:
    if state.phase is Phase.FLUSH:
        state = state.flushed()

    if KEYWORD_PATTERN.search(line):
        if state.phase is Phase.ACCUMULATING:
            state = state.flushed()
        page, description = _keyword_description(line)
        state = replace(
            state,
            phase=Phase.ACCUMULATING,
            page=page,
            description=description,
            lines_left=1,
        ).absorb(line)
    elif state.phase is Phase.ACCUMULATING:
        if state.lines_left <= 0:
            state = state.flushed()
        else:
            state = replace(state.absorb(line), lines_left=state.lines_left - 1)

    if state.phase is Phase.ACCUMULATING and state.is_complete:
        state = replace(state, phase=Phase.FLUSH)
    return state


def keyword_anchored(block: TextBlock) -> list[LineItem]:
    """Rows opened by a product-family keyword, closed by code and priced amount."""
    final = reduce(_keyword_step, prepare_lines(block.content), KeywordScan())
    if final.phase is not Phase.IDLE:
        final = final.flushed()
    return list(final.items)


# =============================================================================
# Tier 3: reconstruction around each reference
# =============================================================================


def _scan_backward(lines: list[str], index: int, prefix: str) -> tuple[Optional[str], str]:
    head = ROW_START_PATTERN.match(prefix)
    if head:
        return head.group(1), prefix[head.end() :]
    if prefix.strip():
        # Single-line row: the description precedes the reference
        return None, prefix

    parts: list[str] = []
    page = None
    for k in range(index - 1, max(index - 1 - BACKWARD_SCAN_LINES, -1), -1):
        line = lines[k]
        if find_reference(line) or is_price_line(line) or ROW_BOUNDARY_PATTERN.search(line):
            break
        if PAGE_LINE_PATTERN.match(line):
            page = line
            break
        if TABLE_NOISE_LINE.match(line) or TABLE_HEADER_PATTERN.search(line):
            continue
        head = ROW_START_PATTERN.match(line)
        if head:
            page = head.group(1)
            parts.insert(0, line[head.end() :])
            break
        parts.insert(0, line)
    return page, " ".join(parts)


def _scan_forward(
    lines: list[str], index: int, remainder: str, *, same_line_only: bool = False
) -> tuple[list[Decimal], int, Optional[str]]:
    amounts: list[Decimal] = []
    quantity = 1
    size = None
    boundary = ROW_BOUNDARY_PATTERN.search(remainder)
    if boundary:
        remainder, same_line_only = remainder[: boundary.start()], True
    window = [remainder]
    if not same_line_only:
        window += lines[index + 1 : index + 1 + FORWARD_SCAN_LINES]
    for position, line in enumerate(window):
        if position > 0 and (find_reference(line) or ROW_BOUNDARY_PATTERN.search(line)):
            break
        if PERCENT_LINE_PATTERN.match(line):
            continue
        found = find_amounts(line)
        if not amounts:
            if position == 0:
                first = AMOUNT_PATTERN.search(mask_references(line))
                size, quantity = split_size_quantity(
                    mask_references(line[: first.start()] if first else line)
                )
            else:
                qty = QUANTITY_LINE_PATTERN.match(line)
                if qty and not found:
                    quantity = int(qty.group(1))
        amounts.extend(found)
        if len(amounts) >= 2:
            break
    return amounts[:2], quantity, size


def _row_prefix(segment: str) -> str:
    """Text of a row that starts after the previous row on the same line."""
    priced = list(AMOUNT_PATTERN.finditer(mask_references(segment)))
    if priced:
        segment = segment[priced[-1].end() :].lstrip()
        marker = CURRENCY_MARKER.match(segment)
        if marker:
            segment = segment[marker.end() :]
    return segment.strip()


def reference_anchored(block: TextBlock) -> list[LineItem]:
    """
    Rebuild rows around every catalog reference in the block.

    Description: the text before the reference plus up to 4 lines above,
    stopping at another reference, a page number, a pure price line or a
    totals/customer label. Prices and quantity: the rest of the reference
    line plus up to 8 lines below, stopping at the next reference or label.
    Several references on one line (linearized OCR) each get the slice of
    the line up to the next reference.
    """
    lines = prepare_lines(block.content)
    items = []
    for index, line in enumerate(lines):
        matches = list(REFERENCE_PATTERN.finditer(line))
        for position, match in enumerate(matches):
            following = matches[position + 1] if position + 1 < len(matches) else None
            if position == 0:
                prefix = line[: match.start()]
            else:
                prefix = _row_prefix(line[matches[position - 1].end() : match.start()])
            page, description = _scan_backward(lines, index, prefix)
            amounts, quantity, size = _scan_forward(
                lines,
                index,
                line[match.end() : following.start() if following else len(line)],
                same_line_only=following is not None,
            )
            item = build_item(
                page=page,
                description=description,
                reference=_canonical(match),
                amounts=amounts,
                quantity=quantity,
                size=size,
            )
            if item is not None:
                items.append(item)
    return items
