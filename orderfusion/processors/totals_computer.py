"""
Order totals: read from labeled amounts, derived from items, reconciled.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Iterable, Optional

from orderfusion.core.config import DEFAULT_CURRENCY, GAIN_MIN_AMOUNT, MONEY_QUANTUM
from orderfusion.core.const import AMOUNT_PATTERN, AMOUNT_SUBSTITUTIONS, GAIN_PATTERN
from orderfusion.models.dto import LineItem, Totals
from orderfusion.processors.fuzzy_normalizer import parse_price

logger = logging.getLogger(__name__)

ORDER_TOTAL_LABEL = re.compile(r"Total[^\S\n]+de[^\S\n]+ma[^\S\n]+commande", re.IGNORECASE)
SHIPPING_LABEL = re.compile(r"Participation(?:[^\S\n]+forfaitaire)?", re.IGNORECASE)
SUBTOTAL_LABEL = re.compile(r"Sous[\s\-]?total(?:[^\S\n]+articles)?", re.IGNORECASE)

_AMOUNT_TRANSLATION = str.maketrans(dict(AMOUNT_SUBSTITUTIONS))


def _repair_amount_tokens(text: str) -> str:
    """Letter->digit repairs inside tokens that already hold a digit."""

    def repair(match: re.Match[str]) -> str:
        token = match.group(0)
        return token.translate(_AMOUNT_TRANSLATION) if re.search(r"\d", token) else token

    return re.sub(r"\S+", repair, text)


def _label_tail(text: str, label: re.Pattern[str]) -> Optional[str]:
    """Text after the label on its line, or the next non-empty line."""
    match = label.search(text or "")
    if not match:
        return None
    rest = text[match.end() :].split("\n")
    tail = rest[0]
    if not re.search(r"\d", _repair_amount_tokens(tail)):
        tail = next((line for line in rest[1:] if line.strip()), "")
    return tail


def _labeled_amount(text: str, label: re.Pattern[str]) -> Optional[Decimal]:
    tail = _label_tail(text, label)
    if tail is None:
        return None
    match = AMOUNT_PATTERN.search(_repair_amount_tokens(tail))
    return parse_price(match.group(0)) if match else None


def extract_order_total(text: str) -> Optional[Decimal]:
    """
    Amount following "Total de ma commande".

    Confusable letters are repaired first; when OCR dropped the separator a
    4-5 digit run gets its decimal point back before the last two digits.
    """
    tail = _label_tail(text, ORDER_TOTAL_LABEL)
    if tail is None:
        return None
    repaired = _repair_amount_tokens(tail)
    match = AMOUNT_PATTERN.search(repaired)
    if match:
        return parse_price(match.group(0))
    digits = re.sub(r"\D", "", repaired)
    if 4 <= len(digits) <= 5:
        logger.debug(f"Order total decimal point rebuilt from digit run {digits}")
        return Decimal(f"{digits[:-2]}.{digits[-2:]}")
    return None


def extract_shipping(text: str) -> Optional[Decimal]:
    return _labeled_amount(text, SHIPPING_LABEL)


def extract_stated_subtotal(text: str) -> Optional[Decimal]:
    return _labeled_amount(text, SUBTOTAL_LABEL)


def extract_gain(header_text: str) -> Optional[Decimal]:
    """
    Amount of the "CHÈQUE BANCAIRE" prize announced in the header block.

    Both "5.000,00" and "5000,00" read as 5000.00. Amounts below
    GAIN_MIN_AMOUNT are rejected as misreads.
    """
    match = GAIN_PATTERN.search(header_text or "")
    if not match:
        return None
    raw = re.sub(r"[\s£€]", "", match.group("amount").replace("O", "0").replace("o", "0"))
    if "." in raw and "," in raw:
        raw = raw.replace(".", "").replace(",", ".")
    else:
        raw = raw.replace(",", ".")
    number = re.search(r"\d+\.?\d{0,2}", raw)
    if not number:
        return None
    value = Decimal(number.group(0).rstrip(".")).quantize(MONEY_QUANTUM)
    if value < GAIN_MIN_AMOUNT:
        logger.debug(f"Gain {value} below {GAIN_MIN_AMOUNT}, rejected")
        return None
    return value


def sum_items(items: Iterable[LineItem]) -> Optional[Decimal]:
    """Sum of line totals (unit price when a total is missing); None without items."""
    items = list(items)
    if not items:
        return None
    return sum((item.amount for item in items), Decimal("0")).quantize(MONEY_QUANTUM)


def reconcile_totals(totals: Totals) -> Totals:
    """
    Recompute the total with fees when the stated order total is smaller
    than subtotal + shipping participation, a sign of a truncated total.
    """
    subtotal = totals.subtotal
    shipping = totals.shipping_participation
    order_total = totals.order_total
    if subtotal is None or shipping is None or order_total is None:
        return totals
    expected = (subtotal + shipping).quantize(MONEY_QUANTUM)
    if order_total < expected:
        logger.debug(f"Order total {order_total} below {expected}, total with fees recomputed")
        return totals.model_copy(update={"order_total_with_fees": expected})
    return totals


def compute_totals(items: list[LineItem], raw_text: str) -> Totals:
    """Totals from labeled amounts in the transcript and the extracted items."""
    subtotal = extract_stated_subtotal(raw_text)
    if subtotal is None:
        subtotal = sum_items(items)
    order_total = extract_order_total(raw_text)
    shipping = extract_shipping(raw_text)
    known = any(v is not None for v in (subtotal, order_total, shipping))
    totals = Totals(
        subtotal=subtotal,
        shipping_participation=shipping,
        order_total=order_total,
        currency=DEFAULT_CURRENCY if known else None,
    )
    return reconcile_totals(totals)
