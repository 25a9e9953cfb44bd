"""
Heuristic identity and delivery extraction from the customer block.

Every field is looked up in the customer and header blocks first and in the
whole transcript second. Fields that cannot be read plausibly stay None.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from orderfusion.core.config import BIRTH_YEAR_MAX, CLIENT_NUMBER_MAX_CHARS
from orderfusion.core.const import CIVILITY_PATTERN
from orderfusion.models.dto import Delivery, Identity, SegmentedText
from orderfusion.processors.fuzzy_normalizer import (
    clean_digits,
    normalize_loyalty_code,
    normalize_phone,
    repair_mobile_phone,
)

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(
    CIVILITY_PATTERN + r"[^\S\n]+((?:[A-ZÀ-Ý][\w'\-]*[^\S\n]*)+)"
)
NAME_STOP_PATTERN = re.compile(
    r"\b(?:NUM[ÉE]RO|CLIENT|CODE|T[ÉE]L|DATE|ADRESSE|E-?MAIL)\b|N°", re.IGNORECASE
)
CLIENT_NUMBER_PATTERN = re.compile(
    r"(?:NUM[ÉE]RO[^\S\n]*)?CLIENT[^\S\n]*[:\-.]?[^\S\n]*"
    r"(\d[\dOoIlSBZDQG]*(?:[^\S\n]\d[\dOoIlSBZDQG]*)*)",
    re.IGNORECASE,
)
LOYALTY_LABEL_PATTERN = re.compile(
    r"CODE[^\S\n]*PRIVIL[ÈEÉ]G[ÈEÉ]?[^\S\n]*[:\-]?[^\S\n]*"
    r"([A-Z0-9]{1,4})(?:[^\S\n]([A-Z0-9]{1,3}))?",
    re.IGNORECASE,
)
MOBILE_LABEL_PATTERN = re.compile(
    r"T[ée]l\.?[^\S\n]*portable[^\dOIG\n]{0,15}([\dOIG][\dOIGSB .\-]{7,16})",
    re.IGNORECASE,
)
LANDLINE_LABEL_PATTERN = re.compile(
    r"T[ée]l\.?[^\S\n]*(?:fixe|domicile)[^\d\n]{0,15}(\d[\d .\-]{7,16})",
    re.IGNORECASE,
)
BIRTH_LABEL_PATTERN = re.compile(
    r"Date[^\S\n]+de[^\S\n]+naissance[^\d\n]{0,10}"
    r"(\d{1,2})[^\S\n]?[/.\-\s][^\S\n]?(\d{1,2})[^\S\n]?[/.\-\s][^\S\n]?(\d{2,4})",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}", re.IGNORECASE)
HOME_DELIVERY_PATTERN = re.compile(
    r"livr[ée]e?s?[^\S\n]+[àa][^\S\n]+domicile[^\n]*?\b(oui|non|x)\b", re.IGNORECASE
)
RELAY_POINT_PATTERN = re.compile(
    r"(?P<alt>autre[^\S\n]+)?POINT[^\S\n]+(?:PICKUP|RELAIS)[^\S\n]+N[°º][^\S\n]*:?[^\S\n]*[0-9A-Z\-]+[^\n]*",
    re.IGNORECASE,
)


def _first(pattern: re.Pattern[str], *texts: str) -> Optional[re.Match[str]]:
    for text in texts:
        if text:
            match = pattern.search(text)
            if match:
                return match
    return None


def extract_full_name(*texts: str) -> Optional[str]:
    """Civility-prefixed name with the civility and trailing labels removed."""
    match = _first(NAME_PATTERN, *texts)
    if not match:
        return None
    name = NAME_STOP_PATTERN.split(match.group(1))[0]
    name = re.sub(r"\s+", " ", name).strip(" -'")
    return name if len(name) >= 3 else None


def extract_client_number(*texts: str) -> Optional[str]:
    match = _first(CLIENT_NUMBER_PATTERN, *texts)
    if not match:
        return None
    digits = clean_digits(match.group(1))
    if len(digits) < 6:
        return None
    return digits[:CLIENT_NUMBER_MAX_CHARS]


def extract_loyalty_code(*texts: str) -> Optional[str]:
    """The code after the label; a code split in two by OCR is rejoined."""
    match = _first(LOYALTY_LABEL_PATTERN, *texts)
    if not match:
        return None
    head, tail = match.group(1), match.group(2)
    candidates = [head] + ([head + tail] if tail else [])
    for candidate in candidates:
        code = normalize_loyalty_code(candidate)
        if code:
            return code
    logger.debug(f"Loyalty code candidate rejected: {match.group(0)!r}")
    return None


def extract_mobile_phone(full_text: str, *texts: str) -> Optional[str]:
    match = _first(MOBILE_LABEL_PATTERN, *texts, full_text)
    if match:
        line_start = match.string.rfind("\n", 0, match.start()) + 1
        context = match.string[line_start : match.end()]
        return repair_mobile_phone(match.group(1), context, full_text)
    return repair_mobile_phone(None, "", full_text)


def extract_landline(*texts: str) -> Optional[str]:
    match = _first(LANDLINE_LABEL_PATTERN, *texts)
    return normalize_phone(match.group(1)) if match else None


def extract_birth_date(*texts: str) -> Optional[str]:
    """dd/mm/yyyy after the label; later years are validity dates, not birth dates."""
    match = _first(BIRTH_LABEL_PATTERN, *texts)
    if not match:
        return None
    day, month, year = match.groups()
    if len(year) == 4 and int(year) > BIRTH_YEAR_MAX:
        logger.debug(f"Birth date year {year} rejected as a validity date")
        return None
    if not (1 <= int(day) <= 31 and 1 <= int(month) <= 12):
        return None
    return f"{int(day):02d}/{int(month):02d}/{year}"


def extract_email(*texts: str) -> Optional[str]:
    match = _first(EMAIL_PATTERN, *texts)
    return match.group(0).lower() if match else None


def extract_identity(segments: SegmentedText, raw_text: str) -> Identity:
    """
    Identity fields from the customer/header blocks, falling back to the
    whole transcript when a block is missing the label.
    """
    local = segments.customer.content + "\n" + segments.header.content
    return Identity(
        full_name=extract_full_name(local, raw_text),
        client_number=extract_client_number(local, raw_text),
        loyalty_code=extract_loyalty_code(local, raw_text),
        mobile_phone=extract_mobile_phone(raw_text, local),
        landline=extract_landline(local, raw_text),
        birth_date=extract_birth_date(local, raw_text),
        email=extract_email(local, raw_text),
    )


def extract_delivery(raw_text: str) -> Delivery:
    home = HOME_DELIVERY_PATTERN.search(raw_text or "")
    home_delivery = None
    if home:
        home_delivery = home.group(1).casefold() in ("oui", "x")

    relay_point = alternate = None
    for match in RELAY_POINT_PATTERN.finditer(raw_text or ""):
        value = re.sub(r"\s+", " ", match.group(0)).strip()
        if match.group("alt"):
            alternate = alternate or value
        else:
            relay_point = relay_point or value
    return Delivery(
        home_delivery=home_delivery,
        relay_point=relay_point,
        alternate_relay_point=alternate,
    )
