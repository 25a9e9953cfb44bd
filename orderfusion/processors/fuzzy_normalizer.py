"""
Context-sensitive repair of OCR character confusions.

Substitutions are described by a rule table (``ConfusionRule``) and applied
uniformly per token: digit-dominant tokens get letter->digit fixes, letter-
dominant tokens get a leading digit->letter fix. Targeted repairs for prices,
phone numbers, catalog references and loyalty codes sit on top of the table.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Union

from orderfusion.core.config import (
    LOYALTY_CODE_MAX_CHARS,
    LOYALTY_CODE_MIN_CHARS,
    MONEY_QUANTUM,
)
from orderfusion.core.const import (
    AMOUNT_SUBSTITUTIONS,
    DIGIT_TO_LETTER,
    LETTER_TO_DIGIT,
    LOYALTY_CODE_SUBSTITUTIONS,
    REFERENCE_PATTERN,
)

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[^\W_]+")
MOBILE_RUN_PATTERN = re.compile(r"(?<!\d)0[67](?:[^\S\n]?[.\-]?[^\S\n]?\d{2}){4}(?!\d)")
PORTABLE_CUE = re.compile(r"portable", re.IGNORECASE)

# Letters also confused in lower case; the others only in capitals
_CASE_FOLDED_LETTERS = frozenset("OIL")


@dataclass(frozen=True)
class Token:
    """A maximal alphanumeric run under analysis."""

    text: str

    @property
    def digit_count(self) -> int:
        return sum(ch.isdigit() for ch in self.text)

    @property
    def letter_count(self) -> int:
        return sum(ch.isalpha() for ch in self.text)


@dataclass(frozen=True)
class ConfusionRule:
    name: str
    pattern: re.Pattern[str]
    replacement: Union[str, Callable[[re.Match[str]], str]]
    applies: Callable[[Token], bool]

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def is_digit_dominant(token: Token) -> bool:
    return token.digit_count >= 2


def is_letter_dominant(token: Token) -> bool:
    # A leading digit is the confusion being repaired, so only the tail must be digit-free
    return token.letter_count >= 3 and not any(ch.isdigit() for ch in token.text[1:])


def _leading_letter(letter: str) -> Callable[[re.Match[str]], str]:
    def replace(match: re.Match[str]) -> str:
        following = match.string[match.end() : match.end() + 1]
        return letter.lower() if following.islower() else letter

    return replace


def _build_default_rules() -> tuple[ConfusionRule, ...]:
    rules = []
    for letter, digit in LETTER_TO_DIGIT.items():
        flags = re.IGNORECASE if letter in _CASE_FOLDED_LETTERS else 0
        rules.append(
            ConfusionRule(
                name=f"letter_{letter}_to_{digit}",
                pattern=re.compile(re.escape(letter), flags),
                replacement=digit,
                applies=is_digit_dominant,
            )
        )
    for digit, letter in DIGIT_TO_LETTER.items():
        rules.append(
            ConfusionRule(
                name=f"leading_{digit}_to_{letter}",
                pattern=re.compile(rf"^{digit}(?=[^\W\d_])"),
                replacement=_leading_letter(letter),
                applies=is_letter_dominant,
            )
        )
    return tuple(rules)


DEFAULT_RULES: tuple[ConfusionRule, ...] = _build_default_rules()


def normalize_token(text: str, rules: tuple[ConfusionRule, ...] = DEFAULT_RULES) -> str:
    """Apply every rule whose predicate holds for the token as read."""
    token = Token(text)
    for rule in rules:
        if rule.applies(token):
            text = rule.apply(text)
    return text


def normalize_text(text: str, rules: tuple[ConfusionRule, ...] = DEFAULT_RULES) -> str:
    """Token-wise confusion repair; separators and whitespace are preserved."""
    if not text:
        return ""
    return TOKEN_PATTERN.sub(lambda m: normalize_token(m.group(0), rules), text)


def clean_digits(text: Optional[str]) -> str:
    """Digits of a numeric field after forcing letter->digit repairs."""
    if not text:
        return ""
    repaired = "".join(LETTER_TO_DIGIT.get(ch.upper(), ch) for ch in text)
    return re.sub(r"\D", "", repaired)


# =============================================================================
# Prices
# =============================================================================

_AMOUNT_TRANSLATION = str.maketrans(dict(AMOUNT_SUBSTITUTIONS))
_SEPARATORS = ".,:;"


def parse_price(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse an OCR-read amount into a non-negative two-decimal ``Decimal``.

    Separators may be any of ``. , : ;`` and may be surrounded by stray
    spaces. An over-long fraction keeps its last two digits ("22.199" ->
    22.99); a missing separator is rebuilt from a trailing two-digit group
    ("16 99" -> 16.99). Anything that does not parse returns None.

    Examples:
        >>> parse_price("16:99")
        Decimal('16.99')
        >>> parse_price("2Y,5O €")
        Decimal('24.50')
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.startswith("-"):
        return None
    text = text.translate(_AMOUNT_TRANSLATION)
    text = re.sub(r"[^\d.,:;\s]", " ", text).strip()
    if not any(ch.isdigit() for ch in text):
        return None

    sep_index = max(text.rfind(sep) for sep in _SEPARATORS)
    if sep_index >= 0:
        integer = re.sub(r"\D", "", text[:sep_index]) or "0"
        fraction = re.sub(r"\D", "", text[sep_index + 1 :])
        if len(fraction) > 2:
            fraction = fraction[-2:]
        fraction = fraction.ljust(2, "0")
    else:
        groups = text.split()
        if len(groups) >= 2 and len(groups[-1]) == 2:
            integer, fraction = "".join(groups[:-1]), groups[-1]
        else:
            integer, fraction = "".join(groups), "00"
            if len(integer) > 4:
                return None

    try:
        amount = Decimal(f"{integer}.{fraction}").quantize(MONEY_QUANTUM)
    except InvalidOperation:
        return None
    if amount < 0:
        return None
    return amount


def format_price(amount: Optional[Decimal]) -> str:
    """French display form of an amount ("16,99")."""
    if amount is None:
        return ""
    return f"{amount:.2f}".replace(".", ",")


# =============================================================================
# Catalog references
# =============================================================================


def canonical_reference(value: Optional[str]) -> Optional[str]:
    """
    Canonical ``ddd.dddd`` form of a catalog reference, or None.

    "281.8341", "281,8341", "281 . 8341" and "2818341" all give "281.8341";
    more digits than the pattern allows are rejected, not truncated.
    """
    if not value:
        return None
    text = normalize_text(str(value).strip())
    match = REFERENCE_PATTERN.fullmatch(text)
    if not match:
        return None
    return f"{match.group(1)}.{match.group(2)}"


def compact_reference(value: str) -> str:
    return re.sub(r"\s+", "", value)


# =============================================================================
# Phones
# =============================================================================


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Format a French phone number as ``0X XX XX XX XX``; None if implausible."""
    digits = clean_digits(value)
    if len(digits) == 9 and digits[0] in "67":
        digits = "0" + digits
    if len(digits) != 10 or not digits.startswith("0"):
        return None
    return " ".join([digits[:2], digits[2:4], digits[4:6], digits[6:8], digits[8:10]])


def _is_mobile(digits: str) -> bool:
    return len(digits) == 10 and digits[:2] in ("06", "07")


def repair_mobile_phone(
    candidate: Optional[str], context: str = "", full_text: str = ""
) -> Optional[str]:
    """
    Repair a mobile number captured near a "portable" label.

    A leading 03 next to the label is a misread 06. When the candidate is
    still not a mobile run, the first 06/07 run anywhere in the text wins.
    """
    digits = clean_digits(candidate)
    if len(digits) == 9 and digits[0] in "67":
        digits = "0" + digits
    if PORTABLE_CUE.search(context or "") and digits.startswith("03") and len(digits) == 10:
        logger.debug("Mobile prefix 03 rewritten to 06 near 'portable' label")
        digits = "06" + digits[2:]
    if not _is_mobile(digits):
        match = MOBILE_RUN_PATTERN.search(full_text or "")
        if match:
            digits = clean_digits(match.group(0))
    return normalize_phone(digits)


# =============================================================================
# Loyalty codes
# =============================================================================

_LOYALTY_TRANSLATION = str.maketrans(dict(LOYALTY_CODE_SUBSTITUTIONS))


def is_valid_loyalty_code(code: str) -> bool:
    if not LOYALTY_CODE_MIN_CHARS <= len(code) <= LOYALTY_CODE_MAX_CHARS:
        return False
    if not (code.isascii() and code.isalnum()):
        return False
    digits = sum(ch.isdigit() for ch in code)
    letters = sum(ch.isalpha() for ch in code)
    return letters >= 1 and 1 <= digits < 4


def normalize_loyalty_code(value: Optional[str]) -> Optional[str]:
    """
    Uppercase, collapse whitespace, fix confusions, then validate.

    Invalid candidates are rejected to None rather than guessed further:
    "4444" -> None, "abc" -> None, "4g 8m" -> "4G8M".
    """
    if not value:
        return None
    code = re.sub(r"\s+", "", str(value).upper())
    code = code.translate(_LOYALTY_TRANSLATION)
    if not is_valid_loyalty_code(code):
        return None
    return code
