"""
Typed contracts shared by every stage of the order-form pipeline.

All models are frozen: stages derive new instances with ``model_copy``
instead of mutating what they receive.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from orderfusion.core.config import CLIENT_NUMBER_MAX_CHARS, MONEY_QUANTUM
from orderfusion.processors.fuzzy_normalizer import (
    canonical_reference,
    normalize_loyalty_code,
    parse_price,
)


def to_money(value: Any) -> Decimal | None:
    """Coerce JSON-ish numbers to a two-decimal ``Decimal``; garbage becomes None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        return parse_price(value)
    else:
        return None
    try:
        amount = amount.quantize(MONEY_QUANTUM)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def to_amount(value: Any) -> Decimal | None:
    """Like ``to_money`` without the unit-price ceiling; strings take "5000,00" or "5000.00"."""
    if isinstance(value, str):
        try:
            value = Decimal(re.sub(r"[\s€]", "", value).replace(",", "."))
        except InvalidOperation:
            return None
    return to_money(value)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class BlockKind(str, Enum):
    HEADER = "header"
    CUSTOMER = "customer"
    TABLE = "table"
    PAYMENT = "payment"
    FOOTER = "footer"


class TextBlock(_Frozen):
    """A labeled slice of the raw OCR text. Empty content means no signal."""

    kind: BlockKind
    content: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()

    def lines(self) -> list[str]:
        return [line.strip() for line in self.content.splitlines() if line.strip()]


class SegmentedText(_Frozen):
    header: TextBlock = TextBlock(kind=BlockKind.HEADER)
    customer: TextBlock = TextBlock(kind=BlockKind.CUSTOMER)
    table: TextBlock = TextBlock(kind=BlockKind.TABLE)
    payment: TextBlock = TextBlock(kind=BlockKind.PAYMENT)
    footer: TextBlock = TextBlock(kind=BlockKind.FOOTER)


class Identity(_Frozen):
    full_name: str | None = None
    client_number: str | None = None
    loyalty_code: str | None = None
    mobile_phone: str | None = None
    landline: str | None = None
    birth_date: str | None = None
    email: str | None = None

    @field_validator("client_number", mode="before")
    @classmethod
    def _client_number(cls, value: Any) -> Any:
        if value is None:
            return None
        cleaned = str(value).strip().replace(" ", "")
        return cleaned[:CLIENT_NUMBER_MAX_CHARS] or None

    @field_validator("loyalty_code", mode="before")
    @classmethod
    def _loyalty_code(cls, value: Any) -> Any:
        if value is None:
            return None
        return normalize_loyalty_code(str(value))


class Delivery(_Frozen):
    home_delivery: bool | None = None
    relay_point: str | None = None
    alternate_relay_point: str | None = None

    @field_validator("home_delivery", mode="before")
    @classmethod
    def _yes_no(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().casefold()
            if lowered in {"oui", "yes", "x", "true", "1"}:
                return True
            if lowered in {"non", "no", "false", "0"}:
                return False
            return None
        return value


class LineItem(_Frozen):
    catalog_page: str | None = None
    product_name: str | None = None
    color: str | None = None
    reference: str | None = None
    size_or_code: str | None = None
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal | None = None
    line_total: Decimal | None = None
    currency: str | None = None

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def _money(cls, value: Any) -> Decimal | None:
        return to_money(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> Any:
        if value is None or value == "":
            return 1
        try:
            quantity = int(value)
        except (TypeError, ValueError):
            return 1
        return quantity if quantity >= 1 else 1

    @field_validator("catalog_page", "size_or_code", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="before")
    @classmethod
    def _reference_rules(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        reference = data.get("reference")
        if reference is not None:
            reference = canonical_reference(str(reference))
            data["reference"] = reference
        size = data.get("size_or_code")
        if size is not None:
            size = str(size).strip()
            if not size.isdigit() or not 1 <= len(size) <= 4:
                size = None
            elif reference and size == reference.split(".")[1]:
                size = None
            data["size_or_code"] = size
        unit_price = to_money(data.get("unit_price"))
        line_total = to_money(data.get("line_total"))
        if unit_price is not None and line_total is not None and line_total < unit_price:
            data["line_total"] = unit_price
        return data

    @property
    def amount(self) -> Decimal:
        """Line contribution to the subtotal: line total, else unit price."""
        if self.line_total is not None:
            return self.line_total
        return self.unit_price or Decimal("0")


class Totals(_Frozen):
    subtotal: Decimal | None = None
    shipping_participation: Decimal | None = None
    order_total: Decimal | None = None
    order_total_with_fees: Decimal | None = None
    currency: str | None = None

    @field_validator(
        "subtotal",
        "shipping_participation",
        "order_total",
        "order_total_with_fees",
        mode="before",
    )
    @classmethod
    def _money(cls, value: Any) -> Decimal | None:
        return to_money(value)


class Correction(_Frozen):
    """Audit record of one field change applied after extraction."""

    field: str
    before: Any = None
    after: Any = None
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str


class HeuristicStructure(_Frozen):
    """Regex/heuristic view of the document, produced without the LLM."""

    identity: Identity = Identity()
    delivery: Delivery = Delivery()
    items: list[LineItem] = []
    totals: Totals = Totals()
    strategy: str | None = None
    gain: Decimal | None = None

    @field_validator("gain", mode="before")
    @classmethod
    def _gain(cls, value: Any) -> Decimal | None:
        return to_amount(value)


class LlmStructure(_Frozen):
    """Structure returned by the LLM collaborator; every field is optional."""

    identity: Identity | None = None
    delivery: Delivery | None = None
    items: list[LineItem] | None = None
    totals: Totals | None = None
    gain: Decimal | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    method: str | None = None

    @field_validator("gain", mode="before")
    @classmethod
    def _gain(cls, value: Any) -> Decimal | None:
        return to_amount(value)


class ExtractionResult(_Frozen):
    identity: Identity = Identity()
    delivery: Delivery = Delivery()
    items: list[LineItem] = []
    totals: Totals = Totals()
    gain: Decimal | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: str = "heuristic"
    corrections: list[Correction] = []

    @field_validator("gain", mode="before")
    @classmethod
    def _gain(cls, value: Any) -> Decimal | None:
        return to_amount(value)


class OcrVariant(_Frozen):
    """OCR transcript of one pre-processed rendering of the source image."""

    label: str
    text: str | None = None
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _ratio(cls, value: Any) -> Any:
        if value is None:
            return 0.0
        # Providers report either a 0-1 ratio or a percentage
        if isinstance(value, (int, float)) and value > 1:
            return float(value) / 100.0
        return value


class VoteResult(_Frozen):
    text: str
    best_label: str
    confidence: float
    references: list[str] = []
    loyalty_codes: list[str] = []
    reference_counts: dict[str, int] = {}
    loyalty_code_counts: dict[str, int] = {}
    scores: dict[str, float] = {}
    variant_count: int = 0

    @property
    def annotated_text(self) -> str:
        header = []
        if self.loyalty_codes:
            header.append("CODES:" + ",".join(self.loyalty_codes))
        if self.references:
            header.append("REFERENCES:" + ",".join(self.references))
        return "\n".join([*header, self.text])


class CatalogEntry(_Frozen):
    reference: str
    model: str | None = None
    color: str | None = None
    size: str | None = None
    price: Decimal | None = None

    @field_validator("price", mode="before")
    @classmethod
    def _money(cls, value: Any) -> Decimal | None:
        return to_money(value)

    @field_validator("size", "reference", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value
