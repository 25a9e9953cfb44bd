"""
Normalize raw LLM replies into a typed ``LlmStructure``.

Handles markdown-fenced JSON, multi-line JSONL replies and OpenAI-like
envelopes, and accepts both the English field names of this package and
the French order-form schema (client / livraison / articles / totaux).
An unusable reply degrades to an empty low-confidence structure.
"""

from __future__ import annotations

import json
import logging
import re
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from orderfusion.core.config import FALLBACK_LLM_CONFIDENCE
from orderfusion.models.dto import Delivery, Identity, LineItem, LlmStructure, Totals
from orderfusion.processors.fuzzy_normalizer import normalize_phone

logger = logging.getLogger(__name__)

FALLBACK_METHOD = "llm_fallback"

SECTION_ALIASES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "identity": ("identity", "client"),
        "delivery": ("delivery", "livraison"),
        "items": ("items", "articles"),
        "totals": ("totals", "totaux"),
    }
)

IDENTITY_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "nom_complet": "full_name",
        "numero_client": "client_number",
        "code_privilege": "loyalty_code",
        "telephone_portable": "mobile_phone",
        "telephone_fixe": "landline",
        "date_naissance": "birth_date",
    }
)
DELIVERY_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "livraison_domicile": "home_delivery",
        "point_relais_principal": "relay_point",
        "autre_point_relais": "alternate_relay_point",
    }
)
ITEM_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "page_catalogue": "catalog_page",
        "nom_produit": "product_name",
        "coloris": "color",
        "taille_ou_code": "size_or_code",
        "quantite": "quantity",
        "prix_unitaire": "unit_price",
        "total_ligne": "line_total",
        "devise": "currency",
    }
)
TOTALS_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "sous_total_articles": "subtotal",
        "participation_frais_livraison": "shipping_participation",
        "total_commande": "order_total",
        "total_avec_frais": "order_total_with_fees",
        "devise": "currency",
    }
)

_FENCE = re.compile(r"```(?:json)?")
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


# =============================================================================
# Envelope parsing
# =============================================================================


def _try_parse_inner_json(text: str) -> dict[str, Any] | None:
    cleaned = _FENCE.sub("", text).strip()
    for candidate in (cleaned, *(m.group(0) for m in _OBJECT.finditer(cleaned))):
        try:
            obj = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
        if isinstance(obj, str):
            return _try_parse_inner_json(obj)
    return None


def _extract_from_openai_like(obj: dict[str, Any]) -> dict[str, Any] | None:
    choices = obj.get("choices")
    if isinstance(choices, list) and choices:
        first_choice = choices[0]
        if isinstance(first_choice, dict):
            msg = first_choice.get("message")
            if isinstance(msg, dict):
                content = msg.get("content")
                if isinstance(content, str):
                    inner = _try_parse_inner_json(content)
                    if isinstance(inner, dict):
                        return inner
            text = first_choice.get("text")
            if isinstance(text, str):
                inner = _try_parse_inner_json(text)
                if isinstance(inner, dict):
                    return inner
    # Some providers include direct top-level content
    content = obj.get("content")
    if isinstance(content, str):
        inner = _try_parse_inner_json(content)
        if isinstance(inner, dict):
            return inner
    return None


def parse_llm_payload(raw: Union[str, dict[str, Any]]) -> dict[str, Any]:
    """
    Extract the first usable JSON object from a raw LLM reply.

    Strategy:
      1) A dict with an OpenAI-like envelope yields its inner JSON content.
      2) Any other dict is used as-is.
      3) A string is parsed whole (markdown fences removed, outermost {...}
         span as a fallback), then line by line (JSONL).

    Returns:
      The extracted dict, or an empty dict if none is found.
    """
    if isinstance(raw, dict):
        return _extract_from_openai_like(raw) or raw
    if not isinstance(raw, str) or not raw.strip():
        return {}

    whole = _try_parse_inner_json(raw)
    if whole:
        return _extract_from_openai_like(whole) or whole

    for line in raw.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return _extract_from_openai_like(obj) or obj
        if isinstance(obj, str):
            inner = _try_parse_inner_json(obj)
            if inner:
                return inner
    return {}


# =============================================================================
# Schema normalization
# =============================================================================


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _rename(section: Any, aliases: Mapping[str, str]) -> dict[str, Any]:
    if not isinstance(section, dict):
        return {}
    return {aliases.get(key, key): _blank_to_none(value) for key, value in section.items()}


def _section(payload: dict[str, Any], name: str) -> Any:
    for key in SECTION_ALIASES[name]:
        if key in payload:
            return payload[key]
    return None


def _text_fields(data: dict[str, Any], skip: tuple[str, ...] = ()) -> dict[str, Any]:
    return {
        key: str(value) if isinstance(value, (int, float)) and key not in skip else value
        for key, value in data.items()
    }


def _identity(section: Any) -> Optional[Identity]:
    data = _text_fields(_rename(section, IDENTITY_ALIASES))
    if not data:
        return None
    for key in ("mobile_phone", "landline"):
        if data.get(key):
            data[key] = normalize_phone(data[key]) or str(data[key]).strip()
    return Identity.model_validate({k: v for k, v in data.items() if k in Identity.model_fields})


def _delivery(section: Any) -> Optional[Delivery]:
    data = _text_fields(_rename(section, DELIVERY_ALIASES), skip=("home_delivery",))
    if not data:
        return None
    return Delivery.model_validate({k: v for k, v in data.items() if k in Delivery.model_fields})


def _items(section: Any) -> Optional[list[LineItem]]:
    if not isinstance(section, list):
        return None
    items = []
    for position, raw_item in enumerate(section):
        data = _text_fields(
            _rename(raw_item, ITEM_ALIASES),
            skip=("quantity", "unit_price", "line_total"),
        )
        data = {k: v for k, v in data.items() if k in LineItem.model_fields}
        try:
            item = LineItem.model_validate(data)
        except ValidationError as exc:
            logger.debug(f"LLM item {position} dropped: {exc.error_count()} validation error(s)")
            continue
        # Rows with neither a reference nor a name carry no usable signal
        if item.reference or item.product_name:
            items.append(item)
    return items


def _totals(section: Any) -> Optional[Totals]:
    data = _rename(section, TOTALS_ALIASES)
    if not data:
        return None
    return Totals.model_validate({k: v for k, v in data.items() if k in Totals.model_fields})


def _confidence(value: Any) -> Optional[float]:
    """Ratio in [0, 1]; values above 1 are percentages."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    ratio = float(value)
    if ratio > 1:
        ratio /= 100.0
    return max(0.0, min(1.0, ratio))


def _gain(value: Any) -> Any:
    # French schema nests the amount: {"type": "CHEQUE BANCAIRE", "montant": 5000}
    if isinstance(value, dict):
        return value.get("montant", value.get("amount"))
    return _blank_to_none(value)


def fallback_structure() -> LlmStructure:
    return LlmStructure(confidence=FALLBACK_LLM_CONFIDENCE, method=FALLBACK_METHOD)


def normalize_llm_payload(payload: dict[str, Any]) -> LlmStructure:
    """Typed structure from an extracted JSON object, in either schema."""
    return LlmStructure(
        identity=_identity(_section(payload, "identity")),
        delivery=_delivery(_section(payload, "delivery")),
        items=_items(_section(payload, "items")),
        totals=_totals(_section(payload, "totals")),
        gain=_gain(payload.get("gain")),
        confidence=_confidence(payload.get("confidence")),
        method=_blank_to_none(payload.get("method")),
    )


def filter_llm_response(raw: Union[str, dict[str, Any], None]) -> LlmStructure:
    """
    Turn a raw LLM reply into an LlmStructure; never raises.

    A reply without any recognizable section degrades to an empty structure
    with confidence 0.3 and method "llm_fallback".
    """
    payload = parse_llm_payload(raw) if raw is not None else {}
    if not any(_section(payload, name) is not None for name in SECTION_ALIASES):
        logger.warning(
            "LLM response unparsable, using fallback structure",
            extra={"error_code": "LLM_RESPONSE_UNPARSABLE"},
        )
        return fallback_structure()
    try:
        return normalize_llm_payload(payload)
    except (ValidationError, TypeError, ValueError) as exc:
        logger.warning(
            f"LLM response rejected by schema: {exc}",
            extra={"error_code": "LLM_RESPONSE_UNPARSABLE"},
        )
        return fallback_structure()

