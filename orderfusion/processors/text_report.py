"""
Human-readable French summary of an extraction, for operator review
before export.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from orderfusion.core.const import PLACEHOLDER_COLOR_PATTERN
from orderfusion.models.dto import ExtractionResult, LineItem
from orderfusion.processors.fuzzy_normalizer import format_price
from orderfusion.processors.totals_computer import sum_items

SEPARATOR = "-" * 50
TOTAL_MISMATCH_TOLERANCE = Decimal("0.05")

IDENTITY_LABELS = (
    ("full_name", "Nom"),
    ("client_number", "Numéro client"),
    ("loyalty_code", "Code privilège"),
    ("mobile_phone", "Téléphone portable"),
    ("landline", "Téléphone fixe"),
    ("birth_date", "Date de naissance"),
    ("email", "Email"),
)


def _money(amount: Optional[Decimal]) -> str:
    # 39,00 is shown as 39
    text = format_price(amount)
    return text[:-3] if text.endswith(",00") else text


def is_placeholder_color(color: Optional[str]) -> bool:
    """Colour cells holding a code placeholder ("code 10", "codelo") rather than a colour."""
    if not color:
        return False
    return bool(PLACEHOLDER_COLOR_PATTERN.match(color.replace(" ", "")))


def _item_lines(position: int, item: LineItem) -> list[str]:
    lines = ["", f"### ARTICLE {position}:"]
    if item.catalog_page:
        lines.append(f"- Page: {item.catalog_page}")
    if item.product_name:
        lines.append(f"- Nom: {item.product_name}")
    if item.color and not is_placeholder_color(item.color):
        lines.append(f"- Coloris: {item.color}")
    if item.reference:
        lines.append(f"- Référence: {item.reference}")
    if item.size_or_code:
        lines.append(f"- Taille/Code: {item.size_or_code}")
    lines.append(f"- Quantité: {item.quantity}")
    if item.unit_price is not None:
        lines.append(f"- Prix unitaire: {_money(item.unit_price)}")
    if item.line_total is not None:
        lines.append(f"- Total: {_money(item.line_total)}")
    return lines


def find_anomalies(result: ExtractionResult) -> list[str]:
    anomalies = []
    items_sum = sum_items(result.items)
    order_total = result.totals.order_total
    if (
        order_total is not None
        and items_sum
        and abs(order_total - items_sum) > TOTAL_MISMATCH_TOLERANCE
    ):
        anomalies.append(
            f"Écart entre somme des lignes ({_money(items_sum)}) "
            f"et total commande ({_money(order_total)})."
        )
    placeholders = sum(is_placeholder_color(item.color) for item in result.items)
    if placeholders:
        anomalies.append(f"{placeholders} coloris placeholder ignoré(s).")
    if not result.items:
        anomalies.append("Aucun article: vérifier la qualité OCR ou le cadrage.")
    return anomalies


def render_text_report(result: ExtractionResult) -> str:
    """
    Render identity, totals, per-item details and anomalies as plain text.

    Empty fields are omitted; the anomalies section only appears when
    something needs a second look.
    """
    lines = ["INFORMATIONS PERSONNELLES:", SEPARATOR]
    for field, label in IDENTITY_LABELS:
        value = getattr(result.identity, field)
        if value:
            lines.append(f"- {label}: {value}")
    lines.append("")

    items_sum = sum_items(result.items)
    lines.append(f"EXTRACTION ({result.method}, confiance {result.confidence:.2f}):")
    lines.append(f"- Articles: {len(result.items)}")
    if items_sum:
        lines.append(f"- Total articles: {_money(items_sum)}")
    if result.totals.order_total is not None:
        lines.append(f"- Total commande annoncé: {_money(result.totals.order_total)}")
    if result.totals.order_total_with_fees is not None:
        lines.append(f"- Total avec frais: {_money(result.totals.order_total_with_fees)}")
    if result.gain is not None:
        lines.append(f"- Gain chèque bancaire: {_money(result.gain)}")
    lines.append("")

    lines.extend(["ARTICLES COMMANDÉS:", SEPARATOR])
    if not result.items:
        lines.append("(Aucun article détecté)")
    for position, item in enumerate(result.items, start=1):
        lines.extend(_item_lines(position, item))

    anomalies = find_anomalies(result)
    if anomalies:
        lines.extend(["", "ANOMALIES / SUGGESTIONS:"])
        lines.extend(f"- {anomaly}" for anomaly in anomalies)
    return "\n".join(lines)
