"""
Majority vote across OCR variants of the same page.

Every occurrence of a critical token (catalog reference, loyalty code) is
tallied across all variants; every value reaching the top count, or seen at
least twice, is a winner, so ties are kept. The transcript passed downstream
is the best scoring variant, where the score blends OCR confidence with a
structural readability score and noise-dominated variants always rank last.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

from orderfusion.core.config import (
    NOISE_RATIO_MAX,
    READABILITY_CONFIDENCE_WEIGHT,
    READABILITY_DIGIT_DENSITY_MAX,
    READABILITY_DIGIT_DENSITY_TARGET,
    READABILITY_STRUCTURAL_WEIGHT,
    READABILITY_WORD_TARGET,
    VOTE_MIN_COUNT,
)
from orderfusion.core.const import REFERENCE_PATTERN
from orderfusion.core.exceptions import NoUsableInputError
from orderfusion.models.dto import Correction, ExtractionResult, OcrVariant, VoteResult
from orderfusion.processors.fuzzy_normalizer import normalize_loyalty_code
from orderfusion.processors.identity_extractor import extract_loyalty_code

logger = logging.getLogger(__name__)

# Digit-leading 4-character mixed token such as 4G8M
LOYALTY_TOKEN_PATTERN = re.compile(r"\b[0-9](?=[A-Z0-9]{0,2}[A-Z])[A-Z0-9]{3}\b")


# =============================================================================
# Text quality
# =============================================================================


@dataclass(frozen=True)
class TextQuality:
    text_length: int
    word_count: int
    line_count: int
    special_char_ratio: float
    average_word_length: float
    quality: str

    def to_dict(self) -> dict:
        return asdict(self)


def assess_text_quality(text: str) -> TextQuality:
    """Coarse quality metrics of a transcript; "good" needs >50 chars and <30% symbols."""
    text = text or ""
    length = len(text)
    words = text.split()
    special = len(re.findall(r"[^\w\s]|_", text))
    ratio = special / length if length else 0.0
    return TextQuality(
        text_length=length,
        word_count=len(words),
        line_count=len(text.splitlines()) if text else 0,
        special_char_ratio=round(ratio, 4),
        average_word_length=round(length / len(words), 2) if words else 0.0,
        quality="good" if length > 50 and ratio < 0.3 else "poor",
    )


# =============================================================================
# Scoring
# =============================================================================


def noise_ratio(text: str) -> float:
    """Share of non-space characters that are neither letters nor digits."""
    visible = [ch for ch in text if not ch.isspace()]
    if not visible:
        return 1.0
    return sum(not ch.isalnum() for ch in visible) / len(visible)


def _density_score(density: float) -> float:
    if density > READABILITY_DIGIT_DENSITY_MAX:
        excess = (density - READABILITY_DIGIT_DENSITY_MAX) / (1 - READABILITY_DIGIT_DENSITY_MAX)
        return max(0.0, 1.0 - excess)
    return min(1.0, density / READABILITY_DIGIT_DENSITY_TARGET)


def estimate_readability(text: str, confidence: float) -> float:
    """
    Blend OCR confidence with a structural score.

    Structural score rewards word count up to a target and a digit density
    typical of order forms (references, prices); digit soup is penalised.
    """
    clean = re.sub(r"[^\w€%\s]|_", "", text or "")
    words = [w for w in clean.split() if len(w) > 2]
    compact = re.sub(r"\s", "", clean)
    density = sum(ch.isdigit() for ch in compact) / len(compact) if compact else 0.0
    structural = 0.6 * min(1.0, len(words) / READABILITY_WORD_TARGET) + 0.4 * _density_score(density)
    return (
        (confidence or 0.0) * READABILITY_CONFIDENCE_WEIGHT
        + max(0.0, min(1.0, structural)) * READABILITY_STRUCTURAL_WEIGHT
    )


# =============================================================================
# Critical tokens
# =============================================================================


def reference_tokens(text: str) -> list[str]:
    return [f"{m.group(1)}.{m.group(2)}" for m in REFERENCE_PATTERN.finditer(text or "")]


def loyalty_tokens(text: str) -> list[str]:
    """Labeled loyalty code, else digit-leading mixed 4-character tokens."""
    labeled = extract_loyalty_code(text or "")
    if labeled:
        return [labeled]
    codes = (normalize_loyalty_code(m.group(0)) for m in LOYALTY_TOKEN_PATTERN.finditer(text or ""))
    return [code for code in codes if code]


def pick_winners(counts: Counter) -> list[str]:
    """Every value at the top count or at VOTE_MIN_COUNT and above, in first-seen order."""
    if not counts:
        return []
    top = max(counts.values())
    return [token for token, count in counts.items() if count == top or count >= VOTE_MIN_COUNT]


def _tally(token_lists: Iterable[list[str]]) -> Counter:
    counts: Counter = Counter()
    for tokens in token_lists:
        counts.update(tokens)
    return counts


def vote_variants(variants: Sequence[OcrVariant]) -> VoteResult:
    """
    Merge OCR variants by majority vote on critical tokens.

    Variants without text are ignored; if none is left the input is
    unusable and NoUsableInputError(NO_OCR_VARIANTS) is raised.
    """
    usable = [v for v in variants if v.text and v.text.strip()]
    if not usable:
        logger.error(
            f"No OCR variant produced text ({len(variants)} supplied)",
            extra={"error_code": "NO_OCR_VARIANTS"},
        )
        raise NoUsableInputError("NO_OCR_VARIANTS", details={"variant_count": len(variants)})

    scores = {v.label: round(estimate_readability(v.text, v.confidence), 4) for v in usable}
    ranked = sorted(
        usable,
        key=lambda v: (noise_ratio(v.text) > NOISE_RATIO_MAX, -scores[v.label]),
    )
    best = ranked[0]

    reference_counts = _tally(reference_tokens(v.text) for v in usable)
    loyalty_counts = _tally(loyalty_tokens(v.text) for v in usable)

    result = VoteResult(
        text=best.text,
        best_label=best.label,
        confidence=best.confidence,
        references=pick_winners(reference_counts),
        loyalty_codes=pick_winners(loyalty_counts),
        reference_counts=dict(reference_counts),
        loyalty_code_counts=dict(loyalty_counts),
        scores=scores,
        variant_count=len(usable),
    )
    logger.info(
        f"Variant vote: best='{best.label}' over {len(usable)} variant(s), "
        f"references={result.references}, codes={result.loyalty_codes}",
        extra={"variant": best.label},
    )
    return result


# =============================================================================
# Vote-driven correction
# =============================================================================


def _hamming(a: str, b: str) -> int:
    if len(a) != len(b):
        return max(len(a), len(b))
    return sum(x != y for x, y in zip(a, b))


def _share(counts: dict[str, int], token: str) -> float:
    total = sum(counts.values())
    return round(counts.get(token, 0) / total, 4) if total else 0.0


def apply_vote_corrections(result: ExtractionResult, vote: VoteResult) -> ExtractionResult:
    """
    Use winning critical tokens to repair the fused result.

    A missing loyalty code takes the first winning code; a reference that is
    not a winner but one character away from exactly one winning reference
    is rewritten to it. Confidence of each change is the winner's vote share.
    """
    corrections: list[Correction] = []
    identity = result.identity
    if identity.loyalty_code is None and vote.loyalty_codes:
        code = vote.loyalty_codes[0]
        identity = identity.model_copy(update={"loyalty_code": code})
        corrections.append(
            Correction(
                field="identity.loyalty_code",
                before=None,
                after=code,
                confidence=_share(vote.loyalty_code_counts, code),
                reason="variant_vote",
            )
        )

    items = list(result.items)
    for index, item in enumerate(items):
        if not item.reference or item.reference in vote.references:
            continue
        near = [ref for ref in vote.references if _hamming(item.reference, ref) == 1]
        if len(near) != 1:
            continue
        winner = near[0]
        items[index] = item.model_copy(update={"reference": winner})
        corrections.append(
            Correction(
                field=f"items[{index}].reference",
                before=item.reference,
                after=winner,
                confidence=_share(vote.reference_counts, winner),
                reason="variant_vote",
            )
        )
        logger.debug(
            f"Reference {item.reference} -> {winner} by variant vote",
            extra={"item_index": index},
        )

    if not corrections:
        return result
    return result.model_copy(
        update={
            "identity": identity,
            "items": items,
            "corrections": [*result.corrections, *corrections],
        }
    )
