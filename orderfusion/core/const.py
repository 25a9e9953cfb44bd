from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping

# =============================================================================
# Character confusion tables
# =============================================================================

# Letters that OCR returns in place of digits
LETTER_TO_DIGIT: Mapping[str, str] = MappingProxyType(
    {
        "O": "0",
        "D": "0",
        "Q": "0",
        "I": "1",
        "L": "1",
        "Z": "2",
        "S": "5",
        "G": "6",
        "B": "8",
    }
)

# Digits that OCR returns in place of letters at the start of a word
DIGIT_TO_LETTER: Mapping[str, str] = MappingProxyType(
    {
        "0": "O",
        "1": "I",
        "2": "Z",
        "5": "S",
        "6": "G",
        "8": "B",
    }
)

# Loyalty codes mix letters and digits; 6 and G are read as the letter
LOYALTY_CODE_SUBSTITUTIONS: Mapping[str, str] = MappingProxyType(
    {
        "O": "0",
        "Q": "0",
        "I": "1",
        "B": "8",
        "6": "G",
    }
)

# Handwritten amounts: O/o for 0, I/l for 1, Y for 4
AMOUNT_SUBSTITUTIONS: Mapping[str, str] = MappingProxyType(
    {
        "O": "0",
        "o": "0",
        "I": "1",
        "l": "1",
        "Y": "4",
    }
)

# =============================================================================
# Token patterns
# =============================================================================

# 3 digits + optional separator + 3 or 4 digits, never part of a longer run
REFERENCE_PATTERN = re.compile(
    r"(?<![\d.,])(\d{3})(?:[^\S\n]?[.,][^\S\n]?)?(\d{3,4})(?![\d])(?![.,]\d)"
)

# Decimal amount with an OCR-tolerant separator (16,99 / 16:99 / 22.199 / 16, 99)
AMOUNT_PATTERN = re.compile(
    r"(?<![\d.,:])\d{1,4}[^\S\n]?[.,:;][^\S\n]?\d{2,3}(?![\d])(?![.,:]\d)"
    r"|(?<![\d.,:])\d{1,3}[^\S\n]\d{2}(?=[^\S\n]?(?:€|EUR\b))"
)

CURRENCY_MARKER = re.compile(r"€|\bEUR\b|\bE\b", re.IGNORECASE)
CURRENCY_AMOUNT_PATTERN = re.compile(
    r"(?P<amount>" + AMOUNT_PATTERN.pattern + r")[^\S\n]*(?:€|EUR\b|E\b)"
)

CODE_MARKER_PATTERN = re.compile(r"\b(?:code|cod|c0de)[^\S\n]*[:.]?[^\S\n]*(\d{1,4})\b", re.IGNORECASE)

PAGE_LINE_PATTERN = re.compile(r"^\d{1,3}$")
QUANTITY_LINE_PATTERN = re.compile(r"^(?:quantit[eé][^\S\n]*:?[^\S\n]*)?([1-9])$", re.IGNORECASE)
PERCENT_LINE_PATTERN = re.compile(r"^-?\d+[^\S\n]?%")

TABLE_HEADER_PATTERN = re.compile(
    r"PAGE[^\S\n]*NOM[^\S\n]*DU[^\S\n]*MOD[EÈÉ]LE"
    r"|NOMDU[^\S\n]*MOD[EÈÉ]LE"
    r"|COLORIS[^\S\n]+R[EÉ]F[EÉ]RENCE",
    re.IGNORECASE,
)

# Column headings that are never descriptions
TABLE_NOISE_LINE = re.compile(
    r"^(?:PRIX[^\S\n]+UNITAIRE|TOTAL|QUANTIT[EÉ]|TAILLE|COLORIS|R[EÉ]F[EÉ]RENCE|PAGE)$",
    re.IGNORECASE,
)

# Prize cheque announced in the header; O is a common misread of 0
GAIN_PATTERN = re.compile(
    r"CH[ÈE]QUE[^\S\n]+BANC(?:AIRE|A)?[^0-9]*(?P<amount>[0-9Oo.\s,]{3,})",
    re.IGNORECASE,
)

# Totals and customer-block labels; a reconstructed row never reaches past one
ROW_BOUNDARY_PATTERN = re.compile(
    r"Total[^\S\n]+de[^\S\n]+ma[^\S\n]+commande|Participation(?:[^\S\n]+forfaitaire)?"
    r"|Sous[\s\-]?total|MODES[^\S\n]+DE[^\S\n]+PAIEMENT"
    r"|NUM[ÉE]RO[^\S\n]+CLIENT|CODE[^\S\n]+PRIVIL|T[ée]l\.|Date[^\S\n]+de[^\S\n]+naissance"
    r"|\b(?:MADAME|MONSIEUR|MADEMOISELLE|MME|MLLE)\b",
    re.IGNORECASE,
)

NAME_TAIL_PATTERN = re.compile(r"\b(?:code|cod|coloris|col)\b.*$", re.IGNORECASE)

# =============================================================================
# Segment anchors (start pattern, end pattern)
# =============================================================================

SEGMENT_ANCHORS: Mapping[str, tuple[re.Pattern[str], re.Pattern[str] | None]] = MappingProxyType(
    {
        "header": (
            re.compile(
                r"DEMANDE|GAIN|CH[ÈE]QUE|[ÀA]\s+[ée]tablir",
                re.IGNORECASE,
            ),
            re.compile(
                r"VOTRE\s+COMMANDE|POUR\s+ENCORE\s+MIEUX|NUM[ÉE]RO\s+CLIENT",
                re.IGNORECASE,
            ),
        ),
        "customer": (
            re.compile(
                r"NUM[ÉE]RO\s+CLIENT|CODE\s+PRIVIL|T[ée]l\.?\s*portable|T[ée]l\.|Date\s+de\s+naissance",
                re.IGNORECASE,
            ),
            re.compile(
                r"PAGE|NOM\s?DU|MOD[EÈ]LE|MODES\s+DE\s+PAIEMENT",
                re.IGNORECASE,
            ),
        ),
        "table": (
            re.compile(
                r"PAGE\s+NOM|NOM\s?DU\s+MOD[EÈ]LE|COLORIS\s+R[EÉ]F[EÉ]RENCE",
                re.IGNORECASE,
            ),
            re.compile(
                r"MODES\s+DE\s+PAIEMENT|Total\s+de\s+ma\s+commande|Participation\s+forfaitaire",
                re.IGNORECASE,
            ),
        ),
        "payment": (
            re.compile(
                r"MODES\s+DE\s+PAIEMENT|PAR\s+CARTE|PAR\s+CH[ÈE]QUE",
                re.IGNORECASE,
            ),
            re.compile(r"Validit[ée]|Valide|AFIBEL", re.IGNORECASE),
        ),
        "footer": (
            re.compile(r"AFIBEL|Validit[ée]|Valide", re.IGNORECASE),
            None,
        ),
    }
)

# =============================================================================
# Vocabulary
# =============================================================================

# Product-family nouns that open a table row when no column header survived
PRODUCT_KEYWORDS: tuple[str, ...] = (
    "robe",
    "jupe",
    "pantalon",
    "jean",
    "short",
    "chemisier",
    "chemise",
    "blouse",
    "tunique",
    "tshirt",
    "t-shirt",
    "tee-shirt",
    "pull",
    "gilet",
    "veste",
    "manteau",
    "parka",
    "cardigan",
    "legging",
    "collant",
    "chaussette",
    "chaussure",
    "sandale",
    "basket",
    "pyjama",
    "chemise de nuit",
    "soutien-gorge",
    "culotte",
    "slip",
    "sac",
    "montre",
    "collier",
    "bracelet",
    "parure",
    "coffret",
    "lot",
    "creme",
    "crème",
    "correcteur",
    "serum",
    "sérum",
    "soin",
    "lotion",
    "parfum",
    "eau de toilette",
)

COLOR_WORDS: tuple[str, ...] = (
    "blanc",
    "blanche",
    "noir",
    "noire",
    "gris",
    "grise",
    "bleu",
    "bleue",
    "marine",
    "rouge",
    "rose",
    "vert",
    "verte",
    "kaki",
    "jaune",
    "orange",
    "violet",
    "beige",
    "ecru",
    "écru",
    "camel",
    "marron",
    "chocolat",
    "taupe",
    "bordeaux",
    "anthracite",
    "argent",
    "doré",
    "multicolore",
)

# Colour column placeholders written as a code rather than a colour name
PLACEHOLDER_COLOR_PATTERN = re.compile(r"^cod(?:e)?[\s]*(?:1?0|lo|io)$", re.IGNORECASE)

CIVILITY_PATTERN = r"(?i:MADAME|MONSIEUR|MADEMOISELLE|MME|MLLE|M\.)"
