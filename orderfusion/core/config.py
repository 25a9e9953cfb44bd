from __future__ import annotations

from decimal import Decimal

# =============================================================================
# Segmentation
# =============================================================================

SEGMENT_MAX_CHARS = 4000  # Cap for a single region slice

# =============================================================================
# Article extraction
# =============================================================================

HEADER_TABLE_LINES = 12  # Lines parsed after a canonical table header
BACKWARD_SCAN_LINES = 4  # Description lines looked up before a reference
FORWARD_SCAN_LINES = 8  # Lines looked up after a reference for prices/quantity
PRODUCT_NAME_MAX_CHARS = 80
DEDUP_NAME_PREFIX = 15  # Product-name prefix used in the dedup key

MAX_UNIT_PRICE = Decimal("1000")  # Exclusive lower bound 0, inclusive upper bound
MONEY_QUANTUM = Decimal("0.01")
DEFAULT_CURRENCY = "EUR"
GAIN_MIN_AMOUNT = Decimal("100")  # Smaller cheque amounts are misreads

# =============================================================================
# Identity
# =============================================================================

CLIENT_NUMBER_MAX_CHARS = 9
LOYALTY_CODE_MIN_CHARS = 3
LOYALTY_CODE_MAX_CHARS = 4
BIRTH_YEAR_MAX = 2019  # Later years are validity dates, not birth dates

# =============================================================================
# Variant voting
# =============================================================================

VOTE_MIN_COUNT = 2  # Any token seen this often is a winner
READABILITY_CONFIDENCE_WEIGHT = 0.55
READABILITY_STRUCTURAL_WEIGHT = 0.45
READABILITY_WORD_TARGET = 400
READABILITY_DIGIT_DENSITY_TARGET = 0.10
READABILITY_DIGIT_DENSITY_MAX = 0.50
NOISE_RATIO_MAX = 0.50  # Above this share of symbols a variant is noise

# =============================================================================
# Fusion
# =============================================================================

WEIGHT_OCR = 0.30
WEIGHT_LLM = 0.45
WEIGHT_HEURISTIC = 0.25

COVERAGE_FULL_NAME = 0.25
COVERAGE_CLIENT_NUMBER = 0.15
COVERAGE_ITEMS = 0.30
COVERAGE_ORDER_TOTAL = 0.30

DEFAULT_LLM_CONFIDENCE = 0.9  # LLM structure present without a confidence
FALLBACK_LLM_CONFIDENCE = 0.3  # LLM reply that could not be parsed
PAGE_BACKFILL_CONFIDENCE = 0.5

# =============================================================================
# Reference correction
# =============================================================================

CATALOG_SIMILARITY_THRESHOLD = 0.70
CATALOG_PRICE_TOLERANCE = Decimal("5")
