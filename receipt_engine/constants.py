"""
Tolerances, bounds and score weights used by the receipt validation engine.

Kept in one place so the decision and scoring code never carries bare
literals.
"""

from decimal import Decimal


# File admissibility
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
SIGNATURE_READ_BYTES = 16

# Amount extraction bounds (inclusive)
MIN_AMOUNT = Decimal("0.01")
MAX_AMOUNT = Decimal("10000")

# Decision tolerances
EXACT_MATCH_MIN_TOLERANCE = Decimal("0.01")
EXACT_MATCH_RELATIVE_TOLERANCE = Decimal("0.001")  # 0.1% of expected
CLOSE_MATCH_PERCENT = Decimal("2")
DIGIT_DROP_FACTOR = Decimal("10")
DIGIT_DROP_MIN_EXPECTED = Decimal("10")
MAX_AMOUNTS_IN_MESSAGE = 3

# Transaction reference bounds
TRANSACTION_ID_MIN_LENGTH = 6
TRANSACTION_ID_MAX_LENGTH = 20

# Transaction reference scoring
TXN_SCORE_PREFERRED_LENGTH = 10  # 8-12 chars
TXN_SCORE_ACCEPTABLE_LENGTH = 5  # 6-15 chars
TXN_SCORE_BANK_FORMAT = 15  # letter prefix + digits
TXN_SCORE_NUMERIC_FORMAT = 10
TXN_SCORE_ALPHANUMERIC_FORMAT = 8
TXN_SCORE_TRANSACTION_LABEL = 20
TXN_SCORE_REFERENCE_LABEL = 15
TXN_SCORE_APPROVAL_LABEL = 12

# Confidence scoring
BASE_CONFIDENCE = {
    "match": 85,
    "close_match": 70,
    "no_match": 20,
    "no_amounts_found": 10,
}
BANK_INFO_BONUS = 5
TOTAL_INDICATOR_BONUS = 5
DATE_BONUS = 3
TRANSACTION_ID_BONUS = 8
TRANSACTION_MATCH_BONUS = 10
AMOUNT_FOUND_BONUS = 2
MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 100

# Auto-approval
DEFAULT_AUTO_APPROVE_THRESHOLD = 85

# OCR provider
DEFAULT_OCR_API_URL = "https://api.ocr.space/parse/image"
DEFAULT_OCR_TIMEOUT_SECONDS = 90.0
PRIMARY_OCR_ENGINE = 2
FALLBACK_OCR_ENGINE = 1
OCR_USER_AGENT = "receipt-validation-engine/1.0"
