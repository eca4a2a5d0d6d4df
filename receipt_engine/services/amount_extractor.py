"""
Monetary amount extraction from normalized receipt text.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from receipt_engine.constants import MAX_AMOUNT, MIN_AMOUNT
from receipt_engine.logging_config import get_logger


logger = get_logger(__name__)


_CENTS = Decimal("0.01")

# Thousands-grouped figure first so "1,234.56" is not cut at "1,23"
_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d{1,6}(?:[,.]\d{2})?)"

_GROUPED = re.compile(r"\d{1,3}(?:,\d{3})+(?:\.\d{2})?")
_DECIMAL_COMMA = re.compile(r"\d+,\d{2}")

AMOUNT_PATTERNS = (
    # Currency prefixed
    re.compile(r"RM\s*" + _NUMBER, re.IGNORECASE),
    re.compile(r"MYR\s*" + _NUMBER, re.IGNORECASE),
    # Label prefixed
    re.compile(
        r"(?:GRAND\s*TOTAL|TOTAL|JUMLAH|AMOUNT|BAYAR)\s*:?\s*(?:RM|MYR)?\s*" + _NUMBER,
        re.IGNORECASE,
    ),
    # Bare decimal followed by a currency or the end of the text
    re.compile(r"(?<![\d.,])(\d{1,4}[,.]\d{2})(?=\s*(?:RM|MYR|$))", re.IGNORECASE),
    # Whole amount with trailing .00
    re.compile(r"(?<![\d.,])(\d{1,6}\.00)(?!\d)"),
)


def parse_amount(raw: str) -> Optional[Decimal]:
    """
    Turn one captured figure into a Decimal.

    Group separators are dropped and a trailing ",DD" is read as decimal
    cents. A bare 3-4 digit integer is assumed to have lost its decimal
    point ("1050" -> 10.50); longer integers are left alone.

    Args:
        raw: Captured figure, e.g. "1,234.56", "10,50" or "1050"

    Returns:
        The amount rounded to cents, or None if it cannot be parsed
    """
    value = raw.strip()
    grouped = bool(_GROUPED.fullmatch(value))

    if grouped:
        value = value.replace(",", "")
    elif _DECIMAL_COMMA.fullmatch(value):
        value = value.replace(",", ".")
    else:
        value = value.replace(",", "")

    if not grouped and "." not in value and len(value) in (3, 4):
        value = f"{value[:-2]}.{value[-2:]}"

    try:
        return Decimal(value).quantize(_CENTS)
    except InvalidOperation:
        return None


class AmountExtractor:
    """
    Runs the ordered amount patterns over normalized text.
    """

    def __init__(self, min_amount: Decimal = MIN_AMOUNT, max_amount: Decimal = MAX_AMOUNT):
        self.min_amount = min_amount
        self.max_amount = max_amount

    def extract_amounts(self, cleaned_text: str) -> List[Decimal]:
        """
        Extract candidate payment amounts.

        Args:
            cleaned_text: Output of TextNormalizer.normalize

        Returns:
            Distinct amounts within bounds, largest first
        """
        amounts: List[Decimal] = []
        for pattern in AMOUNT_PATTERNS:
            for raw in pattern.findall(cleaned_text):
                amount = parse_amount(raw)
                logger.debug(
                    "Processing amount",
                    extra={"original": raw, "parsed": str(amount)},
                )
                if amount is None:
                    continue
                if self.min_amount <= amount <= self.max_amount and amount not in amounts:
                    amounts.append(amount)

        amounts.sort(reverse=True)
        logger.info(f"Amount extraction completed: {len(amounts)} found")
        return amounts
