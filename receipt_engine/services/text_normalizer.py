"""
Cleanup of raw OCR text before amount and reference extraction.

All OCR-specific corrections live in a CorrectionTable so a table tuned for
another region's receipts can be swapped in without touching extraction or
decision logic.
"""

import re
from typing import Iterable, Mapping, Optional, Pattern, Sequence, Tuple

from receipt_engine.logging_config import get_logger


logger = get_logger(__name__)


# Whole-word misreads seen on Malaysian bank receipts
DEFAULT_SUBSTITUTIONS: Mapping[str, str] = {
    "TOTAI": "TOTAL",
    "TOTALI": "TOTAL",
    "RINGG1T": "RINGGIT",
    "MAYBAN K": "MAYBANK",
    "TRANSACT1ON": "TRANSACTION",
    "REF3RENCE": "REFERENCE",
    "APPROV4L": "APPROVAL",
    "RECE1PT": "RECEIPT",
    "C1MB": "CIMB",
}

# Lost leading digit: "10.00" read as "1.00" next to a currency or total
# keyword. Each pattern refuses to fire on its own output.
DEFAULT_DIGIT_REPAIRS: Sequence[Tuple[str, str]] = (
    (r"\bRM1(?=\s|[.,]\d{2}(?!\d))", "RM10"),
    (r"(?<!\S)1\.(00|50)(?!\d)", r"10.\1"),
    (r"\b(TOTAL|AMOUNT) 1(?!\d|,\d{3})", r"\1 10"),
    (r"\b1\.(\d{2})\b(?=\s*(?:RM|MYR|TOTAL|AMOUNT))", r"10.\1"),
    (r"\b(RM|MYR)\s*1(?![\d.,])", r"\g<1>10"),
)

CURRENCY_SPACING: Sequence[Tuple[str, str]] = (
    (r"\bR\s+M(?=[\s\d.]|$)", "RM"),
    (r"\bM\s*Y\s+R(?=[\s\d.]|$)", "MYR"),
    (r"\bM\s+Y\s*R(?=[\s\d.]|$)", "MYR"),
)

LABEL_SPACING: Sequence[Tuple[str, str]] = (
    (r"\bTXN\s*:", "TXN:"),
    (r"\bREF\s*:", "REF:"),
    (r"\bTRANSACTION\s*:", "TRANSACTION:"),
)


def _compile(rules: Iterable[Tuple[str, str]]) -> Tuple[Tuple[Pattern, str], ...]:
    return tuple((re.compile(p, re.IGNORECASE), r) for p, r in rules)


class CorrectionTable:
    """
    OCR misread corrections: whole-word substitutions plus digit repairs.
    """

    def __init__(
        self,
        substitutions: Optional[Mapping[str, str]] = None,
        digit_repairs: Optional[Sequence[Tuple[str, str]]] = None,
    ):
        self.substitutions = dict(
            DEFAULT_SUBSTITUTIONS if substitutions is None else substitutions
        )
        self.digit_repairs = tuple(
            DEFAULT_DIGIT_REPAIRS if digit_repairs is None else digit_repairs
        )
        self._substitution_patterns = _compile(
            (r"\b" + re.escape(wrong) + r"\b", right)
            for wrong, right in self.substitutions.items()
        )
        self._digit_patterns = _compile(self.digit_repairs)

    def apply_substitutions(self, text: str) -> str:
        for pattern, replacement in self._substitution_patterns:
            text = pattern.sub(replacement, text)
        return text

    def apply_digit_repairs(self, text: str) -> str:
        for pattern, replacement in self._digit_patterns:
            text = pattern.sub(replacement, text)
        return text


DEFAULT_CORRECTIONS = CorrectionTable()


class TextNormalizer:
    """
    Pure text cleanup: whitespace, known misreads, currency and label spacing.

    ``normalize`` is idempotent, so normalised text can be passed through
    again safely.
    """

    def __init__(self, corrections: Optional[CorrectionTable] = None):
        self.corrections = corrections or DEFAULT_CORRECTIONS
        self._spacing_patterns = _compile(tuple(CURRENCY_SPACING) + tuple(LABEL_SPACING))

    def normalize(self, raw_text: str) -> str:
        """
        Normalize raw OCR text.

        Args:
            raw_text: Text as returned by the OCR provider

        Returns:
            Single-line cleaned text
        """
        text = re.sub(r"\s+", " ", raw_text or "")
        text = self.corrections.apply_substitutions(text)
        for pattern, replacement in self._spacing_patterns:
            text = pattern.sub(replacement, text)
        text = self.corrections.apply_digit_repairs(text)
        text = text.strip()

        logger.debug(
            "Text preprocessing completed",
            extra={"original_length": len(raw_text or ""), "processed_length": len(text)},
        )
        return text
