"""
Receipt metadata detection and transaction reference extraction.
"""

import re
from typing import List, Optional

from receipt_engine.constants import (
    TRANSACTION_ID_MAX_LENGTH,
    TRANSACTION_ID_MIN_LENGTH,
    TXN_SCORE_ACCEPTABLE_LENGTH,
    TXN_SCORE_ALPHANUMERIC_FORMAT,
    TXN_SCORE_APPROVAL_LABEL,
    TXN_SCORE_BANK_FORMAT,
    TXN_SCORE_NUMERIC_FORMAT,
    TXN_SCORE_PREFERRED_LENGTH,
    TXN_SCORE_REFERENCE_LABEL,
    TXN_SCORE_TRANSACTION_LABEL,
)
from receipt_engine.logging_config import get_logger
from receipt_engine.models.receipt import (
    ReceiptMetadata,
    ReceiptType,
    TransactionIdCandidate,
)


logger = get_logger(__name__)


BANK_INDICATORS = (
    "MAYBANK",
    "CIMB",
    "PUBLIC BANK",
    "HONG LEONG",
    "RHB",
    "AMBANK",
    "BSN",
    "OCBC",
)

TOTAL_INDICATORS = ("TOTAL", "JUMLAH", "AMOUNT", "BAYARAN", "PAYMENT", "GRAND TOTAL")

# Checked in order; first keyword hit decides the type
RECEIPT_TYPE_KEYWORDS = (
    (ReceiptType.ONLINE_BANKING, ("TRANSFER", "IBFT")),
    (ReceiptType.ATM, ("ATM",)),
    (ReceiptType.CARD_PAYMENT, ("DEBIT", "CREDIT")),
    (ReceiptType.QR_PAYMENT, ("QR", "DUITNOW")),
)

DATE_PATTERN = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}")
TIME_PATTERN = re.compile(r"\d{1,2}:\d{2}")

_SEP = r"[:\s#]*"

TRANSACTION_ID_PATTERNS = (
    # Labelled references
    re.compile(
        r"\b(?:TRANSACTION|TXN|REFERENCE|REF|ID|NO)\b" + _SEP + r"([A-Z0-9]{6,20})",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:APPROVAL|AUTH)\b" + _SEP + r"([A-Z0-9]{6,12})", re.IGNORECASE),
    re.compile(r"\b(?:TRACE|RECEIPT)\b" + _SEP + r"([0-9]{6,15})", re.IGNORECASE),
    re.compile(r"\b(?:IBFT|IBG|FT)\b" + _SEP + r"([A-Z0-9]{8,20})", re.IGNORECASE),
    # Bank prefixed
    re.compile(r"\b(?:MAYBANK|MBB)\b" + _SEP + r"([A-Z0-9]{8,15})", re.IGNORECASE),
    re.compile(r"\bCIMB\b" + _SEP + r"([A-Z0-9]{8,15})", re.IGNORECASE),
    re.compile(r"\bPUBLIC\b" + _SEP + r"([A-Z0-9]{8,15})", re.IGNORECASE),
    re.compile(r"\b(?:HONG LEONG|HLBB)\b" + _SEP + r"([A-Z0-9]{8,15})", re.IGNORECASE),
    re.compile(r"\bRHB\b" + _SEP + r"([A-Z0-9]{8,15})", re.IGNORECASE),
    # Generic fallbacks
    re.compile(r"\b([A-Z]{2,4}[0-9]{6,12})\b"),
    re.compile(r"\b([0-9]{8,15})\b(?=\s*(?:SUCCESS|APPROVED|COMPLETED))", re.IGNORECASE),
    # QR payments (DuitNow)
    re.compile(r"\b(?:QR|DUITNOW)\b" + _SEP + r"([A-Z0-9]{8,20})", re.IGNORECASE),
    # FPX online banking
    re.compile(r"\bFPX\b" + _SEP + r"([A-Z0-9]{10,20})", re.IGNORECASE),
)

_BANK_FORMAT = re.compile(r"^[A-Z]{2,4}[0-9]{6,}$")
_NUMERIC_FORMAT = re.compile(r"^[0-9]{8,}$")
_ALPHANUMERIC_FORMAT = re.compile(r"^[A-Z0-9]+$")

# (labels, bonus); label and id may be separated by whitespace
CONTEXT_LABELS = (
    (("txn:", "transaction:"), TXN_SCORE_TRANSACTION_LABEL),
    (("ref:", "reference:"), TXN_SCORE_REFERENCE_LABEL),
    (("approval:",), TXN_SCORE_APPROVAL_LABEL),
)


def score_transaction_id(transaction_id: str, text: str) -> int:
    """
    Score a candidate reference by length, format and labelled context.

    Args:
        transaction_id: Candidate reference
        text: Text the candidate was found in

    Returns:
        Non-negative integer score; higher is more likely the real reference
    """
    score = 0

    length = len(transaction_id)
    if 8 <= length <= 12:
        score += TXN_SCORE_PREFERRED_LENGTH
    elif 6 <= length <= 15:
        score += TXN_SCORE_ACCEPTABLE_LENGTH

    if _BANK_FORMAT.match(transaction_id):
        score += TXN_SCORE_BANK_FORMAT
    elif _NUMERIC_FORMAT.match(transaction_id):
        score += TXN_SCORE_NUMERIC_FORMAT
    elif _ALPHANUMERIC_FORMAT.match(transaction_id):
        score += TXN_SCORE_ALPHANUMERIC_FORMAT

    escaped_id = re.escape(transaction_id.lower())
    text_lower = text.lower()
    for labels, bonus in CONTEXT_LABELS:
        label_group = "|".join(re.escape(label) for label in labels)
        if re.search(rf"(?:{label_group})\s*{escaped_id}", text_lower):
            score += bonus

    return score


def matches_transaction_hint(text: str, transaction_hint: Optional[str]) -> bool:
    """
    Whether the customer's reference appears in the text, ignoring case
    and punctuation. An empty hint always matches; a hint with no letters
    or digits never does.
    """
    if not transaction_hint:
        return True
    clean_hint = re.sub(r"[^A-Z0-9]", "", transaction_hint.upper())
    if not clean_hint:
        return False
    clean_text = re.sub(r"[^A-Z0-9]", "", text.upper())
    return clean_hint in clean_text


class MetadataExtractor:
    """
    Detects bank, total, date/time and receipt type signals, and picks the
    most likely transaction reference.
    """

    def extract_metadata(
        self, cleaned_text: str, detect_transaction_id: bool = True
    ) -> ReceiptMetadata:
        """
        Extract receipt metadata.

        Args:
            cleaned_text: Normalized receipt text
            detect_transaction_id: Whether to look for a transaction reference

        Returns:
            ReceiptMetadata
        """
        text_upper = cleaned_text.upper()
        metadata = ReceiptMetadata()

        for bank in BANK_INDICATORS:
            if bank in text_upper:
                metadata.has_bank_info = True
                metadata.bank_detected = bank
                break

        metadata.has_total_indicator = any(
            indicator in text_upper for indicator in TOTAL_INDICATORS
        )

        if detect_transaction_id:
            metadata.has_transaction_id = (
                self.extract_transaction_id(cleaned_text) is not None
            )

        metadata.has_date = bool(DATE_PATTERN.search(cleaned_text))
        metadata.has_time = bool(TIME_PATTERN.search(cleaned_text))

        for receipt_type, keywords in RECEIPT_TYPE_KEYWORDS:
            if any(keyword in text_upper for keyword in keywords):
                metadata.receipt_type = receipt_type
                break

        logger.debug("Receipt metadata extracted", extra=metadata.model_dump(mode="json"))
        return metadata

    def transaction_id_candidates(self, cleaned_text: str) -> List[TransactionIdCandidate]:
        """
        All distinct references of acceptable length, in pattern order.
        """
        candidates: List[TransactionIdCandidate] = []
        seen = set()
        for index, pattern in enumerate(TRANSACTION_ID_PATTERNS):
            for match in pattern.findall(cleaned_text):
                clean_id = match.strip()
                if not (
                    TRANSACTION_ID_MIN_LENGTH <= len(clean_id) <= TRANSACTION_ID_MAX_LENGTH
                ):
                    continue
                if clean_id in seen:
                    continue
                seen.add(clean_id)
                candidates.append(
                    TransactionIdCandidate(
                        text=clean_id,
                        score=score_transaction_id(clean_id, cleaned_text),
                        pattern_index=index,
                    )
                )
        return candidates

    def extract_transaction_id(self, cleaned_text: str) -> Optional[str]:
        """
        Pick the highest scoring reference; ties go to the earlier pattern.

        Args:
            cleaned_text: Normalized receipt text

        Returns:
            Best reference or None
        """
        candidates = self.transaction_id_candidates(cleaned_text)
        if not candidates:
            logger.debug("No transaction ID candidates found")
            return None

        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
        best = ranked[0]
        logger.debug(
            "Transaction ID extraction completed",
            extra={
                "total_ids_found": len(candidates),
                "scored_ids": [(c.text, c.score) for c in ranked],
                "best_id": best.text,
            },
        )
        return best.text

    score_transaction_id = staticmethod(score_transaction_id)
    matches_transaction_hint = staticmethod(matches_transaction_hint)
