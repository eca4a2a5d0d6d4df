"""
Receipt validation service for deciding whether extracted amounts prove
payment of the expected amount, and how confident that decision is.
"""

from decimal import Decimal
from typing import Optional, Sequence

from receipt_engine.constants import (
    AMOUNT_FOUND_BONUS,
    BANK_INFO_BONUS,
    BASE_CONFIDENCE,
    CLOSE_MATCH_PERCENT,
    DATE_BONUS,
    DIGIT_DROP_FACTOR,
    DIGIT_DROP_MIN_EXPECTED,
    EXACT_MATCH_MIN_TOLERANCE,
    EXACT_MATCH_RELATIVE_TOLERANCE,
    MAX_AMOUNTS_IN_MESSAGE,
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    TOTAL_INDICATOR_BONUS,
    TRANSACTION_ID_BONUS,
    TRANSACTION_MATCH_BONUS,
)
from receipt_engine.logging_config import get_logger
from receipt_engine.models.receipt import (
    ApprovalDecision,
    Decision,
    ReceiptMetadata,
    ValidationResult,
    ValidationStatus,
)


logger = get_logger(__name__)


def format_amount(amount: Decimal) -> str:
    return f"RM{amount:.2f}"


def exact_match_tolerance(expected_amount: Decimal) -> Decimal:
    """Absolute tolerance for an exact match: max(0.01, 0.1% of expected)."""
    return max(EXACT_MATCH_MIN_TOLERANCE, expected_amount * EXACT_MATCH_RELATIVE_TOLERANCE)


class ReceiptValidator:
    """
    Compares extracted amounts with the expected amount and scores the result.
    """

    def decide(
        self,
        amounts_found: Sequence[Decimal],
        expected_amount: Decimal,
        metadata: Optional[ReceiptMetadata] = None,
    ) -> Decision:
        """
        Decide the validation status. The first applicable rule wins:
        no amounts, exact match, close match, dropped leading digit, no match.

        Args:
            amounts_found: Candidate amounts, largest first
            expected_amount: Amount the customer should have paid
            metadata: Receipt metadata (logged for triage)

        Returns:
            Decision with status, message and the matched amount if any
        """
        if not amounts_found:
            return Decision(
                status=ValidationStatus.NO_AMOUNTS_FOUND,
                message="No monetary amounts detected",
            )

        expected = Decimal(expected_amount)
        tolerance = exact_match_tolerance(expected)

        logger.debug(
            "Amount validation",
            extra={
                "expected": str(expected),
                "found_amounts": [str(a) for a in amounts_found],
                "tolerance": str(tolerance),
                "receipt_type": metadata.receipt_type.value if metadata else None,
            },
        )

        for amount in amounts_found:
            if abs(amount - expected) <= tolerance:
                return Decision(
                    status=ValidationStatus.MATCH,
                    message=f"Amount validated: {format_amount(amount)}",
                    matched_amount=amount,
                )

        if expected > 0:
            for amount in amounts_found:
                difference_percent = abs((amount - expected) / expected) * 100
                if difference_percent <= CLOSE_MATCH_PERCENT:
                    return Decision(
                        status=ValidationStatus.CLOSE_MATCH,
                        message=(
                            f"Close match: {format_amount(amount)} vs "
                            f"{format_amount(expected)}"
                        ),
                        matched_amount=amount,
                    )

            if expected >= DIGIT_DROP_MIN_EXPECTED:
                for amount in amounts_found:
                    if amount == expected / DIGIT_DROP_FACTOR:
                        logger.info(
                            "Potential OCR digit error detected",
                            extra={"found": str(amount), "expected": str(expected)},
                        )
                        return Decision(
                            status=ValidationStatus.NO_MATCH,
                            message=(
                                f"OCR reading error detected: Found {format_amount(amount)}, "
                                f"expected {format_amount(expected)}. A leading digit of "
                                f"{format_amount(expected)} may have been dropped by OCR."
                            ),
                            suggested_amount=expected,
                        )

        detected = ", ".join(
            format_amount(a) for a in list(amounts_found)[:MAX_AMOUNTS_IN_MESSAGE]
        )
        return Decision(
            status=ValidationStatus.NO_MATCH,
            message=f"Expected {format_amount(expected)} not found. Detected: {detected}",
        )

    def score(
        self,
        status: ValidationStatus,
        metadata: ReceiptMetadata,
        transaction_matched: bool,
        amount_count: int,
        has_transaction_id: bool,
    ) -> int:
        """
        Combine the decision with receipt signals into a 0-100 confidence.

        Args:
            status: Decision status
            metadata: Receipt metadata
            transaction_matched: Customer's reference was found on the receipt
            amount_count: Number of amounts extracted
            has_transaction_id: A reference was extracted from the receipt

        Returns:
            Confidence clamped to [0, 100]
        """
        status_value = status.value if isinstance(status, ValidationStatus) else str(status)
        score = BASE_CONFIDENCE.get(status_value, 0)

        if metadata.has_bank_info:
            score += BANK_INFO_BONUS
        if metadata.has_total_indicator:
            score += TOTAL_INDICATOR_BONUS
        if metadata.has_date:
            score += DATE_BONUS
        if metadata.has_transaction_id or has_transaction_id:
            score += TRANSACTION_ID_BONUS
        if transaction_matched:
            score += TRANSACTION_MATCH_BONUS
        if amount_count > 0:
            score += AMOUNT_FOUND_BONUS

        return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, score))


def should_auto_approve(confidence: int, threshold: int) -> bool:
    """True iff auto-approval is enabled (threshold > 0) and met."""
    return threshold > 0 and confidence >= threshold


class AutoApprovalPolicy:
    """
    Recommends auto-approval or manual review for a validation result.
    The threshold is caller configuration, not engine state.
    """

    def __init__(self, threshold: int, require_transaction_id: bool = False):
        """
        Initialize the policy.

        Args:
            threshold: Minimum confidence (0-100); 0 disables auto-approval
            require_transaction_id: Require a reference before approving
        """
        self.threshold = threshold
        self.require_transaction_id = require_transaction_id

    def evaluate(
        self, result: ValidationResult, transaction_id: Optional[str] = None
    ) -> ApprovalDecision:
        """
        Args:
            result: Engine output
            transaction_id: Reference supplied by the customer, if any

        Returns:
            ApprovalDecision naming the first gate that failed
        """
        reference = transaction_id or result.extracted_transaction_id

        def decision(auto_approve: bool, reason: str) -> ApprovalDecision:
            return ApprovalDecision(
                auto_approve=auto_approve,
                reason=reason,
                confidence=result.confidence,
                threshold=self.threshold,
                transaction_id=reference,
            )

        if not result.success:
            return decision(False, f"Validation did not complete: {result.message}")

        if not result.is_amount_valid:
            return decision(False, f"Payment amount validation failed: {result.message}")

        if self.threshold <= 0:
            return decision(False, "Auto-approval is disabled")

        if not should_auto_approve(result.confidence, self.threshold):
            return decision(
                False,
                f"Confidence too low ({result.confidence}% < {self.threshold}%)",
            )

        if self.require_transaction_id and not reference:
            return decision(
                False, "Transaction ID is required but could not be extracted from receipt"
            )

        logger.info(
            f"Receipt auto-approved with {result.confidence}% confidence",
            extra={"threshold": self.threshold, "transaction_id": reference},
        )
        return decision(True, f"Auto-approved with {result.confidence}% confidence")
