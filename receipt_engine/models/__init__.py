"""Models module for the receipt validation engine."""

from receipt_engine.models.receipt import (
    ApprovalDecision,
    Decision,
    FileAdmissibilityReport,
    FileErrorKind,
    OCRExtraction,
    ReceiptMetadata,
    ReceiptType,
    ReceiptValidationRequest,
    TransactionIdCandidate,
    ValidationResult,
    ValidationStatus,
)
from receipt_engine.models.ocr import OCRSpaceResponse, ParsedResult


__all__ = [
    "ApprovalDecision",
    "Decision",
    "FileAdmissibilityReport",
    "FileErrorKind",
    "OCRExtraction",
    "ReceiptMetadata",
    "ReceiptType",
    "ReceiptValidationRequest",
    "TransactionIdCandidate",
    "ValidationResult",
    "ValidationStatus",
    "OCRSpaceResponse",
    "ParsedResult",
]
