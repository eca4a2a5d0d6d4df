"""
Receipt data models for admissibility checks, extraction and validation.
"""

from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class FileErrorKind(str, Enum):
    """Reasons an uploaded receipt file is not admissible."""

    FILE_NOT_FOUND = "file_not_found"
    FILE_UNREADABLE = "file_unreadable"
    FILE_EMPTY = "file_empty"
    FILE_TOO_LARGE = "file_too_large"
    INVALID_MIME_TYPE = "invalid_mime_type"
    MISSING_EXTENSION = "missing_extension"
    INVALID_EXTENSION = "invalid_extension"
    SIGNATURE_MISMATCH = "signature_mismatch"


class ReceiptType(str, Enum):
    ONLINE_BANKING = "online_banking"
    ATM = "atm"
    CARD_PAYMENT = "card_payment"
    QR_PAYMENT = "qr_payment"
    UNKNOWN = "unknown"


class ValidationStatus(str, Enum):
    """
    Outcome of a validation call.

    ``match``, ``close_match``, ``no_match`` and ``no_amounts_found`` are
    business outcomes; ``failed`` and ``skipped`` mean the receipt could not
    be evaluated. ``preview`` marks an extraction-only run with no amount
    decision.
    """

    MATCH = "match"
    CLOSE_MATCH = "close_match"
    NO_MATCH = "no_match"
    NO_AMOUNTS_FOUND = "no_amounts_found"
    FAILED = "failed"
    SKIPPED = "skipped"
    PREVIEW = "preview"


class ReceiptValidationRequest(BaseModel):
    """
    One receipt to validate. The file is owned by the caller.
    """

    model_config = ConfigDict(frozen=True)

    file_path: Path = Field(..., description="Path to the uploaded receipt")
    expected_amount: Decimal = Field(
        ..., gt=0, description="Amount the receipt must prove was paid"
    )
    transaction_hint: Optional[str] = Field(
        None, description="Reference supplied by the customer, if any"
    )
    is_temporary_upload: Optional[bool] = Field(
        None,
        description="Force the temporary-upload path; detected from the path when unset",
    )


class FileAdmissibilityReport(BaseModel):
    """
    Result of checking an uploaded file before it is sent to OCR.
    """

    valid: bool = Field(default=False, description="Whether the file is admissible")
    error_kind: Optional[FileErrorKind] = Field(None, description="Failure reason")
    error: str = Field(default="", description="Operator-readable failure message")
    file_exists: bool = False
    is_readable: bool = False
    size_bytes: int = 0
    declared_extension: str = ""
    mime_type_sniffed: Optional[str] = Field(
        None, description="MIME type from leading-byte sniffing"
    )
    mime_type_image_header: Optional[str] = Field(
        None, description="MIME type reported by the image header parser"
    )
    primary_mime_type: Optional[str] = None
    is_pdf: bool = False
    is_temporary_upload: bool = False
    signature_verified: bool = False


class OCRExtraction(BaseModel):
    """Text returned by the OCR orchestrator."""

    success: bool
    text: str = ""
    engine_used: Optional[int] = None
    message: str = ""
    error_kind: Optional[str] = Field(
        None, description="Kind of the last provider failure when success is False"
    )


class TransactionIdCandidate(BaseModel):
    text: str = Field(..., min_length=6, max_length=20)
    score: int = 0
    pattern_index: int = Field(
        0, description="Index of the reference pattern that produced this candidate"
    )


class ReceiptMetadata(BaseModel):
    """
    Signals detected in the receipt text besides the amounts.
    """

    has_bank_info: bool = False
    bank_detected: Optional[str] = None
    has_total_indicator: bool = False
    has_date: bool = False
    has_time: bool = False
    has_transaction_id: bool = False
    receipt_type: ReceiptType = ReceiptType.UNKNOWN


class Decision(BaseModel):
    """Amount decision before confidence scoring."""

    status: ValidationStatus
    message: str
    matched_amount: Optional[Decimal] = None
    suggested_amount: Optional[Decimal] = None


class ValidationResult(BaseModel):
    """
    Result of validating one receipt against the expected amount.
    """

    success: bool = Field(..., description="Whether the receipt could be evaluated")
    status: ValidationStatus = Field(..., description="Validation outcome")
    confidence: int = Field(default=0, ge=0, le=100, description="Confidence 0-100")
    message: str = Field(default="", description="Operator-readable explanation")
    expected_amount: Decimal = Decimal("0")
    matched_amount: Optional[Decimal] = None
    suggested_amount: Optional[Decimal] = None
    amounts_found: List[Decimal] = Field(default_factory=list)
    extracted_transaction_id: Optional[str] = None
    transaction_match: Optional[bool] = Field(
        None, description="Whether the customer's reference was found; None if none given"
    )
    metadata: ReceiptMetadata = Field(default_factory=ReceiptMetadata)
    ocr_text: Optional[str] = None
    processed_text: Optional[str] = None
    engine_used: Optional[int] = None
    file_report: Optional[FileAdmissibilityReport] = None
    error_kind: Optional[str] = None

    @property
    def is_amount_valid(self) -> bool:
        return self.status in (ValidationStatus.MATCH, ValidationStatus.CLOSE_MATCH)


class ApprovalDecision(BaseModel):
    """Recommendation for whether a payment can skip manual review."""

    auto_approve: bool
    reason: str
    confidence: int = 0
    threshold: int = 0
    transaction_id: Optional[str] = None
