"""Services module for the receipt validation engine."""

from receipt_engine.services.file_checker import (
    FileAdmissibilityChecker,
    FileAdmissibilityError,
)
from receipt_engine.services.ocr_service import (
    OCRService,
    OCRError,
    ProviderTransportError,
    ProviderProcessingError,
    MalformedProviderResponse,
)
from receipt_engine.services.text_normalizer import CorrectionTable, TextNormalizer
from receipt_engine.services.amount_extractor import AmountExtractor
from receipt_engine.services.metadata_extractor import MetadataExtractor
from receipt_engine.services.receipt_validator import (
    AutoApprovalPolicy,
    ReceiptValidator,
    should_auto_approve,
)
from receipt_engine.services.validation_engine import ReceiptValidationEngine


__all__ = [
    "FileAdmissibilityChecker",
    "FileAdmissibilityError",
    "OCRService",
    "OCRError",
    "ProviderTransportError",
    "ProviderProcessingError",
    "MalformedProviderResponse",
    "CorrectionTable",
    "TextNormalizer",
    "AmountExtractor",
    "MetadataExtractor",
    "AutoApprovalPolicy",
    "ReceiptValidator",
    "should_auto_approve",
    "ReceiptValidationEngine",
]
