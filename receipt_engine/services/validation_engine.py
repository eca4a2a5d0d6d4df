"""
Receipt validation engine.

Wires admissibility checking, OCR, normalization, extraction, the amount
decision and confidence scoring into one synchronous call. Every failure is
returned as a ValidationResult; nothing propagates to the caller.
"""

from decimal import Decimal
from pathlib import Path
from typing import List, NamedTuple, Optional, Union

from receipt_engine.config import Settings
from receipt_engine.logging_config import LogContext, get_logger, log_with_context
from receipt_engine.models.receipt import (
    FileAdmissibilityReport,
    OCRExtraction,
    ReceiptMetadata,
    ReceiptValidationRequest,
    ValidationResult,
    ValidationStatus,
)
from receipt_engine.services.amount_extractor import AmountExtractor
from receipt_engine.services.file_checker import FileAdmissibilityChecker
from receipt_engine.services.metadata_extractor import (
    MetadataExtractor,
    matches_transaction_hint,
)
from receipt_engine.services.ocr_service import OCRService
from receipt_engine.services.receipt_validator import (
    AutoApprovalPolicy,
    ReceiptValidator,
)
from receipt_engine.services.text_normalizer import TextNormalizer


logger = get_logger(__name__)


UNCONFIGURED = "unconfigured"
UNEXPECTED_ERROR = "unexpected_error"


class ReceiptReading(NamedTuple):
    """Everything read from an admissible receipt before any decision."""

    report: FileAdmissibilityReport
    extraction: OCRExtraction
    processed_text: str
    amounts: List[Decimal]
    metadata: ReceiptMetadata
    transaction_id: Optional[str]


class ReceiptValidationEngine:
    """
    Validates uploaded payment receipts against an expected amount.
    """

    def __init__(
        self,
        settings: Settings,
        ocr_service: Optional[OCRService] = None,
        checker: Optional[FileAdmissibilityChecker] = None,
        normalizer: Optional[TextNormalizer] = None,
        amount_extractor: Optional[AmountExtractor] = None,
        metadata_extractor: Optional[MetadataExtractor] = None,
        validator: Optional[ReceiptValidator] = None,
    ):
        """
        Initialize the engine.

        Args:
            settings: Engine configuration
            ocr_service: OCR client; built from settings when omitted
            checker: File admissibility checker
            normalizer: OCR text normalizer
            amount_extractor: Amount extractor
            metadata_extractor: Metadata and reference extractor
            validator: Decision engine and confidence scorer
        """
        self.settings = settings
        self._owns_ocr_service = ocr_service is None and settings.ocr_configured
        self.ocr_service = ocr_service
        if self._owns_ocr_service:
            self.ocr_service = OCRService(
                api_key=settings.ocr_api_key,
                api_url=settings.ocr_api_url,
                language=settings.ocr_language,
                timeout=settings.ocr_timeout_seconds,
                primary_engine=settings.ocr_primary_engine,
                fallback_engine=settings.ocr_fallback_engine,
            )
        self.checker = checker or FileAdmissibilityChecker(
            max_file_size_bytes=settings.max_file_size_bytes,
            pdf_support=settings.pdf_support,
        )
        self.normalizer = normalizer or TextNormalizer()
        self.amount_extractor = amount_extractor or AmountExtractor()
        self.metadata_extractor = metadata_extractor or MetadataExtractor()
        self.validator = validator or ReceiptValidator()

    def close(self):
        if self._owns_ocr_service and self.ocr_service is not None:
            self.ocr_service.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def is_configured(self) -> bool:
        return self.ocr_service is not None and self.settings.ocr_configured

    def approval_policy(self) -> AutoApprovalPolicy:
        """Auto-approval policy built from the engine settings."""
        return AutoApprovalPolicy(
            threshold=self.settings.auto_approve_threshold,
            require_transaction_id=self.settings.require_transaction_id,
        )

    def validate(self, request: ReceiptValidationRequest) -> ValidationResult:
        """
        Validate one receipt.

        Args:
            request: File path, expected amount and optional reference hint

        Returns:
            ValidationResult; ``success`` is False for skipped or failed runs
        """
        with LogContext(
            logger,
            request_file=str(request.file_path),
            expected_amount=str(request.expected_amount),
        ):
            try:
                return self._validate(request)
            except Exception as e:
                logger.error(
                    f"Receipt validation failed unexpectedly: {e}",
                    extra={"error_type": type(e).__name__},
                    exc_info=True,
                )
                return ValidationResult(
                    success=False,
                    status=ValidationStatus.FAILED,
                    expected_amount=request.expected_amount,
                    message=f"Validation error: {e}",
                    error_kind=UNEXPECTED_ERROR,
                )

    def preview_transaction_id(
        self, file_path: Union[str, Path], is_temporary_upload: Optional[bool] = None
    ) -> ValidationResult:
        """
        Extract the transaction reference and amounts from a receipt before
        the customer submits. No amount decision or confidence is produced.

        Args:
            file_path: Path to the uploaded receipt
            is_temporary_upload: Force the temporary-upload checks

        Returns:
            ValidationResult with status ``preview`` carrying
            ``extracted_transaction_id`` and ``amounts_found``
        """
        path = Path(file_path)
        with LogContext(logger, request_file=str(path), preview=True):
            try:
                return self._preview(path, is_temporary_upload)
            except Exception as e:
                logger.error(
                    f"Receipt preview failed unexpectedly: {e}",
                    extra={"error_type": type(e).__name__},
                    exc_info=True,
                )
                return ValidationResult(
                    success=False,
                    status=ValidationStatus.FAILED,
                    message=f"Validation error: {e}",
                    error_kind=UNEXPECTED_ERROR,
                )

    def _validate(self, request: ReceiptValidationRequest) -> ValidationResult:
        expected = request.expected_amount

        reading = self._read_receipt(request.file_path, request.is_temporary_upload)
        if isinstance(reading, ValidationResult):
            reading.expected_amount = expected
            return reading

        transaction_match: Optional[bool] = None
        if request.transaction_hint:
            transaction_match = matches_transaction_hint(
                reading.processed_text, request.transaction_hint
            )

        decision = self.validator.decide(reading.amounts, expected, reading.metadata)
        confidence = self.validator.score(
            decision.status,
            reading.metadata,
            transaction_matched=bool(transaction_match),
            amount_count=len(reading.amounts),
            has_transaction_id=reading.transaction_id is not None,
        )

        result = self._result_from_reading(
            reading,
            status=decision.status,
            message=decision.message,
            confidence=confidence,
            expected_amount=expected,
            matched_amount=decision.matched_amount,
            suggested_amount=decision.suggested_amount,
            transaction_match=transaction_match,
        )

        logger.info(
            f"✓ Receipt validated: {result.status.value} ({result.confidence}%)",
            extra={
                "amounts_found": [str(a) for a in reading.amounts],
                "matched_amount": (
                    str(result.matched_amount) if result.matched_amount is not None else None
                ),
                "transaction_id": reading.transaction_id,
                "engine_used": reading.extraction.engine_used,
            },
        )
        return result

    def _preview(self, path: Path, is_temporary_upload: Optional[bool]) -> ValidationResult:
        reading = self._read_receipt(path, is_temporary_upload)
        if isinstance(reading, ValidationResult):
            return reading

        if reading.transaction_id:
            message = f"Transaction ID detected: {reading.transaction_id}"
        else:
            message = "No transaction ID detected"

        logger.info(
            f"✓ Receipt preview: {message}",
            extra={"amounts_found": [str(a) for a in reading.amounts]},
        )
        return self._result_from_reading(
            reading, status=ValidationStatus.PREVIEW, message=message
        )

    def _read_receipt(
        self, file_path: Path, is_temporary_upload: Optional[bool]
    ) -> Union[ReceiptReading, ValidationResult]:
        """
        Admissibility, OCR, normalization and extraction.

        Returns:
            ReceiptReading, or a skipped/failed ValidationResult
        """
        if not self.is_configured:
            logger.warning("OCR API key not configured, skipping validation")
            return ValidationResult(
                success=False,
                status=ValidationStatus.SKIPPED,
                message="OCR API key not configured",
                error_kind=UNCONFIGURED,
            )

        report = self.checker.check(file_path, is_temporary_upload=is_temporary_upload)
        if not report.valid:
            return self._failed(
                f"File validation failed: {report.error}",
                error_kind=report.error_kind.value if report.error_kind else None,
                report=report,
            )

        extraction = self.ocr_service.extract_text(
            file_path,
            file_type_hint=self.checker.provider_file_type(report),
        )
        if not extraction.success:
            return self._failed(
                f"OCR processing failed: {extraction.message}",
                error_kind=extraction.error_kind,
                report=report,
            )

        processed_text = self.normalizer.normalize(extraction.text)
        amounts = self.amount_extractor.extract_amounts(processed_text)

        detect_reference = self.settings.auto_extract_transaction_id
        metadata = self.metadata_extractor.extract_metadata(
            processed_text, detect_transaction_id=detect_reference
        )
        transaction_id = (
            self.metadata_extractor.extract_transaction_id(processed_text)
            if detect_reference
            else None
        )

        return ReceiptReading(
            report=report,
            extraction=extraction,
            processed_text=processed_text,
            amounts=amounts,
            metadata=metadata,
            transaction_id=transaction_id,
        )

    @staticmethod
    def _result_from_reading(
        reading: ReceiptReading, status: ValidationStatus, message: str, **fields
    ) -> ValidationResult:
        return ValidationResult(
            success=True,
            status=status,
            message=message,
            amounts_found=reading.amounts,
            extracted_transaction_id=reading.transaction_id,
            metadata=reading.metadata,
            ocr_text=reading.extraction.text,
            processed_text=reading.processed_text,
            engine_used=reading.extraction.engine_used,
            file_report=reading.report,
            **fields,
        )

    def _failed(
        self,
        message: str,
        error_kind: Optional[str] = None,
        report: Optional[FileAdmissibilityReport] = None,
    ) -> ValidationResult:
        log_with_context(logger, "warning", f"✗ {message}", error_kind=error_kind)
        return ValidationResult(
            success=False,
            status=ValidationStatus.FAILED,
            message=message,
            file_report=report,
            error_kind=error_kind,
        )
