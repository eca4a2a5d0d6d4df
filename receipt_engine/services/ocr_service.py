"""
OCR service for extracting raw receipt text through the OCR.space API.

The table-optimised engine is tried first; any failure falls back once to
the other engine. Retrying the whole validation is left to the caller.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from receipt_engine.constants import (
    DEFAULT_OCR_API_URL,
    DEFAULT_OCR_TIMEOUT_SECONDS,
    FALLBACK_OCR_ENGINE,
    OCR_USER_AGENT,
    PRIMARY_OCR_ENGINE,
)
from receipt_engine.logging_config import get_logger
from receipt_engine.models.ocr import OCRSpaceResponse
from receipt_engine.models.receipt import OCRExtraction
from receipt_engine.services.file_checker import (
    MIME_TO_FILETYPE,
    detect_mime_type,
    is_temporary_path,
)


logger = get_logger(__name__)


class OCRError(Exception):
    """Base exception for OCR-related errors."""

    error_kind = "ocr_error"


class ProviderTransportError(OCRError):
    """Network failure, timeout or non-200 response from the provider."""

    error_kind = "provider_transport_error"


class ProviderProcessingError(OCRError):
    """The provider accepted the request but reported a processing error."""

    error_kind = "provider_processing_error"


class MalformedProviderResponse(OCRError):
    """Response body is not JSON or lacks the expected fields."""

    error_kind = "malformed_provider_response"


class OCRService:
    """
    Submits receipt files to the OCR provider and returns the recognised text.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_OCR_API_URL,
        language: str = "eng",
        timeout: float = DEFAULT_OCR_TIMEOUT_SECONDS,
        primary_engine: int = PRIMARY_OCR_ENGINE,
        fallback_engine: int = FALLBACK_OCR_ENGINE,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize OCR service.

        Args:
            api_key: OCR provider API key
            api_url: Parse endpoint URL
            language: Recognition language code
            timeout: Timeout in seconds for each provider call
            primary_engine: Engine tried first (2 handles tables best)
            fallback_engine: Engine tried once when the primary fails
            client: Optional preconfigured httpx client (used by tests)
        """
        self.api_key = api_key
        self.api_url = api_url
        self.language = language
        self.timeout = timeout
        self.primary_engine = primary_engine
        self.fallback_engine = fallback_engine
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=timeout, headers={"User-Agent": OCR_USER_AGENT}
        )

        logger.info(
            f"OCR Service initialized with engines {primary_engine}->{fallback_engine}, "
            f"timeout={timeout}s"
        )

    def close(self):
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def build_form_fields(
        self, engine: int, file_type: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Build the multipart form fields for one provider request.

        Args:
            engine: OCR engine selector
            file_type: Explicit file type hint (jpg, png, pdf, ...)

        Returns:
            Form fields, without the file part
        """
        fields = {
            "apikey": self.api_key,
            "language": self.language,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "isTable": "true",
            "OCREngine": str(engine),
            "scale": "true",
            "isCreateSearchablePdf": "false",
        }
        if file_type:
            fields["filetype"] = file_type
        return fields

    def infer_file_type(self, file_path: Path) -> Optional[str]:
        """
        File type hint for temporary or extension-less uploads, which the
        provider cannot classify from the file name.
        """
        if not (is_temporary_path(file_path) or not file_path.suffix):
            return None
        mime_type = detect_mime_type(file_path)
        file_type = MIME_TO_FILETYPE.get(mime_type or "")
        if file_type:
            logger.debug(
                f"Detected file type for temporary file: {file_type}",
                extra={"mime_type": mime_type},
            )
        return file_type

    def extract_text(
        self, file_path: Union[str, Path], file_type_hint: Optional[str] = None
    ) -> OCRExtraction:
        """
        Extract text from a receipt, falling back to the second engine once.

        Args:
            file_path: Path to the receipt image or PDF
            file_type_hint: Explicit file type (jpg, png, pdf, ...); inferred
                when omitted

        Returns:
            OCRExtraction with ``success`` False and the last failure message
            if both engines fail
        """
        path = Path(file_path)
        file_type = file_type_hint or self.infer_file_type(path)

        last_error: Optional[OCRError] = None
        for engine in (self.primary_engine, self.fallback_engine):
            try:
                text = self._request_engine(path, engine, file_type)
            except OCRError as e:
                last_error = e
                logger.warning(
                    f"⚠ OCR engine {engine} failed: {e}",
                    extra={"engine": engine, "error_type": type(e).__name__},
                )
                continue

            logger.info(
                f"✓ OCR engine {engine} successful ({len(text)} chars)",
                extra={"engine": engine},
            )
            return OCRExtraction(success=True, text=text, engine_used=engine)

        logger.error(f"✗ Both OCR engines failed. Last error: {last_error}")
        return OCRExtraction(
            success=False,
            message=str(last_error) if last_error else "OCR extraction failed",
            error_kind=last_error.error_kind if last_error else OCRError.error_kind,
        )

    def _request_engine(
        self, file_path: Path, engine: int, file_type: Optional[str]
    ) -> str:
        """
        Run one provider request.

        Raises:
            ProviderTransportError: On network errors, timeouts or non-200
            MalformedProviderResponse: On invalid JSON or missing fields
            ProviderProcessingError: When the provider reports an error
        """
        fields = self.build_form_fields(engine, file_type)
        started = time.monotonic()

        try:
            with file_path.open("rb") as fh:
                response = self.client.post(
                    self.api_url,
                    data=fields,
                    files={"file": (file_path.name, fh)},
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            raise ProviderTransportError(
                f"API request timed out after {self.timeout} seconds: {e}"
            )
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"API request failed: {e}")
        except OSError as e:
            raise ProviderTransportError(f"File upload preparation failed: {e}")

        logger.debug(
            "OCR response received",
            extra={
                "engine": engine,
                "http_code": response.status_code,
                "response_length": len(response.content),
                "elapsed_ms": int((time.monotonic() - started) * 1000),
            },
        )

        if response.status_code != 200:
            raise ProviderTransportError(f"HTTP error: {response.status_code}")

        parsed = self.parse_response(response.text)
        if parsed.is_errored_on_processing:
            raise ProviderProcessingError(
                f"OCR processing error: {parsed.combined_error()}"
            )

        if parsed.parsed_results is None:
            raise MalformedProviderResponse(
                "Invalid API response structure: ParsedResults missing"
            )

        if not parsed.parsed_results:
            logger.warning(f"OCR engine {engine} returned no parsed results")

        return parsed.combined_text()

    @staticmethod
    def parse_response(body: str) -> OCRSpaceResponse:
        """
        Decode and type the provider response body.

        Raises:
            MalformedProviderResponse: If the body is not a JSON object of
                the expected shape
        """
        try:
            payload: Any = json.loads(body)
        except ValueError as e:
            raise MalformedProviderResponse(f"Invalid JSON response: {e}")

        if not isinstance(payload, dict) or not payload:
            raise MalformedProviderResponse("Invalid JSON response: expected an object")

        try:
            return OCRSpaceResponse.model_validate(payload)
        except ValidationError as e:
            raise MalformedProviderResponse(f"Unexpected response schema: {e}")
