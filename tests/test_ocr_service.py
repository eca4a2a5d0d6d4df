"""
Tests for the OCR provider client and engine fallback.
"""

import httpx
import pytest

from conftest import ocr_payload
from receipt_engine.services.ocr_service import (
    MalformedProviderResponse,
    OCRService,
)


class TestFormFields:
    def test_fields_match_provider_contract(self):
        service = OCRService(api_key="key123", client=httpx.Client())
        fields = service.build_form_fields(2)
        service.client.close()

        assert fields == {
            "apikey": "key123",
            "language": "eng",
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "isTable": "true",
            "OCREngine": "2",
            "scale": "true",
            "isCreateSearchablePdf": "false",
        }

    def test_file_type_hint_added(self):
        service = OCRService(api_key="key123", client=httpx.Client())
        fields = service.build_form_fields(1, file_type="png")
        service.client.close()

        assert fields["filetype"] == "png"
        assert fields["OCREngine"] == "1"


class TestExtractText:
    """OCRService.extract_text"""

    def test_primary_engine_success(self, make_ocr_service, png_receipt):
        service, provider = make_ocr_service(ocr_payload("TOTAL RM 10.00"))

        extraction = service.extract_text(png_receipt)

        assert extraction.success
        assert extraction.text == "TOTAL RM 10.00"
        assert extraction.engine_used == 2
        assert provider.engines() == [2]
        assert extraction.error_kind is None

    def test_fragments_are_concatenated(self, make_ocr_service, png_receipt):
        service, _ = make_ocr_service(ocr_payload("Page one", "Page two"))

        extraction = service.extract_text(png_receipt)

        assert extraction.text == "Page one\nPage two"

    def test_falls_back_on_processing_error(self, make_ocr_service, png_receipt):
        service, provider = make_ocr_service(
            ocr_payload(errored=True, error_message=["E500", "Engine busy"]),
            ocr_payload("RM 25.50"),
        )

        extraction = service.extract_text(png_receipt)

        assert extraction.success
        assert extraction.engine_used == 1
        assert provider.engines() == [2, 1]

    def test_falls_back_on_timeout(self, make_ocr_service, png_receipt):
        service, provider = make_ocr_service(
            httpx.ReadTimeout("timed out"),
            ocr_payload("RM 5.00"),
        )

        extraction = service.extract_text(png_receipt)

        assert extraction.success
        assert extraction.engine_used == 1
        assert len(provider.requests) == 2

    def test_both_engines_fail(self, make_ocr_service, png_receipt):
        service, provider = make_ocr_service(
            httpx.Response(500, text="oops"),
            httpx.Response(503, text="unavailable"),
        )

        extraction = service.extract_text(png_receipt)

        assert not extraction.success
        assert "HTTP error: 503" in extraction.message
        assert extraction.error_kind == "provider_transport_error"
        assert len(provider.requests) == 2

    def test_processing_error_message_is_joined(self, make_ocr_service, png_receipt):
        service, _ = make_ocr_service(
            ocr_payload(errored=True, error_message=["Bad image", "Unsupported"]),
            ocr_payload(errored=True, error_message="Still bad"),
        )

        extraction = service.extract_text(png_receipt)

        assert not extraction.success
        assert extraction.message == "OCR processing error: Still bad"
        assert extraction.error_kind == "provider_processing_error"

    def test_missing_parsed_results_is_malformed(self, make_ocr_service, png_receipt):
        service, _ = make_ocr_service({"OCRExitCode": 1}, {"OCRExitCode": 1})

        extraction = service.extract_text(png_receipt)

        assert not extraction.success
        assert "ParsedResults missing" in extraction.message
        assert extraction.error_kind == "malformed_provider_response"

    def test_empty_parsed_results_returns_empty_text(
        self, make_ocr_service, png_receipt
    ):
        service, _ = make_ocr_service({"ParsedResults": [], "OCRExitCode": 1})

        extraction = service.extract_text(png_receipt)

        assert extraction.success
        assert extraction.text == ""

    def test_file_type_sent_for_temporary_upload(self, make_ocr_service, tmp_path):
        path = tmp_path / "phpUPLOAD"
        path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32)
        service, provider = make_ocr_service(ocr_payload("RM 1.00"))

        service.extract_text(path)

        assert b'name="filetype"\r\n\r\npng' in provider.requests[0].content


class TestParseResponse:
    def test_invalid_json(self):
        with pytest.raises(MalformedProviderResponse):
            OCRService.parse_response("<html>")

    def test_non_object(self):
        with pytest.raises(MalformedProviderResponse):
            OCRService.parse_response("[1, 2]")

    def test_typed_fields(self):
        parsed = OCRService.parse_response(
            '{"ParsedResults": [{"ParsedText": "hi"}], "OCRExitCode": 1,'
            ' "IsErroredOnProcessing": false}'
        )
        assert parsed.ocr_exit_code == 1
        assert parsed.combined_text() == "hi"
