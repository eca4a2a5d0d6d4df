"""Pytest configuration and fixtures."""

import json
import os
import sys
from pathlib import Path

import httpx
import pytest
from PIL import Image

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from receipt_engine.config import Settings  # noqa: E402
from receipt_engine.services.ocr_service import OCRService  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_env():
    """Set up test environment variables."""
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    os.environ.setdefault("ENVIRONMENT", "test")

    yield


@pytest.fixture
def settings():
    """Engine settings with a dummy OCR key."""
    return Settings(ocr_api_key="test_ocr_key", environment="test")


@pytest.fixture
def png_receipt(tmp_path):
    """A real (blank) PNG receipt image."""
    path = tmp_path / "receipt.png"
    Image.new("RGB", (64, 32), "white").save(path, format="PNG")
    return path


@pytest.fixture
def jpeg_receipt(tmp_path):
    """A real (blank) JPEG receipt image."""
    path = tmp_path / "receipt.jpg"
    Image.new("RGB", (64, 32), "white").save(path, format="JPEG")
    return path


def ocr_payload(*texts, errored=False, error_message=None):
    """Build an OCR.space style response body."""
    payload = {
        "OCRExitCode": 1 if not errored else 3,
        "IsErroredOnProcessing": errored,
        "ProcessingTimeInMilliseconds": "312",
    }
    if error_message is not None:
        payload["ErrorMessage"] = error_message
    if not errored:
        payload["ParsedResults"] = [
            {"ParsedText": text, "FileParseExitCode": 1} for text in texts
        ]
    return payload


class FakeProvider:
    """
    Records requests made to the OCR provider and replays queued responses.

    Each queued item is a dict (JSON body, HTTP 200), an httpx.Response,
    or an exception instance to raise.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, text=json.dumps(item))

    def engines(self):
        """OCREngine field sent with each recorded request."""
        return [
            int(request.content.split(b'name="OCREngine"\r\n\r\n')[1].split(b"\r\n")[0])
            for request in self.requests
        ]


@pytest.fixture
def make_ocr_service():
    """Factory for an OCRService backed by a FakeProvider."""
    services = []

    def factory(*responses):
        provider = FakeProvider(*responses)
        client = httpx.Client(transport=httpx.MockTransport(provider))
        service = OCRService(api_key="test_ocr_key", client=client)
        services.append(client)
        return service, provider

    yield factory

    for client in services:
        client.close()
