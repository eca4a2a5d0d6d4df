"""
File admissibility checks for uploaded payment receipts.

A receipt must be an existing, readable, non-empty image or PDF under the
size limit. Its MIME type is determined by sniffing the leading bytes and by
asking Pillow to parse the image header, falling back to the declared
extension. Temporary uploads carry no reliable extension, so for them the
leading bytes must match the signature of the detected type instead.
"""

import mimetypes
import tempfile
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from receipt_engine.constants import MAX_FILE_SIZE_BYTES, SIGNATURE_READ_BYTES
from receipt_engine.logging_config import get_logger
from receipt_engine.models.receipt import FileAdmissibilityReport, FileErrorKind


logger = get_logger(__name__)


PDF_MIME_TYPE = "application/pdf"

ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    PDF_MIME_TYPE,
)

ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "webp", "pdf")

EXTENSION_MIME_TYPES: Dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "pdf": PDF_MIME_TYPE,
}

# Value for the provider's ``filetype`` parameter
MIME_TO_FILETYPE: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/webp": "webp",
    PDF_MIME_TYPE: "pdf",
}

FILE_SIGNATURES: Dict[str, Tuple[bytes, ...]] = {
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/jpg": (b"\xff\xd8\xff",),
    "image/png": (b"\x89PNG\r\n\x1a\n",),
    "image/gif": (b"GIF87a", b"GIF89a"),
    "image/bmp": (b"BM",),
    "image/webp": (b"RIFF",),
    PDF_MIME_TYPE: (b"%PDF",),
}


class FileAdmissibilityError(Exception):
    """Raised by a failed admissibility check; carries the failure kind."""

    def __init__(self, kind: FileErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


def sniff_mime_type(header: bytes) -> Optional[str]:
    """
    Guess a MIME type from the leading bytes of a file.

    More lenient than the signature check: a PDF preceded by a byte-order
    mark or whitespace is still recognised as a PDF here.
    """
    if header.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if header.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if header.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(header) >= 12 and header.startswith(b"RIFF") and header[8:12] == b"WEBP":
        return "image/webp"
    if header.startswith(b"BM") and len(header) >= 14:
        return "image/bmp"

    stripped = header.lstrip()
    if stripped.startswith(b"\xef\xbb\xbf"):
        stripped = stripped[3:].lstrip()
    if stripped.startswith(b"%PDF"):
        return PDF_MIME_TYPE
    return None


def image_header_mime_type(file_path: Path) -> Optional[str]:
    """
    Ask Pillow for the image format. Only the header is parsed.
    """
    try:
        with Image.open(file_path) as image:
            return Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None


def extension_mime_type(extension: str) -> Optional[str]:
    if not extension:
        return None
    if extension in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(f"file.{extension}")
    return guessed


def is_temporary_path(file_path: Union[str, Path]) -> bool:
    """Uploads still sitting in the system temp directory."""
    path_str = str(file_path)
    return path_str.startswith("/tmp/") or path_str.startswith(tempfile.gettempdir())


def verify_file_signature(header: bytes, mime_type: str) -> bool:
    """
    Check the leading bytes against the known signatures for ``mime_type``.

    MIME types without a signature definition pass.
    """
    signatures = FILE_SIGNATURES.get(mime_type)
    if signatures is None:
        logger.debug(f"No signature definition for MIME type: {mime_type}")
        return True
    return header.startswith(signatures)


def detect_mime_type(file_path: Union[str, Path]) -> Optional[str]:
    """
    Best-effort MIME type of a file, using the same detection steps as the checker.
    """
    path = Path(file_path)
    try:
        with path.open("rb") as fh:
            header = fh.read(SIGNATURE_READ_BYTES)
    except OSError:
        return None
    return (
        sniff_mime_type(header)
        or image_header_mime_type(path)
        or extension_mime_type(path.suffix.lower().lstrip("."))
    )


class FileAdmissibilityChecker:
    """
    Validates that an uploaded receipt is a real, readable, size-bounded
    image or PDF. Never moves, modifies or deletes the file.
    """

    def __init__(
        self,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        pdf_support: bool = True,
    ):
        """
        Initialize the checker.

        Args:
            max_file_size_bytes: Largest accepted file size
            pdf_support: Whether PDF receipts are admissible
        """
        self.max_file_size_bytes = max_file_size_bytes
        self.pdf_support = pdf_support

    @property
    def allowed_mime_types(self) -> Tuple[str, ...]:
        if self.pdf_support:
            return ALLOWED_MIME_TYPES
        return tuple(m for m in ALLOWED_MIME_TYPES if m != PDF_MIME_TYPE)

    @property
    def allowed_extensions(self) -> Tuple[str, ...]:
        if self.pdf_support:
            return ALLOWED_EXTENSIONS
        return tuple(e for e in ALLOWED_EXTENSIONS if e != "pdf")

    def check(
        self,
        file_path: Union[str, Path],
        is_temporary_upload: Optional[bool] = None,
    ) -> FileAdmissibilityReport:
        """
        Check whether a file may be sent to OCR.

        Args:
            file_path: Path to the uploaded file
            is_temporary_upload: Force (or rule out) the temporary-upload
                path; detected from the location when None

        Returns:
            FileAdmissibilityReport; ``valid`` is False with ``error_kind``
            set when any check fails
        """
        path = Path(file_path)
        report = FileAdmissibilityReport(
            declared_extension=path.suffix.lower().lstrip("."),
            is_temporary_upload=(
                is_temporary_path(path)
                if is_temporary_upload is None
                else is_temporary_upload
            ),
        )

        try:
            self._run_checks(path, report)
        except FileAdmissibilityError as e:
            report.valid = False
            report.error_kind = e.kind
            report.error = e.message
            logger.warning(
                f"File validation failed: {e.message}",
                extra={"error_kind": e.kind.value, "file_path": str(path)},
            )
            return report

        report.valid = True
        logger.info(
            f"File validation successful: {report.primary_mime_type}, "
            f"{report.size_bytes} bytes"
        )
        return report

    def _run_checks(self, path: Path, report: FileAdmissibilityReport) -> None:
        report.file_exists = path.is_file()
        if not report.file_exists:
            raise FileAdmissibilityError(
                FileErrorKind.FILE_NOT_FOUND, f"File does not exist at path: {path}"
            )

        try:
            with path.open("rb") as fh:
                header = fh.read(SIGNATURE_READ_BYTES)
            report.size_bytes = path.stat().st_size
        except OSError as e:
            raise FileAdmissibilityError(
                FileErrorKind.FILE_UNREADABLE, f"File is not readable: {e}"
            )
        report.is_readable = True

        if report.size_bytes == 0:
            raise FileAdmissibilityError(
                FileErrorKind.FILE_EMPTY, "File is empty (0 bytes)"
            )

        if report.size_bytes > self.max_file_size_bytes:
            raise FileAdmissibilityError(
                FileErrorKind.FILE_TOO_LARGE,
                f"File too large: {report.size_bytes:,} bytes "
                f"(max {self.max_file_size_bytes // (1024 * 1024)}MB)",
            )

        report.mime_type_sniffed = sniff_mime_type(header)
        report.mime_type_image_header = image_header_mime_type(path)
        primary_mime = (
            report.mime_type_sniffed
            or report.mime_type_image_header
            or extension_mime_type(report.declared_extension)
        )
        report.primary_mime_type = primary_mime
        report.is_pdf = (
            primary_mime == PDF_MIME_TYPE or report.declared_extension == "pdf"
        )

        logger.debug(
            "MIME type detection",
            extra={
                "sniffed": report.mime_type_sniffed,
                "image_header": report.mime_type_image_header,
                "primary": primary_mime,
                "is_pdf": report.is_pdf,
            },
        )

        if primary_mime not in self.allowed_mime_types:
            raise FileAdmissibilityError(
                FileErrorKind.INVALID_MIME_TYPE,
                f"Invalid file type. MIME: {primary_mime or 'unknown'}. "
                f"Allowed: {', '.join(self.allowed_mime_types)}",
            )

        # Type taken from the extension alone must be confirmed by the content
        content_detected = bool(report.mime_type_sniffed or report.mime_type_image_header)
        if not content_detected:
            report.signature_verified = verify_file_signature(header, primary_mime)
            if not report.signature_verified:
                raise FileAdmissibilityError(
                    FileErrorKind.SIGNATURE_MISMATCH,
                    f"File content is not a {primary_mime} file "
                    f"(header: {header[:8].hex()})",
                )

        if report.is_temporary_upload:
            logger.debug("Temporary file detected, skipping extension validation")
            report.signature_verified = verify_file_signature(header, primary_mime)
            if not report.signature_verified:
                raise FileAdmissibilityError(
                    FileErrorKind.SIGNATURE_MISMATCH,
                    f"File signature does not match MIME type {primary_mime} "
                    f"(header: {header[:8].hex()})",
                )
            return

        if not report.declared_extension:
            raise FileAdmissibilityError(
                FileErrorKind.MISSING_EXTENSION, "File has no extension"
            )

        if report.declared_extension not in self.allowed_extensions:
            raise FileAdmissibilityError(
                FileErrorKind.INVALID_EXTENSION,
                f"Invalid extension: {report.declared_extension}. "
                f"Allowed: {', '.join(self.allowed_extensions)}",
            )

    @staticmethod
    def provider_file_type(report: FileAdmissibilityReport) -> Optional[str]:
        """
        File-type hint for the OCR provider, only needed when the path has
        no usable extension.
        """
        if not (report.is_temporary_upload or not report.declared_extension):
            return None
        return MIME_TO_FILETYPE.get(report.primary_mime_type or "")
