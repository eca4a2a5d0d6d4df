"""
Typed view of the OCR provider's JSON response (OCR.space schema).
"""

from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class ParsedResult(BaseModel):
    """One page or image worth of recognised text."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    parsed_text: Optional[str] = Field(None, alias="ParsedText")
    file_parse_exit_code: Optional[int] = Field(None, alias="FileParseExitCode")
    error_message: Optional[str] = Field(None, alias="ErrorMessage")
    error_details: Optional[str] = Field(None, alias="ErrorDetails")


class OCRSpaceResponse(BaseModel):
    """
    Response body of the parse endpoint.

    ``ParsedResults`` is optional here on purpose: a missing list is a
    malformed response and is reported separately from an empty one.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    parsed_results: Optional[List[ParsedResult]] = Field(None, alias="ParsedResults")
    ocr_exit_code: Optional[int] = Field(None, alias="OCRExitCode")
    is_errored_on_processing: bool = Field(False, alias="IsErroredOnProcessing")
    error_message: Union[List[str], str, None] = Field(None, alias="ErrorMessage")
    error_details: Optional[str] = Field(None, alias="ErrorDetails")
    processing_time_ms: Optional[str] = Field(
        None, alias="ProcessingTimeInMilliseconds"
    )

    def combined_error(self) -> str:
        if not self.error_message:
            return "Unknown OCR error"
        if isinstance(self.error_message, list):
            return " | ".join(str(m) for m in self.error_message)
        return str(self.error_message)

    def combined_text(self) -> str:
        """Each page's text followed by a newline, trimmed as a whole."""
        text = ""
        for parsed in self.parsed_results or []:
            text += (parsed.parsed_text or "") + "\n"
        return text.strip()
