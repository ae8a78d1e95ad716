"""
Error types raised by the extraction pipeline.

Every error carries the HTTP-style status the API layer answers with:
- InputNotFoundError: 404, one or more referenced files are missing
- InvalidConfigurationError: 400, bad batch size, no files, unrecognized upload
- RasterizationError: 500, PDF rasterization failed or produced no pages
- MalformedResponseError: 500, the model output is not the requested JSON
- ExtractionProviderError: 500, transport or provider failure from the LLM API
"""

from typing import List, Optional


class ExtractionPipelineError(Exception):
    """Base class for every failure surfaced to the caller."""

    status_code: int = 500
    error: str = "Extraction failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"success": False, "error": self.error, "message": self.message}


class InputNotFoundError(ExtractionPipelineError):
    status_code = 404
    error = "File(s) not found"

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"File(s) not found: {', '.join(self.missing)}")


class InvalidConfigurationError(ExtractionPipelineError):
    status_code = 400
    error = "Invalid request"


class RasterizationError(ExtractionPipelineError):
    error = "PDF conversion failed"


class MalformedResponseError(ExtractionPipelineError):
    error = "Malformed model response"


class ExtractionProviderError(ExtractionPipelineError):
    error = "Extraction provider error"

    def __init__(self, message: str, error_type: str = "api_error", provider: Optional[str] = "anthropic"):
        super().__init__(message)
        self.error_type = error_type
        self.provider = provider
