import time
from functools import lru_cache
from typing import Any, Dict, List, Optional

import instructor
from anthropic import (
    Anthropic,
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    RateLimitError,
)
from instructor.exceptions import IncompleteOutputException, InstructorRetryException
from pydantic import BaseModel

from cargo_extractor.core.config import settings
from cargo_extractor.errors import ExtractionProviderError, MalformedResponseError
from cargo_extractor.logging_config import get_logger
from cargo_extractor.metrics import (
    extraction_batches_total,
    llm_errors_total,
    llm_extraction_duration_seconds,
)
from cargo_extractor.prompts import SYSTEM_PROMPT
from cargo_extractor.schemas import Batch
from cargo_extractor.services.document_types import PromptSpec
from cargo_extractor.utils.image_converter import encode_image_file

logger = get_logger(__name__)

PROVIDER = "anthropic"


@lru_cache(maxsize=1)
def get_instructor_client():
    """
    Builds the instructor-wrapped Anthropic client shared by all requests.

    SDK-level retries are disabled: a failed call fails the request.
    """
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY is not set.")
    return instructor.from_anthropic(
        Anthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            max_retries=0,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    )


def _classify_provider_error(e: APIError) -> str:
    if isinstance(e, RateLimitError):
        return "rate_limit"
    if isinstance(e, APITimeoutError):
        return "timeout"
    if isinstance(e, AuthenticationError):
        return "auth"
    if isinstance(e, APIConnectionError):
        return "connection"
    return "api_error"


def _find_provider_error(exc: BaseException) -> Optional[APIError]:
    # instructor may wrap the SDK error it hit while attempting the call
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, APIError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


class ExtractionClient:
    """
    Sends one batch of page images to Claude and returns the extracted JSON object.

    Each call is a single attempt: no retries, no caching. Failures are
    reported as ExtractionProviderError (transport / API) or
    MalformedResponseError (output not matching the requested schema).
    """

    def __init__(self, client=None, model: Optional[str] = None, max_tokens: Optional[int] = None):
        self._client = client
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    @property
    def client(self):
        if self._client is None:
            self._client = get_instructor_client()
        return self._client

    @staticmethod
    def build_content(batch: Batch, prompt_spec: PromptSpec) -> List[Dict[str, Any]]:
        """
        Prompt text first, then every page image of the batch in batch order.
        """
        content_blocks: List[Dict[str, Any]] = [{"type": "text", "text": prompt_spec.prompt}]
        for page in batch.pages:
            content_blocks.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": page.mime_type,
                    "data": encode_image_file(page.path),
                },
            })
        return content_blocks

    def extract_batch(self, batch: Batch, prompt_spec: PromptSpec) -> Dict[str, Any]:
        """
        Extracts one batch.

        Args:
            batch: The pages to send together.
            prompt_spec: Prompt and response schema for the document type.

        Returns:
            Dict[str, Any]: The extraction result as plain JSON data.
        """
        content_blocks = self.build_content(batch, prompt_spec)

        start_time = time.time()
        try:
            resp = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": content_blocks
                    }
                ],
                response_model=prompt_spec.response_model,
                # instructor counts attempts: 1 means the output is never re-asked
                max_retries=1,
            )
        except APIError as e:
            raise self._provider_failure(e, start_time, batch) from e
        except (InstructorRetryException, IncompleteOutputException, ValueError) as e:
            provider_error = _find_provider_error(e)
            if provider_error is not None:
                raise self._provider_failure(provider_error, start_time, batch) from e
            raise self._malformed(str(e), start_time, batch) from e

        if not isinstance(resp, BaseModel):
            raise self._malformed(f"expected a JSON object, got {type(resp).__name__}", start_time, batch)

        duration = time.time() - start_time
        llm_extraction_duration_seconds.observe(duration)
        extraction_batches_total.labels(status="success").inc()
        logger.info(
            "LLM batch extraction completed",
            extra={"extra_fields": {"batch_index": batch.batch_index, "pages": len(batch.pages), "duration_seconds": duration}},
        )
        return resp.model_dump(mode="json")

    def _provider_failure(self, e: APIError, start_time: float, batch: Batch) -> ExtractionProviderError:
        duration = time.time() - start_time
        error_type = _classify_provider_error(e)
        llm_extraction_duration_seconds.observe(duration)
        extraction_batches_total.labels(status="error").inc()
        llm_errors_total.labels(provider=PROVIDER, error_type=error_type).inc()
        logger.error(
            "LLM API call failed",
            extra={"extra_fields": {
                "batch_index": batch.batch_index,
                "error_type": error_type,
                "status_code": getattr(e, "status_code", None),
                "duration_seconds": duration,
                "error": str(e),
            }},
        )
        return ExtractionProviderError(f"LLM {error_type.replace('_', ' ')} error: {str(e)}", error_type=error_type, provider=PROVIDER)

    def _malformed(self, detail: str, start_time: float, batch: Batch) -> MalformedResponseError:
        duration = time.time() - start_time
        llm_extraction_duration_seconds.observe(duration)
        extraction_batches_total.labels(status="error").inc()
        llm_errors_total.labels(provider=PROVIDER, error_type="malformed_response").inc()
        logger.error(
            "LLM returned output not matching the schema",
            extra={"extra_fields": {"batch_index": batch.batch_index, "duration_seconds": duration, "error": detail}},
        )
        return MalformedResponseError(f"Batch {batch.batch_index} returned malformed JSON: {detail}")
