"""
Prometheus metrics for the extraction service.

Exposed via the /metrics endpoint. Covers:
- documents processed and per-batch outcomes
- LLM call latency and errors by provider / error type
- rasterized pages and uploaded bytes
- unhandled application errors by endpoint
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Labels: success, error
document_processing_total = Counter(
    "document_processing_total",
    "Total number of extraction requests processed",
    ["status"],
)

extraction_batches_total = Counter(
    "extraction_batches_total",
    "Page batches sent to the extraction model",
    ["status"],
)

llm_extraction_duration_seconds = Histogram(
    "llm_extraction_duration_seconds",
    "Time spent on a single batch LLM call in seconds",
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0],
)

# e.g. provider=anthropic, error_type=rate_limit
llm_errors_total = Counter(
    "llm_errors_total",
    "LLM API errors by provider and type",
    ["provider", "error_type"],
)

pages_rasterized_total = Counter(
    "pages_rasterized_total",
    "PDF pages converted to images",
)

file_upload_bytes = Counter(
    "file_upload_bytes",
    "Total bytes uploaded",
)

app_errors_total = Counter(
    "app_errors_total",
    "Application errors by endpoint and type",
    ["endpoint", "error_type"],
)


def get_metrics() -> bytes:
    """Prometheus metrics in text format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
