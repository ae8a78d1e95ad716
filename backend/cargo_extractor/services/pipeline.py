import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from cargo_extractor.core.config import settings
from cargo_extractor.errors import InputNotFoundError, InvalidConfigurationError
from cargo_extractor.logging_config import bind_request_id, get_logger, request_id_var
from cargo_extractor.metrics import document_processing_total
from cargo_extractor.services.batcher import partition, validate_batch_size
from cargo_extractor.services.document_types import select_schema
from cargo_extractor.services.extractor import ExtractionClient
from cargo_extractor.services.merger import annotate_provenance, merge
from cargo_extractor.services.page_source import PageSource, Rasterizer
from cargo_extractor.utils.file_types import classify_source
from cargo_extractor.utils.temp_files import TempResourceManager

logger = get_logger(__name__)


@dataclass
class ExtractionOutcome:
    data: Dict[str, Any]
    files_processed: int
    document_type: str
    pages_processed: int
    batches_processed: int
    request_id: str


def run_extraction(
    file_paths: Sequence[str],
    batch_size: Optional[int] = None,
    document_type: Optional[str] = None,
    extraction_client: Optional[ExtractionClient] = None,
    rasterizer: Optional[Rasterizer] = None,
    temp_root: Optional[str] = None,
) -> ExtractionOutcome:
    """
    Extracts one structured record from an ordered list of document files.

    PDFs are rasterized into a per-request workspace, the pages are sent to
    the model in batches of batch_size, strictly one after the other, and the
    batch results are merged. The workspace is removed on every exit path.
    Any failure aborts the whole request; results of earlier batches are discarded.

    Args:
        file_paths: PDF or image files on disk, in document order.
        batch_size: Pages per model call (defaults to DEFAULT_BATCH_SIZE).
        document_type: COMMERCIAL_INVOICE / INVOICE, HBL or MBL (anything else -> MBL).
        extraction_client: Client used for the model calls.
        rasterizer: PDF rasterizer, (pdf_path, output_dir) -> page image paths.
        temp_root: Parent directory of the request workspaces.

    Returns:
        ExtractionOutcome: The merged document and processing counts.
    """
    if not file_paths:
        raise InvalidConfigurationError("No files provided")

    missing = [path for path in file_paths if not os.path.isfile(path)]
    if missing:
        raise InputNotFoundError([os.path.basename(path) for path in missing])

    batch_size = validate_batch_size(settings.DEFAULT_BATCH_SIZE if batch_size is None else batch_size)
    prompt_spec = select_schema(document_type if document_type is not None else settings.DEFAULT_DOCUMENT_TYPE)
    client = extraction_client or ExtractionClient()

    temp = TempResourceManager(temp_root or settings.TEMP_IMAGES_DIR)
    start_time = time.time()
    with bind_request_id(request_id_var.get() or temp.request_id), temp:
        try:
            sources = [classify_source(path) for path in file_paths]
            pages = PageSource(temp, rasterizer).expand(sources)
            batches = partition(pages, batch_size)

            logger.info(
                "Processing pages in batches",
                extra={"extra_fields": {
                    "files": len(sources),
                    "pages": len(pages),
                    "batch_size": batch_size,
                    "batches": len(batches),
                    "document_type": prompt_spec.document_type.value,
                }},
            )

            results: List[Dict[str, Any]] = []
            for batch in batches:
                logger.info(
                    f"Processing batch {batch.batch_index}/{len(batches)}",
                    extra={"extra_fields": {"batch_index": batch.batch_index, "pages": batch.global_page_indices}},
                )
                result = client.extract_batch(batch, prompt_spec)
                results.append(annotate_provenance(result, batch))

            merged = merge(results)
        except Exception:
            document_processing_total.labels(status="error").inc()
            logger.error(
                "Extraction request failed",
                extra={"extra_fields": {"duration_seconds": time.time() - start_time}},
                exc_info=True,
            )
            raise

        document_processing_total.labels(status="success").inc()
        logger.info(
            "Extraction request completed",
            extra={"extra_fields": {"duration_seconds": time.time() - start_time, "batches": len(batches)}},
        )

    return ExtractionOutcome(
        data=merged,
        files_processed=len(file_paths),
        document_type=prompt_spec.document_type.value,
        pages_processed=len(pages),
        batches_processed=len(batches),
        request_id=temp.request_id,
    )
