"""
Folds the per-batch extraction results of one document into a single record.

Rules for more than one result (the first result is the structural base):
- top-level list fields (line_items, containers, page_provenance, ...) are
  concatenated in batch order; line items are never deduplicated
- containers are deduplicated on container_number, first occurrence wins
- missing_fields is the union of all batches, without duplicates
- extraction_confidence.overall is the mean of the batches that report one
- extraction_confidence.line_items is the merged line item count
- every other field keeps the first batch's value
"""

import copy
import os
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence

from cargo_extractor.logging_config import get_logger
from cargo_extractor.schemas import Batch

logger = get_logger(__name__)

ExtractionResult = Dict[str, Any]

MISSING_FIELDS = "missing_fields"
CONFIDENCE = "extraction_confidence"
LINE_ITEMS = "line_items"
PAGE_PROVENANCE = "page_provenance"

# list field -> key identifying the same physical thing across batches
IDENTIFIER_KEYS = {
    "containers": "container_number",
}

# list fields whose entries carry a batch-relative source_page_index
PAGE_INDEXED_FIELDS = ("line_items", "containers")


def merge(results: Sequence[ExtractionResult]) -> ExtractionResult:
    """
    Merges batch results, in batch order, into one document-level result.

    Inputs are never mutated; a single result comes back as an independent copy.

    Raises:
        ValueError: results is empty.
    """
    if not results:
        raise ValueError("Cannot merge an empty list of extraction results")

    if len(results) == 1:
        return copy.deepcopy(results[0])

    merged = copy.deepcopy(results[0])

    list_fields = []
    for result in results:
        for key, value in result.items():
            if isinstance(value, list) and key != MISSING_FIELDS and key not in list_fields:
                list_fields.append(key)

    for key in list_fields:
        combined = [copy.deepcopy(item) for result in results for item in (result.get(key) or [])]
        if key in IDENTIFIER_KEYS:
            combined = _dedupe_by(combined, IDENTIFIER_KEYS[key])
        merged[key] = combined

    if any(MISSING_FIELDS in result for result in results):
        merged[MISSING_FIELDS] = list(dict.fromkeys(
            field for result in results for field in (result.get(MISSING_FIELDS) or [])
        ))

    confidence = merged.get(CONFIDENCE)
    if not isinstance(confidence, dict):
        confidence = {}
    confidence["overall"] = mean_confidence(results)
    confidence[LINE_ITEMS] = len(merged.get(LINE_ITEMS) or [])
    merged[CONFIDENCE] = confidence

    logger.info(
        "Merged batch results",
        extra={"extra_fields": {
            "batches": len(results),
            "line_items": confidence[LINE_ITEMS],
            "missing_fields": len(merged.get(MISSING_FIELDS) or []),
        }},
    )
    return merged


def mean_confidence(results: Sequence[ExtractionResult]) -> Optional[float]:
    """
    Mean of the numeric extraction_confidence.overall values present.

    Batches without a value are left out of the average; None when no batch has one.
    """
    values = []
    for result in results:
        confidence = result.get(CONFIDENCE)
        if not isinstance(confidence, dict):
            continue
        overall = confidence.get("overall")
        if isinstance(overall, Real) and not isinstance(overall, bool):
            values.append(float(overall))
    if not values:
        return None
    return sum(values) / len(values)


def _dedupe_by(items: List[Any], key: str) -> List[Any]:
    seen = set()
    unique = []
    for item in items:
        identifier = item.get(key) if isinstance(item, dict) else None
        if identifier is None:
            unique.append(item)
            continue
        if identifier in seen:
            continue
        seen.add(identifier)
        unique.append(item)
    return unique


def annotate_provenance(result: ExtractionResult, batch: Batch) -> ExtractionResult:
    """
    Returns a copy of a batch result tied back to document page numbers.

    source_page_index on line items and containers is translated from the
    position inside the batch (1..len(batch.pages)) to the global page index;
    positions outside the batch become None. A page_provenance entry records
    which pages and source files the batch covered.
    """
    annotated = copy.deepcopy(result)
    global_indices = batch.global_page_indices

    for field in PAGE_INDEXED_FIELDS:
        for item in annotated.get(field) or []:
            if not isinstance(item, dict) or "source_page_index" not in item:
                continue
            position = item["source_page_index"]
            if isinstance(position, int) and not isinstance(position, bool) and 1 <= position <= len(global_indices):
                item["source_page_index"] = global_indices[position - 1]
            else:
                item["source_page_index"] = None

    annotated[PAGE_PROVENANCE] = [{
        "batch_index": batch.batch_index,
        "page_indices": global_indices,
        "sources": [
            {
                "source_file": os.path.basename(page.source_file),
                "page_index_within_source": page.page_index_within_source,
                "global_page_index": page.global_page_index,
            }
            for page in batch.pages
        ],
    }]
    return annotated
