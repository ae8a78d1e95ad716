from typing import List, Sequence

from cargo_extractor.errors import InvalidConfigurationError
from cargo_extractor.schemas import Batch, PageImage


def validate_batch_size(batch_size) -> int:
    # bool is an int subclass; True is not a batch size
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise InvalidConfigurationError(f"Batch size must be a positive integer, got {batch_size!r}")
    return batch_size


def partition(pages: Sequence[PageImage], batch_size: int) -> List[Batch]:
    """
    Splits the ordered page sequence into contiguous batches of at most batch_size pages.

    Args:
        pages: Pages in document order.
        batch_size: Maximum pages per batch (> 0).

    Returns:
        List[Batch]: ceil(len(pages) / batch_size) batches, numbered from 1. Only the
        last one may be smaller than batch_size.
    """
    validate_batch_size(batch_size)
    return [
        Batch(batch_index=number, pages=list(pages[start:start + batch_size]))
        for number, start in enumerate(range(0, len(pages), batch_size), start=1)
    ]
