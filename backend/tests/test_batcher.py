import pytest

from cargo_extractor.errors import InvalidConfigurationError
from cargo_extractor.schemas import PageImage
from cargo_extractor.services.batcher import partition


def _pages(count):
    return [
        PageImage(
            source_file="doc.pdf",
            page_index_within_source=i,
            global_page_index=i,
            mime_type="image/png",
            path=f"/tmp/page-{i}.png",
        )
        for i in range(1, count + 1)
    ]


@pytest.mark.parametrize("count", [0, 1, 4, 5, 6, 11, 23])
@pytest.mark.parametrize("batch_size", [1, 2, 5, 7])
def test_partition_reconstructs_page_sequence(count, batch_size):
    pages = _pages(count)
    batches = partition(pages, batch_size)

    flattened = [page for batch in batches for page in batch.pages]
    assert flattened == pages
    assert len(batches) == -(-count // batch_size)


@pytest.mark.parametrize("count,batch_size", [(11, 5), (10, 5), (3, 2), (1, 4)])
def test_only_last_batch_may_be_short(count, batch_size):
    batches = partition(_pages(count), batch_size)

    assert all(len(batch.pages) == batch_size for batch in batches[:-1])
    expected_last = count % batch_size or batch_size
    assert len(batches[-1].pages) == expected_last


def test_batches_are_numbered_from_one():
    batches = partition(_pages(5), 2)
    assert [batch.batch_index for batch in batches] == [1, 2, 3]
    assert batches[2].global_page_indices == [5]


@pytest.mark.parametrize("batch_size", [0, -1, 2.5, "3", True, None])
def test_invalid_batch_size_rejected(batch_size):
    with pytest.raises(InvalidConfigurationError):
        partition(_pages(3), batch_size)
