"""Tests for concept partitioning.

Pure function, so these check the chunk arithmetic directly: chunk count,
chunk sizes, contiguity, and the error conditions.
"""

import math

import pytest

from guide_config import ConfigurationError
from partitioner import Chunk, Item, NoItemsError, build_items, partition_items


def _items(n: int) -> list[Item]:
    return build_items(f"Concept {i}" for i in range(1, n + 1))


# ---------------------------------------------------------------------------
# build_items / Item / Chunk
# ---------------------------------------------------------------------------


class TestItems:
    def test_ordinals_are_one_based_and_contiguous(self):
        items = build_items(["a", "b", "c"])
        assert [i.ordinal for i in items] == [1, 2, 3]

    def test_label_joins_ordinal_and_text(self):
        assert Item(4, "What is a monad?").label == "4. What is a monad?"

    def test_chunk_text_is_one_label_per_line(self):
        chunk = Chunk(index=0, items=(Item(1, "A"), Item(2, "B")))
        assert chunk.text == "1. A\n2. B"
        assert (chunk.first_ordinal, chunk.last_ordinal) == (1, 2)

    def test_items_are_immutable(self):
        item = Item(1, "A")
        with pytest.raises(AttributeError):
            item.text = "B"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# partition_items
# ---------------------------------------------------------------------------


class TestPartitionItems:
    @pytest.mark.parametrize("n,c", [(1, 1), (5, 2), (6, 2), (7, 3), (3, 10), (100, 7)])
    def test_chunk_count_and_sizes(self, n, c):
        chunks = partition_items(_items(n), c)
        assert len(chunks) == math.ceil(n / c)
        assert all(len(ch.items) == c for ch in chunks[:-1])
        assert len(chunks[-1].items) == (n % c or c)

    @pytest.mark.parametrize("n,c", [(5, 2), (9, 3), (11, 4)])
    def test_concatenation_reproduces_input(self, n, c):
        items = _items(n)
        chunks = partition_items(items, c)
        flattened = [item for ch in chunks for item in ch.items]
        assert flattened == items

    def test_chunk_indices_are_sequential(self):
        chunks = partition_items(_items(10), 3)
        assert [ch.index for ch in chunks] == [0, 1, 2, 3]

    def test_five_items_chunk_two(self):
        chunks = partition_items(_items(5), 2)
        assert [[i.ordinal for i in ch.items] for ch in chunks] == [[1, 2], [3, 4], [5]]

    def test_ordinals_within_chunk_are_contiguous(self):
        for ch in partition_items(_items(13), 4):
            ordinals = [i.ordinal for i in ch.items]
            assert ordinals == list(range(ordinals[0], ordinals[0] + len(ordinals)))

    def test_empty_items_raise_no_items(self):
        with pytest.raises(NoItemsError):
            partition_items([], 2)

    def test_no_items_is_a_configuration_error(self):
        assert issubclass(NoItemsError, ConfigurationError)

    @pytest.mark.parametrize("c", [0, -1])
    def test_non_positive_chunk_size_raises(self, c):
        with pytest.raises(ConfigurationError) as exc_info:
            partition_items(_items(3), c)
        assert not isinstance(exc_info.value, NoItemsError)
