"""Tests for selecting posts that still need analysis."""
import random

from processor.item_filter import filter_unprocessed


def test_excludes_processed_and_keeps_order():
    assert filter_unprocessed([9, 3, 7, 1, 5], {3, 5}) == [9, 7, 1]


def test_nothing_processed_returns_everything():
    assert filter_unprocessed([4, 2, 8], set()) == [4, 2, 8]


def test_everything_processed_returns_empty():
    assert filter_unprocessed([1, 2], {1, 2, 3}) == []


def test_random_sets_never_leak_processed_ids():
    rng = random.Random(42)
    for _ in range(200):
        all_ids = rng.sample(range(1000), rng.randint(0, 50))
        processed = set(rng.sample(range(1000), rng.randint(0, 50)))

        result = filter_unprocessed(all_ids, processed)

        assert not set(result) & processed
        assert result == [i for i in all_ids if i not in processed]
