"""
Unprocessed item filter.

Plain set-membership check done in-process after a listing query, so id
lists are never formatted into SQL.
"""
from typing import AbstractSet, Iterable, List


def filter_unprocessed(all_item_ids: Iterable[int], processed_ids: AbstractSet[int]) -> List[int]:
    """Ids from `all_item_ids` not in `processed_ids`, input order kept."""
    return [item_id for item_id in all_item_ids if item_id not in processed_ids]
