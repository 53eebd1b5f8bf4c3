from __future__ import annotations

from .bitmap import MAX_QUORUM_COUNT, QuorumBitmap, bitmap_to_quorum_indices, quorum_indices_to_bitmap
from .merge import is_strictly_ascending, merge_sorted_numbers, merge_sorted_unique

__all__ = [
    "MAX_QUORUM_COUNT",
    "QuorumBitmap",
    "bitmap_to_quorum_indices",
    "quorum_indices_to_bitmap",
    "is_strictly_ascending",
    "merge_sorted_numbers",
    "merge_sorted_unique",
]
