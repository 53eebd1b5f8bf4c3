"""Packed quorum-membership bitmaps (bit i set => member of quorum i)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

MAX_QUORUM_COUNT = 192
_FULL_MASK = (1 << MAX_QUORUM_COUNT) - 1


def _check_index(index: int) -> int:
    i = int(index)
    if i < 0 or i >= MAX_QUORUM_COUNT:
        raise ValueError(f"quorum index {index} outside 0..{MAX_QUORUM_COUNT - 1}")
    return i


@dataclass(frozen=True, slots=True)
class QuorumBitmap:
    """
    Fixed-width (192-bit) membership bitmap.

    The raw integer is bounds-checked on construction; the width never
    depends on the host integer size.
    """

    value: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError(f"bitmap must be an int, got {type(self.value).__name__}")
        if self.value < 0 or self.value > _FULL_MASK:
            raise ValueError(f"bitmap does not fit in {MAX_QUORUM_COUNT} bits")

    @classmethod
    def full(cls) -> "QuorumBitmap":
        return cls(_FULL_MASK)

    @classmethod
    def from_indices(cls, indices: Iterable[int]) -> "QuorumBitmap":
        value = 0
        for index in indices:
            value |= 1 << _check_index(index)
        return cls(value)

    def contains(self, index: int) -> bool:
        return bool(self.value >> _check_index(index) & 1)

    def count(self) -> int:
        return bin(self.value).count("1")

    def is_empty(self) -> bool:
        return self.value == 0

    def indices(self) -> List[int]:
        """Set bit positions, ascending."""
        out: List[int] = []
        for i in range(MAX_QUORUM_COUNT):
            if self.value >> i & 1:
                out.append(i)
        return out


def bitmap_to_quorum_indices(bitmap: QuorumBitmap | int) -> List[int]:
    """
    Decode a membership bitmap into the ascending list of quorum indices it
    contains. Accepts a raw int, which is bounds-checked first.
    """
    if not isinstance(bitmap, QuorumBitmap):
        bitmap = QuorumBitmap(bitmap)
    return bitmap.indices()


def quorum_indices_to_bitmap(indices: Iterable[int]) -> QuorumBitmap:
    return QuorumBitmap.from_indices(indices)
