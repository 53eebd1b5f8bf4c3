"""
Linear merges over pre-sorted sequences.

Each quorum snapshot is already sorted by the registry, so folding quorums
into the global operator set is a sequence of O(n + m) merge steps.

Both helpers require ascending input; unsorted input gives an unspecified
(but non-crashing) result.
"""

from __future__ import annotations

from typing import Any, List, Sequence, TypeVar

T = TypeVar("T")


def is_strictly_ascending(seq: Sequence[Any]) -> bool:
    return all(seq[i] < seq[i + 1] for i in range(len(seq) - 1))


def merge_sorted_numbers(a: Sequence[int], b: Sequence[int]) -> List[int]:
    """
    Duplicate-preserving merge: every element of both inputs, ascending.

    len(result) == len(a) + len(b)
    """
    out: List[int] = []
    i = j = 0
    while i < len(a) and j < len(b):
        if a[i] <= b[j]:
            out.append(a[i])
            i += 1
        else:
            out.append(b[j])
            j += 1
    # At most one of these has anything left.
    out.extend(a[i:])
    out.extend(b[j:])
    return out


def merge_sorted_unique(a: Sequence[T], b: Sequence[T]) -> List[T]:
    """
    Duplicate-eliminating merge of two ascending, duplicate-free sequences.

    Equal heads are emitted once and both sides advance, so the result is the
    ascending, duplicate-free union.
    """
    out: List[T] = []
    i = j = 0
    while i < len(a) and j < len(b):
        left, right = a[i], b[j]
        if left < right:
            out.append(left)
            i += 1
        elif right < left:
            out.append(right)
            j += 1
        else:
            out.append(left)
            i += 1
            j += 1
    out.extend(a[i:])
    out.extend(b[j:])
    return out
