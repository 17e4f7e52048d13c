"""
Half-open date interval helpers.

A stay occupies [start, end): the end day is free, so a stay ending on the
day another starts does not overlap it.

Two overlap finders are provided:
- pairwise_overlaps: compares every pair, O(n^2). Reference implementation.
- sweep_overlaps: sorts by start and keeps a min-heap of active intervals
  keyed by end, O(n log n + k) for k overlapping pairs.

Both skip empty or inverted intervals (end <= start) and return the same
pairs in the same order.
"""

import heapq
from datetime import date
from typing import Callable, Hashable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """True when [a_start, a_end) and [b_start, b_end) share at least one day."""
    return a_start < b_end and b_start < a_end


def overlap_window(a_start: date, a_end: date, b_start: date, b_end: date) -> Tuple[date, date]:
    """Shared window [max(starts), min(ends)). Only meaningful when overlaps() is True."""
    return max(a_start, b_start), min(a_end, b_end)


def nights(start: date, end: date) -> int:
    return (end - start).days


def _valid(items: Sequence[T], start_of: Callable[[T], date], end_of: Callable[[T], date]) -> List[T]:
    return [item for item in items if start_of(item) < end_of(item)]


def _ordered_pairs(pairs: List[Tuple[T, T]], key_of: Callable[[T], Hashable]) -> List[Tuple[T, T]]:
    # Normalize each pair to (lower key, higher key), then sort the list
    normalized = [(a, b) if key_of(a) <= key_of(b) else (b, a) for a, b in pairs]
    normalized.sort(key=lambda p: (key_of(p[0]), key_of(p[1])))
    return normalized


def pairwise_overlaps(
    items: Sequence[T],
    start_of: Callable[[T], date],
    end_of: Callable[[T], date],
    key_of: Callable[[T], Hashable],
) -> List[Tuple[T, T]]:
    valid = _valid(items, start_of, end_of)
    pairs: List[Tuple[T, T]] = []
    for i in range(len(valid)):
        for j in range(i + 1, len(valid)):
            a, b = valid[i], valid[j]
            if overlaps(start_of(a), end_of(a), start_of(b), end_of(b)):
                pairs.append((a, b))
    return _ordered_pairs(pairs, key_of)


def sweep_overlaps(
    items: Sequence[T],
    start_of: Callable[[T], date],
    end_of: Callable[[T], date],
    key_of: Callable[[T], Hashable],
) -> List[Tuple[T, T]]:
    valid = sorted(_valid(items, start_of, end_of), key=lambda x: (start_of(x), end_of(x), key_of(x)))

    pairs: List[Tuple[T, T]] = []
    # Heap entries: (end, tiebreak, item). The tiebreak keeps items out of comparisons.
    active: List[Tuple[date, int, T]] = []
    for seq, item in enumerate(valid):
        start = start_of(item)
        while active and active[0][0] <= start:
            heapq.heappop(active)
        # Every remaining active interval started no later than `start` and ends after it
        for _, _, other in active:
            pairs.append((other, item))
        heapq.heappush(active, (end_of(item), seq, item))
    return _ordered_pairs(pairs, key_of)
