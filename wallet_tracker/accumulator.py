from __future__ import annotations

from typing import Generic, Iterable, List, TypeVar

T = TypeVar("T")


class BoundedAccumulator(Generic[T]):
    """
    Result container for scans with a stop-at-limit rule.

    Scanners check ``is_full()`` only at fixed points: after every native
    transaction, and after each log sub-range batch. ``add_batch`` keeps the
    whole batch by default, so log scans may end up to one batch over the
    limit; with ``exact=True`` the batch is truncated at the limit instead.
    ``EXACT_LIMIT=true`` selects the exact mode: scanning stops mid-batch and
    a result never holds more than ``limit`` items.
    """

    def __init__(self, limit: int, *, exact: bool = False) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = int(limit)
        self.exact = bool(exact)
        self._items: List[T] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[T]:
        return list(self._items)

    def is_full(self) -> bool:
        return len(self._items) >= self.limit

    def add(self, item: T) -> bool:
        """Append one item unless already full. Returns whether it was kept."""
        if self.is_full():
            return False
        self._items.append(item)
        return True

    def add_batch(self, items: Iterable[T]) -> int:
        batch = list(items)
        if self.exact:
            batch = batch[: max(0, self.limit - len(self._items))]
        self._items.extend(batch)
        return len(batch)


__all__ = ["BoundedAccumulator"]
