"""A last-in, first-out list of integers with access at the front only."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator


class IntList:
    """A singly linked list of integers, manipulated at its head."""

    def __init__(self) -> None:
        self._items: deque[int] = deque()

    def prepend(self, value: int) -> None:
        """Put ``value`` at the front of the list."""
        self._items.appendleft(value)

    def remove(self) -> int:
        """Take the first integer off the list and return it.

        Raises IndexError if the list is empty.
        """
        if not self._items:
            raise IndexError("remove from an empty list")
        return self._items.popleft()

    def is_empty(self) -> bool:
        """Return True if the list holds no items."""
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        """Iterate from the front of the list to the back."""
        return iter(self._items)

    def __repr__(self) -> str:
        return f"IntList({list(self._items)!r})"