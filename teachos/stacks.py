"""Last-in, first-out stacks: a bounded array stack and an unbounded list stack."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import Any

from teachos.intlist import IntList


class StackOverflowError(IndexError):
    """Raised when pushing onto a full stack."""


class StackUnderflowError(IndexError):
    """Raised when popping from an empty stack."""


def _successor(value: Any) -> Any:
    """The value after ``value``: the next character for strings, else value + 1."""
    if isinstance(value, str):
        return chr(ord(value) + 1)
    return value + 1


class Stack(ABC):
    """Abstract last-in, first-out stack."""

    @abstractmethod
    def push(self, value: Any) -> None:
        """Put ``value`` on top of the stack."""

    @abstractmethod
    def pop(self) -> Any:
        """Remove and return the value on top of the stack."""

    @abstractmethod
    def is_full(self) -> bool:
        """Return True if the stack has no more room."""

    @abstractmethod
    def is_empty(self) -> bool:
        """Return True if the stack holds nothing."""

    def self_test(self, num_to_push: int | None = None, start: Any = 17) -> list[str]:
        """Push a run of values starting at ``start``, then pop them all.

        With ``num_to_push`` of None, values are pushed until the stack is
        full. Returns the lines describing each push and pop, in order.
        """
        if num_to_push is None and not self.is_full() and isinstance(self, ListStack):
            raise ValueError("an unbounded stack needs a number of values to push")
        lines: list[str] = []
        count = start
        pushed = 0
        while (num_to_push is None and not self.is_full()) or (
            num_to_push is not None and pushed < num_to_push
        ):
            if self.is_full():
                raise StackOverflowError("stack is full")
            lines.append(f"pushing {count}")
            self.push(count)
            count = _successor(count)
            pushed += 1
        while not self.is_empty():
            lines.append(f"popping {self.pop()}")
        return lines


class ArrayStack(Stack):
    """A stack with a fixed maximum number of elements."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("stack size must be at least 1")
        self._size = size
        self._items: list[Any] = []

    @property
    def size(self) -> int:
        """The maximum number of elements the stack can hold."""
        return self._size

    def push(self, value: Any) -> None:
        if self.is_full():
            raise StackOverflowError("push onto a full stack")
        self._items.append(value)

    def pop(self) -> Any:
        if self.is_empty():
            raise StackUnderflowError("pop from an empty stack")
        return self._items.pop()

    def is_full(self) -> bool:
        return len(self._items) == self._size

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)


class ListStack(Stack):
    """A stack kept in a linked list; it never overflows."""

    def __init__(self) -> None:
        self._items = IntList()

    def push(self, value: Any) -> None:
        self._items.prepend(value)

    def pop(self) -> Any:
        if self.is_empty():
            raise StackUnderflowError("pop from an empty stack")
        return self._items.remove()

    def is_full(self) -> bool:
        return False

    def is_empty(self) -> bool:
        return self._items.is_empty()

    def __len__(self) -> int:
        return len(self._items)


def main(argv: list[str] | None = None) -> int:
    """Exercise both stack implementations and print what they do."""
    runs = [
        ("Testing ArrayStack", ArrayStack(10), 10, 17),
        ("Testing ListStack", ListStack(), 10, 17),
        ("Testing character ArrayStack", ArrayStack(10), None, "a"),
    ]
    for title, stack, count, start in runs:
        print(title)
        for line in stack.self_test(count, start):
            print(line)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())