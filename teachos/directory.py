"""A flat directory of file names, each naming the sector of a file header."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass

FILE_NAME_MAX_LEN = 9

_ENTRY = struct.Struct(f"<?3xi{FILE_NAME_MAX_LEN + 1}s2x")


@dataclass
class DirectoryEntry:
    """One slot of the directory table."""

    in_use: bool = False
    sector: int = 0
    name: str = ""

    SIZE = _ENTRY.size


def _fit(name: str) -> str:
    return name[:FILE_NAME_MAX_LEN]


class Directory:
    """A fixed-size table of <file name, header sector> pairs."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("directory size must not be negative")
        self._table = [DirectoryEntry() for _ in range(size)]

    @property
    def size(self) -> int:
        """Number of slots in the directory."""
        return len(self._table)

    def _find_entry(self, name: str) -> DirectoryEntry | None:
        key = _fit(name)
        return next(
            (entry for entry in self._table if entry.in_use and entry.name == key),
            None,
        )

    def find(self, name: str) -> int | None:
        """The header sector of file ``name``, or None if it is not listed."""
        entry = self._find_entry(name)
        return entry.sector if entry is not None else None

    def add(self, name: str, new_sector: int) -> bool:
        """Add ``name`` with its header at ``new_sector``.

        Returns False if the name is already present or the table is full.
        """
        if self._find_entry(name) is not None:
            return False
        for entry in self._table:
            if not entry.in_use:
                entry.in_use = True
                entry.name = _fit(name)
                entry.sector = new_sector
                return True
        return False

    def remove(self, name: str) -> bool:
        """Remove ``name``; returns False if it was not in the directory."""
        entry = self._find_entry(name)
        if entry is None:
            return False
        entry.in_use = False
        return True

    def names(self) -> Iterator[str]:
        """The names of the files in the directory, in table order."""
        return (entry.name for entry in self._table if entry.in_use)

    def __iter__(self) -> Iterator[DirectoryEntry]:
        return (entry for entry in self._table if entry.in_use)

    def to_bytes(self) -> bytes:
        """The on-disk form of the whole table."""
        return b"".join(
            _ENTRY.pack(entry.in_use, entry.sector, entry.name.encode("latin-1"))
            for entry in self._table
        )

    @classmethod
    def from_bytes(cls, data: bytes, size: int) -> Directory:
        """Read a directory of ``size`` slots from its on-disk form."""
        directory = cls(size)
        needed = size * _ENTRY.size
        if len(data) < needed:
            raise ValueError(f"directory needs {needed} bytes, got {len(data)}")
        for index, entry in enumerate(directory._table):
            in_use, sector, raw_name = _ENTRY.unpack_from(data, index * _ENTRY.size)
            entry.in_use = in_use
            entry.sector = sector
            entry.name = raw_name.split(b"\0", 1)[0].decode("latin-1")
        return directory