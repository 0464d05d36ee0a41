"""Byte-addressed, little-endian main memory of the simulated machine."""

from __future__ import annotations

import struct

MEMSIZE = 1 << 24
MEMOFFSET = 0x10000000

_WORD = struct.Struct("<i")
_UWORD = struct.Struct("<I")
_HALF = struct.Struct("<h")
_UHALF = struct.Struct("<H")
_BYTE = struct.Struct("<b")
_UBYTE = struct.Struct("<B")


class MemoryError_(IndexError):
    """Raised for an access outside the simulated memory."""


class Memory:
    """A block of ``size`` bytes whose first byte sits at address ``offset``."""

    def __init__(self, size: int = MEMSIZE, offset: int = MEMOFFSET) -> None:
        if size < 1:
            raise ValueError("memory size must be at least 1 byte")
        self._data = bytearray(size)
        self._offset = offset

    @property
    def size(self) -> int:
        """Number of bytes of memory."""
        return len(self._data)

    @property
    def offset(self) -> int:
        """Address of the first byte of memory."""
        return self._offset

    def _index(self, address: int, length: int) -> int:
        index = address - self._offset
        if index < 0 or index + length > len(self._data):
            raise MemoryError_(
                f"access of {length} bytes at {address:#x} outside memory "
                f"{self._offset:#x}..{self._offset + len(self._data):#x}"
            )
        return index

    def _get(self, fmt: struct.Struct, address: int) -> int:
        return fmt.unpack_from(self._data, self._index(address, fmt.size))[0]

    def _put(self, fmt: struct.Struct, address: int, value: int, mask: int) -> None:
        fmt.pack_into(self._data, self._index(address, fmt.size), value & mask)

    def fetch(self, address: int) -> int:
        """The signed 32-bit word at ``address``."""
        return self._get(_WORD, address)

    def sfetch(self, address: int) -> int:
        """The signed 16-bit half word at ``address``."""
        return self._get(_HALF, address)

    def usfetch(self, address: int) -> int:
        """The unsigned 16-bit half word at ``address``."""
        return self._get(_UHALF, address)

    def cfetch(self, address: int) -> int:
        """The signed byte at ``address``."""
        return self._get(_BYTE, address)

    def ucfetch(self, address: int) -> int:
        """The unsigned byte at ``address``."""
        return self._get(_UBYTE, address)

    def store(self, address: int, value: int) -> None:
        """Store the low 32 bits of ``value`` at ``address``."""
        self._put(_UWORD, address, value, 0xFFFFFFFF)

    def sstore(self, address: int, value: int) -> None:
        """Store the low 16 bits of ``value`` at ``address``."""
        self._put(_UHALF, address, value, 0xFFFF)

    def cstore(self, address: int, value: int) -> None:
        """Store the low 8 bits of ``value`` at ``address``."""
        self._put(_UBYTE, address, value, 0xFF)

    def load(self, address: int, data: bytes) -> None:
        """Copy ``data`` into memory starting at ``address``."""
        index = self._index(address, len(data))
        self._data[index:index + len(data)] = data

    def read_bytes(self, address: int, length: int) -> bytes:
        """The ``length`` bytes starting at ``address``."""
        if length < 0:
            raise ValueError("length must not be negative")
        index = self._index(address, length)
        return bytes(self._data[index:index + length])

    def read_string(self, address: int) -> str:
        """The NUL-terminated string starting at ``address``."""
        index = self._index(address, 1)
        end = self._data.find(b"\0", index)
        if end == -1:
            raise MemoryError_(f"string at {address:#x} runs past the end of memory")
        return self._data[index:end].decode("latin-1")