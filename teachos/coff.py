"""MIPS COFF and NOFF object file headers."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

MIPSELMAGIC = 0x0162
OMAGIC = 0o407
SOMAGIC = 0x0701
NOFFMAGIC = 0xBADFAD


class CoffError(ValueError):
    """Raised for a malformed or unsupported object file."""


def _unpack(fmt: struct.Struct, data: bytes) -> tuple:
    if len(data) < fmt.size:
        raise CoffError("File is too short")
    return fmt.unpack_from(data)


_FILE_HEADER = struct.Struct("<HHiiiHH")
_AOUT_HEADER = struct.Struct("<hh13I")
_SECTION_HEADER = struct.Struct("<8s6IHHI")
_NOFF_HEADER = struct.Struct("<10I")


@dataclass(frozen=True)
class FileHeader:
    """The COFF file header."""

    magic: int = MIPSELMAGIC
    nscns: int = 0
    timdat: int = 0
    symptr: int = 0
    nsyms: int = 0
    opthdr: int = 0
    flags: int = 0

    SIZE = _FILE_HEADER.size

    @classmethod
    def from_bytes(cls, data: bytes) -> FileHeader:
        return cls(*_unpack(_FILE_HEADER, data))

    def to_bytes(self) -> bytes:
        return _FILE_HEADER.pack(
            self.magic, self.nscns, self.timdat, self.symptr,
            self.nsyms, self.opthdr, self.flags,
        )


@dataclass(frozen=True)
class AoutHeader:
    """The COFF system (a.out) header."""

    magic: int = OMAGIC
    vstamp: int = 0
    tsize: int = 0
    dsize: int = 0
    bsize: int = 0
    entry: int = 0
    text_start: int = 0
    data_start: int = 0
    bss_start: int = 0
    gprmask: int = 0
    cprmask: tuple[int, int, int, int] = (0, 0, 0, 0)
    gp_value: int = 0

    SIZE = _AOUT_HEADER.size

    @classmethod
    def from_bytes(cls, data: bytes) -> AoutHeader:
        values = _unpack(_AOUT_HEADER, data)
        return cls(*values[:10], cprmask=tuple(values[10:14]), gp_value=values[14])

    def to_bytes(self) -> bytes:
        return _AOUT_HEADER.pack(
            self.magic, self.vstamp, self.tsize, self.dsize, self.bsize,
            self.entry, self.text_start, self.data_start, self.bss_start,
            self.gprmask, *self.cprmask, self.gp_value,
        )


@dataclass(frozen=True)
class SectionHeader:
    """A COFF section header."""

    name: str
    paddr: int = 0
    vaddr: int = 0
    size: int = 0
    scnptr: int = 0
    relptr: int = 0
    lnnoptr: int = 0
    nreloc: int = 0
    nlnno: int = 0
    flags: int = 0

    SIZE = _SECTION_HEADER.size

    @classmethod
    def from_bytes(cls, data: bytes) -> SectionHeader:
        raw_name, *rest = _unpack(_SECTION_HEADER, data)
        return cls(raw_name.split(b"\0", 1)[0].decode("latin-1"), *rest)

    def to_bytes(self) -> bytes:
        raw_name = self.name.encode("latin-1")
        if len(raw_name) > 8:
            raise CoffError(f"section name {self.name!r} longer than 8 bytes")
        return _SECTION_HEADER.pack(
            raw_name, self.paddr, self.vaddr, self.size, self.scnptr,
            self.relptr, self.lnnoptr, self.nreloc, self.nlnno, self.flags,
        )


@dataclass
class Segment:
    """Where a NOFF segment lives in memory and in the file."""

    virtual_addr: int = 0
    in_file_addr: int = 0
    size: int = 0


@dataclass
class NoffHeader:
    """The NOFF header: code, initialised data and uninitialised data."""

    magic: int = NOFFMAGIC
    code: Segment = field(default_factory=Segment)
    init_data: Segment = field(default_factory=Segment)
    uninit_data: Segment = field(default_factory=Segment)

    SIZE = _NOFF_HEADER.size

    @classmethod
    def from_bytes(cls, data: bytes) -> NoffHeader:
        magic, *rest = _unpack(_NOFF_HEADER, data)
        return cls(magic, Segment(*rest[0:3]), Segment(*rest[3:6]), Segment(*rest[6:9]))

    def to_bytes(self) -> bytes:
        values = [self.magic]
        for segment in (self.code, self.init_data, self.uninit_data):
            values += [segment.virtual_addr, segment.in_file_addr, segment.size]
        return _NOFF_HEADER.pack(*values)


@dataclass(frozen=True)
class CoffImage:
    """A parsed COFF file: its headers and the raw bytes they point into."""

    file_header: FileHeader
    aout_header: AoutHeader
    sections: tuple[SectionHeader, ...]
    data: bytes = field(repr=False)

    def section_data(self, section: SectionHeader) -> bytes:
        """The raw contents of ``section``."""
        end = section.scnptr + section.size
        if end > len(self.data):
            raise CoffError("File is too short")
        return self.data[section.scnptr:end]

    def find_section(self, name: str) -> SectionHeader | None:
        """The first section called ``name``, or None."""
        return next((s for s in self.sections if s.name == name), None)


def read_coff(data: bytes) -> CoffImage:
    """Parse a little-endian MIPS COFF file with an OMAGIC system header."""
    file_header = FileHeader.from_bytes(data)
    if file_header.magic != MIPSELMAGIC:
        raise CoffError("File is not a MIPSEL COFF file")
    aout_header = AoutHeader.from_bytes(data[FileHeader.SIZE:])
    if aout_header.magic != OMAGIC:
        raise CoffError("File is not a OMAGIC file")
    start = FileHeader.SIZE + AoutHeader.SIZE
    end = start + file_header.nscns * SectionHeader.SIZE
    if end > len(data):
        raise CoffError("File is too short")
    sections = tuple(
        SectionHeader.from_bytes(data[offset:offset + SectionHeader.SIZE])
        for offset in range(start, end, SectionHeader.SIZE)
    )
    return CoffImage(file_header, aout_header, sections, bytes(data))