"""Convert a MIPS COFF executable into the simpler NOFF format."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

from teachos.coff import CoffError, CoffImage, NoffHeader, SectionHeader, Segment, read_coff


def section_line(section: SectionHeader) -> str:
    """The progress line describing one section."""
    return (
        f'\t"{section.name}", filepos 0x{section.scnptr:x}, '
        f"mempos 0x{section.paddr:x}, size 0x{section.size:x}"
    )


def _convert(image: CoffImage, emit: Callable[[str], None]) -> bytes:
    noff = NoffHeader()
    body = bytearray()
    in_file = NoffHeader.SIZE
    emit(f"Loading {len(image.sections)} sections:")
    for section in image.sections:
        emit(section_line(section))
        if section.size == 0:
            continue
        if section.name == ".text":
            noff.code = Segment(section.paddr, in_file, section.size)
        elif section.name in (".data", ".rdata"):
            if noff.init_data.size != 0:
                raise CoffError("Can't handle both data and rdata")
            noff.init_data = Segment(section.paddr, in_file, section.size)
        elif section.name in (".bss", ".sbss"):
            uninit = noff.uninit_data
            if uninit.size != 0:
                if section.paddr == uninit.virtual_addr + uninit.size:
                    raise CoffError("Can't handle both bss and sbss")
                uninit.size += section.size
            else:
                uninit.virtual_addr = section.paddr
                uninit.size = section.size
            continue
        else:
            raise CoffError(f"Unknown segment type: {section.name}")
        body += image.section_data(section)
        in_file += section.size
    return noff.to_bytes() + bytes(body)


def coff_to_noff(data: bytes) -> bytes:
    """Return the NOFF file built from the COFF file ``data``."""
    return _convert(read_coff(data), lambda line: None)


def main(argv: list[str] | None = None) -> int:
    """Command line entry: coff2noff <coffFileName> <noffFileName>."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("Usage: coff2noff <coffFileName> <noffFileName>", file=sys.stderr)
        return 1
    source, target = Path(args[0]), Path(args[1])
    try:
        data = source.read_bytes()
    except OSError as err:
        print(f"{source}: {err.strerror}", file=sys.stderr)
        return 1
    try:
        image = read_coff(data)
        print(f"numsections {len(image.sections)} ")
        result = _convert(image, print)
    except CoffError as err:
        print(err, file=sys.stderr)
        target.unlink(missing_ok=True)
        return 1
    try:
        target.write_bytes(result)
    except OSError:
        print("Unable to write file", file=sys.stderr)
        target.unlink(missing_ok=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())