"""Convert a MIPS COFF executable into a flat memory image with a stack."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

from teachos.coff import CoffError, CoffImage, read_coff
from teachos.coff2noff import section_line

STACK_SIZE = 1024


def _convert(image: CoffImage, emit: Callable[[str], None]) -> bytes:
    out = bytearray()
    top = 0
    emit(f"Loading {len(image.sections)} sections:")
    for section in image.sections:
        emit(section_line(section))
        top = max(top, section.paddr + section.size)
        if section.name not in (".bss", ".sbss"):
            out += image.section_data(section)
    emit(f"Adding stack of size: {STACK_SIZE}")
    marker = top + STACK_SIZE - 4
    if len(out) < marker:
        out += bytes(marker - len(out))
    out[marker:marker + 4] = bytes(4)
    return bytes(out)


def coff_to_flat(data: bytes) -> bytes:
    """Return the flat image built from the COFF file ``data``.

    Section contents are written one after another, then the image is
    extended so that a zero word marks the end of the stack.
    """
    return _convert(read_coff(data), lambda line: None)


def main(argv: list[str] | None = None) -> int:
    """Command line entry: coff2flat <coffFileName> <flatFileName>."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("Usage: coff2flat <coffFileName> <flatFileName>", file=sys.stderr)
        return 1
    source, target = Path(args[0]), Path(args[1])
    try:
        data = source.read_bytes()
    except OSError as err:
        print(f"{source}: {err.strerror}", file=sys.stderr)
        return 1
    try:
        result = _convert(read_coff(data), print)
    except CoffError as err:
        print(err, file=sys.stderr)
        return 1
    try:
        target.write_bytes(result)
    except OSError:
        print("Unable to write file", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())