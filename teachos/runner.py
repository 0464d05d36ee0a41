"""Load MIPS COFF programs into memory, run them, or disassemble their text."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

from teachos.coff import (
    MIPSELMAGIC,
    AoutHeader,
    CoffError,
    CoffImage,
    FileHeader,
    SectionHeader,
)
from teachos.disassembler import disassemble
from teachos.interpreter import Machine, MachineExit, UnimplementedInstruction
from teachos.memory import Memory, MemoryError_

SECTION_ORDER = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")
DEFAULT_PROGRAM = "a.out"

_RUN_NAME = "mips"
_DISASM_NAME = "disasm"


def _parse_image(data: bytes) -> CoffImage:
    file_header = FileHeader.from_bytes(data)
    if file_header.magic != MIPSELMAGIC:
        raise CoffError("big-endian object file (little-endian interp)")
    aout_header = AoutHeader.from_bytes(data[FileHeader.SIZE:])
    start = FileHeader.SIZE + AoutHeader.SIZE
    end = start + file_header.nscns * SectionHeader.SIZE
    if end > len(data):
        raise CoffError("File is too short")
    sections = tuple(
        SectionHeader.from_bytes(data[offset:offset + SectionHeader.SIZE])
        for offset in range(start, end, SectionHeader.SIZE)
    )
    return CoffImage(file_header, aout_header, sections, bytes(data))


def load_program(data: bytes, memory: Memory, out: TextIO | None = None) -> CoffImage:
    """Copy the sections of the COFF file ``data`` into ``memory``.

    Sections are loaded at their virtual addresses; a note is written to
    ``out`` for each expected section that the file lacks. Returns the
    parsed image.
    """
    out = out if out is not None else sys.stdout
    image = _parse_image(data)
    for name in SECTION_ORDER:
        section = image.find_section(name)
        if section is None:
            out.write(f"{name[1:]} section header missing\n")
            continue
        if section.scnptr == 0:
            continue
        try:
            memory.load(section.vaddr, image.section_data(section))
        except MemoryError_ as err:
            raise MemoryError_("MEMSIZE too small. Fix and recompile.") from err
    return image


def disassemble_text(data: bytes, out: TextIO | None = None) -> list[str]:
    """Disassemble the text section of the COFF file ``data``.

    Each line is written to ``out`` and the lines are returned.
    """
    out = out if out is not None else sys.stdout
    memory = Memory()
    image = load_program(data, memory, out)
    text = image.find_section(".text")
    size = text.size if text is not None else 0
    lines = [
        disassemble(memory.fetch(pc), pc)
        for pc in range(memory.offset, memory.offset + size, 4)
    ]
    for line in lines:
        out.write(line + "\n")
    return lines


def _split_options(args: list[str], accepted: str) -> tuple[dict[str, bool], list[str]]:
    flags = {letter: False for letter in accepted}
    while args and args[0].startswith("-"):
        option, args = args[0], args[1:]
        for letter in option[1:]:
            if letter == "m" and "m" in accepted:
                if len(args) < 4:
                    raise ValueError("-m needs rows, associativity, line size and policy")
                args = args[4:]
            elif letter in flags:
                flags[letter] = True
    return flags, args


def _read_program(prog: str, args: list[str]) -> tuple[bytes, list[str]] | None:
    filename = args[0] if args else DEFAULT_PROGRAM
    try:
        data = Path(filename).read_bytes()
    except OSError:
        print(f"{prog}: Could not open '{filename}'", file=sys.stderr)
        return None
    return data, (args if args else [DEFAULT_PROGRAM])


def main(argv: list[str] | None = None) -> int:
    """Command line entry: mips [-t] [-T] [-r] [-m r a l p] [program [args...]]."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        flags, args = _split_options(args, "tTrm")
    except ValueError as err:
        print(f"{_RUN_NAME}: {err}", file=sys.stderr)
        return 1
    loaded = _read_program(_RUN_NAME, args)
    if loaded is None:
        return 0
    data, program_args = loaded
    out = sys.stdout
    memory = Memory()
    try:
        load_program(data, memory, out)
    except MemoryError_ as err:
        print(err, file=out)
        return 1
    except CoffError as err:
        print(err, file=sys.stderr)
        return 0
    machine = Machine(
        memory,
        trace=flags["t"],
        reg_trace=flags["r"],
        trap_trace=flags["T"],
        out=out,
    )
    try:
        return machine.run(memory.offset, program_args)
    except MachineExit as done:
        return done.status
    except UnimplementedInstruction as err:
        print(err, file=out)
        return 2
    except (MemoryError_, ZeroDivisionError) as err:
        print(err, file=sys.stderr)
        return 1


def disasm_main(argv: list[str] | None = None) -> int:
    """Command line entry: disasm [program]."""
    args = sys.argv[1:] if argv is None else list(argv)
    _, args = _split_options(args, "")
    loaded = _read_program(_DISASM_NAME, args)
    if loaded is None:
        return 0
    data, _ = loaded
    try:
        disassemble_text(data, sys.stdout)
    except MemoryError_ as err:
        print(err)
        return 1
    except CoffError as err:
        print(err, file=sys.stderr)
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())