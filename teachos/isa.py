"""MIPS instruction encodings, field extraction and opcode names."""

from __future__ import annotations

from enum import IntEnum


class Opcode(IntEnum):
    """Primary opcodes, held in bits 26..31 of an instruction."""

    SPECIAL = 0o00
    BCOND = 0o01
    J = 0o02
    JAL = 0o03
    BEQ = 0o04
    BNE = 0o05
    BLEZ = 0o06
    BGTZ = 0o07
    ADDI = 0o10
    ADDIU = 0o11
    SLTI = 0o12
    SLTIU = 0o13
    ANDI = 0o14
    ORI = 0o15
    XORI = 0o16
    LUI = 0o17
    COP0 = 0o20
    COP1 = 0o21
    COP2 = 0o22
    COP3 = 0o23
    LB = 0o40
    LH = 0o41
    LWL = 0o42
    LW = 0o43
    LBU = 0o44
    LHU = 0o45
    LWR = 0o46
    SB = 0o50
    SH = 0o51
    SWL = 0o52
    SW = 0o53
    SWR = 0o56
    LWC0 = 0o60
    LWC1 = 0o61
    LWC2 = 0o62
    LWC3 = 0o63
    SWC0 = 0o70
    SWC1 = 0o71
    SWC2 = 0o72
    SWC3 = 0o73


class SpecialOp(IntEnum):
    """Function codes of SPECIAL instructions, held in bits 0..5."""

    SLL = 0o00
    SRL = 0o02
    SRA = 0o03
    SLLV = 0o04
    SRLV = 0o06
    SRAV = 0o07
    JR = 0o10
    JALR = 0o11
    SYSCALL = 0o14
    BREAK = 0o15
    MFHI = 0o20
    MTHI = 0o21
    MFLO = 0o22
    MTLO = 0o23
    MULT = 0o30
    MULTU = 0o31
    DIV = 0o32
    DIVU = 0o33
    ADD = 0o40
    ADDU = 0o41
    SUB = 0o42
    SUBU = 0o43
    AND = 0o44
    OR = 0o45
    XOR = 0o46
    NOR = 0o47
    SLT = 0o52
    SLTU = 0o53


class BranchCond(IntEnum):
    """BCOND operations, encoded in the rt field."""

    BLTZ = 0o00
    BGEZ = 0o01
    BLTZAL = 0o20
    BGEZAL = 0o21


NOP = 0


def rd(instr: int) -> int:
    """Destination register field."""
    return (instr >> 11) & 0x1F


def rt(instr: int) -> int:
    """Target register field."""
    return (instr >> 16) & 0x1F


def rs(instr: int) -> int:
    """Source register field."""
    return (instr >> 21) & 0x1F


def shamt(instr: int) -> int:
    """Shift amount field."""
    return (instr >> 6) & 0x1F


def immed(instr: int) -> int:
    """The low 16 bits of ``instr``, sign extended."""
    if instr & 0x8000:
        return (instr & 0x7FFF) - 0x8000
    return instr & 0x7FFF


def off26(instr: int) -> int:
    """The 26-bit jump target field, shifted to a byte offset."""
    return (instr & ((1 << 26) - 1)) << 2


def top4(value: int) -> int:
    """The top four bits of a 32-bit address, the rest cleared."""
    return value & 0xF0000000


def off16(instr: int) -> int:
    """The signed 16-bit branch offset, shifted to a byte offset."""
    return immed(instr) << 2


def extend(value: int, hibitmask: int) -> int:
    """Sign extend ``value`` whose sign bit is ``hibitmask``."""
    if value & hibitmask:
        return value | -hibitmask
    return value


def _name_table(codes: type[IntEnum]) -> tuple[str, ...]:
    known = {member.value: member.name.lower() for member in codes}
    return tuple(known.get(code, f"{code:03o}") for code in range(64))


_NORMAL_NAMES = _name_table(Opcode)
_SPECIAL_NAMES = _name_table(SpecialOp)


def _lookup(table: tuple[str, ...], code: int, kind: str) -> str:
    if not 0 <= code < len(table):
        raise ValueError(f"{kind} {code} out of range 0..{len(table) - 1}")
    return table[code]


def normal_op_name(opcode: int) -> str:
    """Mnemonic of a primary opcode, or its octal value if it has none."""
    return _lookup(_NORMAL_NAMES, opcode, "opcode")


def special_op_name(function: int) -> str:
    """Mnemonic of a SPECIAL function code, or its octal value if it has none."""
    return _lookup(_SPECIAL_NAMES, function, "function code")