"""Turn single MIPS instructions into assembler text."""

from __future__ import annotations

from collections.abc import Callable

from teachos.isa import (
    NOP,
    BranchCond,
    Opcode,
    SpecialOp,
    immed,
    normal_op_name,
    off16,
    off26,
    rd,
    rs,
    rt,
    shamt,
    special_op_name,
    top4,
)

_WORD = 0xFFFFFFFF

_REGISTERS = (
    "0", "r1", "r2", "r3", "r4", "r5", "r6", "r7", "r8", "r9",
    "r10", "r11", "r12", "r13", "r14", "r15", "r16", "r17", "r18", "r19",
    "r20", "r21", "r22", "r23", "r24", "r25", "r26", "r27", "gp", "sp",
    "r30", "r31",
)


def register_name(index: int) -> str:
    """The assembler name of general register ``index``."""
    if not 0 <= index < len(_REGISTERS):
        raise ValueError(f"register {index} out of range 0..31")
    return _REGISTERS[index]


def _hex(value: int) -> str:
    return f"{value & _WORD:x}"


def _branch_target(instr: int, pc: int) -> str:
    return f"{(off16(instr) + pc + 4) & _WORD:08x}"


_R = register_name
_Formatter = Callable[[int, int], str]

_SPECIAL_FORMATS: dict[frozenset[int], _Formatter] = {
    frozenset({SpecialOp.SLL, SpecialOp.SRL, SpecialOp.SRA}):
        lambda i, pc: f"{_R(rd(i))},{_R(rt(i))},0x{shamt(i):x}",
    frozenset({SpecialOp.SLLV, SpecialOp.SRLV, SpecialOp.SRAV}):
        lambda i, pc: f"{_R(rd(i))},{_R(rt(i))},{_R(rs(i))}",
    frozenset({SpecialOp.JR, SpecialOp.JALR, SpecialOp.MFLO, SpecialOp.MTLO}):
        lambda i, pc: _R(rs(i)),
    frozenset({SpecialOp.MFHI, SpecialOp.MTHI}):
        lambda i, pc: _R(rd(i)),
    frozenset({SpecialOp.MULT, SpecialOp.MULTU, SpecialOp.DIV, SpecialOp.DIVU}):
        lambda i, pc: f"{_R(rs(i))},{_R(rt(i))}",
    frozenset({
        SpecialOp.ADD, SpecialOp.ADDU, SpecialOp.SUB, SpecialOp.SUBU,
        SpecialOp.AND, SpecialOp.OR, SpecialOp.XOR, SpecialOp.NOR,
        SpecialOp.SLT, SpecialOp.SLTU,
    }):
        lambda i, pc: f"{_R(rd(i))},{_R(rs(i))},{_R(rt(i))}",
}

_NORMAL_FORMATS: dict[frozenset[int], _Formatter] = {
    frozenset({Opcode.J, Opcode.JAL}):
        lambda i, pc: f"{(top4(pc) | off26(i)) & _WORD:08x}",
    frozenset({Opcode.BEQ, Opcode.BNE}):
        lambda i, pc: f"{_R(rt(i))},{_R(rs(i))},{_branch_target(i, pc)}",
    frozenset({
        Opcode.ADDI, Opcode.ADDIU, Opcode.SLTI, Opcode.SLTIU,
        Opcode.ANDI, Opcode.ORI, Opcode.XORI,
    }):
        lambda i, pc: f"{_R(rt(i))},{_R(rs(i))},0x{_hex(immed(i))}",
    frozenset({Opcode.LUI}):
        lambda i, pc: f"{_R(rt(i))},0x{_hex(immed(i))}",
    frozenset({
        Opcode.LB, Opcode.LH, Opcode.LWL, Opcode.LW, Opcode.LBU, Opcode.LHU,
        Opcode.LWR, Opcode.SB, Opcode.SH, Opcode.SWL, Opcode.SW, Opcode.SWR,
        Opcode.LWC0, Opcode.LWC1, Opcode.LWC2, Opcode.LWC3,
        Opcode.SWC0, Opcode.SWC1, Opcode.SWC2, Opcode.SWC3,
    }):
        lambda i, pc: f"{_R(rt(i))},0x{_hex(immed(i))}({_R(rs(i))})",
}


def _operands(table: dict[frozenset[int], _Formatter], code: int, instr: int, pc: int) -> str:
    for codes, formatter in table.items():
        if code in codes:
            return formatter(instr, pc)
    return ""


def _body(instr: int, pc: int) -> str:
    opcode = instr >> 26
    if instr == NOP:
        return "nop"
    if opcode == Opcode.SPECIAL:
        function = instr & 0x3F
        return f"{special_op_name(function)}\t" + _operands(_SPECIAL_FORMATS, function, instr, pc)
    if opcode == Opcode.BCOND:
        try:
            name = BranchCond(rt(instr)).name.lower()
        except ValueError:
            name = "BCOND"
        return f"{name}\t{_R(rs(instr))},{_branch_target(instr, pc)}"
    return f"{normal_op_name(opcode)}\t" + _operands(_NORMAL_FORMATS, opcode, instr, pc)


def disassemble(instruction: int, pc: int, show_address: bool = True) -> str:
    """Render one instruction found at address ``pc``.

    With ``show_address`` the line starts with the address and the raw word.
    """
    instr = instruction & _WORD
    pc &= _WORD
    prefix = f"{pc:08x}: {instr:08x}  " if show_address else ""
    return prefix + "\t" + _body(instr, pc)