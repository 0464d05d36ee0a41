"""A MIPS instruction interpreter with a small set of Unix system calls."""

from __future__ import annotations

import mmap
import os
import sys
from collections.abc import Callable, Iterable
from typing import TextIO

from teachos.disassembler import disassemble
from teachos.isa import BranchCond, Opcode, SpecialOp, immed, rd, rs, rt, shamt
from teachos.memory import Memory

_MASK = 0xFFFFFFFF

SYS_EXIT = 1
SYS_READ = 3
SYS_WRITE = 4
SYS_OPEN = 5
SYS_CLOSE = 6
SYS_SBREAK = 17
SYS_LSEEK = 19
SYS_IOCTL = 54
SYS_FSTAT = 62
SYS_GETPAGESIZE = 64


class MachineExit(Exception):
    """Raised when the simulated program ends; carries its exit status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"exit status {status}")
        self.status = status


class UnimplementedInstruction(Exception):
    """Raised for an instruction the interpreter cannot execute."""


def _s32(value: int) -> int:
    value &= _MASK
    return value - (1 << 32) if value & 0x80000000 else value


def _u32(value: int) -> int:
    return value & _MASK


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def ilog2(value: int) -> int:
    """Number of bits needed to hold ``value`` taken as unsigned 32-bit."""
    return _u32(value).bit_length()


_Binary = Callable[[int, int], int]

_SHIFTS: dict[int, tuple[_Binary, bool]] = {
    SpecialOp.SLL: (lambda v, n: v << n, False),
    SpecialOp.SRL: (lambda v, n: _u32(v) >> n, False),
    SpecialOp.SRA: (lambda v, n: v >> n, False),
    SpecialOp.SLLV: (lambda v, n: v << n, True),
    SpecialOp.SRLV: (lambda v, n: _u32(v) >> n, True),
    SpecialOp.SRAV: (lambda v, n: v >> n, True),
}

_ALU: dict[int, _Binary] = {
    SpecialOp.ADD: lambda a, b: a + b,
    SpecialOp.ADDU: lambda a, b: a + b,
    SpecialOp.SUB: lambda a, b: a - b,
    SpecialOp.SUBU: lambda a, b: a - b,
    SpecialOp.AND: lambda a, b: a & b,
    SpecialOp.OR: lambda a, b: a | b,
    SpecialOp.XOR: lambda a, b: a ^ b,
    SpecialOp.NOR: lambda a, b: ~(a | b),
    SpecialOp.SLT: lambda a, b: int(a < b),
    SpecialOp.SLTU: lambda a, b: int(_u32(a) < _u32(b)),
}

# The immediate is sign extended for every operation, logical ones included.
_IMMEDIATE: dict[int, _Binary] = {
    Opcode.ADDI: lambda a, imm: a + imm,
    Opcode.ADDIU: lambda a, imm: a + imm,
    Opcode.SLTI: lambda a, imm: int(a < imm),
    Opcode.SLTIU: lambda a, imm: int(_u32(a) < _u32(imm)),
    Opcode.ANDI: lambda a, imm: a & imm,
    Opcode.ORI: lambda a, imm: a | imm,
    Opcode.XORI: lambda a, imm: a ^ imm,
}

_BRANCHES: dict[int, Callable[[int, int], bool]] = {
    Opcode.BEQ: lambda a, b: a == b,
    Opcode.BNE: lambda a, b: a != b,
    Opcode.BLEZ: lambda a, b: a <= 0,
    Opcode.BGTZ: lambda a, b: a > 0,
}

_LOADS: dict[int, Callable[[Memory, int], int]] = {
    Opcode.LB: Memory.cfetch,
    Opcode.LH: Memory.sfetch,
    Opcode.LW: Memory.fetch,
    Opcode.LBU: Memory.ucfetch,
    Opcode.LHU: Memory.usfetch,
}

_STORES: dict[int, Callable[[Memory, int, int], None]] = {
    Opcode.SB: Memory.cstore,
    Opcode.SH: Memory.sstore,
    Opcode.SW: Memory.store,
}

_COPROCESSOR = (
    Opcode.LWC0, Opcode.LWC1, Opcode.LWC2, Opcode.LWC3,
    Opcode.SWC0, Opcode.SWC1, Opcode.SWC2, Opcode.SWC3,
    Opcode.COP0, Opcode.COP1, Opcode.COP2, Opcode.COP3,
)


class Machine:
    """Registers, memory and the fetch-execute loop of the simulated CPU."""

    def __init__(
        self,
        memory: Memory | None = None,
        trace: bool = False,
        reg_trace: bool = False,
        trap_trace: bool = False,
        out: TextIO | None = None,
    ) -> None:
        self.memory = memory if memory is not None else Memory()
        self.trace = trace
        self.reg_trace = reg_trace
        self.trap_trace = trap_trace
        self.out = out if out is not None else sys.stdout
        self.registers = [0] * 32
        self.hi = 0
        self.lo = 0
        self.pc = self.memory.offset
        self.npc = _u32(self.pc + 4)
        self.icount = 0
        self._primary: dict[int, Callable[[int, int], None]] = {
            Opcode.SPECIAL: self._special,
            Opcode.BCOND: self._bcond,
            Opcode.J: self._jump,
            Opcode.JAL: self._jump,
            Opcode.LUI: self._lui,
            Opcode.LWL: self._lwl,
            Opcode.LWR: self._lwr,
            Opcode.SWL: self._partial_store,
            Opcode.SWR: self._partial_store,
            **{op: self._branch for op in _BRANCHES},
            **{op: self._immediate for op in _IMMEDIATE},
            **{op: self._load for op in _LOADS},
            **{op: self._store for op in _STORES},
            **{op: self._coprocessor for op in _COPROCESSOR},
        }
        self._syscalls: dict[int, Callable[[int, int, int], int]] = {
            SYS_EXIT: self._sys_exit,
            SYS_READ: self._sys_read,
            SYS_WRITE: self._sys_write,
            SYS_OPEN: self._sys_open,
            SYS_CLOSE: lambda o0, o1, o2: 0,
            SYS_SBREAK: lambda o0, o1, o2: (_trunc_div(o0, 8192) + 1) * 8192,
            SYS_LSEEK: self._sys_lseek,
            SYS_IOCTL: lambda o0, o1, o2: 0,
            SYS_FSTAT: self._sys_fstat,
            SYS_GETPAGESIZE: lambda o0, o1, o2: mmap.PAGESIZE,
        }

    def _emit(self, text: str) -> None:
        self.out.write(text)

    def _set(self, index: int, value: int) -> None:
        self.registers[index] = _s32(value)

    def setup_arguments(self, args: Iterable[str | bytes]) -> None:
        """Set the stack pointer and lay out argc and argv below the top of memory."""
        sp = self.memory.offset + self.memory.size - 1024
        self._set(29, sp)
        arg_list = list(args)
        self.memory.store(sp, len(arg_list))
        slot = sp + 4
        text = slot + 32
        for arg in arg_list:
            raw = arg if isinstance(arg, bytes) else arg.encode("utf-8")
            self.memory.load(text, raw + b"\0")
            self.memory.store(slot, text)
            slot += 4
            text += len(raw) + 1

    def step(self) -> None:
        """Execute one instruction, honouring the branch delay slot."""
        self.icount += 1
        xpc = self.pc
        self.pc = self.npc
        self.npc = _u32(self.pc + 4)
        instr = _u32(self.memory.fetch(xpc))
        self.registers[0] = 0
        if instr != 0:
            handler = self._primary.get(instr >> 26)
            if handler is None:
                raise UnimplementedInstruction("Unimplemented Instruction")
            handler(instr, xpc)
        if self.trace:
            self._emit(disassemble(instr, xpc) + "\n")
            if self.reg_trace:
                self.dump_registers()

    def run(self, start_pc: int | None = None, args: Iterable[str | bytes] = ()) -> int:
        """Run from ``start_pc`` until the program exits; return its status."""
        self.pc = self.memory.offset if start_pc is None else _u32(start_pc)
        self.npc = _u32(self.pc + 4)
        self.setup_arguments(args)
        try:
            while True:
                self.step()
        except MachineExit as done:
            return done.status

    def _special(self, instr: int, xpc: int) -> None:
        function = instr & 0x3F
        regs = self.registers
        a, b = regs[rs(instr)], regs[rt(instr)]
        if function in _SHIFTS:
            op, variable = _SHIFTS[function]
            amount = (a & 0x1F) if variable else shamt(instr)
            self._set(rd(instr), op(b, amount))
        elif function in _ALU:
            self._set(rd(instr), _ALU[function](a, b))
        elif function == SpecialOp.JR:
            self.npc = _u32(a)
        elif function == SpecialOp.JALR:
            self.npc = _u32(a)
            self._set(rd(instr), xpc + 8)
        elif function == SpecialOp.SYSCALL:
            self.system_trap()
        elif function == SpecialOp.BREAK:
            self.system_break()
        elif function == SpecialOp.MFHI:
            self._set(rd(instr), self.hi)
        elif function == SpecialOp.MTHI:
            self.hi = a
        elif function == SpecialOp.MFLO:
            self._set(rd(instr), self.lo)
        elif function == SpecialOp.MTLO:
            self.lo = a
        elif function in (SpecialOp.MULT, SpecialOp.MULTU):
            product = a * b if function == SpecialOp.MULT else _u32(a) * _u32(b)
            self.lo = _s32(product)
            self.hi = _s32(product >> 32)
        elif function in (SpecialOp.DIV, SpecialOp.DIVU):
            if function == SpecialOp.DIVU:
                a, b = _u32(a), _u32(b)
            if b == 0:
                raise ZeroDivisionError("integer division by zero")
            quotient = _trunc_div(a, b)
            self.lo = _s32(quotient)
            self.hi = _s32(a - b * quotient)
        else:
            raise UnimplementedInstruction("Unimplemented Instruction")

    def _bcond(self, instr: int, xpc: int) -> None:
        cond = rt(instr)
        if cond in (BranchCond.BLTZAL, BranchCond.BGEZAL):
            self._set(31, xpc + 8)
        value = self.registers[rs(instr)]
        if cond in (BranchCond.BLTZ, BranchCond.BLTZAL):
            taken = value < 0
        elif cond in (BranchCond.BGEZ, BranchCond.BGEZAL):
            taken = value >= 0
        else:
            raise UnimplementedInstruction("Unimplemented Instruction")
        if taken:
            self.npc = _u32(xpc + 4 + (immed(instr) << 2))

    def _jump(self, instr: int, xpc: int) -> None:
        if instr >> 26 == Opcode.JAL:
            self._set(31, xpc + 8)
        self.npc = (xpc & 0xF0000000) | ((instr & 0x03FFFFFF) << 2)

    def _branch(self, instr: int, xpc: int) -> None:
        test = _BRANCHES[instr >> 26]
        if test(self.registers[rs(instr)], self.registers[rt(instr)]):
            self.npc = _u32(xpc + 4 + (immed(instr) << 2))

    def _immediate(self, instr: int, xpc: int) -> None:
        op = _IMMEDIATE[instr >> 26]
        self._set(rt(instr), op(self.registers[rs(instr)], immed(instr)))

    def _lui(self, instr: int, xpc: int) -> None:
        self._set(rt(instr), instr << 16)

    def _address(self, instr: int) -> int:
        return _u32(self.registers[rs(instr)] + immed(instr))

    def _load(self, instr: int, xpc: int) -> None:
        self._set(rt(instr), _LOADS[instr >> 26](self.memory, self._address(instr)))

    def _store(self, instr: int, xpc: int) -> None:
        _STORES[instr >> 26](self.memory, self._address(instr), self.registers[rt(instr)])

    def _lwl(self, instr: int, xpc: int) -> None:
        address = self.registers[rs(instr)] + immed(instr)
        word = self.memory.fetch(_u32(address & 0xFFFFFFFC))
        self._set(rt(instr), self.registers[rt(instr)] | (word << (8 * (address & 0x03))))

    def _lwr(self, instr: int, xpc: int) -> None:
        address = self.registers[rs(instr)] + immed(instr)
        value = self.registers[rt(instr)] & (-1 << (8 * (address & 0x03)))
        if address & 0x03 == 0:
            value = 0
        word = self.memory.fetch(_u32(address & 0xFFFFFFFC))
        self._set(rt(instr), value | (word >> (8 * ((-address) & 0x03))))

    def _partial_store(self, instr: int, xpc: int) -> None:
        name = "SWL" if instr >> 26 == Opcode.SWL else "SWR"
        raise UnimplementedInstruction(f"sorry, no {name} yet.")

    def _coprocessor(self, instr: int, xpc: int) -> None:
        raise UnimplementedInstruction("Sorry, no coprocessors.")

    def system_break(self) -> None:
        """Handle a BREAK instruction as a system call."""
        if self.trap_trace:
            self._emit("**breakpoint ")
        self.system_trap()

    def system_trap(self) -> None:
        """Carry out the system call numbered in r2 with arguments in r4..r6."""
        regs = self.registers
        if self.trap_trace:
            self._emit(f"**System call {regs[2]}\n")
            self.dump_registers()
        number, o0, o1, o2 = regs[2], regs[4], regs[5], regs[6]
        handler = self._syscalls.get(number)
        if handler is None:
            self._emit(f"Unknown System call {number}\n")
            if not self.trap_trace:
                self.dump_registers()
            raise MachineExit(2)
        self._set(1, handler(o0, o1, o2))
        if self.trap_trace:
            self._emit("**Afterwards:\n")
            self.dump_registers()

    def _sys_exit(self, o0: int, o1: int, o2: int) -> int:
        self.out.flush()
        raise MachineExit(0)

    def _sys_read(self, fd: int, address: int, count: int) -> int:
        if count < 0:
            return -1
        try:
            data = os.read(fd, count)
        except OSError:
            return -1
        self.memory.load(_u32(address), data)
        return len(data)

    def _sys_write(self, fd: int, address: int, count: int) -> int:
        if count < 0:
            return -1
        data = self.memory.read_bytes(_u32(address), count)
        try:
            if fd == 1:
                self.out.write(data.decode("latin-1"))
            elif fd == 2:
                sys.stderr.write(data.decode("latin-1"))
            else:
                return os.write(fd, data)
        except OSError:
            return -1
        return len(data)

    def _sys_open(self, address: int, flags: int, mode: int) -> int:
        path = self.memory.read_string(_u32(address)).encode("latin-1")
        try:
            return os.open(path, flags, mode)
        except OSError:
            return -1

    def _sys_lseek(self, fd: int, offset: int, whence: int) -> int:
        try:
            return os.lseek(fd, offset, whence)
        except (OSError, ValueError):
            return -1

    def _sys_fstat(self, o0: int, fd: int, o2: int) -> int:
        try:
            os.fstat(fd)
        except OSError:
            return -1
        return 0

    def dump_registers(self) -> str:
        """Write the 32 general registers, eight per row, and return the text."""
        rows = []
        for start, label in zip(range(0, 32, 8), (" 0:", " 8:", "16:", "24:")):
            words = "".join(f" {_u32(v):08x}" for v in self.registers[start:start + 8])
            rows.append(label + words + "\n")
        text = "".join(rows)
        self._emit(text)
        return text