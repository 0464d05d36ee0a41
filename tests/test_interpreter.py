import io
import mmap
import struct

import pytest

from teachos.disassembler import disassemble
from teachos.interpreter import Machine, MachineExit, UnimplementedInstruction, ilog2
from teachos.isa import Opcode, SpecialOp
from teachos.memory import Memory

BASE = 0x10000000
WORD = 0xFFFFFFFF


def r_type(func, rs=0, rt=0, rd=0, sh=0):
    return (rs << 21) | (rt << 16) | (rd << 11) | (sh << 6) | func


def i_type(op, rs, rt, imm):
    return (op << 26) | (rs << 21) | (rt << 16) | (imm & 0xFFFF)


EXIT = [i_type(Opcode.ADDIU, 0, 2, 1), r_type(SpecialOp.SYSCALL)]


def make_machine(words, **kwargs):
    memory = Memory(size=0x10000, offset=BASE)
    memory.load(BASE, b"".join(struct.pack("<I", w) for w in words))
    out = io.StringIO()
    return Machine(memory, out=out, **kwargs), out


def run(words, **kwargs):
    machine, out = make_machine(words + EXIT, **kwargs)
    status = machine.run(BASE, ["prog"])
    return machine, out, status


def test_exit_status_and_add():
    machine, _, status = run([
        i_type(Opcode.ADDIU, 0, 8, 5),
        i_type(Opcode.ADDI, 0, 9, -3),
        r_type(SpecialOp.ADD, rs=8, rt=9, rd=10),
    ])
    assert status == 0
    assert machine.registers[9] == -3
    assert machine.registers[10] == 5 + -3


def test_add_wraps_to_32_bits():
    machine, _, _ = run([
        i_type(Opcode.LUI, 0, 8, 0x8000),
        i_type(Opcode.ADDIU, 8, 9, -1),
    ])
    assert machine.registers[8] == -(2 ** 31)
    assert machine.registers[9] == 2 ** 31 - 1


def test_register_zero_is_forced():
    machine, _, _ = run([
        i_type(Opcode.ADDIU, 0, 0, 5),
        i_type(Opcode.ADDIU, 0, 8, 0),
    ])
    assert machine.registers[8] == 0


def test_shifts_on_negative_value():
    machine, _, _ = run([
        i_type(Opcode.LUI, 0, 8, 0x8000),
        r_type(SpecialOp.SRA, rt=8, rd=9, sh=4),
        r_type(SpecialOp.SRL, rt=8, rd=10, sh=4),
    ])
    r9, r10 = machine.registers[9], machine.registers[10]
    assert r9 < 0
    assert r10 > 0
    assert (r9 & 0x0FFFFFFF) == r10


def test_set_less_than_signed_and_unsigned():
    machine, _, _ = run([
        i_type(Opcode.ADDIU, 0, 8, -1),
        i_type(Opcode.ADDIU, 0, 9, 1),
        r_type(SpecialOp.SLTU, rs=9, rt=8, rd=10),
        r_type(SpecialOp.SLT, rs=9, rt=8, rd=11),
    ])
    assert machine.registers[10] == 1
    assert machine.registers[11] == 0


def test_signed_multiply():
    machine, _, _ = run([
        i_type(Opcode.ADDIU, 0, 8, -3),
        i_type(Opcode.ADDIU, 0, 9, 7),
        r_type(SpecialOp.MULT, rs=8, rt=9),
        r_type(SpecialOp.MFLO, rd=10),
        r_type(SpecialOp.MFHI, rd=11),
    ])
    lo, hi = machine.registers[10], machine.registers[11]
    assert (hi << 32) | (lo & WORD) == -3 * 7


def test_unsigned_multiply():
    machine, _, _ = run([
        i_type(Opcode.ADDIU, 0, 8, -1),
        i_type(Opcode.ADDIU, 0, 9, 2),
        r_type(SpecialOp.MULTU, rs=8, rt=9),
    ])
    assert ((machine.hi & WORD) << 32) | (machine.lo & WORD) == WORD * 2


def test_signed_divide_truncates():
    machine, _, _ = run([
        i_type(Opcode.ADDIU, 0, 8, -7),
        i_type(Opcode.ADDIU, 0, 9, 2),
        r_type(SpecialOp.DIV, rs=8, rt=9),
    ])
    assert machine.lo == -3
    assert machine.lo * 2 + machine.hi == -7
    assert machine.hi <= 0


def test_divide_by_zero():
    machine, _ = make_machine([r_type(SpecialOp.DIV, rs=8, rt=9)])
    with pytest.raises(ZeroDivisionError):
        machine.run(BASE)


def test_branch_delay_slot():
    machine, _, status = run([
        i_type(Opcode.BEQ, 0, 0, 2),
        i_type(Opcode.ADDIU, 0, 8, 1),
        i_type(Opcode.ADDIU, 0, 9, 1),
    ])
    assert status == 0
    assert machine.registers[8] == 1
    assert machine.registers[9] == 0


def test_jal_links_return_address():
    target = ((BASE + 12) >> 2) & 0x03FFFFFF
    machine, _, _ = run([
        (Opcode.JAL << 26) | target,
        0,
        i_type(Opcode.ADDIU, 0, 9, 1),
    ])
    assert machine.registers[31] == BASE + 8
    assert machine.registers[9] == 0


def test_byte_store_and_loads():
    machine, _, _ = run([
        i_type(Opcode.LUI, 0, 8, 0x1000),
        i_type(Opcode.ADDIU, 0, 9, -1),
        i_type(Opcode.SB, 8, 9, 0x200),
        i_type(Opcode.LB, 8, 10, 0x200),
        i_type(Opcode.LBU, 8, 11, 0x200),
    ])
    assert machine.registers[10] == -1
    assert machine.registers[11] == 0xFF
    assert machine.memory.ucfetch(BASE + 0x200) == 0xFF


def test_word_store_and_load():
    machine, _, _ = run([
        i_type(Opcode.LUI, 0, 8, 0x1000),
        i_type(Opcode.ADDIU, 0, 9, -42),
        i_type(Opcode.SW, 8, 9, 0x300),
        i_type(Opcode.LW, 8, 10, 0x300),
    ])
    assert machine.registers[10] == -42
    assert machine.memory.fetch(BASE + 0x300) == -42


def test_write_system_call_goes_to_out():
    machine, out = make_machine([
        i_type(Opcode.ADDIU, 0, 4, 1),
        i_type(Opcode.LUI, 0, 5, 0x1000),
        i_type(Opcode.ORI, 5, 5, 0x100),
        i_type(Opcode.ADDIU, 0, 6, 4),
        i_type(Opcode.ADDIU, 0, 2, 4),
        r_type(SpecialOp.SYSCALL),
    ] + EXIT)
    machine.memory.load(BASE + 0x100, b"hi!\n")
    assert machine.run(BASE) == 0
    assert out.getvalue() == "hi!\n"
    assert machine.registers[1] == 4


def test_unknown_system_call():
    machine, out, status = run([
        i_type(Opcode.ADDIU, 0, 2, 99),
        r_type(SpecialOp.SYSCALL),
    ])
    assert status == 2
    assert "Unknown System call 99" in out.getvalue()
    assert " 0:" in out.getvalue()


def test_exit_system_call_raises():
    machine, _ = make_machine([])
    machine.registers[2] = 1
    with pytest.raises(MachineExit) as info:
        machine.system_trap()
    assert info.value.status == 0


def test_sbreak_rounds_up():
    machine, _ = make_machine([])
    machine.registers[2] = 17
    machine.registers[4] = 100
    machine.system_trap()
    assert machine.registers[1] == 8192


def test_getpagesize():
    machine, _ = make_machine([])
    machine.registers[2] = 64
    machine.system_trap()
    assert machine.registers[1] == mmap.PAGESIZE


def test_trap_trace_output():
    machine, out = make_machine([], trap_trace=True)
    machine.registers[2] = 6
    machine.system_trap()
    text = out.getvalue()
    assert text.startswith("**System call 6\n")
    assert "**Afterwards:\n" in text
    assert machine.registers[1] == 0


def test_break_with_trap_trace():
    machine, out = make_machine([], trap_trace=True)
    machine.registers[2] = 1
    with pytest.raises(MachineExit):
        machine.system_break()
    assert out.getvalue().startswith("**breakpoint **System call 1")


def test_swl_is_unimplemented():
    machine, _ = make_machine([i_type(Opcode.SWL, 0, 8, 0)])
    with pytest.raises(UnimplementedInstruction):
        machine.run(BASE)


def test_coprocessor_is_unimplemented():
    machine, _ = make_machine([(Opcode.COP1 << 26) | 1])
    with pytest.raises(UnimplementedInstruction, match="coprocessors"):
        machine.run(BASE)


def test_unknown_special_is_unimplemented():
    machine, _ = make_machine([r_type(0o01, rd=1)])
    with pytest.raises(UnimplementedInstruction):
        machine.step()


def test_trace_prints_disassembly():
    machine, out, _ = run([], trace=True, reg_trace=True)
    text = out.getvalue()
    assert disassemble(EXIT[0], BASE) in text
    assert "24:" in text


def test_setup_arguments_layout():
    machine, _ = make_machine([])
    machine.setup_arguments(["a", "bc"])
    sp = machine.registers[29] & WORD
    memory = machine.memory
    assert sp == memory.offset + memory.size - 1024
    assert memory.fetch(sp) == 2
    assert memory.read_string(memory.fetch(sp + 4) & WORD) == "a"
    assert memory.read_string(memory.fetch(sp + 8) & WORD) == "bc"


def test_dump_registers_rows():
    machine, out = make_machine([])
    machine.registers[8] = -1
    text = machine.dump_registers()
    lines = text.splitlines()
    assert [line[:3] for line in lines] == [" 0:", " 8:", "16:", "24:"]
    assert lines[1].split()[1] == "ffffffff"
    assert out.getvalue() == text


def test_ilog2():
    assert ilog2(0) == 0
    for k in range(32):
        assert ilog2(1 << k) == k + 1
    assert ilog2(-1) == 32