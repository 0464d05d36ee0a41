# teachos

Tools for the user programs of a small teaching operating system that runs
on a simulated little-endian MIPS machine:

- **Object files**: read MIPS little-endian COFF files (`teachos.coff`).
  Convert them to the NOFF format (`teachos.coff2noff`) or to a flat memory
  image (`teachos.coff2flat`).
- **MIPS code**: decode instruction fields (`teachos.isa`) and disassemble
  single instructions (`teachos.disassembler`). Interpret whole programs
  (`teachos.memory`, `teachos.interpreter`, `teachos.runner`).
- **Directory table**: the fixed-size table of file names and header
  sectors (`teachos.directory`).
- **Examples**: an integer linked list (`teachos.intlist`), plus array and
  list stacks (`teachos.stacks`).

The package needs only the standard library and Python 3.10 or later.

## Installation

```
pip install teachos
```

To run the tests:

```
pip install "teachos[test]"
pytest
```

## Command-line tools

### teachos-coff2noff

```
teachos-coff2noff program.coff program.noff
```

Converts a COFF file to a NOFF file. As it works, it prints the number of
sections and one line for each section.

- `.text` becomes the code segment.
- `.data` or `.rdata` becomes the initialised data. Only one of the two may
  be non-empty.
- `.bss` and `.sbss` become the uninitialised data.

Any other section that is not empty is an error. On an error the output
file is removed and the exit status is 1.

### teachos-coff2flat

```
teachos-coff2flat program.coff program.flat
```

Writes the contents of every section except `.bss` and `.sbss` one after
another. The image is then extended so that a zero word marks the end of a
1024-byte stack above the highest section address.

### teachos-run

```
teachos-run [-t] [-T] [-r] [-m rows assoc linesize policy] [program [args...]]
```

Loads a COFF program into memory at its section addresses and interprets
it from address `0x10000000`. Without a program name it uses `a.out`.

The options are:

- `-t` traces each executed instruction.
- `-r` also dumps the registers after each traced instruction.
- `-T` traces system calls.
- `-m` takes four arguments. They are accepted and ignored.

The exit status is the status the program passes to its exit system call.
It is 2 for an unknown system call or an unimplemented instruction.

### teachos-disasm

```
teachos-disasm [program]
```

Disassembles the `.text` section of a COFF program, which defaults to
`a.out`. It prints one line per word.

### teachos-stack

```
teachos-stack
```

Runs the stack self-tests, which push a run of values and pop them off
again. There are three runs:

- an `ArrayStack` of ten integers starting at 17;
- a `ListStack` of ten integers starting at 17;
- an `ArrayStack` filled with characters starting at `a`.

## Library use

### Decoding and disassembly

```python
from teachos.isa import rs, rt, immed, normal_op_name
from teachos.disassembler import disassemble

word = 0x2484FFFC                        # addiu r4,r4,-4
print(normal_op_name(word >> 26))        # addiu
print(rs(word), rt(word), immed(word))   # 4 4 -4
print(disassemble(word, 0x10000000, True))
```

`register_name(index)` gives the assembler name of a register. For example,
register 29 is `sp`. `Opcode`, `SpecialOp` and `BranchCond` are `IntEnum`s
of the instruction encodings.

### Object files

```python
from teachos.coff import read_coff
from teachos.coff2noff import coff_to_noff
from teachos.coff2flat import coff_to_flat

with open("program.coff", "rb") as f:
    data = f.read()

image = read_coff(data)                  # raises CoffError on bad input
text = image.find_section(".text")
code = image.section_data(text)
noff_bytes = coff_to_noff(data)
flat_bytes = coff_to_flat(data)
```

`FileHeader`, `AoutHeader`, `SectionHeader` and `NoffHeader` each have
`from_bytes` and `to_bytes` methods.

### Interpreter

```python
from teachos.memory import Memory
from teachos.interpreter import Machine
from teachos.runner import load_program

memory = Memory()                        # 16 MiB starting at 0x10000000
load_program(data, memory)               # notes missing sections on stdout
machine = Machine(memory, trace=False)
status = machine.run(0x10000000, ["a.out"])
```

`Machine.step()` executes a single instruction and honours the branch
delay slot. `Machine.dump_registers()` writes the registers and returns
them as text.

The system calls supported are:

- exit, read, write, open, close and lseek;
- the old sbreak (17);
- ioctl, fstat and getpagesize.

An unknown system call ends the program with status 2. The SWL, SWR and
coprocessor instructions raise `UnimplementedInstruction`.

### Directory table

```python
from teachos.directory import Directory

directory = Directory(10)
directory.add("notes", 5)                # False if present or table full
print(directory.find("notes"))           # 5 (None if absent)
print(list(directory.names()))           # ['notes']
raw = directory.to_bytes()
restored = Directory.from_bytes(raw, 10)
```

Names are cut to nine characters.

### Stacks and lists

```python
from teachos.stacks import ArrayStack, ListStack
from teachos.intlist import IntList

stack = ArrayStack(2)
stack.push(1)
stack.push(2)
print(stack.is_full())                   # True
print(stack.pop())                       # 2

items = IntList()
items.prepend(3)
items.prepend(4)
print(list(items))                       # [4, 3]
```

Pushing onto a full `ArrayStack` raises `StackOverflowError`. Popping an
empty stack raises `StackUnderflowError`. `Stack.self_test(num_to_push,
start)` returns the lines it would print.

## What is not included

The directory table is the only part of the file system here. There is no
simulated disk, file header, open file, free-sector bitmap or file system
built on them. `Directory` only converts its table to and from bytes. The
interpreter runs user programs directly on the host and does not simulate
a kernel.