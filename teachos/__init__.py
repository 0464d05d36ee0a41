"""MIPS decoding, disassembly and interpretation, COFF/NOFF object file tools, a directory table and example stacks."""

__version__ = "0.1.0"