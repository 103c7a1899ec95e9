"""
rvstep — RISC-V subset assembler and stepwise interpreter
==========================================================
A small assembler plus a machine that runs the result one instruction
at a time, for trying out RV32I/M-style integer code line by line.

Supports: add sub slt and or xor sll srl sra mul div rem,
          addi slti andi ori xori slli srli srai, jalr, lw, sw, jal.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌───────────┐    ┌──────────┐    ┌───────────┐
    │  Source  │───>│  Lexer   │───>│ Assembler │───>│ Program  │───>│  Machine  │
    │  (text)  │    │ (tokens) │    │ (2 passes)│    │ (records)│    │ (step/run)│
    └──────────┘    └──────────┘    └───────────┘    └──────────┘    └───────────┘

    - lexer.py:     one line → REGISTER / INT / IDENT / COMMA / COLON tokens
    - assembler.py: token shape → instruction record; label placeholders
                    patched in a second pass
    - program.py:   frozen Instruction records, Program container, errors
    - alu.py:       32-bit arithmetic shared by R and I instructions
    - regs.py:      register file (x0 hardwired to zero)
    - memory.py:    word-addressed data memory
    - emu.py:       Machine: load / step / run / stop / reload
"""

__version__ = "0.2.0"

from .alu import DivisionFault, MachineFault
from .assembler import Assembler, AssemblerError, LineShape, assemble, assemble_or_raise
from .emu import Machine, Snapshot, StopReason, UnresolvedJumpFault
from .lexer import Lexer, LexerError, Token, TokenType
from .memory import MEMORY_WORDS, Memory, MemoryFault
from .program import AsmError, ErrorKind, Format, Instruction, Program
from .regs import REGISTER_COUNT, Registers


def compile_source(source: str, *, output: str = "listing") -> str:
    """Assemble source and return its text form.

    Args:
        source: assembly source text.
        output: 'listing' (default), the canonical listing, or the error
                report if assembly failed; 'annotated', the indexed listing
                with labels; 'errors', the error report only.

    Returns:
        The requested text.
    """
    program = assemble(source)
    if output == 'listing':
        return program.output()
    elif output == 'annotated':
        return program.get_listing() if program.ok else program.error_report()
    elif output == 'errors':
        return program.error_report()
    raise ValueError(f"Unknown output kind: {output!r}")
