"""
rvstep Two-Pass Assembler.

Turns line-oriented assembly text into a Program (program.py).

Input:  source text, one label, instruction, comment or blank per line
Output: Program — instruction tuple, label table and error list

Line shapes (decided from the token sequence, not from regex priority):
  R          op rd, rs1, rs2        add x1, x2, x3
  I          op rd, rs1, imm        addi x1, x2, -4   jalr x1, x2, 0   lw x1, x2, 8
  S          op rs2, imm, rs1       sw x2, 4, x1
  U          op rd, imm             jal x1, 3
  labelJump  op rd, label           jal x0, loop
  label      name:                  loop:      (may also prefix an instruction)
  empty      blank or comment-only  # comment

How the two passes work:
  Pass 1: Walk the lines in order. Instructions are appended to the arena
          (a plain list indexed by program position). A label records the
          current arena length. A jump to a label appends a placeholder
          slot and remembers (slot, label, line, rd, op).
  Pass 2: For every remembered jump, look the label up and replace the
          placeholder with a resolved jump whose offset is target - slot.

Errors never stop the assembler. Every problem is recorded with its
line number and the next line is processed, so one run reports as
many errors as possible.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from . import alu
from .lexer import Lexer, LexerError, Token, TokenType
from .program import AsmError, ErrorKind, Format, Instruction, Program
from .regs import REGISTER_COUNT

__all__ = ['Assembler', 'AssemblerError', 'LineShape', 'OPCODES',
           'assemble', 'assemble_or_raise']

logger = logging.getLogger(__name__)


class AssemblerError(Exception):
    """Raised by assemble_or_raise() when a program has compile errors."""
    def __init__(self, errors: Sequence[AsmError]):
        self.errors: Tuple[AsmError, ...] = tuple(errors)
        self.line_num = self.errors[0].line_num if self.errors else 0
        super().__init__("Assembly errors:\n" + "\n".join(e.message for e in self.errors))


# ──────────────────────────────────────────────
# Line shapes
# ──────────────────────────────────────────────

class LineShape(enum.Enum):
    R = "R"
    I = "I"
    S = "S"
    U = "U"
    LABEL_JUMP = "labelJump"
    LABEL = "label"
    EMPTY = "empty"
    UNMATCHED = "unmatched"


# Operand schema per instruction shape: token types between the commas.
OPERAND_SCHEMAS: Dict[Tuple[TokenType, ...], LineShape] = {
    (TokenType.REGISTER, TokenType.REGISTER, TokenType.REGISTER): LineShape.R,
    (TokenType.REGISTER, TokenType.REGISTER, TokenType.INT):      LineShape.I,
    (TokenType.REGISTER, TokenType.INT,      TokenType.REGISTER): LineShape.S,
    (TokenType.REGISTER, TokenType.INT):                          LineShape.U,
    (TokenType.REGISTER, TokenType.IDENT):                        LineShape.LABEL_JUMP,
}

# Operand positions holding register indices, per shape.
REGISTER_SLOTS: Dict[LineShape, Tuple[int, ...]] = {
    LineShape.R: (0, 1, 2),
    LineShape.I: (0, 1),
    LineShape.S: (0, 2),
    LineShape.U: (0,),
    LineShape.LABEL_JUMP: (0,),
}

SHAPE_FORMATS: Dict[LineShape, Format] = {
    LineShape.R: Format.R,
    LineShape.I: Format.I,
    LineShape.S: Format.S,
    LineShape.U: Format.U,
    LineShape.LABEL_JUMP: Format.LABEL_JUMP,
}


# ──────────────────────────────────────────────
# Opcode tables
# ──────────────────────────────────────────────
# Format: { shape: (mnemonic, ...) }
#
# Mnemonics are matched case-sensitively. The arithmetic mnemonics come
# straight from the ALU tables so the two can never drift apart.
# Not implemented: lui, auipc, branches, byte/half loads and stores,
# mulh*/divu/remu.

OPCODES: Dict[LineShape, Tuple[str, ...]] = {
    LineShape.R: tuple(alu.ARITHMETIC),
    LineShape.I: tuple(alu.IMMEDIATE) + ('jalr', 'lw'),
    LineShape.S: ('sw',),
    LineShape.U: ('jal',),
    LineShape.LABEL_JUMP: ('jal',),
}


# ──────────────────────────────────────────────
# Line Parser
# ──────────────────────────────────────────────

@dataclass
class AsmLine:
    """Classified assembly source line."""
    shape: LineShape = LineShape.EMPTY
    mnemonic: Optional[str] = None
    operands: Tuple = ()
    label: Optional[str] = None
    line_num: int = 0
    raw: str = ""


@dataclass
class PendingJump:
    """A label jump waiting for pass 2."""
    slot: int
    label: str
    line_num: int
    rd: int
    op: str


def _split_operands(tokens: List[Token]) -> Optional[List[Token]]:
    """Return the operand tokens of 'op a, b, c', or None if the commas are wrong."""
    operands: List[Token] = []
    expect_operand = True
    for tok in tokens:
        if tok.type is TokenType.EOF:
            break
        if expect_operand:
            if tok.type not in (TokenType.REGISTER, TokenType.INT, TokenType.IDENT):
                return None
            operands.append(tok)
        elif tok.type is not TokenType.COMMA:
            return None
        expect_operand = not expect_operand

    # Empty operand list or a dangling comma
    if not operands or expect_operand:
        return None
    return operands


def _parse_line(line: str, line_num: int) -> AsmLine:
    """Tokenize one line and classify it into a LineShape."""
    result = AsmLine(line_num=line_num, raw=line)

    try:
        tokens = Lexer(line, line_num).tokenize()
    except LexerError:
        result.shape = LineShape.UNMATCHED
        return result

    # "name:" alone, or in front of an instruction
    if tokens[0].type is TokenType.IDENT and tokens[1].type is TokenType.COLON:
        result.label = tokens[0].value
        tokens = tokens[2:]

    if tokens[0].type is TokenType.EOF:
        result.shape = LineShape.LABEL if result.label else LineShape.EMPTY
        return result

    if tokens[0].type is not TokenType.IDENT:
        result.shape = LineShape.UNMATCHED
        return result

    operands = _split_operands(tokens[1:])
    if operands is None:
        result.shape = LineShape.UNMATCHED
        return result

    shape = OPERAND_SCHEMAS.get(tuple(tok.type for tok in operands))
    if shape is None:
        result.shape = LineShape.UNMATCHED
        return result

    result.shape = shape
    result.mnemonic = tokens[0].value
    result.operands = tuple(tok.value for tok in operands)
    return result


# ──────────────────────────────────────────────
# The Assembler
# ──────────────────────────────────────────────

class Assembler:
    """Two-pass assembler producing a Program.

    Usage:
        asm = Assembler()
        program = asm.assemble(source_text)
        if program.ok:
            print(program.listing())
        else:
            print(program.error_report())
    """

    def __init__(self):
        self.labels: Dict[str, int] = {}            # label -> instruction index
        self.errors: List[AsmError] = []            # accumulated compile errors
        self._slots: List[Instruction] = []         # instruction arena
        self._pending: List[PendingJump] = []       # label jumps awaiting pass 2
        self._lines: List[AsmLine] = []

    def assemble(self, source: str) -> Program:
        """Assemble source text into a Program.

        Pass 1: classify every line, fill the arena, record labels and
                placeholder slots for label jumps.
        Pass 2: patch every placeholder with its resolved offset.

        Never raises for bad input; check Program.ok / Program.errors.
        """
        self.labels = {}
        self.errors = []
        self._slots = []
        self._pending = []
        self._lines = [_parse_line(line, i) for i, line in enumerate(source.split('\n'), 1)]

        self._pass1()
        self._pass2()

        program = Program(self._slots, self.errors, self.labels)
        logger.debug("Assembled %d instructions, %d labels, %d errors",
                     len(program), len(self.labels), len(self.errors))
        return program

    def _error(self, kind: ErrorKind, message: str, line_num: int):
        logger.debug("Line %d: %s", line_num, message)
        self.errors.append(AsmError(kind, message, line_num))

    def _pass1(self):
        """Pass 1: decode instructions, record labels and pending jumps."""
        for line in self._lines:
            self._pass1_line(line)

    def _pass1_line(self, line: AsmLine):
        if line.label is not None:
            self.labels[line.label] = len(self._slots)

        if line.shape in (LineShape.EMPTY, LineShape.LABEL):
            return

        if line.shape is LineShape.UNMATCHED:
            self._error(ErrorKind.UNMATCHED_LINE,
                        f"Unknown operator format: '{line.raw.strip()}' at line {line.line_num}",
                        line.line_num)
            return

        if line.mnemonic not in OPCODES[line.shape]:
            self._error(ErrorKind.UNKNOWN_OPERATOR,
                        f"Unknown operator '{line.mnemonic}' of type '{line.shape.value}' "
                        f"at line {line.line_num}",
                        line.line_num)
            return

        for pos in REGISTER_SLOTS[line.shape]:
            reg = line.operands[pos]
            if reg >= REGISTER_COUNT:
                self._error(ErrorKind.REGISTER_RANGE,
                            f"Register 'x{reg}' out of range (x0-x{REGISTER_COUNT - 1}) "
                            f"at line {line.line_num}",
                            line.line_num)
                return

        fmt = SHAPE_FORMATS[line.shape]

        if line.shape is LineShape.LABEL_JUMP:
            rd, label = line.operands
            self._pending.append(PendingJump(len(self._slots), label, line.line_num,
                                             rd, line.mnemonic))
            self._slots.append(Instruction(fmt, line.mnemonic, (rd, None),
                                           line.line_num, label))
            return

        self._slots.append(Instruction(fmt, line.mnemonic, line.operands, line.line_num))

    def _pass2(self):
        """Pass 2: replace each placeholder slot with a resolved jump."""
        for jump in self._pending:
            target = self.labels.get(jump.label)
            if target is None:
                self._error(ErrorKind.UNKNOWN_LABEL,
                            f"Unknown label '{jump.label}' at line {jump.line_num}",
                            jump.line_num)
                continue
            self._slots[jump.slot] = Instruction(Format.LABEL_JUMP, jump.op,
                                                 (jump.rd, target - jump.slot),
                                                 jump.line_num, jump.label)


def assemble(source: str) -> Program:
    """Convenience function: assemble source and return the Program."""
    return Assembler().assemble(source)


def assemble_or_raise(source: str) -> Program:
    """Assemble source; raise AssemblerError listing every error if any."""
    program = assemble(source)
    if not program.ok:
        raise AssemblerError(program.errors)
    return program
