"""
Program data model for rvstep.

Everything here is inert data. An Instruction records *what* was decoded
(format, mnemonic, operands); the Machine in emu.py decides what it does.

    Instruction  — one decoded line (frozen)
    AsmError     — one compile error {kind, message, line_num}
    Program      — ordered instruction tuple + errors + label table
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Sequence, Tuple


class Format(enum.Enum):
    """Instruction line shapes that produce an instruction."""
    R = "R"                    # op rd, rs1, rs2
    I = "I"                    # op rd, rs1, imm
    S = "S"                    # op rs2, imm, rs1
    U = "U"                    # op rd, imm
    LABEL_JUMP = "labelJump"   # op rd, label


class ErrorKind(enum.Enum):
    UNMATCHED_LINE = "UnmatchedLine"
    UNKNOWN_OPERATOR = "UnknownOperator"
    UNKNOWN_LABEL = "UnknownLabel"
    REGISTER_RANGE = "RegisterRange"


@dataclass(frozen=True)
class AsmError:
    kind: ErrorKind
    message: str
    line_num: int

    def __str__(self):
        return self.message


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction.

    operands holds the decoded values in source order:
      R:          (rd, rs1, rs2)
      I:          (rd, rs1, imm)
      S:          (rs2, imm, rs1)
      U:          (rd, imm)
      LABEL_JUMP: (rd, offset) once resolved, (rd, None) while a placeholder
    """
    fmt: Format
    op: str
    operands: Tuple[Optional[int], ...]
    line_num: int = 0
    label: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return None not in self.operands

    @property
    def text(self) -> str:
        """Canonical text, rebuilt from the decoded operands."""
        ops = self.operands
        if self.fmt is Format.R:
            return f"{self.op} x{ops[0]}, x{ops[1]}, x{ops[2]}"
        if self.fmt is Format.I:
            return f"{self.op} x{ops[0]}, x{ops[1]}, {ops[2]}"
        if self.fmt is Format.S:
            return f"{self.op} x{ops[0]}, {ops[1]}, x{ops[2]}"
        if self.fmt is Format.U:
            return f"{self.op} x{ops[0]}, {ops[1]}"
        # LABEL_JUMP
        if not self.resolved:
            return f"{self.op} x{ops[0]}, {self.label}"
        return f"{self.op} x{ops[0]}, {ops[1]} # {self.label}"

    def __str__(self):
        return self.text


class Program:
    """Compiled program: the instruction arena plus the compile report.

    Built once by the Assembler and not modified afterwards. A program
    with any error is not executable; output() then returns the error
    messages instead of the listing.
    """

    def __init__(self, instructions: Sequence[Instruction] = (),
                 errors: Sequence[AsmError] = (),
                 labels: Optional[Mapping[str, int]] = None):
        self._instructions: Tuple[Instruction, ...] = tuple(instructions)
        self._errors: Tuple[AsmError, ...] = tuple(errors)
        self._labels: Dict[str, int] = dict(labels or {})

    @property
    def instructions(self) -> Tuple[Instruction, ...]:
        return self._instructions

    @property
    def errors(self) -> Tuple[AsmError, ...]:
        return self._errors

    @property
    def labels(self) -> Dict[str, int]:
        return dict(self._labels)

    @property
    def ok(self) -> bool:
        return not self._errors

    def __len__(self) -> int:
        return len(self._instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self._instructions[index]

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._instructions)

    def listing(self) -> str:
        return '\n'.join(instr.text for instr in self._instructions)

    def error_report(self) -> str:
        return '\n'.join(err.message for err in self._errors)

    def output(self) -> str:
        """Error report if compilation failed, else the listing."""
        if self._errors:
            return self.error_report()
        return self.listing()

    def get_listing(self) -> str:
        """Listing with instruction indices and label markers."""
        by_index: Dict[int, list] = {}
        for name, index in self._labels.items():
            by_index.setdefault(index, []).append(name)

        lines = []
        for i, instr in enumerate(self._instructions):
            for name in sorted(by_index.get(i, [])):
                lines.append(f"{name}:")
            lines.append(f"  {i:4d}  {instr.text}")
        for name in sorted(by_index.get(len(self._instructions), [])):
            lines.append(f"{name}:")
        return '\n'.join(lines)

    def __repr__(self):
        return f"Program({len(self)} instructions, {len(self._errors)} errors)"
