"""
rvstep — Register File

Register model:
  x0        — hardwired zero: always reads 0, writes are discarded
  x1..x31   — general purpose, signed 32-bit
  pc        — index into the program's instruction tuple (not a byte
              address); kept on the Machine, shown here for display

Every write is wrapped to signed 32-bit, so a register can never hold
a value the hardware could not.
"""

from typing import List, Tuple

from .alu import to_signed32

REGISTER_ADDRESS_BITS = 5
REGISTER_COUNT = 1 << REGISTER_ADDRESS_BITS


class Registers:
    """32-entry integer register file."""

    __slots__ = ('_x',)

    def __init__(self):
        self._x: List[int] = [0] * REGISTER_COUNT

    def __getitem__(self, index: int) -> int:
        if index == 0:
            return 0
        return self._x[index]

    def __setitem__(self, index: int, value: int):
        if index != 0:
            self._x[index] = to_signed32(value)

    def __len__(self) -> int:
        return REGISTER_COUNT

    def values(self) -> Tuple[int, ...]:
        return tuple(self[i] for i in range(REGISTER_COUNT))

    # --- Display ---

    def display(self, pc: int = 0, columns: int = 4) -> str:
        """Format the register file as a table (pc row, then x0..x31)."""
        rows = [f"{'pc':>4} {pc:>11}"]
        for base in range(0, REGISTER_COUNT, columns):
            cells = [f"{'x' + str(i):>4} {self[i]:>11}"
                     for i in range(base, min(base + columns, REGISTER_COUNT))]
            rows.append("  ".join(cells))
        return '\n'.join(rows)
