"""
rvstep — Word-Addressed Data Memory

A flat array of MEMORY_WORDS signed 32-bit words. Addresses are word
indices computed by the instruction (base register + immediate), not
byte offsets. Reading or writing outside 0..MEMORY_WORDS-1 raises
MemoryFault; the machine turns that into a FAULT halt.
"""

from typing import List, Tuple

from .alu import MachineFault, to_signed32

MEMORY_WORDS = 1 << 16


class MemoryFault(MachineFault):
    """Access outside the data memory."""


class Memory:
    """Word-addressable data memory, zero-initialised."""

    def __init__(self, size: int = MEMORY_WORDS):
        self.size = size
        self._mem: List[int] = [0] * size

    def _check(self, addr: int, access: str):
        if not 0 <= addr < self.size:
            raise MemoryFault(
                f"{access} at address {addr} outside memory (0-{self.size - 1})")

    def read(self, addr: int) -> int:
        self._check(addr, "load")
        return self._mem[addr]

    def write(self, addr: int, value: int):
        self._check(addr, "store")
        self._mem[addr] = to_signed32(value)

    def dump(self, start: int = 0, count: int = 16) -> List[Tuple[int, int]]:
        """Return (address, value) pairs, clipped to the memory bounds."""
        start = max(0, start)
        end = min(self.size, start + max(0, count))
        return [(addr, self._mem[addr]) for addr in range(start, end)]

    def __len__(self) -> int:
        return self.size
