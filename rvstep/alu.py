"""
rvstep — ALU Operations

Pure binary functions, one per mnemonic, on signed 32-bit values.
Every result is wrapped back into the signed 32-bit range, which is
what a real register file holds.

Numeric rules:
  overflow   — wraps (two's complement), never saturates
  shifts     — shift amount masked to the low 5 bits
               srl fills with zeros, sra copies the sign bit
  div        — truncates toward zero; INT32_MIN / -1 wraps to INT32_MIN
  rem        — sign follows the dividend; INT32_MIN % -1 == 0
  div/rem 0  — raises DivisionFault (the machine halts with FAULT)

The R-type table (register, register) and the I-type table
(register, immediate) share these functions; the I-type mnemonic is
the R-type one with an 'i' suffix.
"""

from typing import Callable, Dict

WORD_BITS = 32
WORD_MASK = 0xFFFFFFFF
SHIFT_MASK = 0x1F
INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


class MachineFault(Exception):
    """Runtime fault raised by an instruction handler."""


class DivisionFault(MachineFault):
    """Division or remainder by zero."""


def to_signed32(value: int) -> int:
    """Wrap any Python int into the signed 32-bit range."""
    value &= WORD_MASK
    if value & 0x80000000:
        return value - (1 << WORD_BITS)
    return value


def to_unsigned32(value: int) -> int:
    return value & WORD_MASK


# ══════════════════════════════════════════════
# Binary operations: return the wrapped result
# ══════════════════════════════════════════════

def add(a: int, b: int) -> int:
    return to_signed32(a + b)


def sub(a: int, b: int) -> int:
    return to_signed32(a - b)


def slt(a: int, b: int) -> int:
    """Set-less-than, signed compare. Returns 1 or 0."""
    return 1 if to_signed32(a) < to_signed32(b) else 0


def and_(a: int, b: int) -> int:
    return to_signed32(a & b)


def or_(a: int, b: int) -> int:
    return to_signed32(a | b)


def xor(a: int, b: int) -> int:
    return to_signed32(a ^ b)


def sll(a: int, b: int) -> int:
    """Shift left logical. Bits shifted past bit 31 are lost."""
    return to_signed32(to_unsigned32(a) << (b & SHIFT_MASK))


def srl(a: int, b: int) -> int:
    """Shift right logical (zero fill)."""
    return to_signed32(to_unsigned32(a) >> (b & SHIFT_MASK))


def sra(a: int, b: int) -> int:
    """Shift right arithmetic (sign fill)."""
    return to_signed32(to_signed32(a) >> (b & SHIFT_MASK))


def mul(a: int, b: int) -> int:
    """Multiply, keeping the low 32 bits of the product."""
    return to_signed32(to_signed32(a) * to_signed32(b))


def div(a: int, b: int) -> int:
    """Signed divide, truncating toward zero."""
    a, b = to_signed32(a), to_signed32(b)
    if b == 0:
        raise DivisionFault(f"division by zero ({a} / 0)")
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return to_signed32(q)


def rem(a: int, b: int) -> int:
    """Signed remainder; the result takes the sign of the dividend."""
    a, b = to_signed32(a), to_signed32(b)
    if b == 0:
        raise DivisionFault(f"remainder by zero ({a} % 0)")
    r = abs(a) % abs(b)
    if a < 0:
        r = -r
    return to_signed32(r)


# ══════════════════════════════════════════════
# Mnemonic tables
# ══════════════════════════════════════════════

ARITHMETIC: Dict[str, Callable[[int, int], int]] = {
    'add': add,
    'sub': sub,
    'slt': slt,
    'and': and_,
    'or':  or_,
    'xor': xor,
    'sll': sll,
    'srl': srl,
    'sra': sra,
    'mul': mul,
    'div': div,
    'rem': rem,
}

# sub/mul/div/rem have no immediate form.
IMMEDIATE_BASES = ('add', 'slt', 'and', 'or', 'xor', 'sll', 'srl', 'sra')

IMMEDIATE: Dict[str, Callable[[int, int], int]] = {
    f'{name}i': ARITHMETIC[name] for name in IMMEDIATE_BASES
}


def lookup(mnemonic: str) -> Callable[[int, int], int]:
    """Return the ALU function for an R-type or I-type mnemonic."""
    if mnemonic in ARITHMETIC:
        return ARITHMETIC[mnemonic]
    return IMMEDIATE[mnemonic]
