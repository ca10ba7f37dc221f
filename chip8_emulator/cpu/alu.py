"""
CHIP-8 Virtual Emulator — ALU Operations

Every helper is pure and returns a tuple ``(result_byte, flag)`` where
``flag`` is the 0/1 value destined for VF. The caller decides the order
in which the result and the flag are written back (see emu.py), because
VF is also an ordinary register that can be the destination.

Flag contract:
  add8   VF = 1 when the true sum is >= 256 (carry out of bit 7)
  sub8   VF = 1 when a > b strictly (no borrow)
  shr8   VF = bit 7 of the operand, captured before the shift
  shl8   VF = bit 0 of the operand, captured before the shift
"""

from typing import Tuple


def add8(a: int, b: int) -> Tuple[int, int]:
    """a + b mod 256, carry flag."""
    result = a + b
    return (result & 0xFF, 1 if result > 0xFF else 0)


def sub8(a: int, b: int) -> Tuple[int, int]:
    """a - b mod 256, flag = 1 when a > b (no borrow).

    SUBN is sub8(b, a).
    """
    return ((a - b) & 0xFF, 1 if a > b else 0)


def shr8(a: int) -> Tuple[int, int]:
    """Logical shift right by one. Flag = MSB of the operand."""
    return ((a >> 1) & 0xFF, (a >> 7) & 0x01)


def shl8(a: int) -> Tuple[int, int]:
    """Shift left by one, mod 256. Flag = LSB of the operand."""
    return ((a << 1) & 0xFF, a & 0x01)


def bcd(value: int) -> Tuple[int, int, int]:
    """Split an 8-bit value into decimal (hundreds, tens, units)."""
    value &= 0xFF
    return (value // 100, (value // 10) % 10, value % 10)
