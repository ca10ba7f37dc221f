"""
CHIP-8 Virtual Emulator — CPU Register Set + Call Stack

Register model:
  V0–VE  8-bit general purpose registers
  VF     8-bit register that is ALSO the carry / borrow / collision flag.
         Ordinary instructions (LD, OR, SE, ...) read and write it like
         any other slot. ADD/SUB/SUBN/SHR/SHL and DRW overwrite it as a
         side effect. Both views share the same storage: V[0xF] and the
         `flag` property are the same byte.
  I      16-bit index register (memory operand base)
  PC     16-bit program counter, always even
  SP     stack pointer; 0 = empty, stack[SP] = top entry

Stack discipline (matches the CALL/RET convention):
  push:  SP += 1; stack[SP] = value
  pop:   value = stack[SP]; SP -= 1

Slot 0 is never written, so the usable depth is STACK_DEPTH - 1 entries.
Overflow and underflow raise instead of wrapping.
"""

from typing import List

from ..config import NUM_REGISTERS, FLAG_REGISTER, STACK_DEPTH, PROGRAM_START


class StackError(Exception):
    """Call stack misuse (not a memory fault)."""
    pass


class StackOverflowError(StackError):
    """CALL with the stack already full."""
    pass


class StackUnderflowError(StackError):
    """RET with the stack empty."""
    pass


class Registers:
    """CHIP-8 register file, index register, PC and call stack."""

    __slots__ = ('V', 'I', 'PC', 'SP', 'stack')

    def __init__(self):
        self.V: List[int] = [0] * NUM_REGISTERS
        self.I: int = 0
        self.PC: int = PROGRAM_START
        self.SP: int = 0
        self.stack: List[int] = [0] * STACK_DEPTH

    # --- VF tagged accessor ---

    @property
    def flag(self) -> int:
        """VF viewed as the ALU / collision flag."""
        return self.V[FLAG_REGISTER]

    @flag.setter
    def flag(self, value: int):
        self.V[FLAG_REGISTER] = 1 if value else 0

    # --- Register access ---

    def read(self, index: int) -> int:
        return self.V[index & 0xF]

    def write(self, index: int, value: int):
        """Store an 8-bit value (wraps mod 256)."""
        self.V[index & 0xF] = value & 0xFF

    # --- Stack operations ---

    @property
    def stack_empty(self) -> bool:
        return self.SP == 0

    @property
    def stack_full(self) -> bool:
        return self.SP >= STACK_DEPTH - 1

    def push(self, value: int):
        """Push a 16-bit return address. Raises StackOverflowError when full."""
        if self.stack_full:
            raise StackOverflowError(
                f"Stack overflow: push of ${value:03X} with SP={self.SP}")
        self.SP += 1
        self.stack[self.SP] = value & 0xFFFF

    def pop(self) -> int:
        """Pop the top return address. Raises StackUnderflowError when empty."""
        if self.stack_empty:
            raise StackUnderflowError("Stack underflow: pop with SP=0")
        value = self.stack[self.SP]
        self.SP -= 1
        return value

    # --- Display ---

    def display(self) -> str:
        """Format register state for debugging."""
        regs = ' '.join(f'V{i:X}={v:02X}' for i, v in enumerate(self.V))
        return f"PC={self.PC:03X} I={self.I:03X} SP={self.SP:X} {regs}"

    def reset(self):
        """Reset to power-on state."""
        self.V = [0] * NUM_REGISTERS
        self.I = 0
        self.PC = PROGRAM_START
        self.SP = 0
        self.stack = [0] * STACK_DEPTH
