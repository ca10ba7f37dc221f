"""
KingAI CHIP-8 Virtual Emulator
==============================
A pure-software interpreter core for the CHIP-8 virtual machine.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌─────────────┐
    │  Memory  │───>│ Decoder  │───>│ Handlers │───>│ Peripherals │
    │ (4K map) │    │ (nibbles)│    │ (emu.py) │    │ (fb/keys/DT)│
    └──────────┘    └──────────┘    └──────────┘    └─────────────┘

    - cpu/regs.py:      V0-VF (VF = flag), I, PC, call stack
    - cpu/decoder.py:   word -> Instruction (mask/pattern table)
    - cpu/alu.py:       8-bit add/sub/shift helpers returning (result, flag)
    - mem/memory.py:    bounds-checked 4K memory, bulk load, snapshots
    - periph/:          64x32 pixel buffer, hex keypad, delay/sound timers
    - emu.py:           fetch/decode/execute/timer loop, halt-on-key state
    - disasm.py:        ROM disassembler
    - rombuilder.py:    pack instruction words into a ROM image

The core performs no I/O: a frontend reads ``pixels`` after
``consume_dirty()``, sets keys on ``keypad``, and plays a tone on beep.
"""

__version__ = "0.1.0"
__author__ = "KingAI"

from .emu import (
    Chip8Emulator, StopReason, FATAL_REASONS, Diagnostic,
    Running, WaitingForKey, RUNNING, ProgramCounterError,
)
from .cpu.regs import Registers, StackError, StackOverflowError, StackUnderflowError
from .cpu.decoder import decode, Instruction, IllegalInstruction
from .mem.memory import Memory, MemoryAccessError, MemoryLoadError
from .disasm import Disassembler, DisassembledInstruction
from .rombuilder import build_rom, write_rom, RomBuildError
