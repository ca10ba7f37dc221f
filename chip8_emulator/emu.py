"""
CHIP-8 Virtual Emulator — Main Emulator Class

Integrates:
  - CPU registers + call stack (cpu/regs.py)
  - Opcode decoder (cpu/decoder.py)
  - ALU helpers (cpu/alu.py)
  - 4K memory + font (mem/)
  - Peripherals: pixel buffer, keypad, timers (periph/)

Execution model, one step():
  1. If waiting for a key, do nothing (the whole step is suspended)
  2. Fetch the big-endian word at PC
  3. Decode nibble fields → dispatch key
  4. Execute the handler; it advances PC itself (jumps set it instead)
  5. Tick delay and sound timers, raise a beep on the sound 1 → 0 edge

Stop reasons returned by step():
  - None:             instruction executed, keep stepping
  - WAIT_KEY:         suspended on Fx0A until resolve_key()
  - BREAK:            breakpoint at PC, nothing executed
  - FAULT:            PC, jump target or memory operand out of range
  - STACK_OVERFLOW:   CALL with a full stack
  - STACK_UNDERFLOW:  RET with an empty stack

A faulting step changes no machine state. Unknown instructions are not
faults: they are logged, recorded in ``diagnostics`` and skipped. Each
(pc, word, message) is recorded once; repeats only bump its count in
``diagnostic_counts``.
"""

import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Set, Union

from .config import (
    MEMORY_SIZE, PROGRAM_START, FONT_BASE, INSTRUCTION_SIZE, MAX_DIAGNOSTICS,
)
from .cpu.regs import Registers, StackOverflowError, StackUnderflowError
from .cpu.decoder import decode, Instruction, IllegalInstruction
from .cpu import alu
from .mem.memory import Memory, MemoryAccessError
from .mem.font import FONT_SET, glyph_address
from .periph.display import Display
from .periph.keypad import Keypad
from .periph.timers import Timers

log = logging.getLogger(__name__)


class StopReason(Enum):
    TIMEOUT = 'TIMEOUT'
    BREAK = 'BREAK'
    WAIT_KEY = 'WAIT_KEY'
    FAULT = 'FAULT'
    STACK_OVERFLOW = 'STACK_OVERFLOW'
    STACK_UNDERFLOW = 'STACK_UNDERFLOW'


FATAL_REASONS = frozenset({
    StopReason.FAULT, StopReason.STACK_OVERFLOW, StopReason.STACK_UNDERFLOW,
})


class ProgramCounterError(Exception):
    """Jump target outside memory or not word-aligned."""

    def __init__(self, target: int):
        self.target = target
        super().__init__(f"Invalid jump target ${target:04X}")


# ──────────────────────────────────────────────
# Run state
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Running:
    """Normal fetch/execute."""
    pass


@dataclass(frozen=True)
class WaitingForKey:
    """Suspended on Fx0A. ``register`` receives the key on resolve."""
    register: int


RunState = Union[Running, WaitingForKey]
RUNNING = Running()


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal condition reported while running."""
    pc: int
    word: Optional[int]
    message: str

    def __str__(self) -> str:
        word = f"{self.word:04X}" if self.word is not None else "----"
        return f"${self.pc:03X}: {word}  {self.message}"


class Chip8Emulator:
    """CHIP-8 interpreter core.

    Usage:
        emu = Chip8Emulator(seed=1)
        emu.load_rom('pong.ch8')
        while True:
            reason = emu.step()
            if reason in FATAL_REASONS:
                break
            if emu.consume_dirty():
                frontend.draw(emu.pixels)
    """

    def __init__(self, seed: Optional[int] = None,
                 rng: Optional[random.Random] = None):
        self.regs = Registers()
        self.mem = Memory()
        self.display = Display()
        self.keypad = Keypad()
        self.timers = Timers()

        self.state: RunState = RUNNING
        self._rng = rng if rng is not None else random.Random(seed)

        self._breakpoints: Set[int] = set()
        self._trace = False
        self._trace_output: List[str] = []

        self.diagnostics: Deque[Diagnostic] = deque(maxlen=MAX_DIAGNOSTICS)
        self.diagnostic_counts: Dict[Diagnostic, int] = {}
        self.last_error: Optional[Exception] = None
        self.steps = 0

        self._beep_listeners: List[Callable[[], None]] = []
        self._beep_pending = 0

        self._dispatch = self._build_dispatch()
        self._power_on()

    def _power_on(self):
        self.mem.load_binary(FONT_SET, FONT_BASE)
        self.regs.PC = PROGRAM_START

    def reset(self):
        """Return the whole machine to its post-construction state.

        Breakpoints, trace setting and beep listeners are host-side
        configuration and survive a reset.
        """
        self.regs.reset()
        self.mem.clear()
        self.display.reset()
        self.keypad.reset()
        self.timers.reset()
        self.state = RUNNING
        self.diagnostics = deque(maxlen=MAX_DIAGNOSTICS)
        self.diagnostic_counts = {}
        self.last_error = None
        self.steps = 0
        self._beep_pending = 0
        self._trace_output = []
        self._power_on()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load(self, data: bytes, offset: int):
        """Copy raw bytes into memory at offset.

        Raises MemoryLoadError without writing if the data would run past
        the end of memory. Registers and PC are left alone.
        """
        self.mem.load_binary(data, offset)
        log.debug("Loaded %d bytes at $%03X", len(data), offset)

    def load_rom(self, path_or_data, offset: int = PROGRAM_START):
        """Load a ROM image (bytes or file path) and point PC at it."""
        if isinstance(path_or_data, (str, Path)):
            data = Path(path_or_data).read_bytes()
        else:
            data = bytes(path_or_data)
        self.load(data, offset)
        self.regs.PC = offset
        log.info("ROM loaded: %d bytes at $%03X", len(data), offset)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one fetch/decode/execute/timer cycle."""
        if isinstance(self.state, WaitingForKey):
            return StopReason.WAIT_KEY

        pc = self.regs.PC
        if pc in self._breakpoints:
            return StopReason.BREAK

        try:
            word = self.mem.read16(pc)
        except MemoryAccessError as e:
            return self._fault(StopReason.FAULT, pc, None, e)

        try:
            instr = decode(word)
        except IllegalInstruction as e:
            self._report(pc, word, str(e))
            self._advance()
        else:
            if self._trace:
                self._trace_line(pc, instr)
            try:
                self._dispatch[instr.key](instr)
            except StackOverflowError as e:
                return self._fault(StopReason.STACK_OVERFLOW, pc, word, e)
            except StackUnderflowError as e:
                return self._fault(StopReason.STACK_UNDERFLOW, pc, word, e)
            except (MemoryAccessError, ProgramCounterError) as e:
                return self._fault(StopReason.FAULT, pc, word, e)

        self._tick_timers()
        self.steps += 1
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Step until a stop reason, or TIMEOUT after max_steps steps."""
        count = 0
        while max_steps is None or count < max_steps:
            reason = self.step()
            if reason is not None:
                return reason
            count += 1
        return StopReason.TIMEOUT

    def resolve_key(self, value: int) -> bool:
        """Complete a pending Fx0A with a key value.

        Returns False (and records a diagnostic) when the machine is not
        waiting for a key.
        """
        if not 0 <= value <= 0xFF:
            raise ValueError(f"Key value must be 0-255, got {value!r}")
        if not isinstance(self.state, WaitingForKey):
            self._report(self.regs.PC, None, "resolve_key called while running")
            return False
        self.regs.write(self.state.register, value)
        self.state = RUNNING
        self._advance()
        return True

    # ══════════════════════════════════════════════
    # PC helpers
    # ══════════════════════════════════════════════

    def _advance(self):
        self.regs.PC += INSTRUCTION_SIZE

    def _skip_if(self, condition: bool):
        """Normal advance, plus a second one when the condition holds."""
        self._advance()
        if condition:
            self._advance()

    def _jump(self, target: int):
        if target % INSTRUCTION_SIZE or not 0 <= target < MEMORY_SIZE:
            raise ProgramCounterError(target)
        self.regs.PC = target

    # ══════════════════════════════════════════════
    # Error / diagnostics / timers
    # ══════════════════════════════════════════════

    def _fault(self, reason: StopReason, pc: int, word: Optional[int],
               error: Exception) -> StopReason:
        self.last_error = error
        if word is None:
            log.error("%s at $%03X: %s", reason.value, pc, error)
        else:
            log.error("%s at $%03X (%04X): %s", reason.value, pc, word, error)
        return reason

    def _report(self, pc: int, word: Optional[int], message: str):
        diag = Diagnostic(pc, word, message)
        count = self.diagnostic_counts.get(diag, 0)
        self.diagnostic_counts[diag] = count + 1
        if count:
            return
        log.warning("%s", diag)
        if len(self.diagnostics) == self.diagnostics.maxlen:
            del self.diagnostic_counts[self.diagnostics[0]]
        self.diagnostics.append(diag)

    def _tick_timers(self):
        if self.timers.tick():
            self._beep_pending += 1
            for listener in self._beep_listeners:
                listener()

    def _trace_line(self, pc: int, instr: Instruction):
        line = f"${pc:03X}: {instr.word:04X}  {str(instr):18s} {self.regs.display()}"
        self._trace_output.append(line)
        log.debug(line)

    # ══════════════════════════════════════════════
    # Host-facing state surface
    # ══════════════════════════════════════════════

    @property
    def pixels(self) -> bytes:
        return self.display.pixels

    def consume_dirty(self) -> bool:
        return self.display.consume_dirty()

    @property
    def key_state(self) -> List[bool]:
        return self.keypad.state

    def set_key(self, key: int, pressed: bool):
        self.keypad.set_key(key, pressed)

    @property
    def halted(self) -> bool:
        return isinstance(self.state, WaitingForKey)

    @property
    def halt_register(self) -> Optional[int]:
        if isinstance(self.state, WaitingForKey):
            return self.state.register
        return None

    @property
    def delay_timer(self) -> int:
        return self.timers.delay

    @delay_timer.setter
    def delay_timer(self, value: int):
        self.timers.set_delay(value)

    @property
    def sound_timer(self) -> int:
        return self.timers.sound

    @sound_timer.setter
    def sound_timer(self, value: int):
        self.timers.set_sound(value)

    def on_beep(self, callback: Callable[[], None]):
        """Register a callback fired on every sound-timer 1 → 0 edge."""
        self._beep_listeners.append(callback)

    def consume_beep(self) -> int:
        """Return the number of beeps since the last call and clear it."""
        count = self._beep_pending
        self._beep_pending = 0
        return count

    # --- Debugging ---

    def add_breakpoint(self, addr: int):
        self._breakpoints.add(addr)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr)

    def set_trace(self, enabled: bool = True):
        self._trace = enabled

    @property
    def trace_output(self) -> List[str]:
        return list(self._trace_output)

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(instr). Every handler either advances
    # PC itself or sets it directly; step() never advances on its own.

    def _build_dispatch(self) -> dict:
        """Build dispatch key → handler table."""
        return {
            # ── System / flow ──
            'CLS':       self._op_cls,
            'RET':       self._op_ret,
            'JP':        self._op_jp,
            'CALL':      self._op_call,
            'JP_V0':     self._op_jp_v0,

            # ── Skips ──
            'SE_KK':     self._op_se_kk,
            'SNE_KK':    self._op_sne_kk,
            'SE_VY':     self._op_se_vy,
            'SNE_VY':    self._op_sne_vy,
            'SKP':       self._op_skp,
            'SKNP':      self._op_sknp,

            # ── Register loads / ALU ──
            'LD_KK':     self._op_ld_kk,
            'ADD_KK':    self._op_add_kk,
            'LD_VY':     self._op_ld_vy,
            'OR':        self._op_or,
            'AND':       self._op_and,
            'XOR':       self._op_xor,
            'ADD_VY':    self._op_add_vy,
            'SUB':       self._op_sub,
            'SHR':       self._op_shr,
            'SUBN':      self._op_subn,
            'SHL':       self._op_shl,
            'RND':       self._op_rnd,

            # ── Index / memory ──
            'LD_I':      self._op_ld_i,
            'ADD_I_VX':  self._op_add_i_vx,
            'LD_F_VX':   self._op_ld_f_vx,
            'LD_B_VX':   self._op_ld_b_vx,
            'LD_MEM_VX': self._op_ld_mem_vx,
            'LD_VX_MEM': self._op_ld_vx_mem,

            # ── Display ──
            'DRW':       self._op_drw,

            # ── Timers / keypad wait ──
            'LD_VX_DT':  self._op_ld_vx_dt,
            'LD_DT_VX':  self._op_ld_dt_vx,
            'LD_ST_VX':  self._op_ld_st_vx,
            'LD_VX_K':   self._op_ld_vx_k,
        }

    # ── System / flow ──

    def _op_cls(self, i: Instruction):
        self.display.clear()
        self._advance()

    def _op_ret(self, i: Instruction):
        # CALL pushed its own address; resume at the word after it
        self.regs.PC = self.regs.pop()
        self._advance()

    def _op_jp(self, i: Instruction):
        self._jump(i.nnn)

    def _op_call(self, i: Instruction):
        if i.nnn % INSTRUCTION_SIZE:
            raise ProgramCounterError(i.nnn)
        self.regs.push(self.regs.PC)
        self.regs.PC = i.nnn

    def _op_jp_v0(self, i: Instruction):
        self._jump(i.nnn + self.regs.V[0])

    # ── Skips ──

    def _op_se_kk(self, i: Instruction):
        self._skip_if(self.regs.V[i.x] == i.kk)

    def _op_sne_kk(self, i: Instruction):
        self._skip_if(self.regs.V[i.x] != i.kk)

    def _op_se_vy(self, i: Instruction):
        self._skip_if(self.regs.V[i.x] == self.regs.V[i.y])

    def _op_sne_vy(self, i: Instruction):
        self._skip_if(self.regs.V[i.x] != self.regs.V[i.y])

    def _op_skp(self, i: Instruction):
        self._skip_if(self.keypad.is_pressed(self.regs.V[i.x]))

    def _op_sknp(self, i: Instruction):
        self._skip_if(not self.keypad.is_pressed(self.regs.V[i.x]))

    # ── Register loads / ALU ──

    def _op_ld_kk(self, i: Instruction):
        self.regs.write(i.x, i.kk)
        self._advance()

    def _op_add_kk(self, i: Instruction):
        # VF is not affected
        self.regs.write(i.x, self.regs.V[i.x] + i.kk)
        self._advance()

    def _op_ld_vy(self, i: Instruction):
        self.regs.write(i.x, self.regs.V[i.y])
        self._advance()

    def _op_or(self, i: Instruction):
        self.regs.write(i.x, self.regs.V[i.x] | self.regs.V[i.y])
        self._advance()

    def _op_and(self, i: Instruction):
        self.regs.write(i.x, self.regs.V[i.x] & self.regs.V[i.y])
        self._advance()

    def _op_xor(self, i: Instruction):
        self.regs.write(i.x, self.regs.V[i.x] ^ self.regs.V[i.y])
        self._advance()

    def _op_add_vy(self, i: Instruction):
        # Result first, then carry: ADD VF, Vy leaves the carry in VF
        result, carry = alu.add8(self.regs.V[i.x], self.regs.V[i.y])
        self.regs.write(i.x, result)
        self.regs.flag = carry
        self._advance()

    def _op_sub(self, i: Instruction):
        # Flag first, then result
        result, no_borrow = alu.sub8(self.regs.V[i.x], self.regs.V[i.y])
        self.regs.flag = no_borrow
        self.regs.write(i.x, result)
        self._advance()

    def _op_shr(self, i: Instruction):
        result, msb = alu.shr8(self.regs.V[i.x])
        self.regs.flag = msb
        self.regs.write(i.x, result)
        self._advance()

    def _op_subn(self, i: Instruction):
        result, no_borrow = alu.sub8(self.regs.V[i.y], self.regs.V[i.x])
        self.regs.flag = no_borrow
        self.regs.write(i.x, result)
        self._advance()

    def _op_shl(self, i: Instruction):
        result, lsb = alu.shl8(self.regs.V[i.x])
        self.regs.flag = lsb
        self.regs.write(i.x, result)
        self._advance()

    def _op_rnd(self, i: Instruction):
        self.regs.write(i.x, self._rng.randint(0, 0xFF) & i.kk)
        self._advance()

    # ── Index / memory ──

    def _op_ld_i(self, i: Instruction):
        self.regs.I = i.nnn
        self._advance()

    def _op_add_i_vx(self, i: Instruction):
        self.regs.I = (self.regs.I + self.regs.V[i.x]) & 0xFFFF
        self._advance()

    def _op_ld_f_vx(self, i: Instruction):
        self.regs.I = glyph_address(self.regs.V[i.x])
        self._advance()

    def _op_ld_b_vx(self, i: Instruction):
        self.mem.write_block(self.regs.I, bytes(alu.bcd(self.regs.V[i.x])))
        self._advance()

    def _op_ld_mem_vx(self, i: Instruction):
        self.mem.write_block(self.regs.I, bytes(self.regs.V[:i.x + 1]))
        self._advance()

    def _op_ld_vx_mem(self, i: Instruction):
        data = self.mem.read_block(self.regs.I, i.x + 1)
        for k, value in enumerate(data):
            self.regs.V[k] = value
        self._advance()

    # ── Display ──

    def _op_drw(self, i: Instruction):
        rows = self.mem.read_block(self.regs.I, i.n)
        collision = self.display.draw_sprite(self.regs.V[i.x], self.regs.V[i.y], rows)
        self.regs.flag = collision
        self._advance()

    # ── Timers / keypad wait ──

    def _op_ld_vx_dt(self, i: Instruction):
        self.regs.write(i.x, self.timers.delay)
        self._advance()

    def _op_ld_dt_vx(self, i: Instruction):
        self.timers.set_delay(self.regs.V[i.x])
        self._advance()

    def _op_ld_st_vx(self, i: Instruction):
        self.timers.set_sound(self.regs.V[i.x])
        self._advance()

    def _op_ld_vx_k(self, i: Instruction):
        # PC stays on this instruction until resolve_key() completes it
        self.state = WaitingForKey(i.x)
