"""
CHIP-8 Virtual Emulator — Core Integration Tests

Tests that prove the emulator executes real CHIP-8 machine code. Each
program is hand-assembled (Cowgod's reference encoding) and loaded at
$200 — no external tools or ROM files required.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from chip8_emulator import Chip8Emulator, StopReason, WaitingForKey, RUNNING
from chip8_emulator.mem.memory import MemoryLoadError
from chip8_emulator.config import MAX_DIAGNOSTICS


def _emu(*words, seed=0):
    """Emulator with the given instruction words loaded at $200."""
    emu = Chip8Emulator(seed=seed)
    data = b''.join(w.to_bytes(2, 'big') for w in words)
    emu.load_rom(data)
    return emu


# ═══════════════════════════════════════════════
# Test Group 1: Loading / lifecycle
# ═══════════════════════════════════════════════

class TestLifecycle:

    def test_power_on_state(self):
        """Fresh machine: PC=$200, registers zero, font at $000"""
        emu = Chip8Emulator()
        assert emu.regs.PC == 0x200
        assert emu.regs.V == [0] * 16
        assert emu.regs.I == 0
        assert emu.regs.SP == 0
        assert emu.mem.read_block(0, 5) == bytes([0xF0, 0x90, 0x90, 0x90, 0xF0])
        assert emu.mem.read8(0x200) == 0
        assert emu.pixels == bytes(64 * 32)
        assert not emu.halted

    def test_load_does_not_touch_pc(self):
        emu = Chip8Emulator()
        emu.load(bytes([0x12, 0x34]), 0x300)
        assert emu.regs.PC == 0x200
        assert emu.mem.read16(0x300) == 0x1234

    def test_load_overflow_rejected_without_write(self):
        """load() past $FFF fails and leaves memory untouched"""
        emu = Chip8Emulator()
        with pytest.raises(MemoryLoadError):
            emu.load(bytes([0xAA] * 4), 0xFFE)
        assert emu.mem.read8(0xFFE) == 0
        assert emu.mem.read8(0xFFF) == 0

    def test_load_exactly_to_end(self):
        emu = Chip8Emulator()
        emu.load(bytes([0xAB, 0xCD]), 0xFFE)
        assert emu.mem.read16(0xFFE) == 0xABCD

    def test_load_rom_from_path(self, tmp_path):
        rom = tmp_path / "prog.ch8"
        rom.write_bytes(bytes([0x60, 0x2A]))
        emu = Chip8Emulator()
        emu.load_rom(rom)
        emu.step()
        assert emu.regs.V[0] == 0x2A

    def test_reset(self):
        emu = _emu(0x6A05, 0xF0FF)
        emu.step()
        emu.display.draw_sprite(0, 0, [0xFF])
        emu.reset()
        assert emu.regs.V[0xA] == 0
        assert emu.regs.PC == 0x200
        assert emu.mem.read8(0x200) == 0
        assert emu.pixels == bytes(64 * 32)
        assert emu.mem.read8(0) == 0xF0


# ═══════════════════════════════════════════════
# Test Group 2: Individual instructions
# ═══════════════════════════════════════════════

class TestLoads:

    @pytest.mark.parametrize("x", range(16))
    def test_ld_vx_kk(self, x):
        """6xkk → Vx = kk for every register"""
        emu = _emu(0x6000 | (x << 8) | 0x5A)
        emu.step()
        assert emu.regs.V[x] == 0x5A
        assert emu.regs.PC == 0x202

    def test_ld_overwrites(self):
        """V0=5; 600A → V0=10, PC+=2"""
        emu = _emu(0x600A)
        emu.regs.V[0] = 5
        emu.step()
        assert emu.regs.V[0] == 10
        assert emu.regs.PC == 0x202

    def test_ld_vx_vy(self):
        emu = _emu(0x6377, 0x8130)
        emu.step()
        emu.step()
        assert emu.regs.V[1] == 0x77

    def test_ld_i(self):
        """A123 at $000 with PC=0 → I=$123, PC=2"""
        emu = Chip8Emulator()
        emu.load(bytes([0xA1, 0x23]), 0)
        emu.regs.PC = 0
        emu.step()
        assert emu.regs.I == 0x123
        assert emu.regs.PC == 2


class TestArithmetic:
    """Flag behaviour must be bit-exact."""

    def test_add_kk_wraps_without_flag(self):
        """7xkk wraps mod 256 and leaves VF alone"""
        emu = _emu(0x60F0, 0x6F07, 0x7020)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0x10
        assert emu.regs.V[0xF] == 0x07

    def test_add_vy_no_carry(self):
        emu = _emu(0x6010, 0x6120, 0x8014)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0x30
        assert emu.regs.flag == 0

    def test_add_vy_carry(self):
        """$FF + $01 → $00, VF=1"""
        emu = _emu(0x60FF, 0x6101, 0x8014)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0x00
        assert emu.regs.V[0xF] == 1

    def test_add_vy_exactly_256(self):
        emu = _emu(0x6080, 0x6180, 0x8014)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0
        assert emu.regs.flag == 1

    def test_add_into_vf_keeps_carry(self):
        """8F14: VF = carry wins over the sum"""
        emu = _emu(0x6FFF, 0x6102, 0x8F14)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0xF] == 1

    @pytest.mark.parametrize("words,expected", [
        ((0x6F81, 0x8F06), 0x40),           # SHR VF: result wins over MSB
        ((0x6F81, 0x8F0E), 0x02),           # SHL VF: result wins over LSB
        ((0x6F30, 0x6010, 0x8F05), 0x20),   # SUB VF, V0
        ((0x6F10, 0x6030, 0x8F07), 0x20),   # SUBN VF, V0
    ])
    def test_vf_destination_result_wins(self, words, expected):
        """8xy5/6/7/E with x=F write the flag first, then the result"""
        emu = _emu(*words)
        for _ in words:
            emu.step()
        assert emu.regs.V[0xF] == expected

    def test_sub_no_borrow(self):
        """$30 - $10 → $20, VF=1"""
        emu = _emu(0x6030, 0x6110, 0x8015)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0x20
        assert emu.regs.flag == 1

    def test_sub_borrow(self):
        """$10 - $30 → $E0, VF=0"""
        emu = _emu(0x6010, 0x6130, 0x8015)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0xE0
        assert emu.regs.flag == 0

    def test_sub_equal_operands_sets_zero_flag(self):
        """Vx == Vy is not strictly greater → VF=0"""
        emu = _emu(0x6042, 0x6142, 0x8015)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0
        assert emu.regs.flag == 0

    def test_subn(self):
        """8xy7: Vx = Vy - Vx"""
        emu = _emu(0x6010, 0x6130, 0x8017)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0x20
        assert emu.regs.flag == 1

    def test_subn_borrow(self):
        emu = _emu(0x6030, 0x6110, 0x8017)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0xE0
        assert emu.regs.flag == 0

    def test_shr_captures_msb(self):
        """8xy6: VF = bit 7 before the shift"""
        emu = _emu(0x6081, 0x8006)
        emu.step()
        emu.step()
        assert emu.regs.V[0] == 0x40
        assert emu.regs.flag == 1

    def test_shr_msb_clear(self):
        emu = _emu(0x6003, 0x8006)
        emu.step()
        emu.step()
        assert emu.regs.V[0] == 0x01
        assert emu.regs.flag == 0

    def test_shl_captures_lsb(self):
        """8xyE: VF = bit 0 before the shift, result mod 256"""
        emu = _emu(0x6081, 0x800E)
        emu.step()
        emu.step()
        assert emu.regs.V[0] == 0x02
        assert emu.regs.flag == 1

    def test_shl_lsb_clear(self):
        emu = _emu(0x6040, 0x800E)
        emu.step()
        emu.step()
        assert emu.regs.V[0] == 0x80
        assert emu.regs.flag == 0


class TestLogic:

    def test_or(self):
        emu = _emu(0x60F0, 0x610F, 0x8011)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0xFF

    def test_and(self):
        emu = _emu(0x60F3, 0x613F, 0x8012)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0x33

    def test_xor(self):
        emu = _emu(0x60FF, 0x610F, 0x8013)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[0] == 0xF0

    def test_rnd_masked(self):
        """Cxkk result never has bits outside kk"""
        emu = _emu(*([0xC00F] * 50))
        for _ in range(50):
            emu.step()
            assert emu.regs.V[0] & 0xF0 == 0

    def test_rnd_seeded_reproducible(self):
        a = _emu(0xC0FF, 0xC1FF, seed=42)
        b = _emu(0xC0FF, 0xC1FF, seed=42)
        for emu in (a, b):
            emu.step()
            emu.step()
        assert a.regs.V[:2] == b.regs.V[:2]


class TestFlow:

    def test_jp(self):
        """1nnn sets PC directly, no extra advance"""
        emu = _emu(0x1300)
        emu.step()
        assert emu.regs.PC == 0x300

    def test_jp_v0(self):
        emu = _emu(0x6004, 0xB300)
        emu.step()
        emu.step()
        assert emu.regs.PC == 0x304

    def test_call_ret_round_trip(self):
        """CALL $206 ... RET → back at $202, SP restored"""
        emu = _emu(
            0x2206,  # $200 CALL $206
            0x6101,  # $202 LD V1, #01
            0x1204,  # $204 JP $204
            0x6A07,  # $206 LD VA, #07
            0x00EE,  # $208 RET
        )
        assert emu.regs.SP == 0
        emu.step()
        assert emu.regs.PC == 0x206
        assert emu.regs.SP == 1
        emu.step()
        emu.step()
        assert emu.regs.PC == 0x202
        assert emu.regs.SP == 0
        emu.step()
        assert emu.regs.V[1] == 1
        assert emu.regs.V[0xA] == 7

    def test_nested_calls(self):
        emu = _emu(
            0x2204,  # $200 CALL $204
            0x1202,  # $202 JP $202
            0x2208,  # $204 CALL $208
            0x00EE,  # $206 RET
            0x00EE,  # $208 RET
        )
        emu.step()
        emu.step()
        assert emu.regs.SP == 2
        emu.step()
        assert emu.regs.PC == 0x206
        emu.step()
        assert emu.regs.PC == 0x202
        assert emu.regs.SP == 0


class TestSkips:
    """Skips are two 2-byte advances when taken, one when not."""

    @pytest.mark.parametrize("word,v0,expected_pc", [
        (0x3005, 5, 0x204),   # SE V0, #05 taken
        (0x3005, 6, 0x202),   # not taken
        (0x4005, 6, 0x204),   # SNE V0, #05 taken
        (0x4005, 5, 0x202),   # not taken
    ])
    def test_skip_immediate(self, word, v0, expected_pc):
        emu = _emu(word)
        emu.regs.V[0] = v0
        emu.step()
        assert emu.regs.PC == expected_pc

    @pytest.mark.parametrize("word,v1,expected_pc", [
        (0x5010, 9, 0x204),   # SE V0, V1 taken
        (0x5010, 8, 0x202),
        (0x9010, 8, 0x204),   # SNE V0, V1 taken
        (0x9010, 9, 0x202),
    ])
    def test_skip_register(self, word, v1, expected_pc):
        emu = _emu(word)
        emu.regs.V[0] = 9
        emu.regs.V[1] = v1
        emu.step()
        assert emu.regs.PC == expected_pc

    def test_skp_pressed(self):
        emu = _emu(0xE39E)
        emu.regs.V[3] = 0xA
        emu.keypad.press(0xA)
        emu.step()
        assert emu.regs.PC == 0x204

    def test_set_key_and_key_state(self):
        emu = _emu(0xE39E)
        emu.regs.V[3] = 0x7
        emu.set_key(0x7, True)
        state = emu.key_state
        assert state[0x7] is True
        assert sum(state) == 1
        state[0x7] = False          # a copy, not the live bitmap
        emu.step()
        assert emu.regs.PC == 0x204

    def test_skp_not_pressed(self):
        emu = _emu(0xE39E)
        emu.regs.V[3] = 0xA
        emu.step()
        assert emu.regs.PC == 0x202

    def test_sknp(self):
        emu = _emu(0xE3A1, 0xE3A1)
        emu.regs.V[3] = 0x2
        emu.step()
        assert emu.regs.PC == 0x204
        emu.keypad.press(0x2)
        emu.regs.PC = 0x202
        emu.step()
        assert emu.regs.PC == 0x204


class TestIndexMemory:

    def test_add_i_vx(self):
        emu = _emu(0xA100, 0x6020, 0xF01E)
        for _ in range(3):
            emu.step()
        assert emu.regs.I == 0x120

    def test_ld_f_points_at_glyph(self):
        """Fx29 → I = Vx * 5"""
        emu = _emu(0x600A, 0xF029)
        emu.step()
        emu.step()
        assert emu.regs.I == 50
        assert emu.mem.read_block(emu.regs.I, 5) == bytes([0xF0, 0x90, 0xF0, 0x90, 0x90])

    def test_bcd(self):
        """Fx33 with Vx=254 → 2, 5, 4"""
        emu = _emu(0x60FE, 0xA300, 0xF033)
        for _ in range(3):
            emu.step()
        assert emu.mem.read_block(0x300, 3) == bytes([2, 5, 4])

    def test_store_registers_inclusive(self):
        """Fx55 copies V0..Vx inclusive, nothing beyond"""
        emu = _emu(0x6011, 0x6122, 0x6233, 0x6344, 0xA300, 0xF255)
        for _ in range(6):
            emu.step()
        assert emu.mem.read_block(0x300, 4) == bytes([0x11, 0x22, 0x33, 0x00])
        assert emu.regs.I == 0x300

    def test_load_registers_inclusive(self):
        emu = _emu(0xA300, 0xF165)
        emu.load(bytes([0xDE, 0xAD, 0xBE]), 0x300)
        emu.step()
        emu.step()
        assert emu.regs.V[:3] == [0xDE, 0xAD, 0]


class TestTimers:

    def test_delay_decrements_to_floor(self):
        """DT=2; three steps of A000 → 1, 0, 0"""
        emu = _emu(0xA000, 0xA000, 0xA000)
        emu.delay_timer = 2
        emu.step()
        assert emu.delay_timer == 1
        emu.step()
        assert emu.delay_timer == 0
        emu.step()
        assert emu.delay_timer == 0

    def test_ld_dt_and_read_back(self):
        """Fx15 then Fx07 in the next step sees the ticked value"""
        emu = _emu(0x6005, 0xF015, 0xF107)
        for _ in range(3):
            emu.step()
        assert emu.regs.V[1] == 4

    def test_beep_on_sound_timer_edge(self):
        emu = _emu(0x6002, 0xF018, 0xA000, 0xA000)
        beeps = []
        emu.on_beep(lambda: beeps.append(emu.regs.PC))
        emu.step()
        emu.step()          # ST=2, ticks to 1
        assert beeps == []
        emu.step()          # 1 → 0
        assert len(beeps) == 1
        assert emu.consume_beep() == 1
        assert emu.consume_beep() == 0
        emu.step()
        assert len(beeps) == 1


class TestDraw:

    def test_draw_glyph(self):
        """Draw digit 0 at (0,0): top row is 1111"""
        emu = _emu(0x6000, 0xF029, 0xD005)
        for _ in range(3):
            emu.step()
        assert emu.pixels[0:5] == bytes([1, 1, 1, 1, 0])
        assert emu.pixels[64:69] == bytes([1, 0, 0, 1, 0])
        assert emu.regs.flag == 0
        assert emu.consume_dirty()
        assert not emu.consume_dirty()

    def test_draw_twice_restores_and_collides(self):
        emu = _emu(0x6205, 0x6303, 0xA000, 0xD235, 0xD235)
        for _ in range(4):
            emu.step()
        before = emu.pixels
        assert any(before)
        emu.consume_dirty()
        emu.step()
        assert emu.pixels == bytes(64 * 32)
        assert emu.regs.flag == 1
        assert emu.consume_dirty()

    def test_offscreen_pixels_discarded(self):
        """Sprite at x=60 loses columns 64-67, no wrap to column 0"""
        emu = _emu(0x603C, 0x6100, 0xA300, 0xD011)
        emu.load(bytes([0xFF]), 0x300)
        for _ in range(4):
            emu.step()
        assert emu.pixels[60:64] == bytes([1, 1, 1, 1])
        assert emu.pixels[0:4] == bytes(4)

    def test_cls(self):
        emu = _emu(0xA000, 0xD005, 0x00E0)
        for _ in range(3):
            emu.step()
        assert emu.pixels == bytes(64 * 32)
        assert emu.regs.PC == 0x206


class TestWaitForKey:

    def test_wait_suspends_everything(self):
        emu = _emu(0xF50A, 0x6001)
        emu.delay_timer = 10
        emu.step()
        assert emu.halted
        assert emu.halt_register == 5
        assert emu.state == WaitingForKey(5)
        pc, dt = emu.regs.PC, emu.delay_timer
        for _ in range(5):
            assert emu.step() is StopReason.WAIT_KEY
        assert emu.regs.PC == pc == 0x200
        assert emu.delay_timer == dt

    def test_resolve_key_resumes(self):
        emu = _emu(0xF50A, 0x6001)
        emu.step()
        assert emu.resolve_key(0xB)
        assert emu.regs.V[5] == 0xB
        assert emu.regs.PC == 0x202
        assert emu.state is RUNNING
        assert not emu.halted
        assert emu.step() is None
        assert emu.regs.V[0] == 1

    def test_resolve_key_while_running_is_reported(self):
        emu = _emu(0x6001)
        assert emu.resolve_key(3) is False
        assert emu.regs.PC == 0x200
        assert len(emu.diagnostics) == 1

    def test_resolve_key_rejects_bad_value(self):
        emu = _emu(0xF00A)
        emu.step()
        with pytest.raises(ValueError):
            emu.resolve_key(256)
        assert emu.halted


# ═══════════════════════════════════════════════
# Test Group 3: Errors
# ═══════════════════════════════════════════════

class TestErrors:

    def test_unknown_instruction_is_skipped(self):
        """$5001 is not a valid sub-code: diagnostic + advance"""
        emu = _emu(0x5001, 0x6007)
        assert emu.step() is None
        assert emu.regs.PC == 0x202
        assert len(emu.diagnostics) == 1
        assert emu.diagnostics[0].word == 0x5001
        emu.step()
        assert emu.regs.V[0] == 7

    def test_repeated_unknown_word_recorded_once(self):
        """JP loop over $0000: one diagnostic, repeats only counted"""
        emu = _emu(0x0000, 0x1200)
        assert emu.run(max_steps=20000) is StopReason.TIMEOUT
        assert len(emu.diagnostics) == 1
        diag = emu.diagnostics[0]
        assert (diag.pc, diag.word) == (0x200, 0x0000)
        assert emu.diagnostic_counts[diag] == 10000

    def test_distinct_diagnostics_are_capped(self):
        """Only the newest MAX_DIAGNOSTICS distinct entries are kept"""
        emu = Chip8Emulator()
        emu.regs.PC = 0x200
        # zeroed program area: every word is an unknown $0000
        emu.run(max_steps=MAX_DIAGNOSTICS + 10)
        assert len(emu.diagnostics) == MAX_DIAGNOSTICS
        assert len(emu.diagnostic_counts) == MAX_DIAGNOSTICS
        assert emu.diagnostics[0].pc == 0x200 + 2 * 10

    def test_sys_call_is_skipped(self):
        emu = _emu(0x0123)
        assert emu.step() is None
        assert emu.regs.PC == 0x202
        assert emu.diagnostics[0].pc == 0x200

    def test_fetch_out_of_range_is_fatal(self):
        emu = Chip8Emulator()
        emu.regs.PC = 0xFFF
        assert emu.step() is StopReason.FAULT
        assert emu.regs.PC == 0xFFF
        assert emu.last_error is not None

    def test_run_off_the_end(self):
        """Executing at $FFE leaves PC=$1000, the next fetch faults"""
        emu = Chip8Emulator()
        emu.load(bytes([0x60, 0x01]), 0xFFE)
        emu.regs.PC = 0xFFE
        assert emu.step() is None
        assert emu.step() is StopReason.FAULT

    def test_jump_target_out_of_range(self):
        emu = _emu(0x60FF, 0xBFFF)
        emu.step()
        assert emu.step() is StopReason.FAULT
        assert emu.regs.PC == 0x202

    def test_odd_jump_target_is_fatal(self):
        emu = _emu(0x1301)
        assert emu.step() is StopReason.FAULT
        assert emu.regs.PC == 0x200

    def test_stack_underflow(self):
        emu = _emu(0x00EE)
        assert emu.step() is StopReason.STACK_UNDERFLOW
        assert emu.regs.SP == 0
        assert emu.regs.PC == 0x200

    def test_stack_overflow(self):
        """CALL $200 recursively: 15 frames fit, the 16th is refused"""
        emu = _emu(0x2200)
        for _ in range(15):
            assert emu.step() is None
        assert emu.regs.SP == 15
        assert emu.step() is StopReason.STACK_OVERFLOW
        assert emu.regs.SP == 15
        assert emu.regs.PC == 0x200

    def test_memory_operand_fault_writes_nothing(self):
        """Fx55 that would run past $FFF is refused before any write"""
        emu = _emu(0xAFFE, 0xF355)
        emu.regs.V[:4] = [1, 2, 3, 4]
        emu.step()
        assert emu.step() is StopReason.FAULT
        assert emu.mem.read_block(0xFFE, 2) == bytes(2)
        assert emu.regs.PC == 0x202

    def test_fault_does_not_tick_timers(self):
        emu = _emu(0x00EE)
        emu.delay_timer = 3
        emu.step()
        assert emu.delay_timer == 3


# ═══════════════════════════════════════════════
# Test Group 4: Programs / run loop
# ═══════════════════════════════════════════════

class TestPrograms:

    def test_count_loop(self):
        """Count V0 up to 10 then spin"""
        emu = _emu(
            0x6000,  # $200 LD V0, #00
            0x7001,  # $202 ADD V0, #01
            0x300A,  # $204 SE V0, #0A
            0x1202,  # $206 JP $202
            0x120A,  # $208 JP $20A (unreached)
            0x1208,  # $20A ...
        )
        emu.add_breakpoint(0x208)
        assert emu.run(max_steps=1000) is StopReason.BREAK
        assert emu.regs.V[0] == 10

    def test_remove_breakpoint(self):
        emu = _emu(0x6001, 0x6102, 0x1204)
        emu.add_breakpoint(0x202)
        assert emu.run(max_steps=10) is StopReason.BREAK
        emu.remove_breakpoint(0x202)
        assert emu.run(max_steps=10) is StopReason.TIMEOUT
        assert emu.regs.V[1] == 2

    def test_run_timeout(self):
        emu = _emu(0x1200)
        assert emu.run(max_steps=25) is StopReason.TIMEOUT
        assert emu.steps == 25

    def test_run_stops_on_wait(self):
        emu = _emu(0x6001, 0xF00A)
        assert emu.run(max_steps=10) is StopReason.WAIT_KEY
        assert emu.steps == 2

    def test_pc_always_even(self):
        """Random valid programs never leave PC odd"""
        emu = _emu(0x6003, 0x3003, 0x6104, 0x4104, 0x2210, 0x1200, 0, 0, 0x8014, 0x00EE)
        for _ in range(200):
            reason = emu.step()
            assert emu.regs.PC % 2 == 0
            if reason is not None:
                break

    def test_trace(self):
        emu = _emu(0x6A02, 0xA22A)
        emu.set_trace()
        emu.step()
        emu.step()
        lines = emu.trace_output
        assert len(lines) == 2
        assert "LD VA, #02" in lines[0]
        assert "LD I, $22A" in lines[1]
