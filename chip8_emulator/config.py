"""
CHIP-8 Virtual Emulator — Machine Configuration
================================================

Fixed machine geometry for the classic CHIP-8 interpreter. These are
architectural constants, not tuning knobs: ROMs written for the machine
depend on every one of them.

Memory map:
  $000–$04F  Font glyphs (16 digits × 5 bytes)
  $050–$1FF  Reserved interpreter area (zero-filled)
  $200–$FFF  Program ROM and work RAM
"""

# =============================================================================
#  MEMORY
# =============================================================================
MEMORY_SIZE = 0x1000        # 4096 bytes, flat address space
PROGRAM_START = 0x200       # conventional ROM load offset (512)
FONT_BASE = 0x000           # glyph for digit d lives at FONT_BASE + d * 5
FONT_GLYPH_SIZE = 5         # bytes per glyph (4x5 bitmap, high nibble used)

MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START

MEMORY_MAP = {
    "FONT":     {"start": FONT_BASE, "end": FONT_BASE + 16 * FONT_GLYPH_SIZE - 1,
                 "description": "Built-in hex digit glyphs"},
    "RESERVED": {"start": FONT_BASE + 16 * FONT_GLYPH_SIZE, "end": PROGRAM_START - 1,
                 "description": "Interpreter area (unused by this emulator)"},
    "PROGRAM":  {"start": PROGRAM_START, "end": MEMORY_SIZE - 1,
                 "description": "Program ROM and work RAM"},
}


# =============================================================================
#  CPU
# =============================================================================
NUM_REGISTERS = 16          # V0–VF
FLAG_REGISTER = 0xF         # VF doubles as carry / borrow / collision flag
STACK_DEPTH = 16            # slots; slot 0 is never written (SP == 0 is empty)
INSTRUCTION_SIZE = 2        # every instruction word is 2 bytes


# =============================================================================
#  DISPLAY / INPUT
# =============================================================================
DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8            # sprites are always one byte wide
NUM_KEYS = 16               # hex keypad 0x0–0xF


# =============================================================================
#  DIAGNOSTICS
# =============================================================================
MAX_DIAGNOSTICS = 256       # distinct entries kept; oldest dropped first
