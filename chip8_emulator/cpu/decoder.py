"""
CHIP-8 Virtual Emulator — Instruction Decoder / Opcode Table

Every instruction is one 16-bit big-endian word. The leading nibble
selects the family; the remaining nibbles are operands:

  F000  family
  0F00  x   register index
  00F0  y   register index
  000F  n   4-bit count / sub-code
  00FF  kk  8-bit immediate / sub-code
  0FFF  nnn 12-bit address

The table maps (mask, pattern) → (key, mnemonic, operand format). ``key``
is the dispatch name the emulator binds a handler to; ``mnemonic`` and the
operand format are what the disassembler prints (Cowgod's notation).

Families 5, 8, 9, E and F carry sub-codes; an unmatched sub-code raises
IllegalInstruction so the caller can report it.
"""

from typing import NamedTuple


# ──────────────────────────────────────────────
# Operand formats
# ──────────────────────────────────────────────

OPS_NONE  = ''
OPS_NNN   = 'nnn'      # JP $2A0
OPS_XKK   = 'xkk'      # LD V3, #2A
OPS_XY    = 'xy'       # ADD V1, V2
OPS_XYN   = 'xyn'      # DRW V0, V1, 5
OPS_X     = 'x'        # SKP V4
OPS_I_NNN = 'i_nnn'    # LD I, $2A0
OPS_V0NNN = 'v0_nnn'   # JP V0, $300
OPS_X_DT  = 'x_dt'     # LD V2, DT
OPS_X_K   = 'x_k'      # LD V2, K
OPS_DT_X  = 'dt_x'     # LD DT, V2
OPS_ST_X  = 'st_x'     # LD ST, V2
OPS_I_X   = 'i_x'      # ADD I, V2
OPS_F_X   = 'f_x'      # LD F, V2
OPS_B_X   = 'b_x'      # LD B, V2
OPS_MEM_X = 'mem_x'    # LD [I], V2
OPS_X_MEM = 'x_mem'    # LD V2, [I]


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────
# Format: (mask, pattern, key, mnemonic, operand_format)
# First match wins, so exact words precede their family catch-alls.

OPCODE_TABLE = [
    # ── Family 0: system ──
    (0xFFFF, 0x00E0, 'CLS',       'CLS',  OPS_NONE),
    (0xFFFF, 0x00EE, 'RET',       'RET',  OPS_NONE),

    # ── Flow control ──
    (0xF000, 0x1000, 'JP',        'JP',   OPS_NNN),
    (0xF000, 0x2000, 'CALL',      'CALL', OPS_NNN),
    (0xF000, 0x3000, 'SE_KK',     'SE',   OPS_XKK),
    (0xF000, 0x4000, 'SNE_KK',    'SNE',  OPS_XKK),
    (0xF00F, 0x5000, 'SE_VY',     'SE',   OPS_XY),

    # ── Immediate register ops ──
    (0xF000, 0x6000, 'LD_KK',     'LD',   OPS_XKK),
    (0xF000, 0x7000, 'ADD_KK',    'ADD',  OPS_XKK),

    # ── Family 8: register ALU ──
    (0xF00F, 0x8000, 'LD_VY',     'LD',   OPS_XY),
    (0xF00F, 0x8001, 'OR',        'OR',   OPS_XY),
    (0xF00F, 0x8002, 'AND',       'AND',  OPS_XY),
    (0xF00F, 0x8003, 'XOR',       'XOR',  OPS_XY),
    (0xF00F, 0x8004, 'ADD_VY',    'ADD',  OPS_XY),
    (0xF00F, 0x8005, 'SUB',       'SUB',  OPS_XY),
    (0xF00F, 0x8006, 'SHR',       'SHR',  OPS_XY),
    (0xF00F, 0x8007, 'SUBN',      'SUBN', OPS_XY),
    (0xF00F, 0x800E, 'SHL',       'SHL',  OPS_XY),

    (0xF00F, 0x9000, 'SNE_VY',    'SNE',  OPS_XY),

    # ── Index / jump / random / draw ──
    (0xF000, 0xA000, 'LD_I',      'LD',   OPS_I_NNN),
    (0xF000, 0xB000, 'JP_V0',     'JP',   OPS_V0NNN),
    (0xF000, 0xC000, 'RND',       'RND',  OPS_XKK),
    (0xF000, 0xD000, 'DRW',       'DRW',  OPS_XYN),

    # ── Family E: keypad skips ──
    (0xF0FF, 0xE09E, 'SKP',       'SKP',  OPS_X),
    (0xF0FF, 0xE0A1, 'SKNP',      'SKNP', OPS_X),

    # ── Family F: timers, keypad wait, index, memory block ops ──
    (0xF0FF, 0xF007, 'LD_VX_DT',  'LD',   OPS_X_DT),
    (0xF0FF, 0xF00A, 'LD_VX_K',   'LD',   OPS_X_K),
    (0xF0FF, 0xF015, 'LD_DT_VX',  'LD',   OPS_DT_X),
    (0xF0FF, 0xF018, 'LD_ST_VX',  'LD',   OPS_ST_X),
    (0xF0FF, 0xF01E, 'ADD_I_VX',  'ADD',  OPS_I_X),
    (0xF0FF, 0xF029, 'LD_F_VX',   'LD',   OPS_F_X),
    (0xF0FF, 0xF033, 'LD_B_VX',   'LD',   OPS_B_X),
    (0xF0FF, 0xF055, 'LD_MEM_VX', 'LD',   OPS_MEM_X),
    (0xF0FF, 0xF065, 'LD_VX_MEM', 'LD',   OPS_X_MEM),
]


class IllegalInstruction(Exception):
    """Raised when a word matches no entry in OPCODE_TABLE."""

    def __init__(self, word: int, message: str = None):
        self.word = word & 0xFFFF
        super().__init__(message or f"Unknown instruction ${self.word:04X}")


class Instruction(NamedTuple):
    """One decoded instruction word with all operand fields extracted."""
    word: int
    key: str
    mnemonic: str
    operands: str
    x: int
    y: int
    n: int
    kk: int
    nnn: int

    def format_operands(self) -> str:
        """Render the operand field in Cowgod's notation."""
        return format_operands(self.operands, self.x, self.y, self.n,
                               self.kk, self.nnn)

    def __str__(self) -> str:
        ops = self.format_operands()
        return f"{self.mnemonic} {ops}" if ops else self.mnemonic


def split_fields(word: int):
    """Extract (x, y, n, kk, nnn) from an instruction word."""
    return ((word >> 8) & 0xF, (word >> 4) & 0xF, word & 0xF,
            word & 0xFF, word & 0xFFF)


def format_operands(fmt: str, x: int, y: int, n: int, kk: int, nnn: int) -> str:
    if fmt == OPS_NONE:
        return ''
    if fmt == OPS_NNN:
        return f'${nnn:03X}'
    if fmt == OPS_XKK:
        return f'V{x:X}, #{kk:02X}'
    if fmt == OPS_XY:
        return f'V{x:X}, V{y:X}'
    if fmt == OPS_XYN:
        return f'V{x:X}, V{y:X}, {n}'
    if fmt == OPS_X:
        return f'V{x:X}'
    if fmt == OPS_I_NNN:
        return f'I, ${nnn:03X}'
    if fmt == OPS_V0NNN:
        return f'V0, ${nnn:03X}'
    if fmt == OPS_X_DT:
        return f'V{x:X}, DT'
    if fmt == OPS_X_K:
        return f'V{x:X}, K'
    if fmt == OPS_DT_X:
        return f'DT, V{x:X}'
    if fmt == OPS_ST_X:
        return f'ST, V{x:X}'
    if fmt == OPS_I_X:
        return f'I, V{x:X}'
    if fmt == OPS_F_X:
        return f'F, V{x:X}'
    if fmt == OPS_B_X:
        return f'B, V{x:X}'
    if fmt == OPS_MEM_X:
        return f'[I], V{x:X}'
    if fmt == OPS_X_MEM:
        return f'V{x:X}, [I]'
    raise ValueError(f"Unknown operand format: {fmt}")


def decode(word: int) -> Instruction:
    """Decode one 16-bit instruction word.

    Raises IllegalInstruction for words with no table entry (0nnn SYS
    calls and unknown 5/8/9/E/F sub-codes).
    """
    word &= 0xFFFF
    for mask, pattern, key, mnemonic, operands in OPCODE_TABLE:
        if word & mask == pattern:
            x, y, n, kk, nnn = split_fields(word)
            return Instruction(word, key, mnemonic, operands, x, y, n, kk, nnn)
    raise IllegalInstruction(word)
