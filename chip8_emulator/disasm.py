"""
CHIP-8 Disassembler
===================
Decodes raw ROM bytes into Cowgod-style mnemonics using the same opcode
table the emulator executes from (cpu/decoder.py), so the listing and
the interpreter can never disagree about what a word means.

API Usage:
    from chip8_emulator.disasm import Disassembler

    dis = Disassembler()
    for r in dis.disassemble(rom_bytes, base_addr=0x200):
        print(r.format())   # "$200: 6A 02  LD VA, #02"

    results = dis.disassemble_hex("00E0 A22A 600C", base_addr=0x200)

Words with no table entry are listed as ``DW`` and a trailing odd byte as
``DB``; sprite data embedded in a ROM will show up that way too.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import PROGRAM_START
from .cpu.decoder import decode, IllegalInstruction


DATA_MNEMONICS = ("DW", "DB")

DESCRIPTIONS: Dict[str, str] = {
    'CLS':       "Clear the display",
    'RET':       "Return from subroutine",
    'JP':        "Jump to nnn",
    'CALL':      "Call subroutine at nnn",
    'SE_KK':     "Skip next if Vx == kk",
    'SNE_KK':    "Skip next if Vx != kk",
    'SE_VY':     "Skip next if Vx == Vy",
    'LD_KK':     "Vx = kk",
    'ADD_KK':    "Vx += kk (no carry)",
    'LD_VY':     "Vx = Vy",
    'OR':        "Vx |= Vy",
    'AND':       "Vx &= Vy",
    'XOR':       "Vx ^= Vy",
    'ADD_VY':    "Vx += Vy, VF = carry",
    'SUB':       "Vx -= Vy, VF = not borrow",
    'SHR':       "Vx >>= 1, VF = old MSB",
    'SUBN':      "Vx = Vy - Vx, VF = not borrow",
    'SHL':       "Vx <<= 1, VF = old LSB",
    'SNE_VY':    "Skip next if Vx != Vy",
    'LD_I':      "I = nnn",
    'JP_V0':     "Jump to nnn + V0",
    'RND':       "Vx = random & kk",
    'DRW':       "Draw n-row sprite at (Vx, Vy), VF = collision",
    'SKP':       "Skip next if key Vx pressed",
    'SKNP':      "Skip next if key Vx not pressed",
    'LD_VX_DT':  "Vx = delay timer",
    'LD_VX_K':   "Wait for key, store in Vx",
    'LD_DT_VX':  "delay timer = Vx",
    'LD_ST_VX':  "sound timer = Vx",
    'ADD_I_VX':  "I += Vx",
    'LD_F_VX':   "I = glyph address of digit Vx",
    'LD_B_VX':   "Store BCD of Vx at I..I+2",
    'LD_MEM_VX': "Store V0..Vx at I",
    'LD_VX_MEM': "Load V0..Vx from I",
}


@dataclass
class DisassembledInstruction:
    """One decoded word with all formatting data."""
    address: int
    raw_bytes: bytes
    mnemonic: str
    operand_str: str
    description: str = ""
    comment: str = ""

    @property
    def length(self) -> int:
        return len(self.raw_bytes)

    @property
    def hex_str(self) -> str:
        """Hex bytes formatted like '6A 02'."""
        return " ".join(f"{b:02X}" for b in self.raw_bytes)

    def format(self, show_description: bool = False) -> str:
        """Format as a single listing line."""
        asm = f"{self.mnemonic} {self.operand_str}".strip()
        line = f"${self.address:03X}: {self.hex_str:6s} {asm}"
        if self.comment:
            line += f"  ; {self.comment}"
        elif show_description and self.description:
            line += f"  ; {self.description}"
        return line


class Disassembler:
    """CHIP-8 disassembler.

    Usage:
        dis = Disassembler()
        results = dis.disassemble(raw_bytes, base_addr=0x200)
        single  = dis.decode_one(raw_bytes, offset=0, base_addr=0x200)
    """

    def disassemble(self, data: bytes, base_addr: int = PROGRAM_START,
                    max_instructions: int = 0) -> List[DisassembledInstruction]:
        """Disassemble a block of bytes, two bytes per instruction."""
        data = bytes(data)
        results: List[DisassembledInstruction] = []
        offset = 0
        while offset < len(data):
            inst = self.decode_one(data, offset, base_addr + offset)
            results.append(inst)
            offset += inst.length
            if max_instructions and len(results) >= max_instructions:
                break
        return results

    def disassemble_hex(self, hex_string: str, base_addr: int = PROGRAM_START,
                        max_instructions: int = 0) -> List[DisassembledInstruction]:
        """Disassemble a hex string like '00E0 A22A' or '00E0A22A'."""
        return self.disassemble(parse_hex(hex_string), base_addr, max_instructions)

    def decode_one(self, data: bytes, offset: int = 0,
                   base_addr: int = PROGRAM_START) -> Optional[DisassembledInstruction]:
        """Decode exactly one instruction at the given offset."""
        if offset >= len(data):
            return None
        if offset + 1 >= len(data):
            raw = bytes(data[offset:offset + 1])
            return DisassembledInstruction(
                address=base_addr, raw_bytes=raw, mnemonic="DB",
                operand_str=f"#{raw[0]:02X}", description="Data byte")

        raw = bytes(data[offset:offset + 2])
        word = (raw[0] << 8) | raw[1]
        try:
            instr = decode(word)
        except IllegalInstruction:
            comment = "SYS call (ignored)" if word & 0xF000 == 0 else ""
            return DisassembledInstruction(
                address=base_addr, raw_bytes=raw, mnemonic="DW",
                operand_str=f"#{word:04X}", description="Data word",
                comment=comment)

        return DisassembledInstruction(
            address=base_addr,
            raw_bytes=raw,
            mnemonic=instr.mnemonic,
            operand_str=instr.format_operands(),
            description=DESCRIPTIONS.get(instr.key, ""),
            comment=self._annotate(instr.key, instr.nnn),
        )

    @staticmethod
    def get_stats(results: List[DisassembledInstruction]) -> Dict[str, int]:
        """Summarize a listing: word count, undecodable entries, distinct mnemonics."""
        data = sum(1 for r in results if r.mnemonic in DATA_MNEMONICS)
        return {
            "words": len(results),
            "data": data,
            "instructions": len(results) - data,
            "mnemonics": len({r.mnemonic for r in results} - set(DATA_MNEMONICS)),
        }

    @staticmethod
    def _annotate(key: str, nnn: int) -> str:
        if key in ('JP', 'CALL') and nnn < PROGRAM_START:
            return "target below program area"
        if key == 'LD_I' and nnn < PROGRAM_START:
            return "font / reserved area"
        return ""


def parse_hex(hex_string: str) -> bytes:
    """Parse flexible hex input: '00E0 A22A', '00,E0', '0x00 0xE0', etc."""
    s = hex_string.strip()
    s = s.replace("0x", "").replace("0X", "")
    s = s.replace(",", " ").replace(";", " ").replace("\n", " ").replace("\t", " ")
    return bytes.fromhex("".join(s.split()))


def disassemble_bytes(data: bytes, base_addr: int = PROGRAM_START) -> List[DisassembledInstruction]:
    """Module-level convenience function."""
    return Disassembler().disassemble(data, base_addr)
