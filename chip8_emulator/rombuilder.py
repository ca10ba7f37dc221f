"""
CHIP-8 ROM Builder

Packs 16-bit instruction words into a flat big-endian ROM image, the
format the emulator's load_rom() expects (no header, no checksum). Handy
for hand-assembled test programs:

    from chip8_emulator.rombuilder import write_rom
    write_rom('blink.ch8', [0x00E0, 0xA000, 0xD015, 0x1202])
"""

from pathlib import Path
from typing import Iterable, Union

from .config import MAX_ROM_SIZE


class RomBuildError(ValueError):
    """Invalid instruction word or oversized image."""
    pass


def build_rom(words: Iterable[int], max_size: int = MAX_ROM_SIZE) -> bytes:
    """Pack instruction words big-endian. Raises RomBuildError on bad input."""
    out = bytearray()
    for index, word in enumerate(words):
        if not isinstance(word, int) or not 0 <= word <= 0xFFFF:
            raise RomBuildError(f"Word {index} out of range: {word!r}")
        out += word.to_bytes(2, 'big')
    if len(out) > max_size:
        raise RomBuildError(
            f"ROM is {len(out)} bytes, program area holds {max_size}")
    return bytes(out)


def write_rom(path: Union[str, Path], words: Iterable[int]) -> int:
    """Build and write a ROM file. Returns the number of bytes written."""
    data = build_rom(words)
    Path(path).write_bytes(data)
    return len(data)


def parse_words(tokens: Iterable[str]) -> list:
    """Parse hex word tokens ('00E0', '0xA22A', '$1200') into ints."""
    words = []
    for tok in tokens:
        t = tok.strip()
        if t.lower().startswith('0x'):
            t = t[2:]
        elif t.startswith('$'):
            t = t[1:]
        try:
            words.append(int(t, 16))
        except ValueError:
            raise RomBuildError(f"Not a hex word: {tok!r}") from None
    return words
