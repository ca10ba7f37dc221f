"""
CHIP-8 Virtual Emulator — Monochrome Pixel Buffer

64x32 cells stored row-major in a flat bytearray, one byte per pixel
(0 = off, 1 = on), index = x + y * 64.

Sprites are 8 pixels wide and 1–15 rows tall. Each set bit is XORed into
the buffer. Pixels that land outside the 64x32 area are discarded, NOT
wrapped to the opposite edge. A collision is any on→off transition.

The buffer is never drawn to a surface here. A renderer polls
consume_dirty() and reads ``pixels`` when it returns True.
"""

from typing import Iterable

from ..config import DISPLAY_WIDTH, DISPLAY_HEIGHT, SPRITE_WIDTH


class Display:
    """Pixel buffer + dirty flag."""

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT):
        self.width = width
        self.height = height
        self._buf = bytearray(width * height)
        self._dirty = False

    @property
    def pixels(self) -> bytes:
        """Read-only copy of the buffer."""
        return bytes(self._buf)

    def get_pixel(self, x: int, y: int) -> int:
        return self._buf[x + y * self.width]

    def clear(self) -> bool:
        """Turn every pixel off. Returns True if anything changed."""
        changed = any(self._buf)
        self._buf = bytearray(self.width * self.height)
        if changed:
            self._dirty = True
        return changed

    def draw_sprite(self, x: int, y: int, rows: Iterable[int]) -> bool:
        """XOR a sprite into the buffer with its top-left corner at (x, y).

        Returns True if any pixel was switched off (collision).
        """
        collision = False
        changed = False
        for row_idx, row in enumerate(rows):
            py = y + row_idx
            if py >= self.height:
                break
            for bit in range(SPRITE_WIDTH):
                if not (row >> (SPRITE_WIDTH - 1 - bit)) & 1:
                    continue
                px = x + bit
                if px >= self.width:
                    break
                idx = px + py * self.width
                if self._buf[idx]:
                    collision = True
                self._buf[idx] ^= 1
                changed = True
        if changed:
            self._dirty = True
        return collision

    # --- Render boundary ---

    @property
    def dirty(self) -> bool:
        return self._dirty

    def consume_dirty(self) -> bool:
        """Return the dirty flag and clear it."""
        dirty = self._dirty
        self._dirty = False
        return dirty

    def render_text(self, on: str = '#', off: str = '.') -> str:
        """Text dump of the buffer for debugging and headless traces."""
        lines = []
        for y in range(self.height):
            row = self._buf[y * self.width:(y + 1) * self.width]
            lines.append(''.join(on if p else off for p in row))
        return '\n'.join(lines)

    def reset(self):
        self._buf = bytearray(self.width * self.height)
        self._dirty = False
