"""
CHIP-8 Virtual Emulator — 4K Memory Map

Memory map (see config.MEMORY_MAP):
  $000–$04F  Font glyphs
  $050–$1FF  Reserved interpreter area
  $200–$FFF  Program ROM and work RAM

Unlike a real interpreter there is no wraparound: every access outside
$000–$FFF raises MemoryAccessError, and a bulk load that would run past
the end is rejected before a single byte is written.
"""

from typing import Dict, List

from ..config import MEMORY_SIZE, MEMORY_MAP


class MemoryAccessError(IndexError):
    """Read or write outside the 4K address space."""

    def __init__(self, addr: int, length: int = 1, op: str = 'access'):
        self.addr = addr
        self.length = length
        if length == 1:
            msg = f"Memory {op} out of range: ${addr:04X}"
        else:
            msg = (f"Memory {op} out of range: ${addr:04X}-"
                   f"${addr + length - 1:04X}")
        super().__init__(msg)


class MemoryLoadError(ValueError):
    """Bulk load rejected (would write past the end of memory)."""
    pass


class MemoryRegion:
    """A named region in the 4K address space."""

    def __init__(self, name: str, start: int, end: int, description: str = ''):
        self.name = name
        self.start = start
        self.end = end  # inclusive
        self.description = description

    def contains(self, addr: int) -> bool:
        return self.start <= addr <= self.end

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def __repr__(self) -> str:
        return f"MemoryRegion({self.name!r}, ${self.start:03X}-${self.end:03X})"


class Memory:
    """Flat 4096-byte memory with bounds-checked access."""

    REGIONS = [MemoryRegion(name, r['start'], r['end'], r['description'])
               for name, r in MEMORY_MAP.items()]

    def __init__(self, size: int = MEMORY_SIZE):
        self.size = size
        self._mem = bytearray(size)

    # --- Bounds ---

    def in_range(self, addr: int, length: int = 1) -> bool:
        return 0 <= addr and addr + length <= self.size

    def check_range(self, addr: int, length: int = 1, op: str = 'access'):
        """Raise MemoryAccessError unless [addr, addr+length) is mapped."""
        if not self.in_range(addr, length):
            raise MemoryAccessError(addr, length, op)

    def region_of(self, addr: int) -> str:
        for region in self.REGIONS:
            if region.contains(addr):
                return region.name
        return 'UNMAPPED'

    # --- Core read/write ---

    def read8(self, addr: int) -> int:
        self.check_range(addr, 1, 'read')
        return self._mem[addr]

    def write8(self, addr: int, value: int):
        self.check_range(addr, 1, 'write')
        self._mem[addr] = value & 0xFF

    def read16(self, addr: int) -> int:
        """Read a big-endian 16-bit word (both bytes must be in range)."""
        self.check_range(addr, 2, 'read')
        return (self._mem[addr] << 8) | self._mem[addr + 1]

    def read_block(self, addr: int, length: int) -> bytes:
        self.check_range(addr, length, 'read')
        return bytes(self._mem[addr:addr + length])

    def write_block(self, addr: int, data: bytes):
        """Write a run of bytes. Range is checked before any byte lands."""
        self.check_range(addr, len(data), 'write')
        self._mem[addr:addr + len(data)] = bytes(data)

    # --- Bulk load ---

    def load_binary(self, data: bytes, base_addr: int):
        """Copy a raw image into memory at base_addr.

        Raises MemoryLoadError (nothing written) if the image would not fit.
        """
        data = bytes(data)
        if base_addr < 0 or base_addr + len(data) > self.size:
            raise MemoryLoadError(
                f"Image of {len(data)} bytes at ${base_addr:03X} exceeds "
                f"{self.size}-byte memory")
        self._mem[base_addr:base_addr + len(data)] = data

    def clear(self):
        self._mem = bytearray(self.size)

    # --- Snapshots ---

    def snapshot(self, start: int = 0, end: int = None) -> bytes:
        """Capture a copy of [start, end] (inclusive) for later diffing."""
        if end is None:
            end = self.size - 1
        return bytes(self._mem[start:end + 1])

    def diff_snapshots(self, snap_a: bytes, snap_b: bytes,
                       base_addr: int = 0) -> Dict[int, tuple]:
        """Compare two snapshots, return {addr: (old, new)} for changes."""
        changes = {}
        for i in range(min(len(snap_a), len(snap_b))):
            if snap_a[i] != snap_b[i]:
                changes[base_addr + i] = (snap_a[i], snap_b[i])
        return changes

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 256) -> str:
        """Produce a hex dump of memory for debugging."""
        lines: List[str] = []
        end = min(start + length, self.size)
        for addr in range(start, end, 16):
            row = self._mem[addr:min(addr + 16, end)]
            hex_bytes = ' '.join(f'{b:02X}' for b in row)
            ascii_bytes = ''.join(chr(b) if 0x20 <= b < 0x7F else '.' for b in row)
            lines.append(f'{addr:03X}  {hex_bytes:<47}  {ascii_bytes}')
        return '\n'.join(lines)
