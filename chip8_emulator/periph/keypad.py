"""
CHIP-8 Virtual Emulator — Hex Keypad

Sixteen keys, 0x0–0xF, held as a pressed/released bitmap. The host
frontend sets and clears keys; the engine only reads them (Ex9E / ExA1).
Mapping host keyboard events to key codes is the frontend's job.
"""

from typing import List

from ..config import NUM_KEYS


class Keypad:
    """16-entry key-state bitmap."""

    def __init__(self):
        self._keys: List[bool] = [False] * NUM_KEYS

    def _check(self, key: int):
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Key must be 0x0-0xF, got {key!r}")

    def press(self, key: int):
        self._check(key)
        self._keys[key] = True

    def release(self, key: int):
        self._check(key)
        self._keys[key] = False

    def set_key(self, key: int, pressed: bool):
        self._check(key)
        self._keys[key] = bool(pressed)

    def is_pressed(self, key: int) -> bool:
        """Engine-side read. Only the low nibble selects the key."""
        return self._keys[key & 0xF]

    @property
    def state(self) -> List[bool]:
        return list(self._keys)

    def reset(self):
        self._keys = [False] * NUM_KEYS
