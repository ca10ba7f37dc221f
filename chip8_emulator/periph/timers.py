"""
CHIP-8 Virtual Emulator — Delay and Sound Timers

Two independent 8-bit down-counters. Each executed step decrements both
by one while non-zero; neither goes below zero. Real hardware ticks them
at 60 Hz; this model ticks once per step and leaves pacing to the caller.

The buzzer sounds while the sound timer is non-zero. The engine only
reports the edge: tick() returns True when the sound timer goes 1 → 0,
and the caller turns that into a beep notification.
"""


class Timers:
    """Delay timer (DT) + sound timer (ST)."""

    def __init__(self):
        self.delay: int = 0
        self.sound: int = 0

    def set_delay(self, value: int):
        self.delay = value & 0xFF

    def set_sound(self, value: int):
        self.sound = value & 0xFF

    def tick(self) -> bool:
        """Decrement both timers once. Returns True on the sound 1 → 0 edge."""
        beep = self.sound == 1
        if self.delay > 0:
            self.delay -= 1
        if self.sound > 0:
            self.sound -= 1
        return beep

    @property
    def sounding(self) -> bool:
        return self.sound > 0

    def reset(self):
        self.delay = 0
        self.sound = 0
