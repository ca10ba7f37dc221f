"""Peripherals: pixel buffer, keypad and timers."""
