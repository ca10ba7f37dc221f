#!/usr/bin/env python3
"""
chip8kit — CHIP-8 Developer Toolkit
===================================

One CLI for the headless side of the emulator:
    chip8kit disasm  — Disassemble a ROM image
    chip8kit build   — Pack hex instruction words into a ROM image
    chip8kit trace   — Run a ROM headless for N steps and dump machine state
    chip8kit info    — ROM summary

Usage:
    python chip8kit.py <command> [options]
    python chip8kit.py <command> --help

Examples:
    python chip8kit.py disasm pong.ch8
    python chip8kit.py disasm pong.ch8 --range 0x200-0x240 --describe
    python chip8kit.py build 00E0 A20A 6000 6100 D015 1208 -o blink.ch8
    python chip8kit.py trace blink.ch8 --steps 200 --screen
    python chip8kit.py trace pong.ch8 --steps 5000 --break 0x2F6 -v
    python chip8kit.py info pong.ch8

There is no window and no frame pacing here: ``trace`` steps as fast as
it can and prints the pixel buffer as text.
"""

import argparse
import logging
import sys
import os
from pathlib import Path

__version__ = "0.1.0"

# Ensure our package is importable
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from chip8_emulator import Chip8Emulator, StopReason, FATAL_REASONS
from chip8_emulator.config import PROGRAM_START, MAX_ROM_SIZE
from chip8_emulator.disasm import Disassembler
from chip8_emulator.log_setup import setup_logging
from chip8_emulator.rombuilder import build_rom, parse_words


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="chip8kit",
        description="CHIP-8 Toolkit — disassemble, build, trace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""commands:
  disasm     Disassemble a ROM image
  build      Pack hex instruction words into a ROM image
  trace      Run a ROM headless and dump registers / screen
  info       Summarize a ROM image
""",
    )
    parser.add_argument("--version", action="version", version=f"chip8kit {__version__}")
    sub = parser.add_subparsers(dest="command", metavar="command")

    # ── disasm ───────────────────────────────────────────────────────────
    p_dis = sub.add_parser("disasm", help="Disassemble a ROM image")
    p_dis.add_argument("input", help="Input ROM file")
    p_dis.add_argument("--base", default=None,
                       help="Load address of the first byte (hex, default 0x200)")
    p_dis.add_argument("--range", help="Address range START-END (hex), e.g. 0x200-0x240")
    p_dis.add_argument("--describe", action="store_true",
                       help="Append a description to every line")
    p_dis.add_argument("-o", "--output", help="Output file (default: stdout)")

    # ── build ────────────────────────────────────────────────────────────
    p_build = sub.add_parser("build", help="Pack hex words into a ROM image")
    p_build.add_argument("words", nargs="+", help="Instruction words, e.g. 00E0 A22A")
    p_build.add_argument("-o", "--output", required=True, help="Output ROM file")

    # ── trace ────────────────────────────────────────────────────────────
    p_trace = sub.add_parser("trace", help="Run a ROM headless and dump state")
    p_trace.add_argument("input", help="Input ROM file")
    p_trace.add_argument("--steps", type=int, default=1000,
                         help="Maximum steps to execute (default: 1000)")
    p_trace.add_argument("--break", dest="breakpoints", action="append", default=[],
                         help="Breakpoint address (hex); may be repeated")
    p_trace.add_argument("--seed", type=int, default=None,
                         help="Seed for the RND instruction")
    p_trace.add_argument("--key", type=lambda x: int(x, 16), default=None,
                         help="Key (hex) to feed whenever the ROM waits for one")
    p_trace.add_argument("--screen", action="store_true",
                         help="Print the pixel buffer when the run stops")
    p_trace.add_argument("--log-dir", default=None, help="Directory for log files")
    p_trace.add_argument("-v", "--verbose", action="store_true",
                         help="Log every instruction (DEBUG) to the console")

    # ── info ─────────────────────────────────────────────────────────────
    p_info = sub.add_parser("info", help="Summarize a ROM image")
    p_info.add_argument("input", help="Input ROM file")

    # ── Parse and dispatch ───────────────────────────────────────────────
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except (OSError, ValueError) as e:
        # RomBuildError / MemoryLoadError are ValueErrors
        print(f"Error: {e}", file=sys.stderr)
        return 1


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND IMPLEMENTATIONS
# ═════════════════════════════════════════════════════════════════════════════

def _parse_hex(s):
    """Parse hex string with optional 0x or $ prefix."""
    if s is None:
        return None
    s = s.strip()
    if s.startswith("0x") or s.startswith("0X"):
        return int(s, 16)
    if s.startswith("$"):
        return int(s[1:], 16)
    return int(s, 16)


def _parse_range(s):
    start_s, _, end_s = s.partition("-")
    start, end = _parse_hex(start_s), _parse_hex(end_s)
    if end < start:
        raise ValueError(f"Range end ${end:03X} is before start ${start:03X}")
    return start, end


# ── disasm ───────────────────────────────────────────────────────────────
def cmd_disasm(args):
    data = Path(args.input).read_bytes()
    base = _parse_hex(args.base) if args.base else PROGRAM_START

    if args.range:
        start, end = _parse_range(args.range)
        data = data[max(start - base, 0):end - base + 1]
        base = max(start, base)

    lines = [r.format(show_description=args.describe)
             for r in Disassembler().disassemble(data, base_addr=base)]
    text = "\n".join(lines)

    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {len(lines)} lines to {args.output}")
    else:
        print(text)
    return 0


# ── build ────────────────────────────────────────────────────────────────
def cmd_build(args):
    data = build_rom(parse_words(args.words))
    Path(args.output).write_bytes(data)
    print(f"Wrote {len(data)} bytes ({len(data) // 2} words) to {args.output}")
    return 0


# ── trace ────────────────────────────────────────────────────────────────
def cmd_trace(args):
    console_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(session=Path(args.input).stem, console_level=console_level,
                  log_dir=args.log_dir)

    emu = Chip8Emulator(seed=args.seed)
    emu.set_trace(args.verbose)
    emu.load_rom(args.input)
    for bp in args.breakpoints:
        emu.add_breakpoint(_parse_hex(bp))

    reason = StopReason.TIMEOUT
    remaining = args.steps
    while remaining > 0:
        reason = emu.run(max_steps=remaining)
        remaining = args.steps - emu.steps
        if reason is StopReason.WAIT_KEY and args.key is not None:
            emu.resolve_key(args.key)
            continue
        break

    print(f"Stopped: {reason.value} after {emu.steps} steps")
    print(emu.regs.display())
    print(f"DT={emu.delay_timer:02X} ST={emu.sound_timer:02X} beeps={emu.consume_beep()}")
    if emu.last_error is not None:
        print(f"Error: {emu.last_error}")
    for diag in emu.diagnostics:
        count = emu.diagnostic_counts[diag]
        print(f"  ! {diag}" + (f"  (x{count})" if count > 1 else ""))
    if args.screen:
        print(emu.display.render_text())
    return 2 if reason in FATAL_REASONS else 0


# ── info ─────────────────────────────────────────────────────────────────
def cmd_info(args):
    data = Path(args.input).read_bytes()
    dis = Disassembler()
    stats = dis.get_stats(dis.disassemble(data))
    print(f"File:      {args.input}")
    print(f"Size:      {len(data)} bytes ({len(data) * 100 // MAX_ROM_SIZE}% of program area)")
    print(f"Load:      ${PROGRAM_START:03X}-${PROGRAM_START + max(len(data), 1) - 1:03X}")
    print(f"Words:     {stats['words']} ({stats['data']} not decodable as instructions)")
    print(f"Mnemonics: {stats['mnemonics']} distinct")
    if len(data) > MAX_ROM_SIZE:
        print("WARNING:   image does not fit in the program area")
    return 0


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND DISPATCH TABLE
# ═════════════════════════════════════════════════════════════════════════════

COMMANDS = {
    "disasm": cmd_disasm,
    "build": cmd_build,
    "trace": cmd_trace,
    "info": cmd_info,
}


if __name__ == "__main__":
    sys.exit(main())
