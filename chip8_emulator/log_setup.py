"""
Logging setup for the CHIP-8 toolkit.

Library modules only ever call ``logging.getLogger(__name__)``, so all of
them hang off the ``chip8_emulator`` logger. Entry points (chip8kit.py)
call setup_logging() once to attach two handlers there:

  - a session file ``<log_dir>/chip8_<session>_YYYYMMDD_HHMMSS.log`` that
    keeps everything, trace lines included
  - a rich console handler that only shows diagnostics and faults
    (WARNING+) unless the caller asks for more
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

PACKAGE_LOGGER = "chip8_emulator"
LOG_DIR = Path.cwd() / "logs"

FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s:%(lineno)d  %(message)s"
PLAIN_CONSOLE_FORMAT = "%(levelname)-7s %(name)s  %(message)s"


def _file_handler(log_dir: Path, session: str) -> logging.FileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    fh = logging.FileHandler(str(log_dir / f"chip8_{session}_{ts}.log"), encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%H:%M:%S"))
    return fh


def _console_handler(level: int, rich_console: bool) -> logging.Handler:
    if rich_console:
        ch = RichHandler(level=level, show_path=False, markup=False,
                         rich_tracebacks=True)
    else:
        ch = logging.StreamHandler(sys.stderr)
        ch.setFormatter(logging.Formatter(PLAIN_CONSOLE_FORMAT))
    ch.setLevel(level)
    return ch


def setup_logging(
    session: str = "session",
    console_level: int = logging.WARNING,
    log_dir: Optional[Path] = None,
    rich_console: bool = True,
    log_to_file: bool = True,
    name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """Attach file + console handlers to the package logger and return it.

    ``session`` names the log file (chip8kit passes the ROM's stem). A
    logger that already has handlers is returned unchanged.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    if log_to_file:
        fh = _file_handler(Path(log_dir) if log_dir else LOG_DIR, session)
        logger.addHandler(fh)
    logger.addHandler(_console_handler(console_level, rich_console))

    if log_to_file:
        logger.info("Session %s logging to %s", session, fh.baseFilename)
    return logger
