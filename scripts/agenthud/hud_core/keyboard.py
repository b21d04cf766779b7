"""Single-key input for the live dashboard.

Uses termios non-canonical mode (ICANON/ECHO off, VMIN=0/VTIME=0) instead of
tty.setraw() so Rich Live's alternate screen keeps rendering over SSH. Keys
are delivered through an asyncio reader on stdin, one character at a time.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Callable

try:
    import termios
except ImportError:  # not available on Windows: the dashboard runs without keys
    termios = None

logger = logging.getLogger(__name__)

CTRL_C = "\x03"


class KeyboardInput:
    def __init__(self, on_key: Callable[[str], object], loop: asyncio.AbstractEventLoop | None = None, stream=None):
        self.on_key = on_key
        self.loop = loop
        self.stream = stream or sys.stdin
        self.fd: int | None = None
        self.enabled = False
        self._old_settings = None

    def __enter__(self) -> KeyboardInput:
        self.loop = self.loop or asyncio.get_running_loop()
        if termios is None:
            return self
        try:
            fd = self.stream.fileno()
            if not os.isatty(fd):
                return self
            self._old_settings = termios.tcgetattr(fd)
            new = termios.tcgetattr(fd)
            # disable canonical mode and echo, leave everything else intact
            new[3] &= ~(termios.ICANON | termios.ECHO)
            new[6][termios.VMIN] = 0
            new[6][termios.VTIME] = 0
            termios.tcsetattr(fd, termios.TCSADRAIN, new)
            self.loop.add_reader(fd, self._on_readable)
        except (OSError, ValueError, termios.error) as exc:
            logger.debug("keyboard input unavailable: %s", exc)
            self._restore()
            return self
        self.fd = fd
        self.enabled = True
        return self

    def __exit__(self, *exc_info) -> None:
        if self.enabled and self.fd is not None and self.loop is not None:
            self.loop.remove_reader(self.fd)
        self._restore()
        self.enabled = False

    def _restore(self) -> None:
        if self._old_settings is not None and termios is not None:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._old_settings)
            self._old_settings = None

    def _on_readable(self) -> None:
        try:
            data = os.read(self.fd, 32).decode("utf-8", errors="ignore")
        except OSError:
            return
        for char in data:
            self.feed(char)

    def feed(self, char: str) -> None:
        if char == CTRL_C:
            char = "q"
        self.on_key(char)
