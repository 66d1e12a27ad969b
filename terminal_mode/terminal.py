"""Keyboard input for the interactive session.

The terminal is switched to cbreak mode (no line buffering, no echo) for the
lifetime of a ``TerminalSession`` and put back to its previous mode on every
exit path. ``SIGWINCH`` is forwarded through a self-pipe so a blocking read
wakes up on terminal resize.
"""
from __future__ import annotations

import os
import re
import select
import signal
import sys
import termios
import tty
from typing import Optional, TextIO, Tuple

from logging_utils import get_logger

from .models import InputEvent, InputKind

logger = get_logger(__name__)

ESCAPE_TIMEOUT = 0.05
CURSOR_QUERY_TIMEOUT = 0.2
_CURSOR_REPORT_RE = re.compile(rb"\x1b\[(\d+);(\d+)R")

_ARROWS = {
    b"[D": InputKind.LEFT,
    b"OD": InputKind.LEFT,
    b"[C": InputKind.RIGHT,
    b"OC": InputKind.RIGHT,
}


def decode_key(data: bytes) -> InputEvent:
    """Map one raw key sequence to an input event."""
    if not data:
        return InputEvent(InputKind.OTHER)
    if data == b"\x1b":
        return InputEvent(InputKind.ESCAPE)
    if data.startswith(b"\x1b"):
        kind = _ARROWS.get(data[1:])
        return InputEvent(kind) if kind else InputEvent(InputKind.OTHER)
    if data in (b"\r", b"\n", b"\r\n"):
        return InputEvent(InputKind.ENTER)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return InputEvent(InputKind.OTHER)
    if len(text) == 1 and text.isprintable():
        return InputEvent.key(text)
    return InputEvent(InputKind.OTHER)


def _utf8_length(lead: int) -> int:
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    return 1


class TerminalSession:
    """Scoped raw-mode terminal with resize notifications."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.fd = self.stdin.fileno()
        self._saved_mode: Optional[list] = None
        self._wake_r: Optional[int] = None
        self._wake_w: Optional[int] = None
        self._previous_handler = None

    def __enter__(self) -> "TerminalSession":
        try:
            self._saved_mode = termios.tcgetattr(self.fd)
            tty.setcbreak(self.fd, termios.TCSANOW)
        except termios.error as exc:
            self._saved_mode = None
            raise OSError(f"Could not enable raw terminal mode: {exc}") from exc

        try:
            self._wake_r, self._wake_w = os.pipe()
            os.set_blocking(self._wake_w, False)
            self._previous_handler = signal.signal(signal.SIGWINCH, self._on_resize)
        except BaseException:
            self._restore()
            raise
        logger.debug("Terminal switched to raw input mode")
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._restore()
        return False

    def _restore(self) -> None:
        if self._previous_handler is not None:
            signal.signal(signal.SIGWINCH, self._previous_handler)
            self._previous_handler = None
        for fd in (self._wake_r, self._wake_w):
            if fd is not None:
                os.close(fd)
        self._wake_r = self._wake_w = None
        if self._saved_mode is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None
            logger.debug("Terminal mode restored")

    def _on_resize(self, signum, frame) -> None:
        if self._wake_w is None:
            return
        try:
            os.write(self._wake_w, b"r")
        except BlockingIOError:
            pass

    def _readable(self, timeout: Optional[float]) -> bool:
        ready, _, _ = select.select([self.fd], [], [], timeout)
        return bool(ready)

    def read_event(self) -> InputEvent:
        """Block until a key press or a resize arrives."""
        watched = [self.fd] + ([self._wake_r] if self._wake_r is not None else [])
        ready, _, _ = select.select(watched, [], [])
        if self._wake_r is not None and self._wake_r in ready:
            os.read(self._wake_r, 64)
            return InputEvent(InputKind.RESIZE)

        data = os.read(self.fd, 1)
        if not data:
            raise OSError("Terminal input closed")
        if data == b"\x1b":
            while self._readable(ESCAPE_TIMEOUT) and len(data) < 8:
                data += os.read(self.fd, 1)
                if len(data) >= 3 and (data[-1:].isalpha() or data[-1:] == b"~"):
                    break
        elif data[0] >= 0xC0:
            data += os.read(self.fd, _utf8_length(data[0]) - 1)
        return decode_key(data)

    def cursor_position(self) -> Tuple[int, int]:
        """Zero-based (row, col) of the cursor, (0, 0) if the terminal stays silent."""
        self.stdout.write("\x1b[6n")
        self.stdout.flush()
        response = b""
        while self._readable(CURSOR_QUERY_TIMEOUT):
            response += os.read(self.fd, 32)
            match = _CURSOR_REPORT_RE.search(response)
            if match:
                return int(match.group(1)) - 1, int(match.group(2)) - 1
        logger.debug("Cursor position query unanswered; using row 0")
        return 0, 0
