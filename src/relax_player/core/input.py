"""Keyboard input for the interactive mixer.

This module reads single key presses from the terminal without waiting for
Enter and maps them to mixer actions. Reads are polled with a short timeout
so the interface can redraw while no key is pressed.

Default bindings:
    - Left / h: select previous channel
    - Right / l: select next channel
    - Up / k: volume up
    - Down / j: volume down
    - m: toggle mute
    - q: quit

Typical usage example:
    from relax_player.core.input import InputConfig, Keyboard

    config = InputConfig()
    with Keyboard() as keyboard:
        key = keyboard.read_key(timeout=0.1)
        action = config.action_for(key)
"""

import os
import sys
import time
from dataclasses import dataclass, field
from enum import Enum

from relax_player.core.logging_system import get_logger

logger = get_logger(__name__)

POLL_TIMEOUT = 0.1  # seconds
_ESCAPE_TIMEOUT = 0.01

# Named keys produced by read_key for non-printable input
KEY_UP = "up"
KEY_DOWN = "down"
KEY_LEFT = "left"
KEY_RIGHT = "right"
KEY_ESCAPE = "escape"

# ANSI escape sequence tails (after ESC) for the arrow keys
_ANSI_ARROWS = {
    "[A": KEY_UP,
    "[B": KEY_DOWN,
    "[C": KEY_RIGHT,
    "[D": KEY_LEFT,
    "OA": KEY_UP,
    "OB": KEY_DOWN,
    "OC": KEY_RIGHT,
    "OD": KEY_LEFT,
}

# Second byte after a 0x00/0xE0 prefix from msvcrt.getwch()
_WINDOWS_ARROWS = {"H": KEY_UP, "P": KEY_DOWN, "K": KEY_LEFT, "M": KEY_RIGHT}


class InputAction(Enum):
    """Mixer actions that can be bound to keys."""

    SELECT_NEXT = "select_next"
    SELECT_PREV = "select_prev"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    TOGGLE_MUTE = "toggle_mute"
    QUIT = "quit"


def _default_bindings() -> dict[str, InputAction]:
    return {
        KEY_LEFT: InputAction.SELECT_PREV,
        "h": InputAction.SELECT_PREV,
        KEY_RIGHT: InputAction.SELECT_NEXT,
        "l": InputAction.SELECT_NEXT,
        KEY_UP: InputAction.VOLUME_UP,
        "k": InputAction.VOLUME_UP,
        KEY_DOWN: InputAction.VOLUME_DOWN,
        "j": InputAction.VOLUME_DOWN,
        "m": InputAction.TOGGLE_MUTE,
        "M": InputAction.TOGGLE_MUTE,
        "q": InputAction.QUIT,
        "Q": InputAction.QUIT,
    }


@dataclass
class InputConfig:
    """Key bindings for the mixer.

    Attributes:
        bindings: Map of key name (a character or one of the KEY_* names)
            to the action it triggers.
    """

    bindings: dict[str, InputAction] = field(default_factory=_default_bindings)

    def action_for(self, key: str | None) -> InputAction | None:
        """Get the action bound to a key, or None if unbound."""
        if key is None:
            return None
        return self.bindings.get(key)


class Keyboard:
    """Non-blocking terminal keyboard reader.

    On POSIX the terminal is switched to cbreak mode for the lifetime of
    the context so keys arrive without Enter and are not echoed. On Windows
    ``msvcrt`` already delivers unbuffered key presses.
    """

    def __init__(self) -> None:
        self._fd: int | None = None
        self._saved_attrs: list | None = None

    def __enter__(self) -> "Keyboard":
        if sys.platform != "win32":
            import termios
            import tty

            self._fd = sys.stdin.fileno()
            self._saved_attrs = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._fd is not None and self._saved_attrs is not None:
            import termios

            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
        self._fd = None
        self._saved_attrs = None

    def read_key(self, timeout: float = POLL_TIMEOUT) -> str | None:
        """Wait up to ``timeout`` seconds for a key press.

        Returns:
            The key pressed (a character or a KEY_* name), or None if no key
            arrived in time.
        """
        if sys.platform == "win32":
            return self._read_key_windows(timeout)
        return self._read_key_posix(timeout)

    def _read_char_posix(self, timeout: float) -> str | None:
        import select

        fd = self._fd if self._fd is not None else sys.stdin.fileno()
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return None
        data = os.read(fd, 1)
        if not data:
            return None
        return data.decode("utf-8", errors="ignore") or None

    def _read_key_posix(self, timeout: float) -> str | None:
        char = self._read_char_posix(timeout)
        if char != "\x1b":
            return char

        sequence = ""
        while len(sequence) < 2:
            nxt = self._read_char_posix(_ESCAPE_TIMEOUT)
            if nxt is None:
                break
            sequence += nxt
        return decode_escape_sequence(sequence)

    def _read_key_windows(self, timeout: float) -> str | None:
        import msvcrt

        deadline = time.monotonic() + timeout
        while not msvcrt.kbhit():
            if time.monotonic() >= deadline:
                return None
            time.sleep(0.005)

        char = msvcrt.getwch()
        if char in ("\x00", "\xe0"):
            return _WINDOWS_ARROWS.get(msvcrt.getwch())
        if char == "\x1b":
            return KEY_ESCAPE
        return char


def decode_escape_sequence(sequence: str) -> str | None:
    """Map the characters following ESC to a named key.

    A lone ESC (empty sequence) is the escape key; unknown sequences are
    dropped.

    Examples:
        >>> decode_escape_sequence("[A")
        'up'
        >>> decode_escape_sequence("")
        'escape'
    """
    if not sequence:
        return KEY_ESCAPE
    key = _ANSI_ARROWS.get(sequence)
    if key is None:
        logger.debug("Ignoring unknown escape sequence %r", sequence)
    return key
