"""
Terminal control for the rain screensaver.

The animation core only talks to a ``Terminal``: a handful of cursor and
color capabilities plus ``flush``. ``AnsiTerminal`` implements it with
truecolor escape sequences buffered in memory and written to the stream in
one batch per frame, so a half-drawn frame is never visible.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol, TextIO

if TYPE_CHECKING:
    from rain import Color

# ── Escape sequences ────────────────────────────────────────────────────
CSI = "\x1b["

HIDE_CURSOR = f"{CSI}?25l"
SHOW_CURSOR = f"{CSI}?25h"
RESET_COLOR = f"{CSI}0m"
CLEAR_SCREEN = f"{CSI}2J"
ENTER_ALT_SCREEN = f"{CSI}?1049h"
LEAVE_ALT_SCREEN = f"{CSI}?1049l"


class Terminal(Protocol):
    """The capabilities the animation needs from a terminal."""

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def move_cursor(self, col: int, row: int) -> None: ...

    def set_foreground(self, color: Color) -> None: ...

    def set_background(self, color: Color) -> None: ...

    def print(self, text: str) -> None: ...

    def reset_color(self) -> None: ...

    def flush(self) -> None: ...


class AnsiTerminal:
    """Queues ANSI control sequences and writes them out on ``flush``.

    Cursor positions are zero-based here and converted to the one-based
    rows/columns the escape sequences expect.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._queue: list[str] = []

    def hide_cursor(self) -> None:
        self._queue.append(HIDE_CURSOR)

    def show_cursor(self) -> None:
        self._queue.append(SHOW_CURSOR)

    def move_cursor(self, col: int, row: int) -> None:
        self._queue.append(f"{CSI}{row + 1};{col + 1}H")

    def set_foreground(self, color: Color) -> None:
        self._queue.append(f"{CSI}38;2;{color.r};{color.g};{color.b}m")

    def set_background(self, color: Color) -> None:
        self._queue.append(f"{CSI}48;2;{color.r};{color.g};{color.b}m")

    def print(self, text: str) -> None:
        self._queue.append(text)

    def reset_color(self) -> None:
        self._queue.append(RESET_COLOR)

    def clear(self) -> None:
        self._queue.append(CLEAR_SCREEN)

    def enter_alternate_screen(self) -> None:
        self._queue.append(ENTER_ALT_SCREEN)

    def leave_alternate_screen(self) -> None:
        self._queue.append(LEAVE_ALT_SCREEN)

    @property
    def pending(self) -> str:
        """Everything queued since the last flush."""
        return "".join(self._queue)

    def flush(self) -> None:
        """Write the queued frame as a single batch. Errors propagate."""
        data = "".join(self._queue)
        self._queue.clear()
        self._stream.write(data)
        self._stream.flush()


@contextmanager
def screen_session(terminal: AnsiTerminal) -> Iterator[AnsiTerminal]:
    """Run the animation on the alternate screen and restore it afterwards.

    Restoration happens on normal exit, Ctrl-C and errors alike. If the
    stream itself is what failed, there is nothing left to restore.
    """
    terminal.enter_alternate_screen()
    terminal.hide_cursor()
    terminal.clear()
    terminal.flush()
    try:
        yield terminal
    finally:
        terminal.reset_color()
        terminal.show_cursor()
        terminal.leave_alternate_screen()
        try:
            terminal.flush()
        except OSError:
            pass
