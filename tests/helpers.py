"""Test doubles for the terminal and the random source."""

from __future__ import annotations

from collections.abc import Sequence

from rain import Color


class RecordingTerminal:
    """In-memory terminal that records every capability call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def hide_cursor(self) -> None:
        self.calls.append(("hide_cursor",))

    def show_cursor(self) -> None:
        self.calls.append(("show_cursor",))

    def move_cursor(self, col: int, row: int) -> None:
        self.calls.append(("move_cursor", col, row))

    def set_foreground(self, color: Color) -> None:
        self.calls.append(("set_foreground", color))

    def set_background(self, color: Color) -> None:
        self.calls.append(("set_background", color))

    def print(self, text: str) -> None:
        self.calls.append(("print", text))

    def reset_color(self) -> None:
        self.calls.append(("reset_color",))

    def flush(self) -> None:
        self.calls.append(("flush",))

    def printed(self) -> str:
        return "".join(call[1] for call in self.calls if call[0] == "print")


class ScriptedRng:
    """Random source with fixed answers.

    ``random()`` cycles through ``draws`` (0.0 always passes the start gate,
    1.0 always fails it); ``integers()`` always picks ``index``.
    """

    def __init__(self, draws: Sequence[float] = (0.0,), index: int = 0) -> None:
        self.draws = list(draws)
        self.index = index
        self.random_calls = 0
        self.integer_calls = 0

    def random(self) -> float:
        draw = self.draws[self.random_calls % len(self.draws)]
        self.random_calls += 1
        return draw

    def integers(self, high: int) -> int:
        self.integer_calls += 1
        return self.index % high
