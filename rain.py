#!/usr/bin/env python3
"""
  ﾊ ﾐ ﾋ  R A I N  ｰ ｳ ｼ
  Glowing glyphs falling down your terminal.

  Every column of the screen waits at the top for a moment, then drops a
  trail of fresh glyphs one row per frame. Everything already on screen
  keeps fading toward a dim ember of its own hue, so each trail leaves a
  decaying tail behind its head.

  Usage:
    python3 rain.py                        # green rain at ~13 fps
    python3 rain.py -c 255,160,0           # amber rain
    python3 rain.py -c '#00ff2b' -f 30     # faster
    python3 rain.py --glyphs ascii         # for terminals without katakana
    python3 rain.py --seed 42              # reproducible rain
    python3 rain.py --stats rain_stats.csv # log frame timings to CSV

  Ctrl-C to quit.
"""

from __future__ import annotations

import argparse
import colorsys
import math
import os
import re
import shutil
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, ClassVar, Protocol

import numpy as np

from rain_terminal import AnsiTerminal, Terminal, screen_session

# ── Glyph pools ─────────────────────────────────────────────────────────
# Half-width katakana, digits and a few symbols
KATAKANA: tuple[str, ...] = tuple(
    "ﾊﾐﾋｰｳｼﾅﾓﾆｻﾜﾂｵﾘｱﾎﾃﾏｹﾒｴｶｷﾑﾕﾗｾﾈｽﾀﾇﾍｦｲｸｺｿﾁﾄﾉﾌﾔﾖﾙﾚﾛﾝ"
    "012345789Z:.\"=*+-<>¦╌ç"
)
# Placeholder set for terminals and fonts without katakana
ASCII: tuple[str, ...] = tuple(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789@#$%&*+-=<>/\\|:;."
)

GLYPH_POOLS: dict[str, tuple[str, ...]] = {
    "katakana": KATAKANA,
    "ascii": ASCII,
}

# ── Fade model ──────────────────────────────────────────────────────────
FADE_FACTOR = 0.90      # saturation and lightness kept per tick
FADE_FLOOR = 10.0       # glyphs never fade below (h, 10, 10)

# ── Trail start ─────────────────────────────────────────────────────────
START_PROBABILITY = 0.1  # chance per tick that a waiting column starts a trail

# ── Defaults ────────────────────────────────────────────────────────────
DEFAULT_COLOR = "0,255,43"
DEFAULT_FPS = 13         # ~75 ms per frame
MIN_FPS = 1
MAX_FPS = 120
STATS_INTERVAL = 10      # frames between telemetry rows

HEX_COLOR = re.compile(r"#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})")
DECIMAL_CHANNEL = re.compile(r"[0-9]{1,3}")


class ConfigError(ValueError):
    """Raised for configuration that can't be used to build the rain."""


class RandomSource(Protocol):
    """The slice of ``numpy.random.Generator`` the animation draws from."""

    def random(self) -> float: ...

    def integers(self, high: int, /) -> int: ...


# ═══════════════════════════════════════════════════════════════════════
#  Colors
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HslColor:
    """Hue in degrees (0-360), saturation and lightness in percent (0-100)."""

    h: float
    s: float
    l: float  # noqa: E741

    def to_rgb(self) -> Color:
        r, g, b = colorsys.hls_to_rgb(self.h / 360.0, self.l / 100.0, self.s / 100.0)
        return Color(_channel(r), _channel(g), _channel(b))


@dataclass(frozen=True)
class Color:
    """An RGB display color, 0-255 per channel."""

    r: int
    g: int
    b: int

    def as_hsl(self) -> HslColor:
        h, l, s = colorsys.rgb_to_hls(self.r / 255.0, self.g / 255.0, self.b / 255.0)
        return HslColor(h * 360.0, s * 100.0, l * 100.0)


def _channel(value: float) -> int:
    return max(0, min(255, round(value * 255.0)))


BLACK = Color(0, 0, 0)


def fade_hsl(hsl: HslColor) -> HslColor:
    """One tick of fading; settles on ``(h, FADE_FLOOR, FADE_FLOOR)``."""
    s = hsl.s * FADE_FACTOR
    l = hsl.l * FADE_FACTOR  # noqa: E741
    if s < FADE_FLOOR or l < FADE_FLOOR:
        return HslColor(hsl.h, FADE_FLOOR, FADE_FLOOR)
    return HslColor(hsl.h, s, l)


# ═══════════════════════════════════════════════════════════════════════
#  Glyph
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Glyph:
    """A single screen cell: a character and the color it is drawn in.

    Fading works on ``hsl`` and derives ``color`` from it, so repeated fades
    never pick up RGB rounding error.
    """

    character: str
    color: Color
    hsl: HslColor = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.hsl = self.color.as_hsl()

    @classmethod
    def empty(cls) -> Glyph:
        return cls(" ", BLACK)

    @classmethod
    def random(
        cls, rng: RandomSource, color: Color, pool: Sequence[str] = KATAKANA
    ) -> Glyph:
        return cls(pool[int(rng.integers(len(pool)))], color)

    def fade_color(self) -> None:
        self.hsl = fade_hsl(self.hsl)
        self.color = self.hsl.to_rgb()

    def render(self, terminal: Terminal) -> None:
        terminal.set_foreground(self.color)
        terminal.print(self.character)


# ═══════════════════════════════════════════════════════════════════════
#  Column
# ═══════════════════════════════════════════════════════════════════════

class Column:
    """
    One vertical strip of the screen.

    The trail head sits at ``active_index``. While it is at row 0 the column
    is waiting; each tick it starts a new trail with ``START_PROBABILITY``.
    Once a trail starts it falls one row per tick until it wraps back to
    row 0, never pausing mid-fall.
    """

    def __init__(
        self, height: int, base_color: Color, pool: Sequence[str] = KATAKANA
    ) -> None:
        self.height: int = height
        self.base_color: Color = base_color
        self.pool: Sequence[str] = pool
        self.glyphs: list[Glyph] = [Glyph.empty() for _ in range(height)]
        self.active_index: int = 0

    @property
    def falling(self) -> bool:
        """True while a trail is on its way down."""
        return self.active_index != 0

    def render(self, terminal: Terminal, row: int) -> None:
        if not 0 <= row < self.height:
            raise IndexError(f"row {row} outside column of height {self.height}")
        self.glyphs[row].render(terminal)

    def step(self, rng: RandomSource) -> bool:
        """Advance one tick. Returns True if the trail head moved."""
        # Everything fades, whether or not the head moves
        for glyph in self.glyphs:
            glyph.fade_color()

        if self.active_index == 0 and rng.random() > START_PROBABILITY:
            return False

        self.glyphs[self.active_index] = Glyph.random(rng, self.base_color, self.pool)
        self.active_index += 1
        if self.active_index >= self.height:
            self.active_index = 0
        return True


# ═══════════════════════════════════════════════════════════════════════
#  Waterfall
# ═══════════════════════════════════════════════════════════════════════

class Waterfall:
    """All the columns of the screen, rendered and stepped together."""

    def __init__(
        self,
        width: int,
        height: int,
        base_color: Color,
        pool: Sequence[str] = KATAKANA,
    ) -> None:
        self.width: int = width
        self.height: int = height
        self.base_color: Color = base_color
        self.columns: list[Column] = [
            Column(height, base_color, pool) for _ in range(width)
        ]

    def render(self, terminal: Terminal) -> None:
        """Repaint the whole screen in terminal scan order, then flush."""
        terminal.hide_cursor()
        terminal.move_cursor(0, 0)
        terminal.set_background(BLACK)

        for row in range(self.height):
            for column in self.columns:
                column.render(terminal, row)

        terminal.reset_color()
        terminal.show_cursor()
        terminal.flush()

    def step(self, rng: RandomSource) -> int:
        """Step every column. Returns how many trail heads moved."""
        advanced = 0
        for column in self.columns:
            if column.step(rng):
                advanced += 1
        return advanced

    def falling(self) -> int:
        return sum(1 for column in self.columns if column.falling)


# ═══════════════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════════════

def parse_color(text: str) -> Color:
    """Parse ``R,G,B`` or ``#rrggbb``."""
    text = text.strip()
    if text.startswith("#"):
        match = HEX_COLOR.fullmatch(text)
        if match is None:
            raise ConfigError(f"invalid color {text!r}: expected #rrggbb")
        r, g, b = (int(pair, 16) for pair in match.groups())
        return Color(r, g, b)

    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 3:
        raise ConfigError(f"invalid color {text!r}: expected R,G,B or #rrggbb")
    if not all(DECIMAL_CHANNEL.fullmatch(p) for p in parts):
        raise ConfigError(f"invalid color {text!r}: channels must be integers")
    r, g, b = (int(p) for p in parts)
    for channel in (r, g, b):
        if not 0 <= channel <= 255:
            raise ConfigError(f"invalid color {text!r}: channels must be 0-255")
    return Color(r, g, b)


def frame_interval(fps: int) -> float:
    """Seconds between frames, rounded to whole milliseconds."""
    # Halves round up, not to even
    return math.floor(1000 / fps + 0.5) / 1000.0


@dataclass(frozen=True)
class RainConfig:
    """Validated settings for one run of the rain."""

    base_color: Color
    fps: int = DEFAULT_FPS
    pool: tuple[str, ...] = KATAKANA
    seed: int | None = None

    def __post_init__(self) -> None:
        if not MIN_FPS <= self.fps <= MAX_FPS:
            raise ConfigError(f"fps must be between {MIN_FPS} and {MAX_FPS}, got {self.fps}")
        if not self.pool:
            raise ConfigError("glyph pool is empty")
        if any(len(ch) != 1 for ch in self.pool):
            raise ConfigError("glyph pool entries must be single characters")

    @property
    def interval(self) -> float:
        return frame_interval(self.fps)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> RainConfig:
        if args.glyphs not in GLYPH_POOLS:
            raise ConfigError(f"unknown glyph pool {args.glyphs!r}")
        return cls(
            base_color=parse_color(args.color),
            fps=args.fps,
            pool=GLYPH_POOLS[args.glyphs],
            seed=args.seed,
        )


def check_encodable(pool: Sequence[str], encoding: str | None) -> None:
    """Make sure the output stream can actually print every glyph."""
    if not encoding:
        return
    try:
        "".join(pool).encode(encoding)
    except UnicodeEncodeError as exc:
        raise ConfigError(
            f"output encoding {encoding} can't display these glyphs; try --glyphs ascii"
        ) from exc


def make_rng(seed: int | None = None) -> np.random.Generator:
    """The one generator every random draw comes from."""
    if seed is None:
        seed = time.time_ns() // 1000
    return np.random.default_rng(seed)


# ═══════════════════════════════════════════════════════════════════════
#  Stats logger
# ═══════════════════════════════════════════════════════════════════════

class StatsLogger:
    """Writes frame telemetry to CSV for post-hoc tuning."""

    HEADER: ClassVar[str] = "frame,time_s,advanced,falling,render_ms,step_ms\n"

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh: IO[str] | None = None
        self._t0: float = time.monotonic()

    def open(self) -> None:
        try:
            self._fh = open(self._path, "w")
            self._fh.write(self.HEADER)
            self._fh.flush()
        except OSError:
            self._fh = None

    def log(
        self,
        frame: int,
        advanced: int,
        falling: int,
        render_ms: float,
        step_ms: float,
    ) -> None:
        if self._fh is None:
            return
        t = time.monotonic() - self._t0
        try:
            self._fh.write(
                f"{frame},{t:.1f},{advanced},{falling},{render_ms:.2f},{step_ms:.2f}\n"
            )
            if frame % 100 == 0:
                self._fh.flush()
        except OSError:
            self.close()

    def close(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError:
                pass
            self._fh = None


# ═══════════════════════════════════════════════════════════════════════
#  Main loop
# ═══════════════════════════════════════════════════════════════════════

def run(
    waterfall: Waterfall,
    terminal: Terminal,
    rng: RandomSource,
    interval: float,
    frames: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
    stats: StatsLogger | None = None,
) -> None:
    """Render, step, sleep; forever unless ``frames`` is given.

    Each frame is fully rendered before it is stepped, and fully stepped
    before the next render.
    """
    frame = 0
    while frames is None or frame < frames:
        t0 = time.perf_counter()
        waterfall.render(terminal)
        t1 = time.perf_counter()
        advanced = waterfall.step(rng)
        t2 = time.perf_counter()
        frame += 1

        if stats is not None and frame % STATS_INTERVAL == 0:
            stats.log(
                frame=frame,
                advanced=advanced,
                falling=waterfall.falling(),
                render_ms=(t1 - t0) * 1000.0,
                step_ms=(t2 - t1) * 1000.0,
            )

        sleep(interval)


def terminal_size(width: int | None = None, height: int | None = None) -> tuple[int, int]:
    """Columns and rows to fill, with explicit overrides winning."""
    size = shutil.get_terminal_size(fallback=(80, 24))
    cols = width if width is not None else size.columns
    rows = height if height is not None else size.lines
    if cols <= 0 or rows <= 0:
        raise ConfigError(f"terminal size must be positive, got {cols}x{rows}")
    return cols, rows


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rain",
        description="Glowing glyphs falling down your terminal.",
    )
    parser.add_argument("-c", "--color", default=DEFAULT_COLOR,
                        help=f"Base color as R,G,B or #rrggbb (default: {DEFAULT_COLOR})")
    parser.add_argument("-f", "--fps", type=int, default=DEFAULT_FPS,
                        help=f"Frames per second, {MIN_FPS}-{MAX_FPS} (default: {DEFAULT_FPS})")
    parser.add_argument("--glyphs", choices=sorted(GLYPH_POOLS), default="katakana",
                        help="Glyph pool to draw from (default: katakana)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for reproducible rain (default: current time)")
    parser.add_argument("--width", type=int, default=None,
                        help="Columns to fill (default: terminal width)")
    parser.add_argument("--height", type=int, default=None,
                        help="Rows to fill (default: terminal height)")
    parser.add_argument("--stats", type=Path, default=None,
                        help="Write frame telemetry to this CSV file")
    return parser


def _silence_stdout() -> None:
    # Python would otherwise complain again when it flushes stdout at exit
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = RainConfig.from_args(args)
        check_encodable(config.pool, getattr(sys.stdout, "encoding", None))
        width, height = terminal_size(args.width, args.height)
    except ConfigError as exc:
        parser.error(str(exc))

    waterfall = Waterfall(width, height, config.base_color, config.pool)
    rng = make_rng(config.seed)
    terminal = AnsiTerminal(sys.stdout)

    stats: StatsLogger | None = None
    if args.stats is not None:
        stats = StatsLogger(args.stats)
        stats.open()

    try:
        with screen_session(terminal):
            run(waterfall, terminal, rng, config.interval, stats=stats)
    except KeyboardInterrupt:
        pass
    except BrokenPipeError:
        _silence_stdout()
        return 1
    except OSError as exc:
        print(f"rain: output failed: {exc}", file=sys.stderr)
        return 1
    finally:
        if stats is not None:
            stats.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
