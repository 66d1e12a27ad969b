from __future__ import annotations

import itertools
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TextIO, Tuple

from logging_utils import get_logger

from .models import RenderConfig, Segment, SegmentKind
from .styles import (
    BOLD,
    BORDER,
    CLEAR_DOWN,
    CLEAR_LINE,
    DOUBLE_RULE,
    ITALIC,
    KIND_STYLES,
    RESET,
    RULE,
    TRUNCATION_GLYPH,
    cursor_to,
    resolve_color,
)

logger = get_logger(__name__)

TRANSITION_FRAMES = (
    "[⠁] syncing tracks",
    "[⠃] calibrating light",
    "[⠇] loading vectors",
    "[⠇] assembling frames",
    "[⠧] tuning luminance",
    "[⠷] finalizing",
)
TRANSITION_STEPS = 10
WARMUP_PHASES = (
    "[.. ] spinning up retro tube",
    "[<. ] calibrating scanline",
    "[<<.] loading pigment",
    "[<<<] ready to beam",
)
EMPTY_MESSAGE = "(no content in file)"


@dataclass(frozen=True)
class LinePlan:
    """Final bytes of one framed line, split so the glyphs can be paced.

    ``lead`` and ``tail`` are always written in one go; ``glyphs`` are the
    visible content characters after truncation.
    """

    lead: str
    glyphs: Tuple[str, ...]
    tail: str
    delay: float = 0.0
    truncated: bool = False

    @property
    def text(self) -> str:
        return self.lead + "".join(self.glyphs) + self.tail


def content_prefix(index: int) -> str:
    return f"{BORDER} {index + 1:03d} :: "


def available_width(frame_width: int, prefix: str) -> int:
    return max(0, frame_width - (len(prefix) + 1))


def truncate_glyphs(glyphs: Sequence[str], available: int) -> Tuple[Tuple[str, ...], bool]:
    """Fit ``glyphs`` into ``available`` columns.

    Overlong content keeps ``available - 1`` glyphs followed by the
    truncation glyph. Width is counted per code point, so wide (CJK/emoji)
    characters still count as one column.
    """
    if available <= 0:
        return (), bool(glyphs)
    if len(glyphs) > available:
        return tuple(glyphs[: available - 1]) + (TRUNCATION_GLYPH,), True
    return tuple(glyphs), False


class FrameRenderer:
    """Draw segments inside a fixed-width frame on a terminal stream."""

    def __init__(
        self,
        config: RenderConfig,
        stream: Optional[TextIO] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.stream = stream if stream is not None else sys.stdout
        self._sleep = sleep

    # -- low level -------------------------------------------------------

    def write(self, text: str) -> None:
        self.stream.write(text)

    def flush(self) -> None:
        self.stream.flush()

    def pause(self, seconds: float) -> None:
        if self.config.animations_enabled and seconds > 0:
            self._sleep(seconds)

    def _dim(self, text: str) -> str:
        return f"{self.config.color_dim}{text}{RESET}"

    # -- segment line ----------------------------------------------------

    def compose_segment_line(self, segment: Segment, index: int) -> LinePlan:
        cfg = self.config
        prefix = content_prefix(index)
        available = available_width(cfg.frame_width, prefix)
        lead = self._dim(prefix)
        border = self._dim(BORDER) + "\n"

        if segment.kind is SegmentKind.SEPARATOR:
            return LinePlan(lead=lead + self._dim(RULE * available), glyphs=(), tail=border)

        style = KIND_STYLES[segment.kind]
        display_text = segment.text.upper() if segment.kind is SegmentKind.HEADING else segment.text
        display_text = style.decorate(display_text)
        color = resolve_color(cfg, style.color_role)

        glyphs = list(display_text)
        visible, truncated = truncate_glyphs(glyphs, available)

        tail = ""
        if available > 0 and (glyphs or style.style_prefix):
            lead += style.style_prefix + color
            tail += RESET

        padding = available - len(visible)
        if padding > 0:
            tail += self._dim(" " * padding)
        tail += border
        return LinePlan(
            lead=lead,
            glyphs=visible,
            tail=tail,
            delay=style.delay_seconds,
            truncated=truncated,
        )

    def render_segment(self, segment: Segment, index: int, animate: bool = True) -> None:
        """Write one framed line; paced per glyph when animating."""
        plan = self.compose_segment_line(segment, index)
        if not (animate and self.config.animations_enabled and plan.glyphs):
            self.write(plan.text)
            self.flush()
            return

        self.write(plan.lead)
        self.flush()
        last = len(plan.glyphs) - 1
        for position, glyph in enumerate(plan.glyphs):
            self.write(glyph)
            self.flush()
            if not (plan.truncated and position == last):
                self.pause(plan.delay)
        self.write(plan.tail)
        self.flush()

    # -- frame chrome ----------------------------------------------------

    def frame_top(self) -> None:
        self.write(self._dim("╭" + RULE * max(0, self.config.frame_width - 2) + "╮") + "\n")

    def frame_bottom(self) -> None:
        self.write(self._dim("╰" + RULE * max(0, self.config.frame_width - 2) + "╯") + "\n")

    def transition_animation(self) -> None:
        if not self.config.animations_enabled:
            return
        for frame in itertools.islice(itertools.cycle(TRANSITION_FRAMES), TRANSITION_STEPS):
            self.write(f"\r{self._dim(frame)}  ")
            self.flush()
            self.pause(0.07)
        self.write(f"\r{self.config.color_glow}{BOLD}[READY]{RESET}")
        self.flush()
        self.pause(0.21)
        self.write("\r" + CLEAR_LINE)
        self.flush()

    def crt_warmup(self) -> None:
        if not self.config.animations_enabled:
            return
        for phase in WARMUP_PHASES:
            self.write(f"\r{self._dim(phase)}")
            self.flush()
            self.pause(0.22)
        self.write("\r" + CLEAR_LINE)
        self.flush()

    def display_banner(self, path: Path) -> None:
        try:
            banner = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise OSError(f"Banner ({path}) could not be loaded: {exc}") from exc

        logger.debug("Displaying banner %s", path)
        self.crt_warmup()
        glow = f"{self.config.color_glow}{BOLD}"
        for line in banner.splitlines():
            if self.config.animations_enabled:
                self.write(self._dim(line) + "\n")
                self.flush()
                self.pause(0.06)
                self.write(f"\x1b[1A\r{glow}{line}{RESET}{CLEAR_LINE}\n")
                self.flush()
                self.pause(0.11)
            else:
                self.write(f"{glow}{line}{RESET}\n")
        self.flush()
        self.pause(0.24)

    def retro_separator(self, label: str) -> None:
        text = f"╢ {label.upper()} ╟"
        fill = max(0, self.config.frame_width - len(text))
        left = fill // 2
        right = fill - left
        cfg = self.config
        self.write(
            f"{cfg.color_dim}{DOUBLE_RULE * left}{cfg.color_glow}{text}"
            f"{cfg.color_dim}{DOUBLE_RULE * right}{RESET}\n"
        )

    def session_meta(self, script_path: Path, theme_label: str) -> None:
        cfg = self.config
        mode = "CINEMATIC" if cfg.animations_enabled else "INSTANT"
        self.write(f"{cfg.color_dim}SOURCE :: {BOLD}{cfg.color_accent}{script_path}{RESET}\n")
        self.write(
            f"{cfg.color_dim}THEME  :: {BOLD}{cfg.color_glow}{theme_label.upper()}{RESET}  "
            f"{cfg.color_dim}FRAME :: {BOLD}{cfg.color_accent}{cfg.frame_width}{RESET}  "
            f"{cfg.color_dim}MODE :: {BOLD}{cfg.color_accent}{mode}{RESET}\n"
        )
        self.write("\n")
        self.flush()

    def instructions(self, index: int, total: int) -> None:
        cfg = self.config
        self.write(
            f"{cfg.color_dim}CTRL ::{RESET} {cfg.color_glow}←/→{RESET} or Enter  "
            f"{cfg.color_glow}+/-{RESET} width  {cfg.color_glow}Q/Esc{RESET} quit  "
            f"{cfg.color_dim}SEQ ::{RESET} {cfg.color_accent}{index + 1:03d}/{total:03d}{RESET}  "
            f"{cfg.color_dim}FRAME ::{RESET} {cfg.color_accent}{cfg.frame_width}{RESET}\n"
        )

    def empty_frame_message(self) -> None:
        cfg = self.config
        prefix = f"{BORDER} SYS :: "
        available = available_width(cfg.frame_width, prefix)
        visible = EMPTY_MESSAGE[:available]
        self.frame_top()
        self.write(self._dim(prefix))
        self.write(f"{ITALIC}{cfg.color_dim}{visible}{RESET}")
        padding = available - len(visible)
        if padding > 0:
            self.write(self._dim(" " * padding))
        self.write(self._dim(BORDER) + "\n")
        self.frame_bottom()
        self.write(f"{cfg.color_dim}⚠ {cfg.color_accent}{ITALIC}Nothing to display{RESET}\n\n")
        self.flush()

    # -- full slide ------------------------------------------------------

    def render_slide(
        self,
        segments: List[Segment],
        index: int,
        animate: bool,
        origin: Tuple[int, int] = (0, 0),
    ) -> None:
        """Redraw the whole slide area starting at ``origin`` (row, col)."""
        row, col = origin
        self.write(cursor_to(row, col) + CLEAR_DOWN)
        self.flush()

        if animate and self.config.animations_enabled:
            self.transition_animation()
            self.write("\n")

        self.frame_top()
        self.render_segment(segments[index], index, animate)
        self.frame_bottom()
        self.write("\n")
        self.instructions(index, len(segments))
        self.flush()
