from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

MIN_FRAME_WIDTH = 40


class SegmentKind(Enum):
    HEADING = "heading"
    BULLET = "bullet"
    CALLOUT = "callout"
    PLAIN = "plain"
    SEPARATOR = "separator"


@dataclass(frozen=True)
class Segment:
    """One classified line of a script. Separators carry no text."""

    kind: SegmentKind
    text: str = ""

    @classmethod
    def heading(cls, text: str) -> "Segment":
        return cls(SegmentKind.HEADING, text)

    @classmethod
    def bullet(cls, text: str) -> "Segment":
        return cls(SegmentKind.BULLET, text)

    @classmethod
    def callout(cls, text: str) -> "Segment":
        return cls(SegmentKind.CALLOUT, text)

    @classmethod
    def plain(cls, text: str) -> "Segment":
        return cls(SegmentKind.PLAIN, text)

    @classmethod
    def separator(cls) -> "Segment":
        return cls(SegmentKind.SEPARATOR)


@dataclass(frozen=True)
class ThemePalette:
    accent: str
    dim: str
    glow: str


def clamp_frame_width(width: int) -> int:
    return max(MIN_FRAME_WIDTH, int(width))


@dataclass
class RenderConfig:
    """Styling surface consumed by the renderer.

    Only ``frame_width`` changes at runtime; everything else is fixed for the
    lifetime of a run.
    """

    frame_width: int
    palette: ThemePalette
    animations_enabled: bool = True

    def __post_init__(self) -> None:
        self.frame_width = clamp_frame_width(self.frame_width)

    @property
    def color_accent(self) -> str:
        return self.palette.accent

    @property
    def color_dim(self) -> str:
        return self.palette.dim

    @property
    def color_glow(self) -> str:
        return self.palette.glow


class InputKind(Enum):
    LEFT = "left"
    RIGHT = "right"
    ENTER = "enter"
    ESCAPE = "escape"
    CHAR = "char"
    RESIZE = "resize"
    OTHER = "other"


@dataclass(frozen=True)
class InputEvent:
    kind: InputKind
    char: Optional[str] = None

    @classmethod
    def key(cls, char: str) -> "InputEvent":
        return cls(InputKind.CHAR, char)


class NavigationAction(Enum):
    NONE = "none"
    RENDER_ANIMATED = "render_animated"
    RENDER_INSTANT = "render_instant"
    EXIT = "exit"


class SessionOutcome(Enum):
    EMPTY = "empty"
    FINISHED = "finished"
    QUIT = "quit"


@dataclass(frozen=True)
class NavigationState:
    current_index: int
    frame_width: int
    segment_count: int
    origin: tuple[int, int] = (0, 0)
    exited: bool = False
    quit_requested: bool = False
