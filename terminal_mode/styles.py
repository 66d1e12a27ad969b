"""ANSI attributes, frame glyphs and per-kind presentation rules."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .models import RenderConfig, SegmentKind

RESET = "\x1b[0m"
BOLD = "\x1b[1m"
ITALIC = "\x1b[3m"
UNDERLINE = "\x1b[4m"
RED = "\x1b[31m"

BORDER = "│"
RULE = "─"
DOUBLE_RULE = "═"
TRUNCATION_GLYPH = "›"
BULLET_GLYPH = "•"
QUOTE_OPEN = "❝"
QUOTE_CLOSE = "❞"


@dataclass(frozen=True)
class KindStyle:
    color_role: str
    style_prefix: str
    delay_ms: int
    template: str = "{text}"

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    def decorate(self, text: str) -> str:
        return self.template.format(text=text)


KIND_STYLES: Dict[SegmentKind, KindStyle] = {
    SegmentKind.HEADING: KindStyle(color_role="glow", style_prefix=BOLD + UNDERLINE, delay_ms=35),
    SegmentKind.BULLET: KindStyle(
        color_role="accent",
        style_prefix="",
        delay_ms=45,
        template=BULLET_GLYPH + " {text}",
    ),
    SegmentKind.CALLOUT: KindStyle(
        color_role="glow",
        style_prefix=ITALIC,
        delay_ms=38,
        template=QUOTE_OPEN + " {text} " + QUOTE_CLOSE,
    ),
    SegmentKind.PLAIN: KindStyle(color_role="accent", style_prefix="", delay_ms=55),
}


def resolve_color(config: RenderConfig, role: str) -> str:
    if role == "glow":
        return config.color_glow
    return config.color_accent


CLEAR_LINE = "\x1b[0K"
CLEAR_DOWN = "\x1b[J"
CLEAR_SCREEN = "\x1b[2J\x1b[H"


def cursor_to(row: int, col: int) -> str:
    """Absolute cursor move; ``row``/``col`` are zero-based."""
    return f"\x1b[{row + 1};{col + 1}H"
