"""
Terminal presentation mode.

Renders a plain-text script as a sequence of framed, animated terminal
slides with keyboard navigation and optional reload on file change.
"""

from __future__ import annotations

__all__ = [
    "classify_lines",
    "load_segments",
    "FrameRenderer",
    "run_presentation",
    "watch_file",
]

from .script_loader import classify_lines, load_segments
from .renderer import FrameRenderer
from .navigation import run_presentation
from .watcher import watch_file
