"""Turn a plain-text script into classified presentation segments."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from logging_utils import get_logger

from .models import Segment

logger = get_logger(__name__)

SEPARATOR_CHARS = frozenset("-–=")
BULLET_MARKERS = ("- ", "* ")


def classify_line(line: str) -> Segment:
    """Classify one raw line. First matching rule wins."""
    trimmed = line.strip()
    if not trimmed:
        return Segment.plain("")

    if len(trimmed) >= 3 and all(ch in SEPARATOR_CHARS for ch in trimmed):
        return Segment.separator()

    if trimmed.startswith("#"):
        content = trimmed.lstrip("#").strip()
        if content:
            return Segment.heading(content)

    if trimmed.startswith(BULLET_MARKERS):
        return Segment.bullet(trimmed[2:].lstrip())

    if trimmed.startswith(">"):
        return Segment.callout(trimmed.lstrip(">").lstrip())

    return Segment.plain(trimmed)


def classify_lines(lines: Iterable[str]) -> List[Segment]:
    return [classify_line(line) for line in lines]


def split_script_lines(text: str) -> List[str]:
    # Only "\n" delimits lines; a trailing "\r" from CRLF files is dropped.
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def load_segments(path: Path | str) -> List[Segment]:
    """Read a UTF-8 script file and classify every line."""
    script_path = Path(path).expanduser()
    if not script_path.exists():
        raise FileNotFoundError(f"Script file not found: {script_path}")

    try:
        text = script_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise OSError(f"{script_path}: {exc}") from exc

    segments = classify_lines(split_script_lines(text))
    logger.info("Loaded %d segments from %s", len(segments), script_path)
    return segments
