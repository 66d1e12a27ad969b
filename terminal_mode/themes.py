"""Built-in color themes and YAML theme files."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import yaml  # type: ignore
except ModuleNotFoundError as exc:  # pragma: no cover - import guard
    raise RuntimeError(
        "PyYAML is required. Please install it with `pip install pyyaml`."
    ) from exc

from logging_utils import get_logger

from .models import ThemePalette

logger = get_logger(__name__)

DEFAULT_THEME = "neon"

BUILTIN_THEMES: Dict[str, ThemePalette] = {
    "neon": ThemePalette(accent="\x1b[38;5;214m", dim="\x1b[38;5;238m", glow="\x1b[38;5;51m"),
    "amber": ThemePalette(accent="\x1b[38;5;178m", dim="\x1b[38;5;94m", glow="\x1b[38;5;221m"),
    "arctic": ThemePalette(accent="\x1b[38;5;195m", dim="\x1b[38;5;250m", glow="\x1b[38;5;117m"),
}

# YAML single-quoted strings keep "\e" / "\x1b" literally; decode them here.
_ESCAPE_RE = re.compile(r"\\(?:e|x1[bB]|033|u001[bB])")


@dataclass(frozen=True)
class ThemeSpec:
    label: str
    palette: ThemePalette


def builtin_theme(name: str) -> ThemeSpec:
    key = name.strip().lower()
    if key not in BUILTIN_THEMES:
        raise ValueError(f"Unknown theme '{name}' (choose from: {', '.join(BUILTIN_THEMES)})")
    return ThemeSpec(label=key, palette=BUILTIN_THEMES[key])


def lookup_builtin_theme(name: Optional[str]) -> Optional[ThemeSpec]:
    if not name:
        return None
    try:
        return builtin_theme(name)
    except ValueError:
        logger.warning("Ignoring unknown theme name: %s", name)
        return None


def decode_style_token(value: str) -> str:
    return _ESCAPE_RE.sub("\x1b", value)


def _require_color(raw: Dict[str, Any], key: str, path: Path) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Theme file ({path}) must define '{key}' as a string")
    return decode_style_token(value)


def load_theme_file(path: Path | str) -> ThemeSpec:
    """Load a YAML theme: ``{name?, accent, dim, glow}``."""
    theme_path = Path(path).expanduser()
    try:
        with theme_path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise OSError(f"Theme file ({theme_path}) could not be read: {exc}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Theme file ({theme_path}) must contain a mapping")

    name = raw.get("name")
    label = str(name).strip() if name else theme_path.stem
    if not label:
        raise ValueError(f"Theme file ({theme_path}) does not define a theme name")

    palette = ThemePalette(
        accent=_require_color(raw, "accent", theme_path),
        dim=_require_color(raw, "dim", theme_path),
        glow=_require_color(raw, "glow", theme_path),
    )
    logger.debug("Loaded theme %s from %s", label, theme_path)
    return ThemeSpec(label=label, palette=palette)
