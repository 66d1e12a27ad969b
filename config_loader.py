"""Configuration loader for the terminal presentation engine."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

try:
    import yaml  # type: ignore
except ModuleNotFoundError as exc:  # pragma: no cover - import guard
    raise RuntimeError(
        "PyYAML is required. Please install it with `pip install pyyaml`."
    ) from exc

from dotenv import load_dotenv

from logging_utils import get_logger
from terminal_mode.models import RenderConfig, ThemePalette
from terminal_mode.themes import DEFAULT_THEME, ThemeSpec, builtin_theme, load_theme_file, lookup_builtin_theme

logger = get_logger(__name__)

DEFAULT_FRAME_WIDTH = 120
DEFAULT_TITLE = "Terminal Slides"
DEFAULT_BANNER_PATH = "presentations/banner.txt"
DEFAULT_DEBOUNCE_MS = 300
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class PresenterConfig:
    """Resolved settings for one run."""

    render: RenderConfig
    theme_label: str
    presentation_title: str
    banner_path: Optional[Path]
    debounce_ms: int
    logging_level: str
    log_file: Optional[Path]
    config_path: Optional[Path] = None

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def to_debug_dict(self) -> Dict[str, Any]:
        return {
            "frame_width": self.render.frame_width,
            "animations_enabled": self.render.animations_enabled,
            "theme": self.theme_label,
            "title": self.presentation_title,
            "banner_path": str(self.banner_path) if self.banner_path else None,
            "debounce_ms": self.debounce_ms,
            "log_level": self.logging_level,
            "log_file": str(self.log_file) if self.log_file else None,
            "config_path": str(self.config_path) if self.config_path else None,
        }

    def dumps(self) -> str:
        """Return a JSON string for diagnostics."""
        return json.dumps(self.to_debug_dict(), ensure_ascii=False, indent=2)


def read_yaml_config(path: Path | str) -> Dict[str, Any]:
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")
    return raw


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _to_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in {"true", "1", "yes", "on"}:
            return True
        if lower in {"false", "0", "no", "off"}:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _first_int(*candidates: Any) -> Optional[int]:
    for candidate in candidates:
        parsed = _parse_int(candidate)
        if parsed is not None:
            return parsed
    return None


def _resolve_theme(
    cli: Mapping[str, Any],
    env: Mapping[str, str],
    section: Mapping[str, Any],
    base_dir: Path,
) -> ThemeSpec:
    if cli.get("theme_path"):
        return load_theme_file(cli["theme_path"])
    if cli.get("theme"):
        return builtin_theme(cli["theme"])

    spec = lookup_builtin_theme(env.get("PRESENTATION_THEME"))
    if spec:
        return spec

    if section.get("theme_path"):
        theme_path = Path(str(section["theme_path"])).expanduser()
        if not theme_path.is_absolute():
            theme_path = base_dir / theme_path
        return load_theme_file(theme_path)

    spec = lookup_builtin_theme(section.get("theme"))
    return spec or builtin_theme(DEFAULT_THEME)


def load_presenter_config(
    cli: Optional[Mapping[str, Any]] = None,
    config_path: Path | str | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PresenterConfig:
    """Resolve settings with precedence CLI > environment > YAML > defaults.

    ``environ`` defaults to ``os.environ`` after loading a ``.env`` file from
    the working directory.
    """
    cli = dict(cli or {})
    if environ is None:
        load_dotenv()
        environ = os.environ

    raw: Dict[str, Any] = {}
    resolved_path: Optional[Path] = None
    base_dir = Path.cwd()
    if config_path:
        raw = read_yaml_config(config_path)
        resolved_path = Path(config_path).expanduser().resolve()
        base_dir = resolved_path.parent

    section = raw.get("presentation") or {}
    watch_section = raw.get("watch") or {}
    logging_section = raw.get("logging") or {}

    theme = _resolve_theme(cli, environ, section, base_dir)
    palette = ThemePalette(
        accent=environ.get("COLOR_ACCENT") or theme.palette.accent,
        dim=environ.get("COLOR_DIM") or theme.palette.dim,
        glow=environ.get("COLOR_GLOW") or theme.palette.glow,
    )

    frame_width = _first_int(cli.get("frame_width"), environ.get("FRAME_WIDTH"), section.get("frame_width"))
    if frame_width is None:
        frame_width = DEFAULT_FRAME_WIDTH

    animations = _to_bool(section.get("animations"), True)
    if cli.get("instant"):
        animations = False

    title = (
        cli.get("title")
        or environ.get("PRESENTATION_TITLE")
        or section.get("title")
        or DEFAULT_TITLE
    )

    banner_path: Optional[Path] = None
    if not cli.get("skip_banner"):
        banner = (
            cli.get("banner")
            or environ.get("DEFAULT_BANNER_PATH")
            or section.get("banner")
            or DEFAULT_BANNER_PATH
        )
        banner_path = Path(str(banner)).expanduser()

    debounce_ms = _first_int(cli.get("debounce_ms"), watch_section.get("debounce_ms"))
    if debounce_ms is None or debounce_ms < 0:
        debounce_ms = DEFAULT_DEBOUNCE_MS

    level = (
        cli.get("log_level")
        or environ.get("LOG_LEVEL")
        or logging_section.get("level")
        or DEFAULT_LOG_LEVEL
    )
    log_file = logging_section.get("file")

    config = PresenterConfig(
        render=RenderConfig(frame_width=frame_width, palette=palette, animations_enabled=animations),
        theme_label=theme.label,
        presentation_title=str(title),
        banner_path=banner_path,
        debounce_ms=debounce_ms,
        logging_level=str(level).upper(),
        log_file=(base_dir / str(log_file)).resolve() if log_file else None,
        config_path=resolved_path,
    )
    logger.debug("Resolved configuration: %s", config.dumps())
    return config
