from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, TextIO

from config_loader import DEFAULT_BANNER_PATH, PresenterConfig, load_presenter_config
from logging_utils import configure_logging, get_logger

from .models import SessionOutcome
from .navigation import run_presentation
from .renderer import FrameRenderer
from .script_loader import load_segments
from .styles import CLEAR_SCREEN, RED, RESET
from .themes import BUILTIN_THEMES
from .watcher import watch_file

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Retro-futuristic presentation engine for the terminal")
    parser.add_argument("script", help="Path to the presentation script (UTF-8 text)")
    parser.add_argument("-b", "--banner", help="Path to an ASCII banner file")
    parser.add_argument("-t", "--title", help="Override the presentation title")
    parser.add_argument("--frame-width", type=int, help="Override the frame width (minimum 40)")
    parser.add_argument("--theme", choices=sorted(BUILTIN_THEMES), help="Built-in color theme")
    parser.add_argument("--theme-path", help="Path to a YAML theme file (accent/dim/glow)")
    parser.add_argument(
        "--instant",
        action="store_true",
        help="Render instantly (no animations)",
    )
    parser.add_argument("--skip-banner", action="store_true", help="Skip the start-up banner")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Re-run the presentation whenever the script file changes",
    )
    parser.add_argument(
        "--debounce-ms",
        type=int,
        help="Minimum time between reloads in watch mode (default: 300)",
    )
    parser.add_argument("--config", help="Optional YAML configuration file")
    parser.add_argument("--log-level", help="Logging level (default: WARNING)")
    return parser


class PresentationRunner:
    """Load, introduce and present one script; reusable across reloads."""

    def __init__(self, config: PresenterConfig, script_path: Path, stream: Optional[TextIO] = None) -> None:
        self.config = config
        self.script_path = script_path
        self.renderer = FrameRenderer(config.render, stream=stream)

    def _show_banner(self) -> None:
        banner_path = self.config.banner_path
        if banner_path is None:
            return
        if banner_path == Path(DEFAULT_BANNER_PATH) and not banner_path.exists():
            logger.info("Default banner %s not found; skipping", banner_path)
            return
        self.renderer.display_banner(banner_path)
        self.renderer.write("\n")

    def run(self, *, show_banner: bool = True) -> SessionOutcome:
        if show_banner:
            self._show_banner()

        self.renderer.retro_separator(self.config.presentation_title)
        self.renderer.session_meta(self.script_path, self.config.theme_label)

        segments = load_segments(self.script_path)
        if not segments:
            self.renderer.empty_frame_message()
            return SessionOutcome.EMPTY

        return run_presentation(self.config.render, segments, renderer=self.renderer)

    def announce_watch(self) -> None:
        self.renderer.write(f"{self.config.render.color_dim}Watching {self.script_path} for changes...{RESET}\n")
        self.renderer.flush()

    def reload(self) -> bool:
        """Watch callback: clear the screen and present the script again."""
        self.renderer.write(CLEAR_SCREEN)
        self.renderer.flush()
        try:
            outcome = self.run(show_banner=False)
        except OSError as exc:
            logger.error("Reload failed: %s", exc)
            self.renderer.write(f"{RED}Error:{RESET} {exc}\n")
            outcome = SessionOutcome.EMPTY
        self.announce_watch()
        return outcome is not SessionOutcome.QUIT


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_presenter_config(
            cli={
                "banner": args.banner,
                "title": args.title,
                "frame_width": args.frame_width,
                "theme": args.theme,
                "theme_path": args.theme_path,
                "instant": args.instant,
                "skip_banner": args.skip_banner,
                "debounce_ms": args.debounce_ms,
                "log_level": args.log_level,
            },
            config_path=args.config,
        )
        configure_logging(level=config.logging_level, log_file=config.log_file)

        script_path = Path(args.script).expanduser()
        runner = PresentationRunner(config, script_path)
        outcome = runner.run()

        if args.watch and outcome is not SessionOutcome.QUIT:
            runner.announce_watch()
            watch_file(script_path, config.debounce_seconds, runner.reload)
    except KeyboardInterrupt:
        print(RESET)
        return 130
    except (OSError, ValueError) as exc:
        print(f"{RED}Error:{RESET} {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
