from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Iterable, List, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from terminal_mode.models import (
    InputEvent,
    InputKind,
    NavigationAction,
    NavigationState,
    RenderConfig,
    Segment,
    SessionOutcome,
    ThemePalette,
)
from terminal_mode.navigation import run_presentation, transition
from terminal_mode.renderer import FrameRenderer
from terminal_mode.script_loader import classify_lines

PALETTE = ThemePalette(accent="<a>", dim="<d>", glow="<g>")
LEFT = InputEvent(InputKind.LEFT)
RIGHT = InputEvent(InputKind.RIGHT)
ENTER = InputEvent(InputKind.ENTER)
ESCAPE = InputEvent(InputKind.ESCAPE)
RESIZE = InputEvent(InputKind.RESIZE)


class FakeTerminal:
    def __init__(self, events: Iterable[InputEvent], origin: Tuple[int, int] = (3, 0)) -> None:
        self._events = list(events)
        self.origin = origin
        self.entered = False
        self.restored = False

    def __enter__(self) -> "FakeTerminal":
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.restored = True
        return False

    def read_event(self) -> InputEvent:
        if not self._events:
            raise OSError("no more input")
        return self._events.pop(0)

    def cursor_position(self) -> Tuple[int, int]:
        return self.origin


class RecordingRenderer(FrameRenderer):
    def __init__(self, config: RenderConfig) -> None:
        super().__init__(config, stream=io.StringIO(), sleep=lambda _: None)
        self.renders: List[Tuple[int, bool, int]] = []

    def render_slide(self, segments, index, animate, origin=(0, 0)) -> None:
        self.renders.append((index, animate, self.config.frame_width))
        super().render_slide(segments, index, animate, origin)


def _state(index: int = 0, count: int = 5, width: int = 40) -> NavigationState:
    return NavigationState(current_index=index, frame_width=width, segment_count=count)


def _session(events: Iterable[InputEvent], segments=None, width: int = 40):
    config = RenderConfig(frame_width=width, palette=PALETTE, animations_enabled=False)
    renderer = RecordingRenderer(config)
    terminal = FakeTerminal(events)
    segments = segments if segments is not None else [Segment.plain(str(i)) for i in range(5)]
    outcome = run_presentation(config, segments, renderer=renderer, terminal_factory=lambda: terminal)
    return outcome, renderer, terminal, config


def test_left_at_start_is_noop() -> None:
    state = _state(index=0)
    assert transition(state, LEFT) == (state, NavigationAction.NONE)


def test_left_moves_back_with_animation() -> None:
    state, action = transition(_state(index=2), LEFT)
    assert state.current_index == 1
    assert action is NavigationAction.RENDER_ANIMATED


@pytest.mark.parametrize("event", [RIGHT, ENTER])
def test_forward_moves_until_last_then_exits(event: InputEvent) -> None:
    state, action = transition(_state(index=3), event)
    assert (state.current_index, action) == (4, NavigationAction.RENDER_ANIMATED)

    state, action = transition(state, event)
    assert action is NavigationAction.EXIT
    assert state.exited and not state.quit_requested
    assert state.current_index == 4


@pytest.mark.parametrize("event", [InputEvent.key("q"), InputEvent.key("Q"), ESCAPE])
def test_quit_keys_exit_from_any_position(event: InputEvent) -> None:
    state, action = transition(_state(index=2), event)
    assert action is NavigationAction.EXIT
    assert state.quit_requested


@pytest.mark.parametrize("char", ["+", "="])
def test_widen_redraws_instantly(char: str) -> None:
    state, action = transition(_state(width=40), InputEvent.key(char))
    assert state.frame_width == 42
    assert action is NavigationAction.RENDER_INSTANT


@pytest.mark.parametrize("char", ["-", "_"])
def test_narrow_at_minimum_is_noop(char: str) -> None:
    state = _state(width=40)
    assert transition(state, InputEvent.key(char)) == (state, NavigationAction.NONE)


def test_narrow_above_minimum_redraws_instantly() -> None:
    state, action = transition(_state(width=41), InputEvent.key("-"))
    assert state.frame_width == 40
    assert action is NavigationAction.RENDER_INSTANT


def test_resize_always_redraws_instantly() -> None:
    state = _state(index=1)
    assert transition(state, RESIZE) == (state, NavigationAction.RENDER_INSTANT)


@pytest.mark.parametrize(
    "event",
    [InputEvent.key("x"), InputEvent.key(" "), InputEvent(InputKind.OTHER), InputEvent(InputKind.CHAR)],
)
def test_unknown_input_is_ignored(event: InputEvent) -> None:
    state = _state(index=2)
    assert transition(state, event) == (state, NavigationAction.NONE)


def test_session_renders_first_slide_then_walks_to_the_end() -> None:
    segments = classify_lines(["# Title", "- point one", "", ">quote", "---"])
    outcome, renderer, terminal, _ = _session([RIGHT] * 5, segments=segments)

    assert outcome is SessionOutcome.FINISHED
    assert [index for index, _, _ in renderer.renders] == [0, 1, 2, 3, 4]
    assert all(animate for _, animate, _ in renderer.renders)
    assert terminal.entered and terminal.restored


def test_session_quit_reports_quit_outcome() -> None:
    outcome, renderer, terminal, _ = _session([RIGHT, InputEvent.key("q")])
    assert outcome is SessionOutcome.QUIT
    assert [index for index, _, _ in renderer.renders] == [0, 1]
    assert terminal.restored


def test_session_width_change_updates_config_and_skips_animation() -> None:
    outcome, renderer, _, config = _session([InputEvent.key("+"), InputEvent.key("-"), InputEvent.key("-"), RESIZE, ESCAPE])

    assert outcome is SessionOutcome.QUIT
    assert renderer.renders == [(0, True, 40), (0, False, 42), (0, False, 40), (0, False, 40)]
    assert config.frame_width == 40


def test_session_ignores_unknown_keys() -> None:
    _, renderer, _, _ = _session([InputEvent.key("z"), LEFT, ESCAPE])
    assert renderer.renders == [(0, True, 40)]


def test_empty_sequence_skips_terminal_entirely() -> None:
    config = RenderConfig(frame_width=40, palette=PALETTE)

    def _fail():
        raise AssertionError("terminal should not be opened")

    assert run_presentation(config, [], terminal_factory=_fail) is SessionOutcome.EMPTY


def test_terminal_is_restored_when_reading_fails() -> None:
    config = RenderConfig(frame_width=40, palette=PALETTE, animations_enabled=False)
    terminal = FakeTerminal([RIGHT])
    renderer = RecordingRenderer(config)

    with pytest.raises(OSError):
        run_presentation(config, [Segment.plain("a"), Segment.plain("b"), Segment.plain("c")],
                         renderer=renderer, terminal_factory=lambda: terminal)

    assert terminal.restored


def test_terminal_is_restored_when_rendering_fails() -> None:
    config = RenderConfig(frame_width=40, palette=PALETTE, animations_enabled=False)

    class BrokenRenderer(FrameRenderer):
        def render_slide(self, segments, index, animate, origin=(0, 0)) -> None:
            raise OSError("write failed")

    terminal = FakeTerminal([RIGHT])
    with pytest.raises(OSError, match="write failed"):
        run_presentation(config, [Segment.plain("a")], renderer=BrokenRenderer(config, stream=io.StringIO()),
                         terminal_factory=lambda: terminal)
    assert terminal.restored


def test_session_origin_comes_from_cursor_position() -> None:
    _, renderer, _, _ = _session([ESCAPE])
    assert renderer.stream.getvalue().startswith("\x1b[4;1H")
