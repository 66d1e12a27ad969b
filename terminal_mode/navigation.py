from __future__ import annotations

from dataclasses import replace
from typing import Callable, List, Optional, Protocol, Tuple

from logging_utils import get_logger

from .models import (
    InputEvent,
    InputKind,
    NavigationAction,
    NavigationState,
    RenderConfig,
    Segment,
    SessionOutcome,
    clamp_frame_width,
)
from .renderer import FrameRenderer
from .terminal import TerminalSession

logger = get_logger(__name__)

FRAME_WIDTH_STEP = 2

_QUIT_KEYS = frozenset("qQ")
_WIDEN_KEYS = frozenset("+=")
_NARROW_KEYS = frozenset("-_")


class Terminal(Protocol):
    def __enter__(self) -> "Terminal": ...

    def __exit__(self, exc_type, exc, tb) -> bool: ...

    def read_event(self) -> InputEvent: ...

    def cursor_position(self) -> Tuple[int, int]: ...


def _resize(state: NavigationState, delta: int) -> Tuple[NavigationState, NavigationAction]:
    width = clamp_frame_width(state.frame_width + delta)
    if width == state.frame_width:
        return state, NavigationAction.NONE
    return replace(state, frame_width=width), NavigationAction.RENDER_INSTANT


def transition(state: NavigationState, event: InputEvent) -> Tuple[NavigationState, NavigationAction]:
    """Pure key handling: returns the next state and the render to perform."""
    if state.exited:
        return state, NavigationAction.EXIT

    kind = event.kind
    if kind is InputKind.LEFT:
        if state.current_index > 0:
            return replace(state, current_index=state.current_index - 1), NavigationAction.RENDER_ANIMATED
        return state, NavigationAction.NONE

    if kind in (InputKind.RIGHT, InputKind.ENTER):
        if state.current_index + 1 < state.segment_count:
            return replace(state, current_index=state.current_index + 1), NavigationAction.RENDER_ANIMATED
        return replace(state, exited=True), NavigationAction.EXIT

    if kind is InputKind.ESCAPE:
        return replace(state, exited=True, quit_requested=True), NavigationAction.EXIT

    if kind is InputKind.RESIZE:
        return state, NavigationAction.RENDER_INSTANT

    if kind is InputKind.CHAR and event.char:
        if event.char in _QUIT_KEYS:
            return replace(state, exited=True, quit_requested=True), NavigationAction.EXIT
        if event.char in _WIDEN_KEYS:
            return _resize(state, FRAME_WIDTH_STEP)
        if event.char in _NARROW_KEYS:
            return _resize(state, -FRAME_WIDTH_STEP)

    return state, NavigationAction.NONE


def run_presentation(
    config: RenderConfig,
    segments: List[Segment],
    renderer: Optional[FrameRenderer] = None,
    terminal_factory: Optional[Callable[[], Terminal]] = None,
) -> SessionOutcome:
    """Interactive slide session over ``segments``.

    Raw terminal mode is held only inside the ``with`` block, so it is
    restored on quit, on the last forward step, and when a render or read
    raises.
    """
    if not segments:
        logger.info("No segments to present; skipping interactive session")
        return SessionOutcome.EMPTY

    renderer = renderer or FrameRenderer(config)
    config = renderer.config
    renderer.flush()
    factory = terminal_factory or TerminalSession

    with factory() as terminal:
        origin = terminal.cursor_position()
        state = NavigationState(
            current_index=0,
            frame_width=config.frame_width,
            segment_count=len(segments),
            origin=origin,
        )
        renderer.render_slide(segments, state.current_index, animate=True, origin=origin)

        while True:
            event = terminal.read_event()
            state, action = transition(state, event)
            if action is NavigationAction.EXIT:
                break
            if action is NavigationAction.NONE:
                continue
            config.frame_width = state.frame_width
            renderer.render_slide(
                segments,
                state.current_index,
                animate=action is NavigationAction.RENDER_ANIMATED,
                origin=state.origin,
            )

    outcome = SessionOutcome.QUIT if state.quit_requested else SessionOutcome.FINISHED
    logger.info("Presentation session ended at segment %d (%s)", state.current_index + 1, outcome.value)
    return outcome
