from __future__ import annotations

import logging
import queue
import shutil
import sys
import threading
import time
from pathlib import Path
from types import SimpleNamespace
from typing import List, Sequence, Tuple

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from terminal_mode.watcher import (
    DebounceGate,
    ObserverHealth,
    consume_events,
    is_relevant_path,
    watch_directories,
    watch_file,
)

linux_only = pytest.mark.skipif(not sys.platform.startswith("linux"), reason="relies on inotify")


def _run(
    items: Sequence[Tuple[float, FileSystemEvent]],
    target: Path,
    debounce: float = 0.1,
    stop_after: int | None = None,
) -> List[int]:
    events: "queue.Queue" = queue.Queue()
    for item in items:
        events.put(item)
    calls: List[int] = []

    def on_change() -> bool:
        calls.append(len(calls) + 1)
        return stop_after is None or len(calls) < stop_after

    consume_events(
        events,
        target,
        on_change,
        DebounceGate(debounce),
        is_alive=lambda: False,
        poll_interval=0.01,
    )
    return calls


def _watch_in_thread(path: Path, debounce: float, on_change) -> Tuple[threading.Thread, List[BaseException]]:
    errors: List[BaseException] = []

    def target() -> None:
        try:
            watch_file(path, debounce, on_change)
        except BaseException as exc:  # pragma: no cover - surfaced by the caller
            errors.append(exc)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    time.sleep(0.3)
    return thread, errors


@pytest.fixture
def script(tmp_path: Path) -> Path:
    path = tmp_path / "talk.txt"
    path.write_text("# one\n", encoding="utf-8")
    return path


def test_gate_first_event_always_fires() -> None:
    gate = DebounceGate(10.0)
    assert gate.should_fire(0.0)


def test_gate_suppresses_inside_window_without_rearming() -> None:
    gate = DebounceGate(0.1)
    assert gate.should_fire(1.00)
    assert not gate.should_fire(1.05)
    assert not gate.should_fire(1.09)
    assert gate.should_fire(1.10)
    assert not gate.should_fire(1.15)


def test_events_10ms_apart_fire_once(script: Path) -> None:
    items = [(5.000, FileModifiedEvent(str(script))), (5.010, FileModifiedEvent(str(script)))]
    assert _run(items, script) == [1]


def test_events_150ms_apart_fire_twice(script: Path) -> None:
    items = [(5.000, FileModifiedEvent(str(script))), (5.150, FileModifiedEvent(str(script)))]
    assert _run(items, script) == [1, 2]


def test_create_delete_and_move_count_as_changes(script: Path) -> None:
    other = script.parent / "talk.txt.swp"
    items = [
        (1.0, FileCreatedEvent(str(script))),
        (2.0, FileDeletedEvent(str(script))),
        (3.0, FileMovedEvent(str(other), str(script))),
    ]
    assert _run(items, script) == [1, 2, 3]


def test_irrelevant_events_are_filtered(script: Path) -> None:
    sibling = script.parent / "other.txt"
    sibling.write_text("x", encoding="utf-8")
    items = [
        (1.0, FileModifiedEvent(str(sibling))),
        (2.0, FileClosedEvent(str(script))),
        (3.0, DirModifiedEvent(str(script.parent))),
    ]
    assert _run(items, script) == []


def test_callback_false_stops_loop(script: Path) -> None:
    items = [(1.0, FileModifiedEvent(str(script))), (2.0, FileModifiedEvent(str(script)))]
    assert _run(items, script, stop_after=1) == [1]


def test_duplicates_queued_during_callback_use_arrival_time(script: Path) -> None:
    events: "queue.Queue" = queue.Queue()
    events.put((1.00, FileModifiedEvent(str(script))))
    calls: List[int] = []

    def on_change() -> bool:
        calls.append(len(calls) + 1)
        if len(calls) == 1:
            # The same save reported twice more while the session was running,
            # then a real edit much later.
            events.put((1.01, FileModifiedEvent(str(script))))
            events.put((1.02, FileModifiedEvent(str(script))))
            events.put((9.00, FileModifiedEvent(str(script))))
        return True

    consume_events(
        events,
        script,
        on_change,
        DebounceGate(0.3),
        is_alive=lambda: False,
        poll_interval=0.01,
    )
    assert calls == [1, 2]


def test_relevance_resolves_symlinks(script: Path) -> None:
    link = script.parent / "link.txt"
    link.symlink_to(script)
    canonical = script.resolve()
    assert is_relevant_path([str(link)], script, canonical)
    assert not is_relevant_path([str(script.parent / "gone.txt")], script, canonical)


def test_relevance_falls_back_to_literal_path(tmp_path: Path) -> None:
    missing = tmp_path / "deleted.txt"
    assert is_relevant_path([str(missing)], missing, missing)


def test_watch_directories_adds_symlink_target_directory(tmp_path: Path) -> None:
    real_dir = tmp_path / "real"
    link_dir = tmp_path / "links"
    real_dir.mkdir()
    link_dir.mkdir()
    real = real_dir / "talk.txt"
    real.write_text("# one\n", encoding="utf-8")
    link = link_dir / "talk.txt"
    link.symlink_to(real)

    assert watch_directories(link) == [link_dir, real_dir.resolve()]
    assert watch_directories(real.resolve()) == [real.resolve().parent]


class FakeEmitter:
    def __init__(self, alive: bool, path: str) -> None:
        self.alive = alive
        self.watch = SimpleNamespace(path=path)

    def is_alive(self) -> bool:
        return self.alive


def test_observer_health_reports_dead_emitter_once(caplog: pytest.LogCaptureFixture) -> None:
    observer = SimpleNamespace(
        is_alive=lambda: True,
        emitters=[FakeEmitter(False, "/gone"), FakeEmitter(True, "/here")],
    )
    health = ObserverHealth(observer)

    with caplog.at_level(logging.ERROR):
        assert health()
        assert health()
    assert caplog.text.count("/gone") == 1


def test_observer_health_false_when_no_emitter_left() -> None:
    observer = SimpleNamespace(is_alive=lambda: True, emitters=[FakeEmitter(False, "/gone")])
    assert not ObserverHealth(observer)()
    stopped = SimpleNamespace(is_alive=lambda: False, emitters=[FakeEmitter(True, "/here")])
    assert not ObserverHealth(stopped)()


def test_watch_file_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        watch_file(tmp_path / "nope" / "talk.txt", 0.1, lambda: False)


def test_watch_file_triggers_on_real_change(script: Path) -> None:
    fired = threading.Event()

    def on_change() -> bool:
        fired.set()
        return False

    thread, errors = _watch_in_thread(script, 0.1, on_change)
    script.write_text("# two\n", encoding="utf-8")

    assert fired.wait(timeout=5), "watch callback was not triggered"
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert errors == []


def test_watch_file_follows_symlink_into_other_directory(tmp_path: Path) -> None:
    (tmp_path / "real").mkdir()
    (tmp_path / "links").mkdir()
    real = tmp_path / "real" / "talk.txt"
    real.write_text("# one\n", encoding="utf-8")
    link = tmp_path / "links" / "talk.txt"
    link.symlink_to(real)
    fired = threading.Event()

    def on_change() -> bool:
        fired.set()
        return False

    thread, errors = _watch_in_thread(link, 0.1, on_change)
    real.write_text("# two\n", encoding="utf-8")

    assert fired.wait(timeout=5), "change to the link target was not reported"
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert errors == []


@linux_only
def test_watch_ends_when_watched_directory_disappears(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    folder = tmp_path / "talks"
    folder.mkdir()
    script = folder / "talk.txt"
    script.write_text("# one\n", encoding="utf-8")

    with caplog.at_level(logging.ERROR):
        thread, errors = _watch_in_thread(script, 0.0, lambda: True)
        shutil.rmtree(folder)
        thread.join(timeout=5)

    assert not thread.is_alive(), "watch loop kept running without a watched directory"
    assert errors == []
    assert "Stopped receiving file events" in caplog.text
