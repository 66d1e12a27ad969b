"""Watch a single script file and call back on change, with debouncing."""
from __future__ import annotations

import os
import queue
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from logging_utils import get_logger

logger = get_logger(__name__)

QUEUE_SIZE = 1024
POLL_INTERVAL = 0.5

RELEVANT_EVENT_TYPES = frozenset(
    {EVENT_TYPE_MODIFIED, EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}
)

# (arrival time, event)
QueueItem = Tuple[float, FileSystemEvent]


class DebounceGate:
    """Leading-edge gate: the first event always passes, later ones only
    once ``interval`` seconds have elapsed since the previous pass."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._last_fire: Optional[float] = None

    def should_fire(self, now: float) -> bool:
        if self._last_fire is not None and now - self._last_fire < self.interval:
            return False
        self._last_fire = now
        return True


def canonicalize_path(path: Path) -> Path:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return path


def watch_directories(target: Path) -> List[Path]:
    """Directories to subscribe: the one holding ``target`` and, for a
    symlink, the one holding the file it points to."""
    directories = [target.parent]
    real_parent = canonicalize_path(target).parent
    if real_parent != target.parent and real_parent.is_dir():
        directories.append(real_parent)
    return directories


def is_relevant_path(candidates: Iterable[str], original: Path, canonical: Path) -> bool:
    for raw in candidates:
        if not raw:
            continue
        candidate = Path(os.fsdecode(raw))
        try:
            if candidate.resolve(strict=True) == canonical:
                return True
        except (OSError, RuntimeError):
            if candidate in (canonical, original):
                return True
    return False


def event_paths(event: FileSystemEvent) -> Iterable[str]:
    paths = [event.src_path]
    dest = getattr(event, "dest_path", "")
    if dest:
        paths.append(dest)
    return paths


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, events: "queue.Queue[QueueItem]", clock: Callable[[], float]) -> None:
        super().__init__()
        self.events = events
        self.clock = clock

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            self.events.put_nowait((self.clock(), event))
        except queue.Full:
            logger.warning("Watch queue full; dropping %s event", event.event_type)


class ObserverHealth:
    """Liveness check for an observer and its per-directory emitters.

    An emitter that stops is logged once as an error; the watch carries on
    while at least one emitter still delivers events.
    """

    def __init__(self, observer) -> None:
        self.observer = observer
        self._reported: Set[object] = set()

    def __call__(self) -> bool:
        if not self.observer.is_alive():
            return False
        alive = False
        for emitter in list(self.observer.emitters):
            if emitter.is_alive():
                alive = True
            elif emitter not in self._reported:
                self._reported.add(emitter)
                logger.error("Stopped receiving file events for %s", emitter.watch.path)
        return alive


def consume_events(
    events: "queue.Queue[QueueItem]",
    target: Path,
    on_change: Callable[[], bool],
    gate: DebounceGate,
    *,
    is_alive: Callable[[], bool] = lambda: True,
    poll_interval: float = POLL_INTERVAL,
) -> None:
    """Single-threaded consumer loop; returns when ``on_change`` says stop
    or the producer is gone.

    The gate is fed arrival times, so duplicates queued while ``on_change``
    was running are still suppressed against the event that fired.
    """
    canonical = canonicalize_path(target)
    while True:
        try:
            arrived, event = events.get(timeout=poll_interval)
        except queue.Empty:
            if not is_alive():
                logger.warning("Watcher stopped delivering events for %s", target)
                return
            continue

        if event.event_type not in RELEVANT_EVENT_TYPES or event.is_directory:
            continue
        if not is_relevant_path(event_paths(event), target, canonical):
            continue

        if not gate.should_fire(arrived):
            logger.debug("Suppressed %s event for %s inside debounce window", event.event_type, target)
            continue

        logger.info("Detected %s on %s", event.event_type, target)
        if not on_change():
            return
        # The file may have been replaced (atomic save) since the last check.
        canonical = canonicalize_path(target)


def watch_file(
    path: Path | str,
    debounce: float,
    on_change: Callable[[], bool],
    *,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Call ``on_change`` whenever ``path`` changes, at most once per
    ``debounce`` seconds. Return True from the callback to keep watching.

    Raises ``OSError`` if the subscription cannot be set up.
    """
    target = Path(path).expanduser().absolute()
    if not target.parent.is_dir():
        raise OSError(f"Cannot watch {target}: directory {target.parent} does not exist")

    events: "queue.Queue[QueueItem]" = queue.Queue(maxsize=QUEUE_SIZE)
    handler = _QueueingHandler(events, clock)
    observer = Observer()
    try:
        for directory in watch_directories(target):
            observer.schedule(handler, str(directory), recursive=False)
        observer.start()
    except Exception as exc:
        raise OSError(f"Cannot watch {target}: {exc}") from exc

    logger.info("Watching %s (debounce %.0f ms)", target, debounce * 1000)
    try:
        consume_events(
            events,
            target,
            on_change,
            DebounceGate(debounce),
            is_alive=ObserverHealth(observer),
        )
    finally:
        observer.stop()
        observer.join()
