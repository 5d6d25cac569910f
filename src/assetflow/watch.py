# watch.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

RELEVANT_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


def _match_parts(parts: Sequence[str], pats: Sequence[str]) -> bool:
    if not pats:
        return not parts
    head, rest = pats[0], pats[1:]
    if head == "**":
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    return bool(parts) and fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


def match_glob(rel: str, pattern: str) -> bool:
    """
    Glob match on a root-relative posix path, one segment at a time.

    `*` stays inside a directory; `**` spans any number of directories,
    including none, so "src/assets/**/*.*" matches "src/assets/index.html".
    """
    return _match_parts(rel.replace("\\", "/").split("/"), pattern.split("/"))


@dataclass(frozen=True)
class Subscription:
    name: str
    patterns: tuple[str, ...]
    callback: Callable[[], object]

    def matches(self, rel: str) -> bool:
        return any(match_glob(rel, p) for p in self.patterns)


class _Handler(FileSystemEventHandler):
    def __init__(self, watcher: "Watcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in RELEVANT_EVENTS:
            return
        self.watcher.handle_path(event.src_path)
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            self.watcher.handle_path(dest_path)


class Watcher:
    """
    Re-runs callbacks when files under `root` change.

    Events only queue work; `dispatch_pending()` runs each triggered
    callback once, one after another, so a burst of saves turns into a
    single re-run.
    """

    def __init__(self, root: str | Path, *, debounce: float = 0.2):
        self.root = Path(root).resolve()
        self.debounce = debounce
        self._subs: List[Subscription] = []
        self._pending: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def on(self, patterns: Sequence[str], callback: Callable[[], object], *, name: Optional[str] = None) -> Subscription:
        sub = Subscription(
            name=name or getattr(callback, "__name__", f"watch-{len(self._subs)}"),
            patterns=tuple(patterns),
            callback=callback,
        )
        self._subs.append(sub)
        return sub

    def handle_path(self, path: str | Path) -> List[str]:
        """Queue every subscription whose patterns match `path`."""
        p = Path(path)
        try:
            rel = (p if not p.is_absolute() else p.resolve().relative_to(self.root)).as_posix()
        except ValueError:
            return []

        hit: List[str] = []
        with self._lock:
            for sub in self._subs:
                if sub.matches(rel):
                    self._pending.setdefault(sub.name, sub)
                    hit.append(sub.name)
        if hit:
            logger.debug("change %s -> %s", rel, hit)
        return hit

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def dispatch_pending(self) -> int:
        """Run queued callbacks. A failing callback is logged and skipped."""
        with self._lock:
            queued = list(self._pending.values())
            self._pending.clear()

        for sub in queued:
            try:
                sub.callback()
            except Exception:
                logger.exception("watch callback %s failed; still watching", sub.name)
        return len(queued)

    def run(self, stop_event: threading.Event) -> None:
        """Watch until stop_event is set."""
        observer = Observer()
        observer.schedule(_Handler(self), str(self.root), recursive=True)
        observer.start()
        logger.info("watching %s (%d subscription(s))", self.root, len(self._subs))
        try:
            while not stop_event.wait(self.debounce):
                self.dispatch_pending()
        finally:
            observer.stop()
            observer.join()
