from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from repomap.analyzers.base import PRUNED_DIRS
from repomap.engine import SOURCE_SUFFIXES
from repomap.logging import get_logger

logger = get_logger("watch")


def _relative_to(path: Path, root: Path) -> Path | None:
    try:
        return path.resolve().relative_to(root.resolve())
    except ValueError:
        return None


def should_trigger(path: Path, roots: list[Path]) -> bool:
    """True for a source file inside one of ``roots`` and outside pruned directories."""
    for root in roots:
        rel = _relative_to(path, root)
        if rel is None:
            continue
        if any(part in PRUNED_DIRS for part in rel.parts):
            return False
        if rel.name.startswith("."):
            return False
        return rel.suffix.lower() in SOURCE_SUFFIXES
    return False


class DebouncedRunner:
    """Coalesces bursts of requests into one call of ``action`` per quiet period."""

    def __init__(self, action: Callable[[], None], delay_seconds: float = 1.2) -> None:
        self.action = action
        self.delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._running = False
        self._pending = False

    def request(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_seconds, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def _flush(self) -> None:
        with self._lock:
            if self._running:
                self._pending = True
                return
            self._running = True
        try:
            self._run()
            while True:
                with self._lock:
                    if not self._pending:
                        self._running = False
                        break
                    self._pending = False
                self._run()
        finally:
            with self._lock:
                self._running = False

    def _run(self) -> None:
        try:
            self.action()
        except Exception as exc:
            logger.error("regeneration failed: %s", exc)


class SourceChangeHandler(FileSystemEventHandler):
    def __init__(self, roots: list[Path], runner: DebouncedRunner) -> None:
        self.roots = roots
        self.runner = runner

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [Path(str(event.src_path))]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(Path(str(dest_path)))
        if any(should_trigger(path, self.roots) for path in paths):
            logger.debug("change detected: %s", paths[0])
            self.runner.request()


def watch_loop(roots: list[Path], regenerate: Callable[[], None], delay_seconds: float = 1.2) -> None:
    """Block until interrupted, regenerating after source changes under ``roots``."""
    runner = DebouncedRunner(regenerate, delay_seconds=delay_seconds)
    handler = SourceChangeHandler(roots, runner)

    observer = Observer()
    for root in dict.fromkeys(item.resolve() for item in roots):
        observer.schedule(handler, str(root), recursive=True)
    observer.start()
    logger.info("watching %s repositories", len(roots))
    try:
        while True:
            observer.join(timeout=1.0)
    except KeyboardInterrupt:
        observer.stop()
    finally:
        runner.cancel()
    observer.join()
