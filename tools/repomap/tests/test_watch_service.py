from __future__ import annotations

import threading
import time
from pathlib import Path

from watchdog.events import FileModifiedEvent, FileMovedEvent

from repomap.watch.service import DebouncedRunner, SourceChangeHandler, should_trigger


def test_should_trigger_on_source_files_only(tmp_path: Path) -> None:
    roots = [tmp_path]

    assert should_trigger(tmp_path / "src" / "pages" / "index.tsx", roots) is True
    assert should_trigger(tmp_path / "src" / "graphql" / "user.graphql", roots) is True
    assert should_trigger(tmp_path / "app" / "models" / "user.rb", roots) is True
    assert should_trigger(tmp_path / "README.md", roots) is False
    assert should_trigger(tmp_path / "node_modules" / "react" / "index.js", roots) is False
    assert should_trigger(tmp_path / ".repomap" / "docs" / "index.js", roots) is False
    assert should_trigger(tmp_path / "src" / ".eslintrc.js", roots) is False
    assert should_trigger(tmp_path.parent / "elsewhere.ts", roots) is False


def test_debounced_runner_coalesces_bursts() -> None:
    calls: list[int] = []
    done = threading.Event()

    def action() -> None:
        calls.append(1)
        done.set()

    runner = DebouncedRunner(action, delay_seconds=0.05)
    for _ in range(5):
        runner.request()

    assert done.wait(timeout=2.0)
    time.sleep(0.2)
    assert calls == [1]


def test_cancel_drops_pending_request() -> None:
    calls: list[int] = []
    runner = DebouncedRunner(lambda: calls.append(1), delay_seconds=0.05)

    runner.request()
    runner.cancel()
    time.sleep(0.2)

    assert calls == []


def test_failing_action_does_not_kill_runner() -> None:
    attempts: list[int] = []
    done = threading.Event()

    def action() -> None:
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        done.set()

    runner = DebouncedRunner(action, delay_seconds=0.02)
    runner.request()
    time.sleep(0.2)
    runner.request()

    assert done.wait(timeout=2.0)
    assert len(attempts) == 2


def test_handler_filters_events(tmp_path: Path) -> None:
    requests: list[int] = []

    class RecordingRunner(DebouncedRunner):
        def request(self) -> None:
            requests.append(1)

    handler = SourceChangeHandler([tmp_path], RecordingRunner(lambda: None))

    handler.on_any_event(FileModifiedEvent(str(tmp_path / "notes.md")))
    assert requests == []

    handler.on_any_event(FileMovedEvent(str(tmp_path / "draft.tmp"), str(tmp_path / "src" / "page.tsx")))
    assert requests == [1]
