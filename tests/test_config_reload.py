import asyncio
import contextlib
import logging
import os
from pathlib import Path

import pytest
from watchdog.events import DirModifiedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from canary.config import CanaryConfig
from canary.config_reload import (
    CanaryConfigWatcher,
    ConfigFileEventHandler,
    watch_config,
    watchdog_path_matches_config,
)
from canary.gate import Canary

STREAM_ONLY = "write_to_application_logs: false\nwrite_to_standard_output: true\nlog_level: trace\n"


def _config(tmp_path: Path, maximum: int) -> Path:
    config_file = tmp_path / "canary.yaml"
    config_file.write_text(f"{STREAM_ONLY}maximum_representation_characters: {maximum}\n", encoding="utf-8")
    return config_file


def _bump_mtime(path: Path) -> None:
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/tmp/work/canary.yaml", True),
        ("canary.yaml", True),
        (b"/tmp/work/canary.yaml", True),
        (Path("/tmp/work/canary.yaml"), True),
        ("/tmp/work/other.yaml", False),
        ("/tmp/canary.yaml/nested.yaml", False),
        (None, False),
        ("", False),
    ],
)
def test_watchdog_path_matches_config(path, expected: bool) -> None:
    assert watchdog_path_matches_config(path, "canary.yaml") is expected


def test_event_handler_only_signals_writes_to_the_config_file() -> None:
    hits: list[str] = []
    handler = ConfigFileEventHandler("canary.yaml", lambda: hits.append("hit"))

    handler.dispatch(FileModifiedEvent("/etc/app/canary.yaml"))
    handler.dispatch(FileModifiedEvent(b"/etc/app/canary.yaml"))
    handler.dispatch(FileMovedEvent("/etc/app/.canary.yaml.swp", "/etc/app/canary.yaml"))
    assert hits == ["hit", "hit", "hit"]

    handler.dispatch(FileModifiedEvent("/etc/app/other.yaml"))
    handler.dispatch(DirModifiedEvent("/etc/app"))
    handler.dispatch(FileDeletedEvent("/etc/app/canary.yaml"))
    assert hits == ["hit", "hit", "hit"]


def test_refresh_only_reloads_changed_files(tmp_path: Path) -> None:
    config_file = _config(tmp_path, 40)
    canary = Canary(CanaryConfig.silent())
    watcher = CanaryConfigWatcher(canary, config_file)

    assert asyncio.run(watcher.refresh()) is False
    assert canary.is_output_enabled() is False

    _bump_mtime(config_file)
    assert asyncio.run(watcher.refresh()) is True
    assert canary.is_output_enabled() is True
    assert canary.state.max_length == 40

    assert asyncio.run(watcher.refresh()) is False
    assert asyncio.run(watcher.refresh(force=True)) is True


def test_failed_refresh_keeps_current_config(tmp_path: Path) -> None:
    config_file = _config(tmp_path, 40)
    canary = Canary(CanaryConfig(write_to_application_logs=False, maximum_representation_characters=9))
    watcher = CanaryConfigWatcher(canary, config_file)

    config_file.write_text("- not\n- a mapping\n", encoding="utf-8")
    _bump_mtime(config_file)

    with pytest.raises(ValueError, match="Config root must be object"):
        asyncio.run(watcher.refresh())
    assert canary.state.max_length == 9


def test_watch_config_applies_edits_to_running_gate(tmp_path: Path) -> None:
    config_file = _config(tmp_path, 50)
    canary = Canary(CanaryConfig(write_to_application_logs=False, maximum_representation_characters=50))

    async def scenario() -> None:
        task = asyncio.create_task(watch_config(canary, config_file))
        try:
            for attempt in range(50):
                await asyncio.sleep(0.1)
                if canary.state.max_length == 7:
                    break
                config_file.write_text(
                    f"{STREAM_ONLY}maximum_representation_characters: 7\n# edit {attempt}\n", encoding="utf-8"
                )
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    asyncio.run(scenario())

    assert canary.state.max_length == 7


def test_watch_loop_survives_broken_edits(tmp_path: Path, caplog) -> None:
    config_file = _config(tmp_path, 50)
    canary = Canary(CanaryConfig(write_to_application_logs=False, maximum_representation_characters=50))

    async def scenario() -> None:
        task = asyncio.create_task(watch_config(canary, config_file))
        try:
            for attempt in range(50):
                await asyncio.sleep(0.1)
                if any("reload of" in r.getMessage() for r in caplog.records):
                    break
                config_file.write_text(f"- broken {attempt}\n", encoding="utf-8")
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    with caplog.at_level(logging.WARNING, logger="canary.config_reload"):
        asyncio.run(scenario())

    assert any("Keeping current canary config" in r.getMessage() for r in caplog.records)
    assert canary.state.max_length == 50


def test_run_restarts_observer_after_failure(tmp_path: Path, caplog) -> None:
    watcher = CanaryConfigWatcher(Canary(CanaryConfig.silent()), _config(tmp_path, 10), retry_seconds=0)
    attempts: list[int] = []

    async def flaky_watch() -> None:
        attempts.append(len(attempts))
        if len(attempts) == 1:
            raise OSError("inotify watch limit reached")
        raise asyncio.CancelledError

    watcher._watch_once = flaky_watch  # type: ignore[method-assign]

    with caplog.at_level(logging.WARNING, logger="canary.config_reload"):
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(watcher.run())

    assert attempts == [0, 1]
    assert any("inotify watch limit reached" in r.getMessage() for r in caplog.records)
