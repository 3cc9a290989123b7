"""Keep a running :class:`~canary.gate.Canary` in sync with its config file.

A watchdog observer thread reports edits of the file; the asyncio side
reloads it with :func:`canary.config.load_config` and hands the result to
``Canary.reconfigure``. A broken edit is logged and the gate keeps its
previous configuration.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .config import load_config

if TYPE_CHECKING:
    from .gate import Canary

LOG = logging.getLogger(__name__)

_RELOAD_EVENT_TYPES = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})


def watchdog_path_matches_config(path: str | bytes | Path | None, watch_name: str) -> bool:
    """Return true when an event path names the watched config file."""
    if not path:
        return False
    if isinstance(path, bytes):
        path = path.decode(errors="replace")
    return Path(path).name == watch_name


class ConfigFileEventHandler(FileSystemEventHandler):
    """Call ``notify`` whenever the named file is written, created or moved into place."""

    def __init__(self, watch_name: str, notify: Callable[[], None]) -> None:
        super().__init__()
        self._watch_name = watch_name
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELOAD_EVENT_TYPES:
            return
        # Atomic saves rename a temp file onto the config name.
        paths = (event.src_path, getattr(event, "dest_path", None))
        if any(watchdog_path_matches_config(path, self._watch_name) for path in paths):
            self._notify()


def _fingerprint(config_file: Path) -> tuple[int, int] | None:
    try:
        stat = config_file.stat()
    except FileNotFoundError:
        return None
    return stat.st_mtime_ns, stat.st_size


class CanaryConfigWatcher:
    """Reload one config file into one gate."""

    def __init__(
        self,
        canary: "Canary",
        config_file: str | Path,
        *,
        logger: logging.Logger | None = None,
        retry_seconds: float = 1.0,
    ) -> None:
        self._canary = canary
        self._config_file = Path(config_file)
        self._log = logger or LOG
        self._retry_seconds = retry_seconds
        self._fingerprint = _fingerprint(self._config_file)

    async def refresh(self, *, force: bool = False) -> bool:
        """Reconfigure the gate if the file changed since the last load.

        Returns whether a reload happened. Load errors propagate and leave
        both the gate and the remembered file state untouched.
        """
        fingerprint = _fingerprint(self._config_file)
        if not force and (fingerprint is None or fingerprint == self._fingerprint):
            return False
        config = await asyncio.to_thread(load_config, str(self._config_file))
        self._canary.reconfigure(config)
        self._fingerprint = fingerprint
        self._log.info("Reloaded canary config from %s", self._config_file)
        return True

    async def _watch_once(self) -> None:
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()
        handler = ConfigFileEventHandler(self._config_file.name, lambda: loop.call_soon_threadsafe(changed.set))
        observer = Observer()
        observer.schedule(handler, str(self._config_file.parent.resolve()), recursive=False)
        observer.start()
        try:
            while True:
                await changed.wait()
                changed.clear()
                try:
                    await self.refresh()
                except Exception as exc:
                    self._log.warning("Keeping current canary config, reload of %s failed: %s", self._config_file, exc)
        finally:
            observer.stop()
            with contextlib.suppress(Exception):
                await asyncio.to_thread(observer.join, 2.0)

    async def run(self) -> None:
        """Watch until cancelled, restarting the observer if it dies."""
        while True:
            try:
                await self._watch_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._log.warning("Config watcher for %s stopped (%s), restarting", self._config_file, exc)
                await asyncio.sleep(self._retry_seconds)


async def watch_config(canary: "Canary", config_file: str | Path, logger: logging.Logger | None = None) -> None:
    """Keep ``canary`` in sync with ``config_file`` until cancelled."""
    await CanaryConfigWatcher(canary, config_file, logger=logger).run()
