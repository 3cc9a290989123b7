"""Trace a few values through a gate that follows examples/canary.yaml.

Run with ``python examples/trace_demo.py``; edit canary.yaml while the demo
sleeps to see the running gate pick up the change.
"""

from __future__ import annotations

import asyncio
import contextlib
from array import array
from pathlib import Path

from canary.config import load_config
from canary.config_reload import watch_config
from canary.gate import Canary
from canary.logging_utils import setup_logging

CONFIG_FILE = Path(__file__).with_name("canary.yaml")


async def _demo() -> None:
    cfg = load_config(str(CONFIG_FILE))
    assert cfg.logging is not None
    setup_logging(cfg.logging)
    canary = Canary(cfg)

    watcher = asyncio.create_task(watch_config(canary, CONFIG_FILE))
    try:
        for step in range(5):
            canary.output("step", step)
            canary.output("samples", array("d", [0.5, 1.25, step]))
            canary.output("state", {"step": step, "pending": [n for n in range(step)], "done": None})
            await asyncio.sleep(2.0)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


if __name__ == "__main__":
    asyncio.run(_demo())
