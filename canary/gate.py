"""Trace gate deciding whether and where rendered variables are written.

A :class:`Canary` is constructed explicitly from a :class:`CanaryConfig`.
The configuration is turned into one immutable :class:`GateState` snapshot
which ``reconfigure`` replaces as a whole, so concurrent ``output`` calls
always see a consistent set of switches.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TextIO

from .config import CanaryConfig
from .logging_utils import TRACE
from .renderers import render, truncate_line

LOG = logging.getLogger(__name__)

DEFAULT_LOGGER_NAME = "canary"
TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

# Numeric severity used for both gating and emitting. "off" sits above
# CRITICAL so no logger is ever enabled for it.
LEVEL_NUMBERS: dict[str, int] = {
    "all": TRACE,
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "off": logging.CRITICAL + 10,
}

_THIS_FILE = os.path.normcase(__file__)


@dataclass(frozen=True)
class GateState:
    """Switches derived from one configuration."""

    level: str
    level_number: int
    writes_to_logs: bool
    writes_to_stream: bool
    max_length: int


def _caller_location() -> str:
    """Return ``module.function.line`` of the first frame outside this module."""
    frame = sys._getframe(1)
    while frame is not None and os.path.normcase(frame.f_code.co_filename) == _THIS_FILE:
        frame = frame.f_back
    if frame is None:
        return "<unknown>"
    module = frame.f_globals.get("__name__", "<unknown>")
    return f"{module}.{frame.f_code.co_name}.{frame.f_lineno}"


def _timestamp() -> str:
    now = datetime.now()
    return f"{now.strftime(TIMESTAMP_FORMAT)}.{now.microsecond // 1000:03d}"


class Canary:
    """Write bounded representations of variables to logs and/or a console stream."""

    def __init__(
        self,
        config: CanaryConfig | None = None,
        *,
        logger: logging.Logger | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self._stream = stream
        self._muted = True
        self._state: GateState
        self.reconfigure(config or CanaryConfig())

    def _derive_state(self, config: CanaryConfig) -> GateState:
        level = config.log_level
        number = LEVEL_NUMBERS[level]
        writes_to_logs = False
        if config.write_to_application_logs and level != "off":
            writes_to_logs = level == "all" or self._logger.isEnabledFor(number)
        return GateState(
            level=level,
            level_number=number,
            writes_to_logs=writes_to_logs,
            writes_to_stream=config.write_to_standard_output,
            max_length=config.maximum_representation_characters,
        )

    @property
    def state(self) -> GateState:
        """Current configuration snapshot."""
        return self._state

    def reconfigure(self, config: CanaryConfig) -> None:
        """Apply a new configuration; the mute flag follows the new sinks."""
        state = self._derive_state(config)
        self._state = state
        self._muted = not (state.writes_to_logs or state.writes_to_stream)
        LOG.debug(
            "Canary configured: level=%s logs=%s stream=%s max_length=%d",
            state.level,
            state.writes_to_logs,
            state.writes_to_stream,
            state.max_length,
        )

    def mute(self) -> None:
        """Stop all output until ``unmute`` is called."""
        self._muted = True

    def unmute(self) -> None:
        """Resume output through whichever sinks the configuration enabled."""
        self._muted = False

    def is_output_enabled(self) -> bool:
        """Return true when output calls may write, so callers can skip expensive work."""
        return not self._muted

    def output(self, identifier: str, variable: Any, logger: logging.Logger | None = None) -> None:
        """Write ``identifier: <representation>`` for a variable.

        Rendering and delivery failures are logged and never propagate.
        """
        if self._muted:
            return
        state = self._state
        try:
            self._write(render(identifier, variable, state.max_length), state, logger)
        except Exception as exc:
            LOG.warning("Failed to output variable %r: %s", identifier, exc, exc_info=True)

    def output_text(self, text: str, logger: logging.Logger | None = None) -> None:
        """Write free text, truncated like rendered variables."""
        if self._muted:
            return
        state = self._state
        try:
            self._write(truncate_line(text, state.max_length), state, logger)
        except Exception as exc:
            LOG.warning("Failed to output text: %s", exc, exc_info=True)

    def _write(self, text: str, state: GateState, logger: logging.Logger | None) -> None:
        if state.writes_to_stream:
            stream = self._stream if self._stream is not None else sys.stdout
            stream.write(f"{_timestamp()} {_caller_location()}: {text}\n")
            stream.flush()
        if state.writes_to_logs:
            # _write <- output/output_text <- caller
            (logger or self._logger).log(state.level_number, text, stacklevel=3)
