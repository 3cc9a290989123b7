"""Command line entry point rendering one literal value as a trace line."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from .config import load_config
from .logging_utils import setup_logging
from .renderers import CyclicStructureError, render

LOG = logging.getLogger(__name__)


def _parse_value(text: str, raw: bool) -> Any:
    """Interpret the value argument as a YAML literal unless raw text was requested."""
    if raw:
        return text
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        LOG.debug("Value is not valid YAML, rendering it as text: %r", text)
        return text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a value the way canary traces it")
    parser.add_argument("identifier", help="Name printed in front of the value")
    parser.add_argument("value", help="Value as a YAML literal, e.g. '[1, [2, 3]]' or '{a: 1}'")
    parser.add_argument("--config", default=None, help="Path to config YAML")
    parser.add_argument("--max-length", type=int, default=None, help="Override maximum_representation_characters")
    parser.add_argument("--raw", action="store_true", help="Treat the value as plain text")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""

    def fail(message: str, exit_code: int = 2) -> int:
        """Print error and return exit code."""
        print(f"ERROR: {message}", file=sys.stderr)
        return exit_code

    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ValidationError as exc:
        return fail(f"Invalid configuration: {exc}")
    except Exception as exc:
        return fail(f"Failed to load configuration: {exc}")

    assert cfg.logging is not None
    setup_logging(cfg.logging)

    max_length = cfg.maximum_representation_characters if args.max_length is None else args.max_length
    if max_length < 0:
        return fail("--max-length must be >= 0")

    value = _parse_value(args.value, args.raw)
    try:
        line = render(args.identifier, value, max_length)
    except CyclicStructureError as exc:
        return fail(str(exc), exit_code=1)
    print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
