"""Result reporting and logging setup for the command surface.

Every command writes exactly one JSON result record to stdout; progress
notices are separate ``{"status": "info"}`` lines.  Logs go to stderr so a
calling agent can parse stdout line by line.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import typer


def emit(record: dict[str, Any]) -> None:
    """Write one JSON record to stdout."""
    typer.echo(json.dumps(record, default=str, ensure_ascii=False))


def info(message: str, **extra: Any) -> None:
    """Write a progress notice line."""
    emit({"status": "info", "message": message, **extra})


def warning(message: str, **extra: Any) -> None:
    emit({"status": "warning", "message": message, **extra})


def failure(error: str, hint: str | None = None, **extra: Any) -> dict[str, Any]:
    """Build a ``{"success": false}`` record."""
    record: dict[str, Any] = {"success": False, "error": error}
    if hint:
        record["hint"] = hint
    record.update(extra)
    return record


def configure_logging(level: str = "WARNING") -> None:
    """Send log output to stderr in the standard walletpilot format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
