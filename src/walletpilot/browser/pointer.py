"""Session pointer sidecar that lets the next invocation reattach instead of relaunching."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class SessionPointer(BaseModel):
    """Where the last launched browser is listening."""

    model_config = ConfigDict(populate_by_name=True)

    port: int
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    extension_id: str | None = Field(default=None, alias="extensionId")


def write_pointer(path: Path, pointer: SessionPointer) -> None:
    """Atomically replace the pointer file with *pointer*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".pointer-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(pointer.model_dump_json(by_alias=True))
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug("Session pointer written: %s (port=%d)", path, pointer.port)


def read_pointer(path: Path) -> SessionPointer | None:
    """Return the recorded pointer, or ``None`` if absent or unreadable."""
    if not path.is_file():
        return None
    try:
        return SessionPointer.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning("Ignoring unreadable session pointer %s: %s", path, e)
        return None


def clear_pointer(path: Path) -> None:
    """Remove the pointer file if it exists."""
    path.unlink(missing_ok=True)
