"""Snapshot file helpers shared by the registry and the metadata cache.

Both components mirror an in-memory structure to a file by overwriting it
wholesale. Writes go to a temporary sibling first and are moved into place
with ``os.replace`` so readers never observe a half-written snapshot.

These functions are blocking; async callers run them through
``asyncio.to_thread``.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from .exceptions import PersistenceError


def read_snapshot(path: Path) -> str | None:
    """Return the file's text, or ``None`` if it does not exist.

    Raises:
        PersistenceError: If the file exists but cannot be read or decoded.
    """
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError(f"Cannot read {path}: {e}") from e


def write_snapshot(path: Path, content: str) -> None:
    """Atomically replace ``path`` with ``content``.

    The parent directory is created if needed.

    Raises:
        PersistenceError: If the directory, temporary file or rename fails.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise PersistenceError(f"Cannot write {path}: {e}") from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise PersistenceError(f"Cannot write {path}: {e}") from e
