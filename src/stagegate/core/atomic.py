"""Atomic JSON file writes (temp file + fsync + rename)."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from stagegate.core.errors.storage import StorageFatal

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, data: Any) -> None:
    """Write ``data`` as JSON to ``path`` so readers never see a partial file.

    Raises:
        StorageFatal: If the file cannot be written.
    """
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.stem}.",
            suffix=".tmp",
        )
    except OSError as exc:
        raise StorageFatal(f"Cannot create temp file in {path.parent}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename
        os.replace(temp_path, path)
        logger.debug("Wrote %s", path)

    except OSError as exc:
        _discard(temp_path)
        raise StorageFatal(f"Cannot write {path}: {exc}") from exc
    except Exception:
        _discard(temp_path)
        raise


def _discard(temp_path: str) -> None:
    try:
        os.unlink(temp_path)
    except OSError:
        pass


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents); wrap failures as StorageFatal."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageFatal(f"Cannot create directory {path}: {exc}") from exc
    return path
