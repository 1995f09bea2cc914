"""Artifact writers used by the build orchestrator."""

# Module responsibilities:
# - Define the ArtifactWriter protocol the core writes through.
# - Write files atomically via a temporary sibling plus os.replace.
# - Offer an in-memory writer for previews and tests.

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Dict, Protocol

from .utils.log import get_logger

logger = get_logger("writer")


class ArtifactWriter(Protocol):
    def write(self, path: Path, data: bytes) -> None:
        """Persist ``data`` at ``path``; raise OSError on failure."""


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


class FileArtifactWriter:
    """Write artifacts to disk, replacing the target in one step."""

    def write(self, path: Path, data: bytes) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = _tmp_path(path)
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        logger.info("Wrote %s (%d bytes)", path, len(data))


class MemoryArtifactWriter:
    """Collect artifacts in a dict keyed by path; nothing touches the disk."""

    def __init__(self) -> None:
        self.files: Dict[Path, bytes] = {}
        self._lock = threading.Lock()

    def write(self, path: Path, data: bytes) -> None:
        with self._lock:
            self.files[Path(path)] = bytes(data)

    def read(self, path: Path) -> bytes:
        return self.files[Path(path)]

    def text(self, path: Path) -> str:
        return self.read(path).decode("utf-8")


__all__ = ["ArtifactWriter", "FileArtifactWriter", "MemoryArtifactWriter"]
