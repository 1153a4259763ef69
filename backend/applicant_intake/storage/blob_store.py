"""Filesystem blob store for uploaded résumés.

Files live in one flat directory and are named
``<millisecond-timestamp>-<original filename>``.
"""

import logging
import shutil
import time
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)


class BlobStore:
    """Flat directory of uploaded files."""

    def __init__(self, root: str | Path, clock: Callable[[], float] = time.time) -> None:
        self.root = Path(root)
        self._clock = clock

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def blob_name(self, original_filename: str, timestamp_ms: int | None = None) -> str:
        if timestamp_ms is None:
            timestamp_ms = int(self._clock() * 1000)
        return f"{timestamp_ms}-{original_filename}"

    def save(self, source: BinaryIO, original_filename: str) -> Path:
        """Copy ``source`` into the store and return the stored path.

        ``original_filename`` must already be a bare filename. Existing blobs
        are never overwritten: on a name clash the timestamp is bumped by one
        millisecond until a free name is found.
        """
        self.ensure_root()
        timestamp_ms = int(self._clock() * 1000)
        while True:
            path = self.root / self.blob_name(original_filename, timestamp_ms)
            try:
                out = path.open("xb")
            except FileExistsError:
                timestamp_ms += 1
                continue
            break
        try:
            with out:
                shutil.copyfileobj(source, out)
        except OSError:
            self.delete(path)
            raise
        logger.debug("Stored blob %s", path)
        return path

    def resolve(self, stored_path: str) -> Path:
        return Path(stored_path).resolve()

    def delete(self, stored_path: str | Path) -> bool:
        """Remove a stored blob. Returns False if it was already gone."""
        path = Path(stored_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted blob %s", path)
        return True
