"""File storage for entity collections.

Every entity lives in one UTF-8 JSON file, ``<storage_root>/<entity>.json``,
holding a top-level array of flat objects. A missing file is an empty
collection. Writes replace the whole file; with ``atomic_writes`` enabled the
new content is written to a temporary file in the same directory and renamed
into place, so readers only ever see complete files.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
import time
from pathlib import Path
from typing import Any

from .collection import RecordCollection
from .config import StoreConfig
from .exceptions import CorruptStorageError

logger = logging.getLogger(__name__)


class FileLock:
    """Cross-platform advisory file lock on ``<path>.lock``."""

    def __init__(self, filepath: str):
        self.filepath = filepath
        self.lockfile = filepath + ".lock"
        self.lock_handle = None

    def acquire(self):
        """Acquire the file lock, blocking until it is available."""
        os.makedirs(os.path.dirname(self.lockfile) or ".", exist_ok=True)
        if platform.system() == "Windows":
            import msvcrt

            while True:
                try:
                    self.lock_handle = open(self.lockfile, "wb")
                    msvcrt.locking(self.lock_handle.fileno(), msvcrt.LK_NBLCK, 1)
                    break
                except OSError:
                    if self.lock_handle:
                        self.lock_handle.close()
                        self.lock_handle = None
                    time.sleep(0.01)
        else:
            import fcntl

            self.lock_handle = open(self.lockfile, "wb")
            fcntl.lockf(self.lock_handle, fcntl.LOCK_EX)

    def release(self):
        """Release the file lock.

        The lock file is left in place so all writers lock the same inode.
        """
        if self.lock_handle:
            if platform.system() == "Windows":
                import msvcrt

                try:
                    msvcrt.locking(self.lock_handle.fileno(), msvcrt.LK_UNLCK, 1)
                except OSError:
                    pass
            self.lock_handle.close()
            self.lock_handle = None

    @property
    def locked(self) -> bool:
        return self.lock_handle is not None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class _NullLock:
    """Stand-in used when file locking is disabled."""

    locked = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return None


class FileStore:
    """Reads and writes whole entity collections as JSON files."""

    SUFFIX = ".json"

    def __init__(self, config: StoreConfig):
        self.config = config

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> FileStore:
        """Create from a config dictionary."""
        return cls(StoreConfig.from_dict(config))

    @property
    def root(self) -> Path:
        return self.config.root_path

    def path_for(self, entity_name: str) -> Path:
        """Location of an entity's file."""
        return self.root / f"{entity_name}{self.SUFFIX}"

    def exists(self, entity_name: str) -> bool:
        return self.path_for(entity_name).exists()

    def lock(self, entity_name: str) -> FileLock | _NullLock:
        """Advisory lock guarding a read-modify-write cycle on one entity."""
        if not self.config.use_file_lock:
            return _NullLock()
        return FileLock(str(self.path_for(entity_name)))

    def load(self, entity_name: str) -> RecordCollection:
        """Load the full collection of an entity.

        Returns an empty collection when the file is missing or blank.

        Raises:
            CorruptStorageError: If the file is not a JSON array of objects
        """
        path = self.path_for(entity_name)
        if not path.exists():
            logger.debug(f"No storage file for '{entity_name}' at {path}; empty collection")
            return RecordCollection()

        with open(path, encoding=self.config.encoding) as f:
            content = f.read()
        if not content.strip():
            return RecordCollection()

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptStorageError(str(path), f"invalid JSON ({e.msg} at line {e.lineno})") from e

        if not isinstance(data, list):
            raise CorruptStorageError(str(path), f"expected a JSON array, found {type(data).__name__}")
        for position, item in enumerate(data):
            if not isinstance(item, dict):
                raise CorruptStorageError(
                    str(path), f"element {position} is {type(item).__name__}, expected an object"
                )

        logger.debug(f"Loaded {len(data)} records for '{entity_name}' from {path}")
        return RecordCollection(data)

    def save(self, entity_name: str, collection: RecordCollection | list) -> None:
        """Overwrite an entity's file with the full collection."""
        path = self.path_for(entity_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        records = [dict(r) for r in collection]

        if not self.config.atomic_writes:
            self._write(str(path), records)
        else:
            # Write to temporary file first
            temp_fd, temp_path = tempfile.mkstemp(
                dir=str(path.parent), prefix=f".{entity_name}.", suffix=".tmp"
            )
            os.close(temp_fd)
            try:
                self._write(temp_path, records)
                # Atomic rename
                os.replace(temp_path, path)
            except BaseException:
                if os.path.exists(temp_path):
                    logger.warning(f"Removing temporary file {temp_path} after failed write")
                    os.remove(temp_path)
                raise

        logger.debug(f"Saved {len(records)} records for '{entity_name}' to {path}")

    def delete_file(self, entity_name: str) -> bool:
        """Remove an entity's file; returns False when there was none."""
        path = self.path_for(entity_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Deleted storage file {path}")
        return True

    def _write(self, filepath: str, records: list[dict[str, Any]]) -> None:
        with open(filepath, "w", encoding=self.config.encoding) as f:
            json.dump(
                records,
                f,
                indent=self.config.indent,
                ensure_ascii=self.config.ensure_ascii,
            )
