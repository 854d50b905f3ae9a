"""
Crash-safe file writes.

A save writes the new content to <path>.tmp, snapshots the current file to
<path>.bak, then renames the tmp file over <path>. The primary file therefore
always holds either the previous complete content or the new complete
content, never a partial write.
"""

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

from workstate.lib.constants import BAK_SUFFIX, TMP_SUFFIX
from workstate.lib.locking import KeyLocks

logger = logging.getLogger(__name__)

WRITE_PROBE_NAME = ".test-write-permission"


class StorageIOError(OSError):
    """A directory or record could not be written."""
    pass


def tmp_path_for(path: Path) -> Path:
    return path.with_name(path.name + TMP_SUFFIX)


def backup_path_for(path: Path) -> Path:
    return path.with_name(path.name + BAK_SUFFIX)


def ensure_directory_exists(directory: Path) -> Path:
    """Create directory if needed and check that it is writable.

    Raises:
        StorageIOError: If the directory cannot be created or written to
    """
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory {directory}: {e}")
        raise StorageIOError(f"Cannot create directory {directory}: {e}") from e

    probe = directory / WRITE_PROBE_NAME
    try:
        probe.write_text("test", encoding="utf-8")
        probe.unlink()
    except OSError as e:
        logger.error(f"Directory {directory} is not writable: {e}")
        raise StorageIOError(f"No write permission for {directory}: {e}") from e

    return directory


class AtomicFileStore:
    """Writes whole records to disk without ever exposing a partial file.

    Writes to the same path are serialised through a per-path lock.
    """

    def __init__(self, locks: KeyLocks | None = None):
        self.locks = locks or KeyLocks()

    def save(self, path: Path, data: Any, backup: bool = True) -> None:
        """Serialise data as JSON and write it durably to path.

        Args:
            path: Destination file
            data: JSON-serialisable value
            backup: Snapshot the current file to <path>.bak before replacing it

        Raises:
            TypeError: If data is not JSON-serialisable
            StorageIOError: If the record could not be written
        """
        text = json.dumps(data, indent=2, ensure_ascii=False)
        self.write_text(path, text, backup=backup)

    def write_text(self, path: Path, text: str, backup: bool = True) -> None:
        """Write text durably to path. See save()."""
        path = Path(path)
        tmp_path = tmp_path_for(path)

        with self.locks.hold(str(path)):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as tmp_file:
                    tmp_file.write(text)
                    tmp_file.flush()
                    os.fsync(tmp_file.fileno())
            except OSError as e:
                raise StorageIOError(f"Failed to write {tmp_path}: {e}") from e

            if backup and path.exists():
                try:
                    shutil.copy2(path, backup_path_for(path))
                except OSError as e:
                    logger.warning(f"Failed to back up {path}: {e}")

            try:
                os.replace(tmp_path, path)
            except OSError as e:
                logger.warning(f"Rename failed for {path}, falling back to copy: {e}")
                self._copy_into_place(tmp_path, path)

            if not path.exists():
                raise StorageIOError(f"File was not created: {path}")

        logger.debug(f"Saved {path}")

    def _copy_into_place(self, tmp_path: Path, path: Path) -> None:
        try:
            shutil.copyfile(tmp_path, path)
        except OSError as e:
            raise StorageIOError(f"Failed to copy {tmp_path} to {path}: {e}") from e
        try:
            tmp_path.unlink()
        except OSError as e:
            logger.warning(f"Failed to remove {tmp_path}: {e}")
