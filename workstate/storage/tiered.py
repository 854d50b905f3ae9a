"""
Tiered record reads with self-healing.

A load consults, in order: the primary file, its .bak sibling, the external
key-value store, and finally the caller's default. Each tier fails on its
own; a failure is logged and the next tier is tried. When a lower tier
answers, the value is written back up into the primary file.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from workstate.lib.locking import LockTimeout
from workstate.lib.validate import ValidationError
from workstate.storage.atomic import AtomicFileStore, backup_path_for
from workstate.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


class RecordParseError(ValueError):
    """A tier holds data that cannot be used."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


def read_record(path: Path, validator: Optional[Callable[[Any], None]] = None) -> Any:
    """Read and parse one JSON record.

    Raises:
        FileNotFoundError: If the file does not exist
        RecordParseError: If the file is unreadable, malformed, or rejected by validator
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as e:
        raise RecordParseError(str(path), f"unreadable ({e})") from e

    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise RecordParseError(str(path), f"invalid JSON ({e})") from e

    _check(str(path), value, validator)
    return value


def _check(source: str, value: Any, validator: Optional[Callable[[Any], None]]) -> None:
    if validator is None:
        return
    try:
        validator(value)
    except ValidationError as e:
        raise RecordParseError(source, str(e)) from e


class TieredReader:
    """Reads a record from the first tier that can supply it. Never raises."""

    def __init__(self, file_store: AtomicFileStore, kv: Optional[KeyValueStore] = None):
        self.file_store = file_store
        self.kv = kv

    def load(
        self,
        path: Path,
        backup_path: Optional[Path] = None,
        external_key: Optional[str] = None,
        default: Any = None,
        validator: Optional[Callable[[Any], None]] = None,
    ) -> Any:
        """Return the most recent recoverable value for path.

        Args:
            path: Primary record file
            backup_path: Backup file (defaults to <path>.bak)
            external_key: Key in the external KeyValueStore, if any
            default: Returned when every tier is absent or unusable
            validator: Optional callable raising ValidationError for bad values
        """
        path = Path(path)
        backup_path = Path(backup_path) if backup_path else backup_path_for(path)

        # 1. Primary file
        try:
            value = read_record(path, validator)
            logger.debug(f"Loaded {path}")
            return value
        except FileNotFoundError:
            logger.debug(f"No primary file at {path}")
        except RecordParseError as e:
            logger.warning(f"Failed to read primary file: {e}")

        # 2. Backup file
        try:
            value = read_record(backup_path, validator)
        except FileNotFoundError:
            pass
        except RecordParseError as e:
            logger.warning(f"Failed to read backup file: {e}")
        else:
            logger.info(f"Recovered {path} from backup {backup_path}")
            # The primary may be corrupt, so it must not overwrite the good backup
            self._heal(path, value, backup=False)
            return value

        # 3. External key-value store
        if external_key and self.kv is not None:
            try:
                value = self.kv.get(external_key)
                if value is not None:
                    _check(f"kv:{external_key}", value, validator)
            except RecordParseError as e:
                logger.warning(f"Failed to read external store: {e}")
            except Exception as e:
                logger.warning(f"External store lookup failed for {external_key}: {e}")
            else:
                if value is not None:
                    logger.info(f"Recovered {path} from external store key {external_key}")
                    self._heal(path, value, backup=False)
                    self._heal(backup_path, value, backup=False)
                    return value

        # 4. Default
        logger.debug(f"No tier could supply {path}, using default")
        return default

    def _heal(self, path: Path, value: Any, backup: bool) -> None:
        try:
            self.file_store.save(path, value, backup=backup)
        except (OSError, LockTimeout, TypeError) as e:
            logger.warning(f"Self-heal of {path} failed: {e}")
