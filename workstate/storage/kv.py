"""
External key-value stores.

The store mirrors every record into a KeyValueStore so that a project can be
recovered even when both its primary and backup files are lost. Any backend
with get/set by string key will do; two are provided:

- MemoryKeyValueStore: process-local, for tests and embedding.
- JsonSettingsStore: a settings.json file with "global" and "workspace"
  scopes. Lookups prefer the workspace scope, like editor settings do.
"""

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from workstate.storage.atomic import AtomicFileStore

logger = logging.getLogger(__name__)

VALID_SCOPES = ("global", "workspace")


@runtime_checkable
class KeyValueStore(Protocol):
    """Pluggable key-value backend. get() returns None when the key is absent."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, scope: str = "global") -> None:
        ...


def _check_scope(scope: str) -> None:
    if scope not in VALID_SCOPES:
        raise ValueError(f"Unknown scope '{scope}' (expected one of {', '.join(VALID_SCOPES)})")


class MemoryKeyValueStore:
    """In-memory KeyValueStore. Values are deep-copied on the way in and out."""

    def __init__(self):
        self._scopes: dict[str, dict[str, Any]] = {scope: {} for scope in VALID_SCOPES}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            for scope in ("workspace", "global"):
                if key in self._scopes[scope]:
                    return copy.deepcopy(self._scopes[scope][key])
        return None

    def set(self, key: str, value: Any, scope: str = "global") -> None:
        _check_scope(scope)
        with self._lock:
            if value is None:
                self._scopes[scope].pop(key, None)
            else:
                self._scopes[scope][key] = copy.deepcopy(value)


class JsonSettingsStore:
    """KeyValueStore persisted as one JSON settings file.

    File layout: {"global": {key: value}, "workspace": {key: value}}
    """

    def __init__(self, path: Path, file_store: Optional[AtomicFileStore] = None):
        self.path = Path(path)
        self.file_store = file_store or AtomicFileStore()
        self._lock = threading.RLock()

    def _read(self) -> dict[str, dict[str, Any]]:
        settings: dict[str, dict[str, Any]] = {scope: {} for scope in VALID_SCOPES}
        if not self.path.exists():
            return settings
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read settings file {self.path}: {e}")
            return settings
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed settings file {self.path}")
            return settings
        for scope in VALID_SCOPES:
            if isinstance(data.get(scope), dict):
                settings[scope] = data[scope]
        return settings

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            settings = self._read()
        for scope in ("workspace", "global"):
            if key in settings[scope]:
                return settings[scope][key]
        return None

    def set(self, key: str, value: Any, scope: str = "global") -> None:
        _check_scope(scope)
        with self._lock:
            settings = self._read()
            if value is None:
                settings[scope].pop(key, None)
            else:
                settings[scope][key] = value
            self.file_store.save(self.path, settings)

