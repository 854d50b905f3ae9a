"""Durable record storage: atomic writes, tiered reads, external key-value tier."""

from workstate.storage.atomic import (
    AtomicFileStore,
    StorageIOError,
    backup_path_for,
    ensure_directory_exists,
)
from workstate.storage.kv import JsonSettingsStore, KeyValueStore, MemoryKeyValueStore
from workstate.storage.tiered import RecordParseError, TieredReader, read_record

__all__ = [
    "AtomicFileStore",
    "StorageIOError",
    "backup_path_for",
    "ensure_directory_exists",
    "JsonSettingsStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RecordParseError",
    "TieredReader",
    "read_record",
]
