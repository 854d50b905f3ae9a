"""Tests for workstate.storage.atomic module."""

import json
import logging

import pytest

from workstate.storage.atomic import (
    AtomicFileStore,
    StorageIOError,
    backup_path_for,
    ensure_directory_exists,
    tmp_path_for,
)
from workstate.storage.tiered import TieredReader


class TestSave:
    """Tests for AtomicFileStore.save()."""

    def test_writes_json_record(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "state" / "project_1" / "requirements.json"

        store.save(path, {"document": "要件", "count": 2})

        text = path.read_text(encoding="utf-8")
        assert json.loads(text) == {"document": "要件", "count": 2}
        # Non-ASCII text is stored as-is, not escaped
        assert "要件" in text

    def test_leaves_no_tmp_file(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"

        store.save(path, [1, 2, 3])

        assert not tmp_path_for(path).exists()

    def test_first_save_creates_no_backup(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"

        store.save(path, {"v": 1})

        assert not backup_path_for(path).exists()

    def test_second_save_backs_up_previous_content(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"

        store.save(path, {"v": 1})
        store.save(path, {"v": 2})

        assert json.loads(path.read_text()) == {"v": 2}
        assert json.loads(backup_path_for(path).read_text()) == {"v": 1}

    def test_backup_can_be_skipped(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"

        store.save(path, {"v": 1})
        store.save(path, {"v": 2}, backup=False)

        assert not backup_path_for(path).exists()

    def test_unserialisable_data_raises_before_writing(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"

        with pytest.raises(TypeError):
            store.save(path, {"bad": object()})

        assert not path.exists()
        assert not tmp_path_for(path).exists()

    def test_write_text(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "docs" / "scope.md"

        store.write_text(path, "# 実装スコープ\n")

        assert path.read_text(encoding="utf-8") == "# 実装スコープ\n"


class TestSaveFailures:
    """Tests for the degraded paths of AtomicFileStore.save()."""

    def test_rename_failure_falls_back_to_copy(self, tmp_path, monkeypatch, caplog):
        caplog.set_level(logging.WARNING)

        def fail_replace(src, dst):
            raise OSError("Invalid cross-device link")

        monkeypatch.setattr("workstate.storage.atomic.os.replace", fail_replace)
        store = AtomicFileStore()
        path = tmp_path / "record.json"

        store.save(path, {"v": 1})

        assert json.loads(path.read_text()) == {"v": 1}
        assert not tmp_path_for(path).exists()
        assert "falling back to copy" in caplog.text

    def test_copy_fallback_failure_is_fatal(self, tmp_path, monkeypatch):
        def fail(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("workstate.storage.atomic.os.replace", fail)
        monkeypatch.setattr("workstate.storage.atomic.shutil.copyfile", fail)
        store = AtomicFileStore()

        with pytest.raises(StorageIOError):
            store.save(tmp_path / "record.json", {"v": 1})

    def test_backup_failure_only_warns(self, tmp_path, monkeypatch, caplog):
        caplog.set_level(logging.WARNING)
        store = AtomicFileStore()
        path = tmp_path / "record.json"
        store.save(path, {"v": 1})

        def fail_copy(src, dst):
            raise OSError("permission denied")

        monkeypatch.setattr("workstate.storage.atomic.shutil.copy2", fail_copy)
        store.save(path, {"v": 2})

        assert json.loads(path.read_text()) == {"v": 2}
        assert "Failed to back up" in caplog.text

    def test_missing_file_after_write_is_fatal(self, tmp_path, monkeypatch):
        # A rename that silently does nothing leaves no primary file behind
        monkeypatch.setattr("workstate.storage.atomic.os.replace", lambda src, dst: None)
        store = AtomicFileStore()

        with pytest.raises(StorageIOError, match="File was not created"):
            store.save(tmp_path / "record.json", {"v": 1})

    def test_unwritable_parent_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = AtomicFileStore()

        with pytest.raises(StorageIOError):
            store.save(blocker / "record.json", {"v": 1})


class TestCrashSafety:
    """A crash between the tmp write and the rename never exposes partial data."""

    def test_stale_partial_tmp_does_not_affect_load(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"
        store.save(path, {"version": 1, "items": ["a", "b"]})

        # Simulate a process killed mid-write of version 2
        tmp_path_for(path).write_text('{"version": 2, "ite')

        assert TieredReader(store).load(path) == {"version": 1, "items": ["a", "b"]}

    def test_crash_before_first_rename_leaves_record_absent(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"
        tmp_path_for(path).write_text('{"version": 1, "ite')

        assert TieredReader(store).load(path, default="absent") == "absent"

    def test_next_save_replaces_stale_tmp(self, tmp_path):
        store = AtomicFileStore()
        path = tmp_path / "record.json"
        tmp_path_for(path).write_text('{"partial"')

        store.save(path, {"v": 3})

        assert json.loads(path.read_text()) == {"v": 3}
        assert not tmp_path_for(path).exists()


class TestEnsureDirectoryExists:
    """Tests for ensure_directory_exists()."""

    def test_creates_nested_directories(self, tmp_path):
        target = tmp_path / "a" / "b" / "c"

        result = ensure_directory_exists(target)

        assert result == target
        assert target.is_dir()

    def test_leaves_no_probe_file(self, tmp_path):
        ensure_directory_exists(tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_existing_directory_is_fine(self, tmp_path):
        ensure_directory_exists(tmp_path)
        ensure_directory_exists(tmp_path)
        assert tmp_path.is_dir()

    def test_raises_when_path_is_a_file(self, tmp_path):
        blocker = tmp_path / "state"
        blocker.write_text("file")

        with pytest.raises(StorageIOError, match="Cannot create directory"):
            ensure_directory_exists(blocker)
