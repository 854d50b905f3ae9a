"""Tests for workstate.storage.kv module."""

import json
import logging

import pytest

from workstate.storage.kv import JsonSettingsStore, KeyValueStore, MemoryKeyValueStore


class TestMemoryKeyValueStore:
    """Tests for MemoryKeyValueStore."""

    def test_missing_key_returns_none(self):
        assert MemoryKeyValueStore().get("nope") is None

    def test_set_then_get(self):
        kv = MemoryKeyValueStore()
        kv.set("projectData.p1.requirements", {"document": "x"})
        assert kv.get("projectData.p1.requirements") == {"document": "x"}

    def test_values_are_copied(self):
        kv = MemoryKeyValueStore()
        value = {"items": [1]}
        kv.set("k", value)

        value["items"].append(2)
        fetched = kv.get("k")
        fetched["items"].append(3)

        assert kv.get("k") == {"items": [1]}

    def test_workspace_scope_wins(self):
        kv = MemoryKeyValueStore()
        kv.set("k", "global-value", scope="global")
        kv.set("k", "workspace-value", scope="workspace")
        assert kv.get("k") == "workspace-value"

    def test_set_none_removes_key(self):
        kv = MemoryKeyValueStore()
        kv.set("k", 1)
        kv.set("k", None)
        assert kv.get("k") is None

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError, match="Unknown scope"):
            MemoryKeyValueStore().set("k", 1, scope="user")

    def test_satisfies_protocol(self):
        assert isinstance(MemoryKeyValueStore(), KeyValueStore)


class TestJsonSettingsStore:
    """Tests for JsonSettingsStore."""

    def test_missing_file_returns_none(self, tmp_path):
        assert JsonSettingsStore(tmp_path / "settings.json").get("k") is None

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "settings.json"
        JsonSettingsStore(path).set("projectData.p1.mockups", [{"id": "m1"}])

        assert JsonSettingsStore(path).get("projectData.p1.mockups") == [{"id": "m1"}]

    def test_file_layout_has_both_scopes(self, tmp_path):
        path = tmp_path / "settings.json"
        JsonSettingsStore(path).set("k", 1, scope="workspace")

        data = json.loads(path.read_text())
        assert data == {"global": {}, "workspace": {"k": 1}}

    def test_workspace_scope_wins(self, tmp_path):
        kv = JsonSettingsStore(tmp_path / "settings.json")
        kv.set("k", "g")
        kv.set("k", "w", scope="workspace")
        assert kv.get("k") == "w"

    def test_set_none_removes_key(self, tmp_path):
        kv = JsonSettingsStore(tmp_path / "settings.json")
        kv.set("k", 1)
        kv.set("k", None)
        assert kv.get("k") is None

    def test_corrupt_file_reads_as_empty(self, tmp_path, caplog):
        caplog.set_level(logging.WARNING)
        path = tmp_path / "settings.json"
        path.write_text("{broken")

        kv = JsonSettingsStore(path)

        assert kv.get("k") is None
        assert "Failed to read settings file" in caplog.text

    def test_set_rewrites_corrupt_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")
        kv = JsonSettingsStore(path)

        kv.set("k", "v")

        assert json.loads(path.read_text())["global"] == {"k": "v"}

    def test_unknown_scope_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            JsonSettingsStore(tmp_path / "settings.json").set("k", 1, scope="machine")

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(JsonSettingsStore(tmp_path / "settings.json"), KeyValueStore)
