"""Tests for workstate.lib.config module."""

import logging
from pathlib import Path

from workstate.lib.config import StoreConfig, default_app_dir, load_store_config


class TestDefaultAppDir:
    """Tests for default_app_dir()."""

    def test_uses_home_directory(self, monkeypatch, tmp_path):
        monkeypatch.delenv("WORKSTATE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert default_app_dir() == tmp_path / ".workstate"

    def test_environment_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WORKSTATE_HOME", str(tmp_path / "custom"))
        assert default_app_dir() == tmp_path / "custom"


class TestStoreConfig:
    """Tests for StoreConfig derived paths."""

    def test_derived_directories(self, tmp_path):
        config = StoreConfig(app_dir=tmp_path)
        assert config.state_dir == tmp_path / "state"
        assert config.projects_dir == tmp_path / "projects"
        assert config.scopes_dir == tmp_path / "scopes"
        assert config.settings_file == tmp_path / "settings.json"

    def test_docs_dir(self, tmp_path):
        config = StoreConfig(app_dir=tmp_path, docs_dirname="documents")
        assert config.docs_dir("/work/app") == Path("/work/app/documents")


class TestLoadStoreConfig:
    """Tests for load_store_config()."""

    def test_defaults_when_file_missing(self, tmp_path):
        config = load_store_config(tmp_path)
        assert config.app_dir == tmp_path
        assert config.summary_filename == "PROJECT.md"
        assert config.lock_timeout == 30.0
        assert config.mirror_to_kv is True

    def test_loads_values(self, tmp_path):
        (tmp_path / "store.yaml").write_text(
            "lock_timeout: 5\nsummary_filename: CLAUDE.md\nmirror_to_kv: false\n"
        )

        config = load_store_config(tmp_path)

        assert config.lock_timeout == 5
        assert config.summary_filename == "CLAUDE.md"
        assert config.mirror_to_kv is False
        # Unset values keep defaults
        assert config.docs_dirname == "docs"

    def test_empty_file_gives_defaults(self, tmp_path):
        (tmp_path / "store.yaml").write_text("")
        assert load_store_config(tmp_path).export_scopes is True

    def test_malformed_yaml_warns_and_uses_defaults(self, tmp_path, caplog):
        caplog.set_level(logging.WARNING)
        (tmp_path / "store.yaml").write_text("lock_timeout: [unclosed\n")

        config = load_store_config(tmp_path)

        assert config.lock_timeout == 30.0
        assert "Failed to parse" in caplog.text

    def test_unknown_key_warns_and_uses_defaults(self, tmp_path, caplog):
        caplog.set_level(logging.WARNING)
        (tmp_path / "store.yaml").write_text("app_dir: /elsewhere\n")

        config = load_store_config(tmp_path)

        assert config.app_dir == tmp_path
        assert "Failed to parse" in caplog.text

    def test_wrong_type_warns_and_uses_defaults(self, tmp_path):
        (tmp_path / "store.yaml").write_text("lock_timeout: soon\n")
        assert load_store_config(tmp_path).lock_timeout == 30.0

    def test_uses_environment_when_no_dir_given(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WORKSTATE_HOME", str(tmp_path))
        assert load_store_config().app_dir == tmp_path
