"""
Tests for vaultctl.config — defaults, JSON loading, validation, env overlay.

Author: vaultctl contributors
"""

import json
import os

import pytest

from vaultctl.config import (
    DEFAULT_DB_PATH,
    PathsConfig,
    ShellConfig,
    StoreConfig,
    ValidationError,
    VaultConfig,
    apply_env,
    load_config,
    load_environment,
)


class TestDefaults:
    def test_store_defaults(self):
        cfg = StoreConfig()
        assert cfg.db_path == DEFAULT_DB_PATH == ".vault/vault.db"
        assert cfg.wal_mode is True

    def test_paths_defaults(self):
        cfg = PathsConfig()
        assert cfg.backup_dir == "backups"
        assert cfg.log_file == "logs/db.log"
        assert cfg.export_file == "export.txt"

    def test_defaults_valid(self):
        assert VaultConfig().validate() == []


class TestLoadConfig:
    def test_none_returns_defaults(self):
        assert load_config(None) == VaultConfig()

    def test_missing_file(self, tmp_path):
        assert load_config(str(tmp_path / "nope.json")) == VaultConfig()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config(str(path)) == VaultConfig()

    def test_unknown_key_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"store": {"bogus": 1}}))
        assert load_config(str(path)) == VaultConfig()

    def test_partial(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"paths": {"backup_dir": "snapshots"}}))
        cfg = load_config(str(path))
        assert cfg.paths.backup_dir == "snapshots"
        assert cfg.paths.log_file == "logs/db.log"
        assert cfg.store.db_path == DEFAULT_DB_PATH

    def test_full(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "store": {"db_path": "data/v.db", "wal_mode": False},
            "paths": {"backup_dir": "b", "log_file": "l.log", "export_file": "e.txt"},
            "shell": {"history_max": 50},
        }))
        cfg = load_config(str(path), strict=True)
        assert cfg.store.db_path == "data/v.db"
        assert cfg.store.wal_mode is False
        assert cfg.paths.export_file == "e.txt"
        assert cfg.shell.history_max == 50


class TestValidation:
    def test_history_out_of_range(self):
        errors = ShellConfig(history_max=5).validate()
        assert len(errors) == 1
        assert "shell.history_max" in errors[0]

    def test_history_wrong_type(self):
        errors = ShellConfig(history_max="many").validate()
        assert "expected int" in errors[0]

    def test_empty_path(self):
        errors = PathsConfig(backup_dir="  ").validate()
        assert "paths.backup_dir" in errors[0]

    def test_strict_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"store": {"db_path": ""}}))
        with pytest.raises(ValidationError, match="store.db_path"):
            load_config(str(path), strict=True)

    def test_non_strict_keeps_values(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"shell": {"history_max": 1}}))
        assert load_config(str(path)).shell.history_max == 1


class TestEnvironment:
    def test_apply_env(self):
        cfg = apply_env(VaultConfig(), {
            "VAULTCTL_DB": "x.db",
            "VAULTCTL_BACKUP_DIR": "bk",
            "VAULTCTL_LOG_FILE": "act.log",
            "VAULTCTL_EXPORT_FILE": "out.txt",
        })
        assert cfg.store.db_path == "x.db"
        assert cfg.paths.backup_dir == "bk"
        assert cfg.paths.log_file == "act.log"
        assert cfg.paths.export_file == "out.txt"

    def test_empty_env_values_ignored(self):
        cfg = apply_env(VaultConfig(), {"VAULTCTL_DB": ""})
        assert cfg.store.db_path == DEFAULT_DB_PATH

    def test_env_beats_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"store": {"db_path": "from-file.db"}}))
        cfg = apply_env(load_config(str(path)), {"VAULTCTL_DB": "from-env.db"})
        assert cfg.store.db_path == "from-env.db"

    def test_load_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VAULTCTL_TEST_MARKER", "placeholder")
        monkeypatch.delenv("VAULTCTL_TEST_MARKER")
        env_file = tmp_path / ".env"
        env_file.write_text("VAULTCTL_TEST_MARKER=from-dotenv\n")
        assert load_environment(str(env_file)) is True
        assert os.environ["VAULTCTL_TEST_MARKER"] == "from-dotenv"

    def test_dotenv_does_not_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VAULTCTL_TEST_MARKER", "from-env")
        env_file = tmp_path / ".env"
        env_file.write_text("VAULTCTL_TEST_MARKER=from-dotenv\n")
        load_environment(str(env_file))
        assert os.environ["VAULTCTL_TEST_MARKER"] == "from-env"
