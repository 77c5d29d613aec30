"""
Vault Configuration

Configuration dataclasses for vaultctl: store location, side-effect file
paths (backups, activity log, export) and shell settings. load_config()
reads a JSON file with silent fallback to compiled defaults.

Environment variables are resolved by the CLI on top of the file
(``.env`` is loaded first via python-dotenv):

    VAULTCTL_DB           SQLite database path (default: .vault/vault.db)
    VAULTCTL_BACKUP_DIR   Backup directory (default: backups)
    VAULTCTL_LOG_FILE     Activity log file (default: logs/db.log)
    VAULTCTL_EXPORT_FILE  Export file (default: export.txt)
    VAULTCTL_CONFIG       Path to a JSON config file

Precedence (invariant):
    CLI --flag  >  VAULTCTL_* env var  >  config file  >  compiled default

Author: vaultctl contributors
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = ".vault/vault.db"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ValueError):
    """Raised when config values or user input are out of valid range."""

    pass


def _check_range(
    errors: List[str], name: str, value, lo, hi, typ=None,
) -> None:
    """Append an error message if value is out of [lo, hi] or wrong type."""
    if typ is not None and not isinstance(value, typ):
        errors.append(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
        return
    if value < lo or value > hi:
        errors.append(f"{name}: {value} not in [{lo}, {hi}]")


def _check_path(errors: List[str], name: str, value) -> None:
    """Append an error message unless value is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{name}: expected non-empty path, got {value!r}")


@dataclass
class StoreConfig:
    """SQLite store configuration."""
    db_path: str = DEFAULT_DB_PATH
    wal_mode: bool = True

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_path(errors, "store.db_path", self.db_path)
        return errors


@dataclass
class PathsConfig:
    """Side-effect file locations."""
    backup_dir: str = "backups"
    log_file: str = "logs/db.log"
    export_file: str = "export.txt"

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_path(errors, "paths.backup_dir", self.backup_dir)
        _check_path(errors, "paths.log_file", self.log_file)
        _check_path(errors, "paths.export_file", self.export_file)
        return errors


@dataclass
class ShellConfig:
    """Interactive shell configuration."""
    history_max: int = 1000

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "shell.history_max",
                     self.history_max, 10, 100000, int)
        return errors


@dataclass
class VaultConfig:
    """Top-level vaultctl configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> VaultConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        if "paths" in d:
            kwargs["paths"] = PathsConfig(**d["paths"])
        if "shell" in d:
            kwargs["shell"] = ShellConfig(**d["shell"])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        errors.extend(self.paths.validate())
        errors.extend(self.shell.validate())
        return errors


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> VaultConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ValidationError on invalid config values.

    Returns:
        VaultConfig with values from file or defaults.

    Raises:
        ValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = VaultConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = VaultConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError) as e:
            logger.debug(f"Config {path} not usable, using defaults: {e}")
            cfg = VaultConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg


def load_environment(dotenv_path: Optional[str] = None) -> bool:
    """Load ``.env`` (searched upward from the cwd) into os.environ.

    Variables already set in the environment win.
    """
    path = dotenv_path or find_dotenv(usecwd=True)
    if not path:
        return False
    return load_dotenv(dotenv_path=path, override=False)


def apply_env(cfg: VaultConfig, env: Optional[Mapping[str, str]] = None) -> VaultConfig:
    """Overlay VAULTCTL_* environment variables onto *cfg* (in place)."""
    env = os.environ if env is None else env
    if env.get("VAULTCTL_DB"):
        cfg.store.db_path = env["VAULTCTL_DB"]
    if env.get("VAULTCTL_BACKUP_DIR"):
        cfg.paths.backup_dir = env["VAULTCTL_BACKUP_DIR"]
    if env.get("VAULTCTL_LOG_FILE"):
        cfg.paths.log_file = env["VAULTCTL_LOG_FILE"]
    if env.get("VAULTCTL_EXPORT_FILE"):
        cfg.paths.export_file = env["VAULTCTL_EXPORT_FILE"]
    return cfg
