"""
vaultctl — A small record vault with backups and an activity log.

Records live in a single SQLite collection. Every add/delete writes a
timestamped JSON backup; every mutation is published on an in-process
event bus and appended to an activity log.

Author: vaultctl contributors
"""

__version__ = "0.1.0"

from vaultctl.types import (
    PublicRecord,
    StoredRecord,
    NumericId,
    OpaqueId,
    InvalidId,
    resolve_ref,
    to_public,
)
from vaultctl.events import EventBus, RecordEvent, get_event_bus
from vaultctl.activity import ActivityLogger, attach_activity_logger
from vaultctl.backup import BackupWriter
from vaultctl.store import RecordStore, StoreConnectionError, SCHEMA_VERSION
from vaultctl.config import VaultConfig, ValidationError, load_config

__all__ = [
    "__version__",
    "PublicRecord",
    "StoredRecord",
    "NumericId",
    "OpaqueId",
    "InvalidId",
    "resolve_ref",
    "to_public",
    "EventBus",
    "RecordEvent",
    "get_event_bus",
    "ActivityLogger",
    "attach_activity_logger",
    "BackupWriter",
    "RecordStore",
    "StoreConnectionError",
    "SCHEMA_VERSION",
    "VaultConfig",
    "ValidationError",
    "load_config",
]
