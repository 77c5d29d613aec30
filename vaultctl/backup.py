"""
Backup Writer — Timestamped JSON Snapshots of the Whole Vault

After every add/delete the RecordStore asks the writer for a snapshot.
Each record is projected to:

    {"_id": ..., "userID": ..., "name": ..., "value": ..., "createdAt": ...}

and the array is written to ``<backup_dir>/backup_<YYYY-MM-DDTHH-MM-SS>.json``
(UTC, second resolution; two backups in the same second overwrite).

write() never raises. A failed snapshot is logged and returns None so the
mutating operation that triggered it still succeeds.

Author: vaultctl contributors
"""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from vaultctl.types import StoredRecord, utcnow

if TYPE_CHECKING:
    from vaultctl.store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = "backups"
BACKUP_PREFIX = "backup_"


def _default_log(msg: str) -> None:
    """Log to stderr."""
    print(msg, file=sys.stderr)


def backup_filename(now: datetime) -> str:
    """File name for a snapshot taken at *now*: colons and fraction stripped."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{BACKUP_PREFIX}{now.strftime('%Y-%m-%dT%H-%M-%S')}.json"


def project_document(doc: StoredRecord) -> Dict[str, Any]:
    """Backup projection of one stored record."""
    return {
        "_id": doc.internal_id or None,
        "userID": doc.user_id or None,
        "name": doc.name or None,
        "value": doc.value or None,
        "createdAt": doc.created_at or None,
    }


class BackupWriter:
    """Writes full-vault JSON snapshots into a backups directory."""

    def __init__(
        self,
        backup_dir: str = DEFAULT_BACKUP_DIR,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        log: Callable[[str], None] = _default_log,
    ):
        self._dir = Path(backup_dir)
        self._clock = clock or utcnow
        self._log = log

    @property
    def directory(self) -> Path:
        return self._dir

    def write(self, store: RecordStore) -> Optional[Path]:
        """Snapshot every record in *store*. Returns the file path or None."""
        try:
            payload = [project_document(d) for d in store.documents()]
            self._dir.mkdir(parents=True, exist_ok=True)
            path = self._dir / backup_filename(self._clock())
            path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except (ConnectionError, sqlite3.Error, OSError, TypeError, ValueError) as exc:
            logger.warning(f"Failed to create backup: {exc}")
            return None
        logger.info(f"Backup created: {path} ({len(payload)} record(s))")
        self._log(f"Backup created: {path}")
        return path

    def list_backups(self) -> List[Path]:
        """Existing snapshot files, oldest first."""
        if not self._dir.is_dir():
            return []
        return sorted(self._dir.glob(f"{BACKUP_PREFIX}*.json"))
