"""
Record Data Model — Stored Documents, Public Shape, Identifier Resolution

A record is a named value pair with two identifiers:
    internal_id  - the store's native object id (24 lowercase hex chars)
    user_id      - sequential public number assigned by the RecordStore

Callers address records with a token that is resolved exactly once into
one of three variants (NumericId, OpaqueId, InvalidId) before any lookup.

to_public() is the only way records leave the store. It never raises on
missing or malformed identifiers and timestamps.

Author: vaultctl contributors
"""

from __future__ import annotations

import itertools
import random
import re
import time
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union


def _now_iso() -> str:
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def utcnow() -> datetime:
    """Current time as an aware UTC datetime (default store clock)."""
    return datetime.now(timezone.utc)


def iso_millis(dt: datetime) -> str:
    """Render *dt* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (UTC, millisecond precision)."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, or None."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Object ids (native identifier format of the store)
# ---------------------------------------------------------------------------

# 4-byte creation second + 5 random bytes (per process) + 3-byte counter
_OID_RANDOM = uuid.uuid4().bytes[:5]
_OID_COUNTER = itertools.count(random.randint(0, 0xFFFFFF))
_OID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def generate_object_id() -> str:
    """Generate a new 24-character hex object id."""
    seconds = int(time.time()) & 0xFFFFFFFF
    count = next(_OID_COUNTER) & 0xFFFFFF
    raw = seconds.to_bytes(4, "big") + _OID_RANDOM + count.to_bytes(3, "big")
    return raw.hex()


def parse_object_id(token: Any) -> Optional[str]:
    """Return the canonical (lowercase) object id for *token*, or None."""
    if not isinstance(token, str):
        return None
    token = token.strip()
    if not _OID_RE.match(token):
        return None
    return token.lower()


# ---------------------------------------------------------------------------
# Identifier resolution (tagged variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NumericId:
    """Token addressing a record by its public user_id."""
    user_id: int


@dataclass(frozen=True)
class OpaqueId:
    """Token addressing a record by its internal object id."""
    object_id: str


@dataclass(frozen=True)
class InvalidId:
    """Token that matches no record (empty, malformed, wrong type)."""
    token: Any = None


RecordRef = Union[NumericId, OpaqueId, InvalidId]

_DIGITS_RE = re.compile(r"^[0-9]+$")

# Largest user_id SQLite can bind (signed 64-bit INTEGER)
MAX_USER_ID = 2**63 - 1


def resolve_ref(token: Any) -> RecordRef:
    """Resolve a caller-supplied id token. Never raises.

    Rules:
        int (not bool) in 1..MAX_USER_ID   -> NumericId
        digits-only string, same range     -> NumericId
        digits-only string out of range    -> InvalidId (never an OpaqueId)
        24-hex string                      -> OpaqueId
        anything else / empty / None       -> InvalidId
    """
    if isinstance(token, (NumericId, OpaqueId, InvalidId)):
        return token
    if isinstance(token, bool) or token is None:
        return InvalidId(token)
    if isinstance(token, int):
        return NumericId(token) if 0 < token <= MAX_USER_ID else InvalidId(token)
    if not isinstance(token, str):
        return InvalidId(token)
    text = token.strip()
    if not text:
        return InvalidId(token)
    if _DIGITS_RE.match(text):
        value = int(text)
        return NumericId(value) if 0 < value <= MAX_USER_ID else InvalidId(token)
    oid = parse_object_id(text)
    if oid is None:
        return InvalidId(token)
    return OpaqueId(oid)


# ---------------------------------------------------------------------------
# Stored document
# ---------------------------------------------------------------------------

@dataclass
class StoredRecord:
    """A record exactly as persisted in the ``records`` collection."""

    internal_id: str = ""
    user_id: Optional[int] = None
    name: str = ""
    value: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> StoredRecord:
        """Build from a sqlite3.Row (or any mapping with column names)."""
        keys = set(row.keys())
        return cls(
            internal_id=row["internal_id"] if "internal_id" in keys else "",
            user_id=row["user_id"] if "user_id" in keys else None,
            name=row["name"] if "name" in keys else "",
            value=row["value"] if "value" in keys else "",
            created_at=row["created_at"] if "created_at" in keys else None,
            updated_at=row["updated_at"] if "updated_at" in keys else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Public shape
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PublicRecord:
    """Normalized record returned to callers (CLI, shell, event subscribers)."""

    id: Optional[str]
    user_id: Optional[int]
    name: Optional[str]
    value: Optional[str]
    created: Optional[str]       # YYYY-MM-DD
    created_at: Optional[str]    # raw timestamp
    updated_at: Optional[str]    # raw timestamp
    updated: Optional[str]       # YYYY-MM-DD HH:MM:SS (UTC)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dictionary."""
        return asdict(self)


def _coerce_id(raw: Any) -> Optional[str]:
    if raw is None or raw == "":
        return None
    return str(raw)


def _coerce_user_id(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw else None
    if isinstance(raw, str) and _DIGITS_RE.match(raw.strip()):
        return int(raw.strip()) or None
    return None


def _seconds(value: Any) -> Optional[str]:
    dt = parse_timestamp(value)
    return dt.strftime("%Y-%m-%d %H:%M:%S") if dt else None


def to_public(doc: Union[StoredRecord, Mapping[str, Any], None]) -> Optional[PublicRecord]:
    """Normalize a stored document into the public record shape.

    Accepts a StoredRecord, a mapping (sqlite3.Row, dict) or None.
    Mappings may carry the object id as ``internal_id``, ``_id`` or ``id``.
    """
    if doc is None:
        return None
    if isinstance(doc, StoredRecord):
        data: Dict[str, Any] = doc.to_dict()
    else:
        data = {k: doc[k] for k in doc.keys()}

    raw_id = data.get("internal_id") or data.get("_id") or data.get("id")
    created_at = data.get("created_at") or data.get("createdAt") or None
    updated_at = data.get("updated_at") or data.get("updatedAt") or None
    user_id = data.get("user_id", data.get("userID"))

    return PublicRecord(
        id=_coerce_id(raw_id),
        user_id=_coerce_user_id(user_id),
        name=data.get("name"),
        value=data.get("value"),
        created=str(created_at)[:10] if created_at else None,
        created_at=created_at,
        updated_at=updated_at,
        updated=_seconds(updated_at),
    )
