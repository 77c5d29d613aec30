"""
In-memory record queries: search, sort, and user-id parsing.

All functions operate on lists of PublicRecord returned by
RecordStore.list_records(). They never touch the store and never mutate
their input.

Author: vaultctl contributors
"""

from __future__ import annotations

import re
from typing import Iterable, List, Literal

from vaultctl.config import ValidationError
from vaultctl.types import MAX_USER_ID, PublicRecord, parse_object_id

SortField = Literal["name", "created"]
SORT_FIELDS = ("name", "created")

_DIGITS_RE = re.compile(r"^[0-9]+$")


# ── Search ──────────────────────────────────────────────────────────────

def search_records(records: Iterable[PublicRecord], term: str) -> List[PublicRecord]:
    """Return records matching *term*, in input order.

    A record matches when any of these hold:
      - term is all digits and equals its user_id
      - term is a full object id equal to its id (case-insensitive)
      - term is a case-insensitive substring of its name

    A blank term matches nothing.
    """
    term = (term or "").strip()
    if not term:
        return []
    needle = term.lower()
    user_id = int(term) if _DIGITS_RE.match(term) else None
    object_id = parse_object_id(term)

    def matches(rec: PublicRecord) -> bool:
        if rec is None:
            return False
        if user_id is not None and rec.user_id == user_id:
            return True
        if object_id is not None and (rec.id or "").lower() == object_id:
            return True
        return needle in (rec.name or "").lower()

    return [r for r in records if matches(r)]


# ── Sort ────────────────────────────────────────────────────────────────

def sort_records(
    records: Iterable[PublicRecord],
    field: SortField = "name",
    descending: bool = False,
) -> List[PublicRecord]:
    """Return a new, stably sorted list of *records*.

    name:    case-insensitive comparison.
    created: by creation date (YYYY-MM-DD); records without a date sort
             first when ascending and last when descending.

    Raises:
        ValueError: unknown field.
    """
    if field not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {field!r} (expected one of {SORT_FIELDS})")
    items = list(records)
    if field == "name":
        return sorted(items, key=lambda r: (r.name or "").lower(), reverse=descending)
    # (has_date, date): missing dates compare lowest
    return sorted(
        items,
        key=lambda r: (bool(r.created), r.created or ""),
        reverse=descending,
    )


# ── Input parsing ───────────────────────────────────────────────────────

def parse_user_id(text: str) -> int:
    """Parse a user-typed userID.

    Raises:
        ValidationError: not a positive integer within MAX_USER_ID.
    """
    s = (text or "").strip()
    if not _DIGITS_RE.match(s) or not 0 < int(s) <= MAX_USER_ID:
        raise ValidationError(
            f"Invalid userID {text!r}: please enter a numeric userID."
        )
    return int(s)
