"""
Inspect — Vault Statistics

Deterministic summary of a record set. No store access: callers pass the
output of RecordStore.list_records().

Public API:
    vault_stats(records) -> dict
    format_stats(stats) -> str

Author: vaultctl contributors
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from vaultctl.types import PublicRecord, parse_timestamp

logger = logging.getLogger(__name__)


def vault_stats(records: Iterable[PublicRecord]) -> Dict[str, Any]:
    """Summary statistics for a record set.

    Keys:
        total                - number of records
        last_modified        - "YYYY-MM-DD HH:MM:SS" of the latest
                               updated_at (or created_at when never updated)
        longest_name         - first record name of maximal length
        longest_name_length  - its length
        earliest / latest    - "YYYY-MM-DD" of min/max created_at

    Unparseable timestamps are skipped. An empty set yields total=0 and
    None everywhere else.
    """
    items: List[PublicRecord] = [r for r in records if r is not None]
    stats: Dict[str, Any] = {
        "total": len(items),
        "last_modified": None,
        "longest_name": None,
        "longest_name_length": None,
        "earliest": None,
        "latest": None,
    }
    if not items:
        return stats

    modified = [parse_timestamp(r.updated_at or r.created_at) for r in items]
    modified = [m for m in modified if m is not None]
    if modified:
        stats["last_modified"] = max(modified).strftime("%Y-%m-%d %H:%M:%S")

    longest = ""
    for r in items:
        name = str(r.name or "")
        if len(name) > len(longest):
            longest = name
    stats["longest_name"] = longest or None
    stats["longest_name_length"] = len(longest)

    created = [parse_timestamp(r.created_at) for r in items]
    created = [c for c in created if c is not None]
    if created:
        stats["earliest"] = min(created).strftime("%Y-%m-%d")
        stats["latest"] = max(created).strftime("%Y-%m-%d")
    else:
        logger.debug("No parseable created_at timestamps")

    return stats


def format_stats(stats: Dict[str, Any]) -> str:
    """Render vault_stats() output as the human-readable block."""
    lines = ["Vault Statistics:", "-" * 26, f"Total Records: {stats['total']}"]
    if not stats["total"]:
        lines.append("No records available to compute further statistics.")
        return "\n".join(lines)

    length = stats["longest_name_length"] or 0
    plural = "" if length == 1 else "s"
    lines.append(f"Last Modified: {stats['last_modified'] or 'N/A'}")
    lines.append(
        f"Longest Name: {stats['longest_name'] or 'N/A'} ({length} character{plural})"
    )
    lines.append(f"Earliest Record: {stats['earliest'] or 'N/A'}")
    lines.append(f"Latest Record: {stats['latest'] or 'N/A'}")
    return "\n".join(lines)
