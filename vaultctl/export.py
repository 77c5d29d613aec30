"""
Export — Human-Readable Text Dump of the Vault

Writes (and overwrites) a single text file:

    Vault Export
    Export Date: 2026-02-14T10:22:31.042Z
    Total Records: 2
    File: export.txt
    ----------------------------------------
    1. ID: 1 | Name: alpha | Value: 1 | Created: 2026-02-14
    2. ID: 2 | Name: beta | Value: 2 | Created: 2026-02-14

Unlike backups, exports are on demand only and never read back.

Author: vaultctl contributors
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from vaultctl.types import PublicRecord, iso_millis, utcnow

DEFAULT_EXPORT_FILE = "export.txt"


def format_export(
    records: Iterable[PublicRecord],
    *,
    now: datetime,
    filename: str = DEFAULT_EXPORT_FILE,
) -> str:
    """Render the export file content (header + one line per record)."""
    items = list(records)
    lines = [
        "Vault Export",
        f"Export Date: {iso_millis(now)}",
        f"Total Records: {len(items)}",
        f"File: {filename}",
        "-" * 40,
    ]
    for i, r in enumerate(items, start=1):
        lines.append(
            f"{i}. ID: {r.user_id} | Name: {r.name} | Value: {r.value} "
            f"| Created: {r.created or 'N/A'}"
        )
    return "\n".join(lines) + "\n"


def export_records(
    records: Iterable[PublicRecord],
    path: str = DEFAULT_EXPORT_FILE,
    *,
    clock: Optional[Callable[[], datetime]] = None,
) -> Path:
    """Write the export file, replacing any previous one.

    Returns:
        Path of the written file.

    Raises:
        OSError: the file cannot be written.
    """
    target = Path(path)
    content = format_export(records, now=(clock or utcnow)(), filename=target.name)
    if target.parent != Path("."):
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target
