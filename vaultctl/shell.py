"""
Interactive menu shell for vaultctl.

One operation at a time: the menu is shown, an option is read, the
operation runs to completion, then the menu is shown again.

    1. Add Record        4. List Records      7. Export Data
    2. Search Records    5. Update Record     8. View Vault Statistics
    3. Sort Records      6. Delete Record     9. Exit

Input and output are injectable (ask/out) so the loop can be driven by
tests without a terminal. Malformed input is reported and the operation
is aborted before it reaches the store.

Author: vaultctl contributors
"""

from __future__ import annotations

import os
import sqlite3
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, TextIO

from vaultctl.config import ValidationError
from vaultctl.export import DEFAULT_EXPORT_FILE, export_records
from vaultctl.inspect import format_stats, vault_stats
from vaultctl.query import parse_user_id, search_records, sort_records
from vaultctl.store import RecordStore, StoreConnectionError
from vaultctl.types import PublicRecord


# ---------------------------------------------------------------------------
# Readline history (XDG-compliant, TTY-only)
# ---------------------------------------------------------------------------

_HISTORY_DIR = Path(os.environ.get(
    "XDG_DATA_HOME", os.path.expanduser("~/.local/share")
)) / "vaultctl"
_HISTORY_FILE = _HISTORY_DIR / "shell_history"
_HISTORY_MAX = 1000

MENU = """
===== Vault =====
1. Add Record
2. Search Records
3. Sort Records
4. List Records
5. Update Record
6. Delete Record
7. Export Data
8. View Vault Statistics
9. Exit
================="""


@dataclass
class ShellContext:
    """Everything an action needs: the store plus I/O."""

    store: RecordStore
    ask: Callable[[str], str]
    out: TextIO
    export_path: str = DEFAULT_EXPORT_FILE
    clock: Optional[Callable[[], datetime]] = None

    def say(self, msg: str = "") -> None:
        print(msg, file=self.out)


def _summary(i: int, rec: PublicRecord) -> str:
    return f"{i}. ID: {rec.user_id} | Name: {rec.name} | Created: {rec.created or 'N/A'}"


# ---------------------------------------------------------------------------
# Actions (return False to leave the shell)
# ---------------------------------------------------------------------------


def _do_add(ctx: ShellContext) -> bool:
    name = ctx.ask("Enter name: ")
    value = ctx.ask("Enter value: ")
    rec = ctx.store.add_record(name, value)
    ctx.say("Record added successfully!")
    ctx.say(f"  Object ID: {rec.id}")
    ctx.say(f"  userID:    {rec.user_id}")
    return True


def _do_search(ctx: ShellContext) -> bool:
    term = ctx.ask("Enter search keyword: ").strip()
    if not term:
        ctx.say("Please enter a search keyword.")
        return True
    matches = search_records(ctx.store.list_records(), term)
    if not matches:
        ctx.say("No records found.")
        return True
    plural = "s" if len(matches) > 1 else ""
    ctx.say(f"Found {len(matches)} matching record{plural}:")
    for i, rec in enumerate(matches, start=1):
        ctx.say(_summary(i, rec))
    return True


def _do_sort(ctx: ShellContext) -> bool:
    field_choice = ctx.ask("Choose field to sort by (1) Name or (2) Creation Date: ").strip()
    if field_choice not in ("1", "2"):
        ctx.say("Invalid choice. Choose 1 for Name or 2 for Creation Date.")
        return True
    order_choice = ctx.ask("Choose order (1) Ascending or (2) Descending: ").strip()
    if order_choice not in ("1", "2"):
        ctx.say("Invalid order. Choose 1 for Ascending or 2 for Descending.")
        return True
    records = ctx.store.list_records()
    if not records:
        ctx.say("No records found.")
        return True
    field = "name" if field_choice == "1" else "created"
    ordered = sort_records(records, field, descending=(order_choice == "2"))
    ctx.say("Sorted Records:")
    for i, rec in enumerate(ordered, start=1):
        ctx.say(_summary(i, rec))
    return True


def _do_list(ctx: ShellContext) -> bool:
    records = ctx.store.list_records()
    if not records:
        ctx.say("No records found.")
        return True
    for rec in records:
        ctx.say(
            f"userID: {rec.user_id} | ID: {rec.id} | Name: {rec.name} | Value: {rec.value}"
        )
    return True


def _do_update(ctx: ShellContext) -> bool:
    user_id = parse_user_id(ctx.ask("Enter record userID to update: "))
    # Only prompt for new values when the record exists
    if ctx.store.get_record(user_id) is None:
        ctx.say("Record not found.")
        return True
    name = ctx.ask("New name: ")
    value = ctx.ask("New value: ")
    updated = ctx.store.update_record(user_id, name, value)
    if updated is None:
        ctx.say("Record not found.")
    else:
        ctx.say(f"Record updated (userID: {updated.user_id})")
    return True


def _do_delete(ctx: ShellContext) -> bool:
    user_id = parse_user_id(ctx.ask("Enter record userID to delete: "))
    deleted = ctx.store.delete_record(user_id)
    if deleted is None:
        ctx.say("Record not found.")
    else:
        ctx.say(f"Record deleted (userID: {deleted.user_id})")
    return True


def _do_export(ctx: ShellContext) -> bool:
    try:
        path = export_records(ctx.store.list_records(), ctx.export_path, clock=ctx.clock)
    except OSError as e:
        ctx.say(f"Failed to export data: {e}")
        return True
    ctx.say(f"Data exported successfully to {path.name}.")
    return True


def _do_stats(ctx: ShellContext) -> bool:
    ctx.say(format_stats(vault_stats(ctx.store.list_records())))
    return True


def _do_exit(ctx: ShellContext) -> bool:
    ctx.say("Exiting vault...")
    return False


ACTIONS: Dict[str, Callable[[ShellContext], bool]] = {
    "1": _do_add,
    "2": _do_search,
    "3": _do_sort,
    "4": _do_list,
    "5": _do_update,
    "6": _do_delete,
    "7": _do_export,
    "8": _do_stats,
    "9": _do_exit,
}


# ---------------------------------------------------------------------------
# REPL
# ---------------------------------------------------------------------------


def run_shell(
    store: RecordStore,
    *,
    ask: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
    export_path: str = DEFAULT_EXPORT_FILE,
    clock: Optional[Callable[[], datetime]] = None,
    interactive: Optional[bool] = None,
    history_max: Optional[int] = None,
) -> None:
    """Run the menu loop until option 9 or end of input.

    The store is closed on exit, whatever the reason.

    Args:
        store: Connected (or lazily connectable) RecordStore.
        ask: Prompt function returning one line (default: input).
        out: Output stream (default: stdout).
        export_path: Target file for option 7.
        clock: Datetime source for the export header.
        interactive: Enable readline history (default: stdin is a TTY).
        history_max: Max readline history entries (default: 1000).
    """
    ctx = ShellContext(
        store=store, ask=ask, out=out if out is not None else sys.stdout,
        export_path=export_path, clock=clock,
    )
    if interactive is None:
        interactive = sys.stdin.isatty()

    if interactive:
        try:
            import readline
            _HISTORY_DIR.mkdir(parents=True, exist_ok=True)
            try:
                readline.read_history_file(str(_HISTORY_FILE))
            except FileNotFoundError:
                pass
            readline.set_history_length(history_max or _HISTORY_MAX)
        except (ImportError, OSError):
            pass

    try:
        while True:
            ctx.say(MENU)
            try:
                choice = ctx.ask("Choose option: ").strip()
            except KeyboardInterrupt:
                ctx.say()
                continue
            except EOFError:
                ctx.say()
                ctx.say("Exiting vault...")
                break

            action = ACTIONS.get(choice)
            if action is None:
                ctx.say("Invalid option.")
                continue

            try:
                keep_going = action(ctx)
            except ValidationError as e:
                ctx.say(str(e))
                continue
            except KeyboardInterrupt:
                ctx.say("\nCancelled.")
                continue
            except EOFError:
                ctx.say()
                break
            except (StoreConnectionError, sqlite3.Error) as e:
                ctx.say(f"Store error: {e}")
                continue

            if not keep_going:
                break
    finally:
        if interactive:
            try:
                import readline
                readline.write_history_file(str(_HISTORY_FILE))
            except (ImportError, OSError):
                pass
        store.close()
