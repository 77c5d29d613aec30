"""
vaultctl CLI — Record Vault Commands

Commands:
    vaultctl [shell]                        — interactive menu (default)
    vaultctl add NAME VALUE                 — add a record
    vaultctl list                           — list all records
    vaultctl search TERM                    — search by userID, object id or name
    vaultctl sort {name,created} [--desc]   — sorted listing (store untouched)
    vaultctl show ID                        — display one record
    vaultctl update ID NAME VALUE           — replace name and value
    vaultctl delete ID                      — delete a record
    vaultctl export [--output PATH]         — write the text export
    vaultctl stats                          — vault statistics

ID is a numeric userID or a 24-hex object id.

Environment variables (a .env file in the cwd or a parent is loaded first):
    VAULTCTL_DB           Path to SQLite database (default: .vault/vault.db)
    VAULTCTL_BACKUP_DIR   Backup directory (default: backups)
    VAULTCTL_LOG_FILE     Activity log (default: logs/db.log)
    VAULTCTL_EXPORT_FILE  Export file (default: export.txt)
    VAULTCTL_CONFIG       JSON config file

Precedence (invariant):
    CLI --flag  >  VAULTCTL_* env var  >  config file  >  compiled default

Exit codes:
    0  Success
    1  Operational error (bad args, record not found, store unreachable)
    2  Internal failure (unexpected exception, I/O error)

Author: vaultctl contributors
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from vaultctl.config import (
    DEFAULT_DB_PATH,
    ValidationError,
    VaultConfig,
    apply_env,
    load_config,
    load_environment,
)

logger = logging.getLogger(__name__)


def _env_str(name: str, default: str) -> str:
    """Parse string env var with fallback."""
    return os.environ.get(name, default)


# ---------------------------------------------------------------------------
# Stderr helpers (respect --quiet)
# ---------------------------------------------------------------------------

_quiet = False


def _info(msg: str) -> None:
    """Print progress to stderr (suppressed by --quiet)."""
    if not _quiet:
        print(msg, file=sys.stderr)


def _warn(msg: str) -> None:
    """Print warning to stderr (always visible)."""
    print(msg, file=sys.stderr)


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def _resolve_config(args: Optional[argparse.Namespace] = None) -> VaultConfig:
    """Config file (--config > VAULTCTL_CONFIG) + env overlay + --db flag."""
    path = getattr(args, "config", None) if args else None
    path = path or _env_str("VAULTCTL_CONFIG", "") or None
    try:
        cfg = load_config(path, strict=True)
    except ValidationError as e:
        _warn(f"Error: {e}")
        sys.exit(1)
    apply_env(cfg)
    if args and getattr(args, "db", None):
        cfg.store.db_path = args.db
    if cfg.store.db_path == DEFAULT_DB_PATH and not os.environ.get("VAULTCTL_DB"):
        _info(f"VAULTCTL_DB not set; using local database {DEFAULT_DB_PATH}")
    return cfg


# ---------------------------------------------------------------------------
# Store factory (store + bus + activity log + backups)
# ---------------------------------------------------------------------------


_activity = None


def _open_store(args: argparse.Namespace, *, console=None):
    """Build and connect a RecordStore. Exits 1 if the store is unreachable."""
    from vaultctl.activity import attach_activity_logger
    from vaultctl.backup import BackupWriter
    from vaultctl.events import get_event_bus
    from vaultctl.store import RecordStore, StoreConnectionError

    global _activity
    cfg = _resolve_config(args)
    bus = get_event_bus()
    _activity = attach_activity_logger(bus, log_file=cfg.paths.log_file, console=console)
    store = RecordStore(
        cfg.store.db_path,
        wal_mode=cfg.store.wal_mode,
        bus=bus,
        backup=BackupWriter(cfg.paths.backup_dir, log=_info),
    )
    try:
        store.init()
    except StoreConnectionError as e:
        _warn(f"Failed to initialize store: {e}")
        sys.exit(1)
    return store, cfg


def _close_store(store) -> None:
    """Close *store* and unhook the activity logger from the event bus."""
    global _activity
    store.close()
    if _activity is not None:
        _activity.detach()
        _activity = None


def _progress_console():
    """Stream for activity echoes in one-shot commands (stderr, or none if -q)."""
    return None if _quiet else sys.stderr


def _print_records(records, as_json: bool) -> None:
    if as_json:
        print(json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False))
        return
    for r in records:
        print(f"userID: {r.user_id} | ID: {r.id} | Name: {r.name} | Value: {r.value}")


def _print_record(rec, as_json: bool) -> None:
    if as_json:
        print(json.dumps(rec.to_dict(), indent=2, ensure_ascii=False))
        return
    print(f"userID:   {rec.user_id}")
    print(f"ID:       {rec.id}")
    print(f"Name:     {rec.name}")
    print(f"Value:    {rec.value}")
    print(f"Created:  {rec.created_at or 'N/A'}")
    print(f"Updated:  {rec.updated or 'N/A'}")


# ===========================================================================
# Command: shell
# ===========================================================================


def cmd_shell(args: argparse.Namespace) -> None:
    """Run the interactive menu."""
    from vaultctl.backup import BackupWriter
    from vaultctl.shell import run_shell

    store, cfg = _open_store(args, console=sys.stdout)
    n_backups = len(BackupWriter(cfg.paths.backup_dir).list_backups())
    _info(
        f"Vault ready ({store.count()} record(s), {n_backups} backup(s), "
        f"next userID: {store.next_user_id})"
    )
    try:
        run_shell(
            store,
            export_path=cfg.paths.export_file,
            history_max=cfg.shell.history_max,
        )
    finally:
        _close_store(store)


# ===========================================================================
# One-shot commands
# ===========================================================================


def cmd_add(args: argparse.Namespace) -> None:
    """Add one record."""
    store, _ = _open_store(args, console=_progress_console())
    try:
        rec = store.add_record(args.name, args.value)
        if getattr(args, "json", False):
            _print_record(rec, True)
        else:
            print(f"Record added: userID={rec.user_id} id={rec.id}")
    finally:
        _close_store(store)


def cmd_list(args: argparse.Namespace) -> None:
    """List all records in storage order."""
    store, _ = _open_store(args, console=_progress_console())
    try:
        records = store.list_records()
        if not records and not getattr(args, "json", False):
            _info("No records found.")
            return
        _print_records(records, getattr(args, "json", False))
    finally:
        _close_store(store)


def cmd_search(args: argparse.Namespace) -> None:
    """Search records by userID, object id or name substring."""
    from vaultctl.query import search_records

    store, _ = _open_store(args, console=_progress_console())
    try:
        matches = search_records(store.list_records(), args.term)
        if not matches and not getattr(args, "json", False):
            _info("No records found.")
            return
        _print_records(matches, getattr(args, "json", False))
    finally:
        _close_store(store)


def cmd_sort(args: argparse.Namespace) -> None:
    """Print records sorted by name or creation date."""
    from vaultctl.query import sort_records

    store, _ = _open_store(args, console=_progress_console())
    try:
        ordered = sort_records(store.list_records(), args.field, descending=args.desc)
        _print_records(ordered, getattr(args, "json", False))
    finally:
        _close_store(store)


def cmd_show(args: argparse.Namespace) -> None:
    """Show one record."""
    store, _ = _open_store(args, console=_progress_console())
    try:
        rec = store.get_record(args.id)
        if rec is None:
            _warn(f"Record not found: {args.id}")
            sys.exit(1)
        _print_record(rec, getattr(args, "json", False))
    finally:
        _close_store(store)


def cmd_update(args: argparse.Namespace) -> None:
    """Replace a record's name and value."""
    store, _ = _open_store(args, console=_progress_console())
    try:
        rec = store.update_record(args.id, args.name, args.value)
        if rec is None:
            _warn(f"Record not found: {args.id}")
            sys.exit(1)
        if getattr(args, "json", False):
            _print_record(rec, True)
        else:
            print(f"Record updated: userID={rec.user_id}")
    finally:
        _close_store(store)


def cmd_delete(args: argparse.Namespace) -> None:
    """Delete a record."""
    store, _ = _open_store(args, console=_progress_console())
    try:
        rec = store.delete_record(args.id)
        if rec is None:
            _warn(f"Record not found: {args.id}")
            sys.exit(1)
        if getattr(args, "json", False):
            _print_record(rec, True)
        else:
            print(f"Record deleted: userID={rec.user_id}")
    finally:
        _close_store(store)


def cmd_export(args: argparse.Namespace) -> None:
    """Write the text export file."""
    from vaultctl.export import export_records

    store, cfg = _open_store(args, console=_progress_console())
    try:
        records = store.list_records()
        path = export_records(records, args.output or cfg.paths.export_file)
        _info(f"[export] {len(records)} record(s) written to {path}")
    finally:
        _close_store(store)


def cmd_stats(args: argparse.Namespace) -> None:
    """Show vault statistics."""
    from vaultctl.inspect import format_stats, vault_stats

    from vaultctl.backup import BackupWriter

    store, cfg = _open_store(args, console=_progress_console())
    try:
        stats = vault_stats(store.list_records())
        if getattr(args, "json", False):
            stats["status"] = "ok"
            stats["backups"] = len(BackupWriter(cfg.paths.backup_dir).list_backups())
            print(json.dumps(stats, indent=2, ensure_ascii=False))
        else:
            print(format_stats(stats))
    finally:
        _close_store(store)


# ===========================================================================
# Entry point
# ===========================================================================


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for all vaultctl commands."""
    # SUPPRESS defaults keep subparser defaults from overriding values
    # parsed at the main-parser level (argparse parents quirk).
    _common = argparse.ArgumentParser(add_help=False)
    _common.add_argument(
        "--db", default=argparse.SUPPRESS,
        help=f"Path to SQLite database (default: VAULTCTL_DB or {DEFAULT_DB_PATH})",
    )
    _common.add_argument(
        "--config", default=argparse.SUPPRESS,
        help="JSON config file (default: VAULTCTL_CONFIG)",
    )
    _common.add_argument(
        "--quiet", "-q", action="store_true", default=argparse.SUPPRESS,
        help="Suppress stderr progress messages",
    )
    _common.add_argument(
        "--json", action="store_true", default=argparse.SUPPRESS,
        help="Machine-readable JSON output (list, search, sort, show, stats, ...)",
    )
    _common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )

    parser = argparse.ArgumentParser(
        prog="vaultctl",
        description="vaultctl — record vault with backups and an activity log",
        parents=[_common],
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    p_shell = sub.add_parser("shell", parents=[_common], help="Interactive menu (default)")
    p_shell.set_defaults(func=cmd_shell)

    p_add = sub.add_parser("add", parents=[_common], help="Add a record")
    p_add.add_argument("name", help="Record name")
    p_add.add_argument("value", help="Record value")
    p_add.set_defaults(func=cmd_add)

    p_list = sub.add_parser("list", parents=[_common], help="List all records")
    p_list.set_defaults(func=cmd_list)

    p_search = sub.add_parser("search", parents=[_common], help="Search records")
    p_search.add_argument("term", help="userID, object id, or name substring")
    p_search.set_defaults(func=cmd_search)

    p_sort = sub.add_parser("sort", parents=[_common], help="List records sorted")
    p_sort.add_argument("field", choices=["name", "created"], help="Sort key")
    p_sort.add_argument("--desc", action="store_true", help="Descending order")
    p_sort.set_defaults(func=cmd_sort)

    p_show = sub.add_parser("show", parents=[_common], help="Show one record")
    p_show.add_argument("id", help="userID or object id")
    p_show.set_defaults(func=cmd_show)

    p_update = sub.add_parser("update", parents=[_common], help="Update a record")
    p_update.add_argument("id", help="userID or object id")
    p_update.add_argument("name", help="New name")
    p_update.add_argument("value", help="New value")
    p_update.set_defaults(func=cmd_update)

    p_delete = sub.add_parser("delete", parents=[_common], help="Delete a record")
    p_delete.add_argument("id", help="userID or object id")
    p_delete.set_defaults(func=cmd_delete)

    p_export = sub.add_parser("export", parents=[_common], help="Write the text export")
    p_export.add_argument(
        "--output", "-o", default=None,
        help="Export file (default: VAULTCTL_EXPORT_FILE or export.txt)",
    )
    p_export.set_defaults(func=cmd_export)

    p_stats = sub.add_parser("stats", parents=[_common], help="Vault statistics")
    p_stats.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point: vaultctl <command> [args]."""
    global _quiet

    load_environment()
    parser = build_parser()
    args = parser.parse_args(argv)

    _quiet = getattr(args, "quiet", False)

    if getattr(args, "verbose", False):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    func = getattr(args, "func", cmd_shell)

    try:
        func(args)
    except BrokenPipeError:
        # Handle broken pipe gracefully (e.g. vaultctl list | head)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        sys.exit(0)
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        _warn(f"Internal error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc(file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
