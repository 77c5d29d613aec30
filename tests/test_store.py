"""
Tests for vaultctl.store — lifecycle, id allocation, CRUD, side effects.

Author: vaultctl contributors
"""

import json
import logging
import sqlite3

import pytest

from vaultctl.backup import BackupWriter
from vaultctl.events import EventBus
from vaultctl.store import RecordStore, StoreConnectionError
from vaultctl.types import parse_object_id, parse_timestamp


def _collect(bus, kind):
    events = []
    bus.subscribe(kind, events.append)
    return events


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_next_user_id_before_and_after_init(self, bus, clock):
        s = RecordStore(":memory:", bus=bus, clock=clock)
        assert s.next_user_id is None
        assert not s.connected
        s.init()
        assert s.connected
        assert s.next_user_id == 1
        s.close()

    def test_init_idempotent(self, store):
        store.add_record("a", "1")
        store.init()
        store.init()
        assert store.count() == 1
        assert store.next_user_id == 2

    def test_close_idempotent(self, store):
        store.close()
        store.close()
        assert not store.connected

    def test_lazy_connect(self, bus, clock):
        s = RecordStore(":memory:", bus=bus, clock=clock)
        rec = s.add_record("a", "1")
        assert rec.user_id == 1
        s.close()

    def test_context_manager(self, tmp_path, bus, clock):
        with RecordStore(str(tmp_path / "v.db"), bus=bus, clock=clock) as s:
            s.add_record("a", "1")
            assert s.connected
        assert not s.connected

    def test_creates_parent_directory(self, tmp_path, bus):
        path = tmp_path / "deep" / "nested" / "vault.db"
        s = RecordStore(str(path), bus=bus)
        s.init()
        assert path.exists()
        s.close()

    def test_unreachable_path_raises(self, tmp_path, bus):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        s = RecordStore(str(blocker / "vault.db"), bus=bus)
        with pytest.raises(StoreConnectionError):
            s.init()
        assert not s.connected

    def test_connection_error_is_connection_error(self, tmp_path, bus):
        s = RecordStore(str(tmp_path), bus=bus)  # a directory
        with pytest.raises(ConnectionError):
            s.init()

    def test_not_a_database(self, tmp_path, bus):
        path = tmp_path / "garbage.db"
        path.write_bytes(b"this is definitely not sqlite " * 200)
        s = RecordStore(str(path), bus=bus)
        with pytest.raises(StoreConnectionError):
            s.init()

    def test_schema_meta(self, store):
        row = store._conn.execute(
            "SELECT value FROM schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        assert row["value"] == "1"

    def test_close_ignores_connection_errors(self, store, caplog):
        class FailingConnection:
            def close(self):
                raise sqlite3.ProgrammingError("already gone")

        store._conn.close()
        store._conn = FailingConnection()
        with caplog.at_level(logging.DEBUG, logger="vaultctl.store"):
            store.close()
        assert not store.connected
        assert "already gone" in caplog.text


# ---------------------------------------------------------------------------
# user_id allocation
# ---------------------------------------------------------------------------


class TestUserIdAllocation:
    def test_sequential(self, store):
        ids = [store.add_record(f"r{i}", str(i)).user_id for i in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_never_reused_after_delete(self, store):
        store.add_record("a", "1")
        store.add_record("b", "2")
        store.add_record("c", "3")
        store.delete_record(3)
        assert store.add_record("d", "4").user_id == 4

    def test_seeded_from_existing_records(self, tmp_path, bus):
        path = str(tmp_path / "vault.db")
        s1 = RecordStore(path, bus=bus)
        for i in range(3):
            s1.add_record(f"r{i}", str(i))
        s1.close()

        s2 = RecordStore(path, bus=bus)
        s2.init()
        assert s2.next_user_id == 4
        assert s2.add_record("next", "x").user_id == 4
        s2.close()

    def test_reinit_same_instance_stays_monotonic(self, tmp_path, bus):
        s = RecordStore(str(tmp_path / "vault.db"), bus=bus)
        s.add_record("a", "1")
        s.add_record("b", "2")
        s.delete_record(2)
        s.close()
        s.init()
        assert s.add_record("c", "3").user_id == 3
        s.close()

    def test_non_integer_user_ids_ignored_when_seeding(self, tmp_path, bus):
        path = str(tmp_path / "vault.db")
        s1 = RecordStore(path, bus=bus)
        s1.add_record("a", "1")
        s1._conn.execute(
            "INSERT INTO records (internal_id, user_id, name, value, created_at) "
            "VALUES ('x1', 'junk', 'bad', 'v', '2026-01-01T00:00:00+00:00')"
        )
        s1._conn.commit()
        s1.close()

        s2 = RecordStore(path, bus=bus)
        s2.init()
        assert s2.next_user_id == 2
        s2.close()

    def test_failed_scan_starts_at_one(self, tmp_path, bus, caplog):
        path = str(tmp_path / "vault.db")
        s1 = RecordStore(path, bus=bus)
        for i in range(3):
            s1.add_record(f"r{i}", str(i))
        s1.close()

        class UnscannableStore(RecordStore):
            def _seed_user_id(self):
                self._conn.execute("ALTER TABLE records RENAME TO records_old")
                return super()._seed_user_id()

        s2 = UnscannableStore(path, bus=bus)
        with caplog.at_level(logging.WARNING, logger="vaultctl.store"):
            s2.init()
        assert s2.next_user_id == 1
        assert "userID scan failed" in caplog.text
        s2.close()


# ---------------------------------------------------------------------------
# add_record
# ---------------------------------------------------------------------------


class TestAdd:
    def test_round_trip(self, store):
        rec = store.add_record("alpha", "1")
        records = store.list_records()
        assert records == [rec]
        assert rec.user_id == 1
        assert rec.name == "alpha"
        assert rec.value == "1"
        assert parse_object_id(rec.id) == rec.id
        assert rec.created_at == "2026-02-14T10:00:00+00:00"
        assert rec.created == "2026-02-14"
        assert rec.updated_at is None
        assert rec.updated is None

    def test_empty_name_and_value_allowed(self, store):
        rec = store.add_record("", "")
        assert rec.name == ""
        assert rec.value == ""

    def test_publishes_add_event(self, store, bus):
        events = _collect(bus, "add")
        rec = store.add_record("alpha", "1")
        assert len(events) == 1
        assert events[0].kind == "add"
        assert events[0].record == rec

    def test_failing_subscriber_does_not_abort(self, store, bus):
        def boom(event):
            raise RuntimeError("subscriber down")

        bus.subscribe("add", boom)
        events = _collect(bus, "add")
        rec = store.add_record("alpha", "1")
        assert rec.user_id == 1
        assert len(events) == 1
        assert store.count() == 1

    def test_writes_backup(self, backed_store, backup_writer):
        backed_store.add_record("alpha", "1")
        backups = backup_writer.list_backups()
        assert len(backups) == 1
        data = json.loads(backups[0].read_text(encoding="utf-8"))
        assert len(data) == 1
        assert data[0]["userID"] == 1
        assert data[0]["name"] == "alpha"
        assert set(data[0]) == {"_id", "userID", "name", "value", "createdAt"}

    def test_backup_failure_does_not_propagate(self, tmp_path, bus, clock):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        writer = BackupWriter(str(blocker), clock=clock, log=lambda m: None)
        s = RecordStore(":memory:", bus=bus, backup=writer, clock=clock)
        rec = s.add_record("alpha", "1")
        assert rec.user_id == 1
        assert s.count() == 1
        assert s.next_user_id == 2
        s.close()

    def test_raising_backup_writer_is_contained(self, bus, clock):
        class ExplodingWriter:
            def write(self, store):
                raise RuntimeError("disk on fire")

        s = RecordStore(":memory:", bus=bus, backup=ExplodingWriter(), clock=clock)
        assert s.add_record("alpha", "1").user_id == 1
        assert s.delete_record(1) is not None
        s.close()


# ---------------------------------------------------------------------------
# update_record
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_by_user_id(self, store):
        created = store.add_record("alpha", "1")
        rec = store.update_record(1, "beta", "2")
        assert rec.name == "beta"
        assert rec.value == "2"
        assert rec.id == created.id
        assert rec.user_id == 1
        assert rec.created_at == created.created_at
        assert parse_timestamp(rec.updated_at) > parse_timestamp(rec.created_at)
        assert rec.updated == "2026-02-14 10:00:01"

    def test_by_numeric_string(self, store):
        store.add_record("alpha", "1")
        assert store.update_record("1", "beta", "2").name == "beta"

    def test_by_object_id_any_case(self, store):
        created = store.add_record("alpha", "1")
        assert store.update_record(created.id.upper(), "beta", "2").name == "beta"

    def test_persisted(self, store):
        store.add_record("alpha", "1")
        store.update_record(1, "beta", "2")
        assert store.get_record(1).name == "beta"

    def test_missing_returns_none(self, store, bus):
        events = _collect(bus, "update")
        store.add_record("alpha", "1")
        assert store.update_record(99, "x", "y") is None
        assert events == []

    @pytest.mark.parametrize("token", ["", "abc", None, 0, "65f0c3a1e4b0d2a9f1c3e7b2"])
    def test_unresolvable_tokens_return_none(self, store, token):
        store.add_record("alpha", "1")
        assert store.update_record(token, "x", "y") is None
        assert store.get_record(1).name == "alpha"

    def test_publishes_update_event(self, store, bus):
        events = _collect(bus, "update")
        store.add_record("alpha", "1")
        rec = store.update_record(1, "beta", "2")
        assert [e.record for e in events] == [rec]

    def test_does_not_write_backup(self, backed_store, backup_writer):
        backed_store.add_record("alpha", "1")
        assert len(backup_writer.list_backups()) == 1
        backed_store.update_record(1, "beta", "2")
        assert len(backup_writer.list_backups()) == 1


# ---------------------------------------------------------------------------
# delete_record
# ---------------------------------------------------------------------------


class TestDelete:
    def test_returns_prior_state(self, store):
        created = store.add_record("alpha", "1")
        deleted = store.delete_record(1)
        assert deleted == created
        assert store.list_records() == []
        assert store.get_record(1) is None

    def test_by_object_id(self, store):
        created = store.add_record("alpha", "1")
        assert store.delete_record(created.id) == created

    def test_missing_returns_none(self, store, bus):
        events = _collect(bus, "delete")
        assert store.delete_record(42) is None
        assert store.delete_record("nope") is None
        assert events == []

    def test_numeric_token_only_matches_user_id(self, store):
        digits = "123456789012345678901234"
        store._conn.execute(
            "INSERT INTO records (internal_id, user_id, name, value, created_at) "
            "VALUES (?, 7, 'odd', 'v', '2026-01-01T00:00:00+00:00')",
            (digits,),
        )
        store._conn.commit()
        assert store.delete_record(digits) is None
        assert store.get_record(7).name == "odd"

    @pytest.mark.parametrize("token", ["99999999999999999999", 2**70, 2**63])
    def test_user_id_beyond_sqlite_range_matches_nothing(self, store, bus, token):
        events = _collect(bus, "delete")
        store.add_record("alpha", "1")
        assert store.get_record(token) is None
        assert store.update_record(token, "x", "y") is None
        assert store.delete_record(token) is None
        assert events == []
        assert store.get_record(1).name == "alpha"

    def test_publishes_delete_event(self, store, bus):
        events = _collect(bus, "delete")
        store.add_record("alpha", "1")
        deleted = store.delete_record(1)
        assert [e.record for e in events] == [deleted]

    def test_writes_backup_without_deleted_record(self, backed_store, backup_writer):
        backed_store.add_record("alpha", "1")
        backed_store.add_record("beta", "2")
        backed_store.delete_record(1)
        backups = backup_writer.list_backups()
        assert len(backups) == 3
        latest = json.loads(backups[-1].read_text(encoding="utf-8"))
        assert [d["userID"] for d in latest] == [2]

    def test_missing_writes_no_backup(self, backed_store, backup_writer):
        backed_store.add_record("alpha", "1")
        backed_store.delete_record(99)
        assert len(backup_writer.list_backups()) == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_list_in_insertion_order(self, store):
        for name in ("c", "a", "b"):
            store.add_record(name, name)
        assert [r.name for r in store.list_records()] == ["c", "a", "b"]

    def test_documents_are_stored_shape(self, store):
        rec = store.add_record("alpha", "1")
        docs = store.documents()
        assert len(docs) == 1
        assert docs[0].internal_id == rec.id
        assert docs[0].user_id == 1

    def test_count(self, store):
        assert store.count() == 0
        store.add_record("a", "1")
        assert store.count() == 1

    def test_get_record_invalid(self, store):
        assert store.get_record("") is None
        assert store.get_record(None) is None

    def test_default_clock_is_utc(self, bus):
        s = RecordStore(":memory:", bus=bus)
        rec = s.add_record("a", "1")
        assert parse_timestamp(rec.created_at) is not None
        assert rec.created_at.endswith("+00:00")
        s.close()

    def test_independent_buses(self, clock):
        bus_a, bus_b = EventBus(), EventBus()
        seen_b = _collect(bus_b, "add")
        s = RecordStore(":memory:", bus=bus_a, clock=clock)
        s.add_record("a", "1")
        assert seen_b == []
        s.close()

