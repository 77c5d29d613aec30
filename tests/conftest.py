"""
Shared fixtures for vaultctl tests.

Stores are built with a private EventBus and a deterministic clock so
tests never touch the process-wide bus or depend on wall-clock time.

Author: vaultctl contributors
"""

from datetime import datetime, timedelta, timezone

import pytest

from vaultctl.backup import BackupWriter
from vaultctl.events import EventBus
from vaultctl.store import RecordStore


class FakeClock:
    """Callable clock that advances by *step* on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2026, 2, 14, 10, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus, clock):
    """In-memory store without backups."""
    s = RecordStore(":memory:", bus=bus, clock=clock)
    s.init()
    yield s
    s.close()


@pytest.fixture
def backup_writer(tmp_path, clock):
    return BackupWriter(str(tmp_path / "backups"), clock=clock, log=lambda msg: None)


@pytest.fixture
def backed_store(tmp_path, bus, clock, backup_writer):
    """Disk-backed store that writes a backup after add/delete."""
    s = RecordStore(
        str(tmp_path / "vault.db"), bus=bus, backup=backup_writer, clock=clock,
    )
    s.init()
    yield s
    s.close()
