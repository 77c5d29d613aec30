"""
Activity Logger — Append-Only Text Log of Record Lifecycle Events

Subscribes to the event bus and writes one line per event:

    [2026-02-14T10:22:31.042Z] ADD id=65f0c3a1e4b0d2a9f1c3e7b2 name=alpha

Lines are appended to the log file and mirrored to a console stream.
Writing is fire-and-forget: file and console errors are logged and never
reach the publisher.

Author: vaultctl contributors
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from vaultctl.events import EVENT_KINDS, EventBus, RecordEvent, get_event_bus
from vaultctl.types import iso_millis, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = "logs/db.log"


def format_activity(event: RecordEvent) -> str:
    """Render an event as ``<ACTION> id=<id> name=<name>``."""
    rec = event.record
    return f"{event.kind.upper()} id={rec.id} name={rec.name}"


class ActivityLogger:
    """Event-bus subscriber writing an append-only activity log."""

    def __init__(
        self,
        log_file: str = DEFAULT_LOG_FILE,
        console: Optional[TextIO] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            log_file: Path of the append-only log. Parent dir is created.
            console: Stream for the mirrored line. None -> no mirroring.
            clock: Returns the current datetime (injectable for tests).
        """
        self._path = Path(log_file)
        self._console = console
        self._clock = clock or utcnow
        self._attached: List[EventBus] = []
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning(f"Cannot create log directory {self._path.parent}: {exc}")

    @property
    def path(self) -> Path:
        return self._path

    def write(self, line: str) -> None:
        """Append one timestamped line. Never raises."""
        out = f"[{iso_millis(self._clock())}] {line}"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as fh:
                fh.write(out + "\n")
        except OSError as exc:
            logger.warning(f"Activity log write failed ({self._path}): {exc}")
        if self._console is not None:
            try:
                print(out, file=self._console, flush=True)
            except (OSError, ValueError) as exc:
                logger.warning(f"Activity console echo failed: {exc}")

    def handle(self, event: RecordEvent) -> None:
        self.write(format_activity(event))

    def attach(self, bus: EventBus) -> None:
        """Subscribe to every record event kind on *bus*."""
        for kind in EVENT_KINDS:
            bus.subscribe(kind, self.handle)
        self._attached.append(bus)

    def detach(self) -> None:
        """Remove all subscriptions made by attach()."""
        for bus in self._attached:
            for kind in EVENT_KINDS:
                bus.unsubscribe(kind, self.handle)
        self._attached.clear()


def attach_activity_logger(
    bus: Optional[EventBus] = None,
    *,
    log_file: str = DEFAULT_LOG_FILE,
    console: Optional[TextIO] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Optional[ActivityLogger]:
    """Create an ActivityLogger and subscribe it to *bus* (default: process bus).

    Returns None, after logging a warning, if the subscription cannot be
    made. The process keeps running without activity logging.
    """
    try:
        activity = ActivityLogger(log_file=log_file, console=console, clock=clock)
        activity.attach(bus if bus is not None else get_event_bus())
    except Exception as exc:
        logger.warning(f"Activity logging disabled: {exc}")
        return None
    logger.debug(f"Activity logger attached ({log_file})")
    return activity
