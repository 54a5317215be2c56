"""Shared printer state container.

The store holds a single immutable :class:`PrinterSnapshot`. Writers replace one
section at a time by building a new snapshot and swapping it in under a lock,
so readers only ever see complete snapshots. Each section has one designated
writer path:

- ``connected``: ``PrinterDispatcher.check_connection``
- ``temperatures``: ``StatusReconciler``
- ``print_progress``: ``PrinterDispatcher.get_sd_progress``
- ``sd_files``: ``PrinterDispatcher.list_sd_files``
- ``status.firmware``: ``PrinterDispatcher.get_firmware_info``

``status.connected`` and ``status.state`` are derived here from the
connectivity and progress sections. When two callers race on the same section
(for example a user-triggered progress fetch and the reconciler's), the last
write wins.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .models import (
    PrintProgress,
    PrinterSnapshot,
    PrinterStatus,
    SDFile,
    TemperatureReadings,
)

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[str, PrinterSnapshot], None]

SECTION_CONNECTED = "connected"
SECTION_TEMPERATURES = "temperatures"
SECTION_PROGRESS = "print_progress"
SECTION_SD_FILES = "sd_files"
SECTION_STATUS = "status"


class PrinterStateStore:
    """Owns the printer snapshot and notifies listeners after each replacement."""

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._snapshot = PrinterSnapshot(updated_at=self._clock())
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------
    def snapshot(self) -> PrinterSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def connected(self) -> bool:
        return self.snapshot().connected

    @property
    def temperatures(self) -> TemperatureReadings:
        return self.snapshot().temperatures

    @property
    def print_progress(self) -> PrintProgress:
        return self.snapshot().print_progress

    @property
    def sd_files(self) -> tuple[SDFile, ...]:
        return self.snapshot().sd_files

    @property
    def status(self) -> PrinterStatus:
        return self.snapshot().status

    def add_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            raise ValueError("Listener already registered")
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------
    def set_connected(self, connected: bool) -> PrinterSnapshot:
        def apply(current: PrinterSnapshot) -> PrinterSnapshot:
            return dataclasses.replace(
                current,
                connected=connected,
                status=dataclasses.replace(current.status, connected=connected),
            )

        return self._commit(SECTION_CONNECTED, apply)

    def replace_temperatures(self, readings: TemperatureReadings) -> PrinterSnapshot:
        return self._commit(
            SECTION_TEMPERATURES,
            lambda current: dataclasses.replace(current, temperatures=readings),
        )

    def replace_progress(self, progress: PrintProgress) -> PrinterSnapshot:
        def apply(current: PrinterSnapshot) -> PrinterSnapshot:
            state = "printing" if progress.is_printing else "idle"
            return dataclasses.replace(
                current,
                print_progress=progress,
                status=dataclasses.replace(current.status, state=state),
            )

        return self._commit(SECTION_PROGRESS, apply)

    def replace_sd_files(self, files: Iterable[SDFile]) -> PrinterSnapshot:
        files_tuple = tuple(files)
        return self._commit(
            SECTION_SD_FILES,
            lambda current: dataclasses.replace(current, sd_files=files_tuple),
        )

    def set_firmware(self, firmware: str) -> PrinterSnapshot:
        return self._commit(
            SECTION_STATUS,
            lambda current: dataclasses.replace(
                current, status=dataclasses.replace(current.status, firmware=firmware)
            ),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _commit(
        self, section: str, apply: Callable[[PrinterSnapshot], PrinterSnapshot]
    ) -> PrinterSnapshot:
        with self._lock:
            updated = apply(self._snapshot)
            updated = dataclasses.replace(
                updated,
                version=self._snapshot.version + 1,
                updated_at=self._clock(),
            )
            self._snapshot = updated

        for listener in list(self._listeners):
            try:
                listener(section, updated)
            except Exception:  # pragma: no cover
                LOGGER.exception("State listener failed for section %s", section)

        return updated
