"""Background status polling that keeps the printer snapshot fresh.

The reconciler has two states, idle and polling. While polling, a single task
runs one reconciliation pass per tick on a fixed cadence. A pass fetches
temperatures and then print progress, one request at a time; each fetch fails
independently and never stops the loop.

Ticks that fall due while a pass is still running are skipped rather than
queued, so at most one background request is outstanding at any time.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from .constants import DEFAULT_POLL_INTERVAL_SECONDS, MIN_POLL_INTERVAL_SECONDS
from .core import PrinterStateStore
from .core.protocols import DiagnosticsSink, StatusSource
from .errors import PrinterClientError

LOGGER = logging.getLogger(__name__)


class StatusReconciler:
    """Polls temperatures and print progress into the shared state store."""

    def __init__(
        self,
        source: StatusSource,
        state: PrinterStateStore,
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        diagnostics: Optional[DiagnosticsSink] = None,
    ) -> None:
        self._source = source
        self._state = state
        self._interval = max(interval, MIN_POLL_INTERVAL_SECONDS)
        self._diagnostics = diagnostics
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._draining: set[asyncio.Task[None]] = set()
        self._passes = 0
        self._skipped_ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_polling(self) -> bool:
        return self._task is not None

    @property
    def passes(self) -> int:
        return self._passes

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    async def start(self) -> None:
        """Begin polling, restarting the cycle if one is already active.

        The first pass runs immediately; later passes follow the interval. A
        pass left over from a previous cycle is awaited first so two passes
        never overlap.
        """

        await self.stop(drain=True)

        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._task = asyncio.create_task(self._run(stop_event))
        LOGGER.info("Status polling started (interval=%.1fs)", self._interval)
        await asyncio.sleep(0)

    async def stop(self, *, drain: bool = False) -> None:
        """Stop scheduling ticks.

        A pass already in flight is allowed to finish and may still update the
        snapshot after this returns, unless ``drain`` is set, in which case the
        call waits for it.
        """

        task = self._task
        if task is None:
            if drain:
                await self._drain()
            return

        if self._stop_event is not None:
            self._stop_event.set()
        self._task = None
        self._stop_event = None

        if not task.done():
            self._draining.add(task)
            task.add_done_callback(self._draining.discard)

        LOGGER.info("Status polling stopped")
        if drain:
            await self._drain()

    async def aclose(self) -> None:
        await self.stop(drain=True)

    async def reconcile_once(self) -> None:
        """Run a single reconciliation pass."""

        try:
            readings = await self._source.get_temperatures()
        except asyncio.CancelledError:
            raise
        except PrinterClientError as exc:
            LOGGER.warning("Failed to get temperatures: %s", exc)
            await self._report("temperatures", False, str(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected error while polling temperatures")
            await self._report("temperatures", False, repr(exc))
        else:
            self._state.replace_temperatures(readings)
            await self._report("temperatures", True, None)

        try:
            await self._source.get_sd_progress()
        except asyncio.CancelledError:
            raise
        except PrinterClientError as exc:
            LOGGER.warning("Failed to get print progress: %s", exc)
            await self._report("progress", False, str(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected error while polling print progress")
            await self._report("progress", False, repr(exc))
        else:
            await self._report("progress", True, None)

        self._passes += 1

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _run(self, stop_event: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while not stop_event.is_set():
            await self.reconcile_once()

            next_tick += self._interval
            now = loop.time()
            if now > next_tick:
                missed = int((now - next_tick) // self._interval) + 1
                next_tick += missed * self._interval
                self._skipped_ticks += missed
                LOGGER.debug("Polling pass overran; skipped %d tick(s)", missed)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=next_tick - now)
                break  # Stop event was set
            except asyncio.TimeoutError:
                continue

    async def _drain(self) -> None:
        for task in list(self._draining):
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _report(self, name: str, healthy: bool, detail: Optional[str]) -> None:
        if self._diagnostics is None:
            return
        try:
            await self._diagnostics.update(name, healthy, detail)
        except Exception:  # pragma: no cover
            LOGGER.exception("Diagnostics update failed for %s", name)
