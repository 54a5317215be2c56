"""Printer client facade owning the dispatcher, the reconciler and the shared snapshot."""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from .config import PollingConfig, PrinterConfig, RemoteConfig
from .core import PrinterSnapshot, PrinterStateStore
from .dispatcher import PrinterDispatcher
from .health import HealthReporter
from .reconciler import StatusReconciler

LOGGER = logging.getLogger(__name__)


class PrinterClient:
    """Single entry point for UI or CLI collaborators.

    Callers issue commands through :attr:`dispatcher`, control the connection
    lifecycle with :meth:`start_polling` / :meth:`stop_polling`, and read
    :meth:`snapshot` (or subscribe through ``client.state.add_listener``).
    """

    def __init__(
        self,
        printer: Optional[PrinterConfig] = None,
        polling: Optional[PollingConfig] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        health: Optional[HealthReporter] = None,
    ) -> None:
        self.printer_config = printer or PrinterConfig()
        self.polling_config = polling or PollingConfig()
        self.state = PrinterStateStore()
        self.health = health or HealthReporter()
        self.dispatcher = PrinterDispatcher(
            self.printer_config,
            self.state,
            session=session,
            diagnostics=self.health,
        )
        self.reconciler = StatusReconciler(
            self.dispatcher,
            self.state,
            interval=self.polling_config.interval_seconds,
            diagnostics=self.health,
        )

    @classmethod
    def from_config(cls, config: RemoteConfig, **kwargs) -> "PrinterClient":
        return cls(config.printer, config.polling, **kwargs)

    def snapshot(self) -> PrinterSnapshot:
        return self.state.snapshot()

    @property
    def is_polling(self) -> bool:
        return self.reconciler.is_polling

    async def connect(self) -> bool:
        """Probe reachability, then start polling regardless of the outcome."""

        connected = await self.dispatcher.check_connection()
        if not connected:
            LOGGER.warning("Printer at %s is not reachable yet", self.printer_config.url)
        await self.start_polling()
        return connected

    async def start_polling(self) -> None:
        await self.reconciler.start()

    async def stop_polling(self) -> None:
        await self.reconciler.stop()

    async def aclose(self) -> None:
        await self.reconciler.aclose()
        await self.dispatcher.aclose()

    async def __aenter__(self) -> "PrinterClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
