"""Diagnostics for the printer client: component outcomes and an optional HTTP view."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from aiohttp import web

from .core import PrinterSnapshot

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    consecutive_failures: int = 0
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "consecutiveFailures": self.consecutive_failures,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks the latest outcome per component (connection, polling fetches, e-stop)."""

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            previous = self._status.get(name)
            failures = 0
            if not healthy:
                failures = (previous.consecutive_failures if previous else 0) + 1
            self._status[name] = ComponentStatus(
                name=name,
                healthy=healthy,
                detail=detail,
                consecutive_failures=failures,
            )

    async def get(self, name: str) -> Optional[ComponentStatus]:
        async with self._lock:
            return self._status.get(name)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        components = [status.as_dict() for status in entries]
        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        return {"status": overall, "components": components}


class HealthServer:
    """Minimal HTTP server exposing ``/healthz`` and ``/state``."""

    def __init__(
        self,
        reporter: HealthReporter,
        host: str,
        port: int,
        *,
        snapshot_provider: Optional[Callable[[], PrinterSnapshot]] = None,
    ) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._snapshot_provider = snapshot_provider
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/state", self._handle_state)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_state(self, request: web.Request) -> web.Response:
        if self._snapshot_provider is None:
            raise web.HTTPNotFound()
        return web.json_response(self._snapshot_provider().as_dict())
