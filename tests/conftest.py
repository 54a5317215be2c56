"""Shared fixtures: a fake printer HTTP API served by aiohttp on localhost."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web

from marlin_remote.config import PrinterConfig
from marlin_remote.core import PrinterStateStore
from marlin_remote.dispatcher import PrinterDispatcher

TEMPERATURES = {
    "hotend_temp": 24.5,
    "hotend_target": 0.0,
    "bed_temp": 23.0,
    "bed_target": 0.0,
}

PROGRESS = {
    "printing": True,
    "filename": "benchy.gcode",
    "percent": 42.5,
    "bytes_printed": 4250,
    "total_bytes": 10000,
}

FILES = {
    "files": [
        {"name": "benchy.gcode", "size": 10000},
        {"name": "calib.gcode"},
    ]
}

FIRMWARE = {
    "success": True,
    "firmware": {
        "firmware": "Marlin",
        "version": "2.1.2",
        "machine": "Ender-3",
        "uuid": None,
    },
}

ENDSTOPS = {
    "success": True,
    "endstops": {
        "x_min": "open",
        "y_min": "open",
        "z_min": "TRIGGERED",
        "x_max": None,
        "y_max": None,
        "z_max": None,
    },
}

PRINT_TIME = {
    "success": True,
    "printTime": {"hours": 1, "minutes": 23, "seconds": 45, "totalSeconds": 5025},
}

RouteKey = Tuple[str, str, Optional[str]]


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: Dict[str, str]
    body: bytes

    @property
    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


class FakePrinter:
    """In-process stand-in for the printer API.

    Responses are keyed by ``(method, path, selector)`` where the selector is the
    ``action`` or ``info`` query parameter of GET requests. Scripted responses
    are consumed first; afterwards the default for the route applies.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedRequest] = []
        self.base_url = ""
        self._scripted: Dict[RouteKey, list[Tuple[int, Any]]] = {}
        self._delays: Dict[RouteKey, float] = {}
        self._defaults: Dict[RouteKey, Tuple[int, Any]] = {
            ("GET", "/api/ping", None): (200, {"status": "ok"}),
            ("GET", "/api/printer/status", "temperature"): (200, TEMPERATURES),
            ("GET", "/api/printer/status", "firmware"): (200, FIRMWARE),
            ("GET", "/api/printer/status", "endstops"): (200, ENDSTOPS),
            ("GET", "/api/printer/status", "time"): (200, PRINT_TIME),
            ("GET", "/api/printer/sd", "list"): (200, FILES),
            ("GET", "/api/printer/sd", "progress"): (200, PROGRESS),
        }

    def set_default(
        self, method: str, path: str, selector: Optional[str], status: int, payload: Any
    ) -> None:
        self._defaults[(method, path, selector)] = (status, payload)

    def script(
        self, method: str, path: str, selector: Optional[str], *responses: Tuple[int, Any]
    ) -> None:
        self._scripted.setdefault((method, path, selector), []).extend(responses)

    def delay(self, method: str, path: str, selector: Optional[str], seconds: float) -> None:
        self._delays[(method, path, selector)] = seconds

    def calls_to(
        self, method: str, path: str, selector: Optional[str] = None
    ) -> list[RecordedRequest]:
        return [
            call
            for call in self.calls
            if call.method == method
            and call.path == path
            and (selector is None or _selector(call.query) == selector)
        ]

    async def handle(self, request: web.Request) -> web.StreamResponse:
        body = await request.read()
        query = dict(request.query)
        self.calls.append(RecordedRequest(request.method, request.path, query, body))

        key: RouteKey = (
            request.method,
            request.path,
            _selector(query) if request.method == "GET" else None,
        )

        delay = self._delays.get(key)
        if delay:
            await asyncio.sleep(delay)

        queue = self._scripted.get(key)
        if queue:
            status, payload = queue.pop(0)
        elif key in self._defaults:
            status, payload = self._defaults[key]
        elif request.method == "POST":
            status, payload = 200, {"success": True}
        else:
            status, payload = 404, {"success": False, "error": "not found"}

        if isinstance(payload, bytes):
            return web.Response(status=status, body=payload)
        if isinstance(payload, str):
            return web.Response(status=status, text=payload)
        return web.json_response(payload, status=status)


def _selector(query: Dict[str, str]) -> Optional[str]:
    return query.get("action") or query.get("info")


@pytest_asyncio.fixture
async def fake_printer(unused_tcp_port_factory):
    printer = FakePrinter()

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", printer.handle)

    runner = web.AppRunner(app)
    await runner.setup()

    port = unused_tcp_port_factory()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    printer.base_url = f"http://127.0.0.1:{port}"

    try:
        yield printer
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def dispatcher(fake_printer):
    state = PrinterStateStore()
    client = PrinterDispatcher(PrinterConfig(url=fake_printer.base_url), state)
    try:
        yield client
    finally:
        await client.aclose()


@pytest.fixture
def state() -> PrinterStateStore:
    return PrinterStateStore()
