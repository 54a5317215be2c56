"""Command dispatcher speaking the printer's HTTP JSON API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

import aiohttp

from .commands import (
    AllOff,
    Command,
    EmergencyStop,
    Extrude,
    FanOff,
    FanPercent,
    FanSpeed,
    FlowFactor,
    GetEndstops,
    GetFirmwareInfo,
    GetPrintTime,
    GetSDProgress,
    GetTemperatures,
    HomeAxes,
    HttpRequest,
    ListSDFiles,
    MoveAxis,
    Ping,
    PreheatPreset,
    QuickStop,
    Retract,
    SDControl,
    SetTemperature,
    SpeedFactor,
    TurnOffHeaters,
)
from .config import PrinterConfig
from .constants import DEFAULT_EXTRUDE_FEEDRATE, DEFAULT_MOVE_FEEDRATE
from .core import (
    EndstopStates,
    FirmwareInfo,
    Heater,
    Material,
    PrintProgress,
    PrintTime,
    PrinterStateStore,
    SDAction,
    SDFile,
    TemperatureReadings,
)
from .core.protocols import DiagnosticsSink
from .errors import DecodingFailed, InvalidEndpoint, PrinterClientError, RequestFailed
from .logging import WIRE_LOGGER_NAME

LOGGER = logging.getLogger(__name__)
WIRE_LOGGER = logging.getLogger(WIRE_LOGGER_NAME)

_JSON_HEADERS = {"Accept": "application/json"}


class PrinterDispatcher:
    """Executes one printer operation per call and reports the outcome.

    Operations never retry. Failures surface as :class:`PrinterClientError`
    subclasses; the shared snapshot is only written after a request succeeded
    and its body decoded.
    """

    def __init__(
        self,
        config: PrinterConfig,
        state: PrinterStateStore,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ) -> None:
        self.config = config
        self.state = state
        self._diagnostics = diagnostics
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self.last_emergency_stop_error: Optional[PrinterClientError] = None

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    async def check_connection(self) -> bool:
        """Probe ``/api/ping``; any failure counts as unreachable."""

        try:
            await self._send(Ping().requests()[0], expect_json=False)
        except PrinterClientError as exc:
            LOGGER.debug("Connection check failed: %s", exc)
            connected = False
            detail: Optional[str] = str(exc)
        else:
            connected = True
            detail = None

        self.state.set_connected(connected)
        await self._report("connection", connected, detail)
        return connected

    # ------------------------------------------------------------------
    # Temperature
    # ------------------------------------------------------------------
    async def set_temperature(
        self, target: Heater | str, degrees: int, wait: bool = False
    ) -> None:
        command = SetTemperature(target, degrees, wait)
        timeout = None
        if wait:
            timeout = aiohttp.ClientTimeout(
                total=self.config.wait_timeout_seconds,
                connect=self.config.connect_timeout_seconds,
            )
        await self.execute(command, timeout=timeout)

    async def turn_off_heaters(self) -> None:
        await self.execute(TurnOffHeaters())

    async def preheat_preset(self, material: Material | str) -> None:
        """Set hotend then bed from a material preset.

        If the hotend request fails the bed request is never sent. If the bed
        request fails the hotend target has already been applied on the printer.
        """

        command = PreheatPreset(material)
        for step in command.steps():
            await self.set_temperature(step.heater, step.degrees)
        LOGGER.info("Preheated for %s", command.material.value)

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------
    async def home_axes(self, x: bool = True, y: bool = True, z: bool = True) -> None:
        await self.execute(HomeAxes(x=x, y=y, z=z))

    async def move_axis(
        self,
        x: Optional[float] = None,
        y: Optional[float] = None,
        z: Optional[float] = None,
        feedrate: int = DEFAULT_MOVE_FEEDRATE,
    ) -> None:
        await self.execute(MoveAxis(x=x, y=y, z=z, feedrate=feedrate))

    async def extrude(self, amount: float, feedrate: int = DEFAULT_EXTRUDE_FEEDRATE) -> None:
        await self.execute(Extrude(amount, feedrate))

    async def retract(self, amount: float, feedrate: int = DEFAULT_EXTRUDE_FEEDRATE) -> None:
        await self.execute(Retract(amount, feedrate))

    # ------------------------------------------------------------------
    # Fan and overrides
    # ------------------------------------------------------------------
    async def set_fan_speed(self, speed: int) -> None:
        await self.execute(FanSpeed(speed))

    async def set_fan_percent(self, percent: int) -> None:
        await self.execute(FanPercent(percent))

    async def fan_off(self) -> None:
        await self.execute(FanOff())

    async def set_speed_factor(self, percent: int) -> None:
        await self.execute(SpeedFactor(percent))

    async def set_flow_factor(self, percent: int) -> None:
        await self.execute(FlowFactor(percent))

    # ------------------------------------------------------------------
    # SD card
    # ------------------------------------------------------------------
    async def list_sd_files(self) -> list[SDFile]:
        payload = await self._send(ListSDFiles().requests()[0])
        files = SDFile.list_from_payload(payload)
        self.state.replace_sd_files(files)
        LOGGER.debug("SD card lists %d file(s)", len(files))
        return list(files)

    async def sd_control(
        self, action: SDAction | str, filename: Optional[str] = None
    ) -> None:
        await self.execute(SDControl(action, filename))

    async def start_print(self, filename: str) -> None:
        await self.sd_control(SDAction.PRINT, filename)

    async def pause_print(self) -> None:
        await self.sd_control(SDAction.PAUSE)

    async def resume_print(self) -> None:
        await self.sd_control(SDAction.RESUME)

    async def stop_print(self) -> None:
        await self.sd_control(SDAction.STOP)

    async def init_sd_card(self) -> None:
        await self.sd_control(SDAction.INIT)

    async def delete_sd_file(self, filename: str) -> None:
        """Delete ``filename`` from the card and drop it from the last listing."""

        command = SDControl(SDAction.DELETE, filename)
        await self.execute(command)

        listed = self.state.sd_files
        remaining = [sd_file for sd_file in listed if sd_file.name != command.filename]
        if len(remaining) != len(listed):
            self.state.replace_sd_files(remaining)

    async def get_sd_progress(self) -> PrintProgress:
        payload = await self._send(GetSDProgress().requests()[0])
        progress = PrintProgress.from_payload(payload)
        self.state.replace_progress(progress)
        return progress

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    async def get_temperatures(self) -> TemperatureReadings:
        """Fetch readings; storing them is left to the reconciler."""

        payload = await self._send(GetTemperatures().requests()[0])
        return TemperatureReadings.from_payload(payload)

    async def get_firmware_info(self) -> FirmwareInfo:
        payload = await self._send(GetFirmwareInfo().requests()[0])
        info = FirmwareInfo.from_payload(payload)
        self.state.set_firmware(info.label)
        return info

    async def get_endstops(self) -> EndstopStates:
        payload = await self._send(GetEndstops().requests()[0])
        return EndstopStates.from_payload(payload)

    async def get_print_time(self) -> Optional[PrintTime]:
        payload = await self._send(GetPrintTime().requests()[0])
        return PrintTime.from_payload(payload)

    # ------------------------------------------------------------------
    # Safety
    # ------------------------------------------------------------------
    async def emergency_stop(self) -> bool:
        """Send the emergency stop once and report whether it was accepted.

        Never raises for request failures and never retries; the failure is
        logged, kept on ``last_emergency_stop_error`` and reported to the
        diagnostics sink. The request is bounded by the connect timeout.
        """

        timeout = aiohttp.ClientTimeout(
            total=self.config.connect_timeout_seconds,
            connect=self.config.connect_timeout_seconds,
        )
        try:
            await self._send(EmergencyStop().requests()[0], expect_json=False, timeout=timeout)
        except PrinterClientError as exc:
            LOGGER.error("EMERGENCY STOP could not be delivered: %s", exc)
            self.last_emergency_stop_error = exc
            await self._report("emergency_stop", False, str(exc))
            return False

        LOGGER.warning("EMERGENCY STOP TRIGGERED")
        self.last_emergency_stop_error = None
        await self._report("emergency_stop", True, "accepted")
        return True

    async def quick_stop(self) -> None:
        await self.execute(QuickStop())

    async def all_off(self) -> None:
        await self.execute(AllOff())

    # ------------------------------------------------------------------
    # Generic execution
    # ------------------------------------------------------------------
    async def execute(
        self, command: Command, *, timeout: Optional[aiohttp.ClientTimeout] = None
    ) -> None:
        """Issue every request of ``command`` in order, stopping at the first failure."""

        requests: Sequence[HttpRequest] = command.requests()
        for request in requests:
            await self._send(request, expect_json=False, timeout=timeout)
            LOGGER.info("Printer command sent: %s %s", command.name, dict(request.body or {}))

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _url(self, path: str) -> str:
        base = (self.config.url or "").strip()
        try:
            parsed = urlparse(base)
            # raises ValueError for non-numeric or out-of-range ports
            port = parsed.port
        except ValueError as exc:
            raise InvalidEndpoint(f"Invalid printer URL {base!r}: {exc}") from exc

        if parsed.scheme not in ("http", "https") or not parsed.hostname or port == 0:
            raise InvalidEndpoint(f"Invalid printer URL {base!r}")
        return base.rstrip("/") + path

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(
                total=self.config.request_timeout_seconds,
                connect=self.config.connect_timeout_seconds,
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _send(
        self,
        request: HttpRequest,
        *,
        expect_json: bool = True,
        timeout: Optional[aiohttp.ClientTimeout] = None,
    ) -> Any:
        url = self._url(request.path)
        session = await self._ensure_session()

        headers = dict(_JSON_HEADERS)
        data = request.encode_body()
        if data is not None:
            headers["Content-Type"] = "application/json"

        kwargs: dict[str, Any] = {"params": request.params, "data": data, "headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout

        started = asyncio.get_running_loop().time()
        try:
            async with session.request(request.method, url, **kwargs) as response:
                WIRE_LOGGER.debug(
                    "%s %s params=%s body=%s -> %d in %.0f ms",
                    request.method,
                    request.path,
                    dict(request.params or {}),
                    data.decode("utf-8") if data is not None else "-",
                    response.status,
                    (asyncio.get_running_loop().time() - started) * 1000.0,
                )
                if not 200 <= response.status <= 299:
                    detail = (await response.text()).strip()
                    raise RequestFailed(
                        f"{request.method} {request.path} failed with status {response.status}",
                        status=response.status,
                        detail=detail[:200] or None,
                    )
                if not expect_json:
                    return None
                body = await response.read()
        except asyncio.TimeoutError as exc:
            WIRE_LOGGER.debug("%s %s timed out", request.method, request.path)
            raise RequestFailed(f"{request.method} {request.path} timed out") from exc
        except aiohttp.ClientError as exc:
            WIRE_LOGGER.debug("%s %s transport error: %r", request.method, request.path, exc)
            raise RequestFailed(f"{request.method} {request.path} failed: {exc}") from exc

        try:
            return json.loads(body)
        except (UnicodeDecodeError, ValueError) as exc:
            raise DecodingFailed(
                f"{request.method} {request.path} returned invalid JSON: {exc}"
            ) from exc

    async def _report(self, name: str, healthy: bool, detail: Optional[str]) -> None:
        if self._diagnostics is None:
            return
        try:
            await self._diagnostics.update(name, healthy, detail)
        except Exception:  # pragma: no cover
            LOGGER.exception("Diagnostics update failed for %s", name)
