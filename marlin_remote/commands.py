"""Printer commands and their HTTP wire encoding.

Each command is a small immutable value validated on construction. A command
encodes itself into one or more :class:`HttpRequest` objects; the dispatcher
issues them in order and stops at the first failure. Only the preheat presets
expand into more than one request.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from . import constants
from .core.models import Heater, Material, SDAction
from .errors import InvalidCommand

__all__ = [
    "AllOff",
    "Command",
    "EmergencyStop",
    "Extrude",
    "FanOff",
    "FanPercent",
    "FanSpeed",
    "FlowFactor",
    "GetEndstops",
    "GetFirmwareInfo",
    "GetPrintTime",
    "GetSDProgress",
    "GetTemperatures",
    "HomeAxes",
    "HttpRequest",
    "ListSDFiles",
    "MoveAxis",
    "Ping",
    "PreheatPreset",
    "QuickStop",
    "Retract",
    "SDControl",
    "SetTemperature",
    "SpeedFactor",
    "TurnOffHeaters",
]


@dataclass(slots=True, frozen=True)
class HttpRequest:
    method: str
    path: str
    params: Optional[Mapping[str, str]] = None
    body: Optional[Mapping[str, Any]] = None

    def encode_body(self) -> Optional[bytes]:
        if self.body is None:
            return None
        return json.dumps(self.body, separators=(",", ":")).encode("utf-8")


def _check_int(name: str, value: Any, bounds: Tuple[int, int]) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidCommand(f"{name} must be an integer, got {value!r}")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidCommand(f"{name} {value} is outside the accepted range {low}-{high}")
    return value


def _check_distance(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidCommand(f"{name} must be a finite number, got {value!r}")
    return value


def _check_positive(name: str, value: Any) -> Any:
    _check_distance(name, value)
    if value <= 0:
        raise InvalidCommand(f"{name} must be greater than zero, got {value!r}")
    return value


class Command:
    """Base class for every printer command."""

    __slots__ = ()

    def requests(self) -> Tuple[HttpRequest, ...]:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return type(self).__name__


# ----------------------------------------------------------------------
# Read-only queries
# ----------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class Ping(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("GET", constants.PATH_PING),)


@dataclass(slots=True, frozen=True)
class GetTemperatures(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest("GET", constants.PATH_STATUS, params={"action": "temperature"}),
        )


@dataclass(slots=True, frozen=True)
class GetSDProgress(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("GET", constants.PATH_SD, params={"action": "progress"}),)


@dataclass(slots=True, frozen=True)
class ListSDFiles(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("GET", constants.PATH_SD, params={"action": "list"}),)


@dataclass(slots=True, frozen=True)
class GetFirmwareInfo(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("GET", constants.PATH_STATUS, params={"info": "firmware"}),)


@dataclass(slots=True, frozen=True)
class GetEndstops(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("GET", constants.PATH_STATUS, params={"info": "endstops"}),)


@dataclass(slots=True, frozen=True)
class GetPrintTime(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("GET", constants.PATH_STATUS, params={"info": "time"}),)


# ----------------------------------------------------------------------
# Temperature
# ----------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class SetTemperature(Command):
    heater: Heater
    degrees: int
    wait: bool = False

    def __post_init__(self) -> None:
        try:
            heater = Heater(self.heater)
        except ValueError as exc:
            raise InvalidCommand(f"Unknown heater: {self.heater!r}") from exc
        object.__setattr__(self, "heater", heater)
        bounds = (
            constants.HOTEND_TEMP_RANGE
            if heater is Heater.HOTEND
            else constants.BED_TEMP_RANGE
        )
        _check_int(f"{heater.value} temperature", self.degrees, bounds)

    @property
    def action(self) -> str:
        return f"{self.heater.value}-wait" if self.wait else self.heater.value

    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest(
                "POST",
                constants.PATH_TEMPERATURE,
                body={"action": self.action, "temp": self.degrees},
            ),
        )


@dataclass(slots=True, frozen=True)
class TurnOffHeaters(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("POST", constants.PATH_TEMPERATURE, body={"action": "off"}),)


@dataclass(slots=True, frozen=True)
class PreheatPreset(Command):
    """Hotend then bed; no atomicity across the two requests."""

    material: Material

    def __post_init__(self) -> None:
        try:
            material = Material(
                self.material.upper() if isinstance(self.material, str) else self.material
            )
        except ValueError as exc:
            raise InvalidCommand(f"Unknown material preset: {self.material!r}") from exc
        object.__setattr__(self, "material", material)

    def steps(self) -> Tuple[SetTemperature, SetTemperature]:
        return (
            SetTemperature(Heater.HOTEND, self.material.hotend),
            SetTemperature(Heater.BED, self.material.bed),
        )

    def requests(self) -> Tuple[HttpRequest, ...]:
        hotend, bed = self.steps()
        return hotend.requests() + bed.requests()


# ----------------------------------------------------------------------
# Motion
# ----------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class HomeAxes(Command):
    x: bool = True
    y: bool = True
    z: bool = True

    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest(
                "POST",
                constants.PATH_MOTION,
                body={
                    "action": "home",
                    "params": {"x": bool(self.x), "y": bool(self.y), "z": bool(self.z)},
                },
            ),
        )


@dataclass(slots=True, frozen=True)
class MoveAxis(Command):
    """Relative move; axes left as ``None`` are omitted from the request."""

    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    feedrate: int = constants.DEFAULT_MOVE_FEEDRATE

    def __post_init__(self) -> None:
        axes = {"x": self.x, "y": self.y, "z": self.z}
        if all(value is None for value in axes.values()):
            raise InvalidCommand("Move requires at least one axis distance")
        for axis, value in axes.items():
            if value is not None:
                _check_distance(f"{axis} distance", value)
        if isinstance(self.feedrate, bool) or not isinstance(self.feedrate, int):
            raise InvalidCommand(f"feedrate must be an integer, got {self.feedrate!r}")
        _check_positive("feedrate", self.feedrate)

    def requests(self) -> Tuple[HttpRequest, ...]:
        params: Dict[str, Any] = {"feedrate": self.feedrate}
        for axis in ("x", "y", "z"):
            value = getattr(self, axis)
            if value is not None:
                params[axis] = value
        return (
            HttpRequest(
                "POST", constants.PATH_MOTION, body={"action": "move", "params": params}
            ),
        )


# ----------------------------------------------------------------------
# SD card
# ----------------------------------------------------------------------
_SD_FILE_ACTIONS = (SDAction.PRINT, SDAction.DELETE)


@dataclass(slots=True, frozen=True)
class SDControl(Command):
    action: SDAction
    filename: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            action = SDAction(self.action)
        except ValueError as exc:
            raise InvalidCommand(f"Unknown SD action: {self.action!r}") from exc
        object.__setattr__(self, "action", action)

        if action in _SD_FILE_ACTIONS:
            if not isinstance(self.filename, str) or not self.filename.strip():
                raise InvalidCommand(f"A filename is required for SD action {action.value!r}")
            object.__setattr__(self, "filename", self.filename.strip())
        elif self.filename is not None:
            raise InvalidCommand(f"SD action {action.value!r} does not take a filename")

    def requests(self) -> Tuple[HttpRequest, ...]:
        body: Dict[str, Any] = {"action": self.action.value}
        if self.filename is not None:
            body["filename"] = self.filename
        return (HttpRequest("POST", constants.PATH_SD, body=body),)


# ----------------------------------------------------------------------
# Safety
# ----------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class EmergencyStop(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest("POST", constants.PATH_SAFETY, body={"action": "emergency_stop"}),
        )


@dataclass(slots=True, frozen=True)
class QuickStop(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("POST", constants.PATH_SAFETY, body={"action": "quick-stop"}),)


@dataclass(slots=True, frozen=True)
class AllOff(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("POST", constants.PATH_SAFETY, body={"action": "all-off"}),)


# ----------------------------------------------------------------------
# Fan, speed and extruder
# ----------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class FanSpeed(Command):
    speed: int

    def __post_init__(self) -> None:
        _check_int("fan speed", self.speed, constants.FAN_SPEED_RANGE)

    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest(
                "POST", constants.PATH_FAN, body={"action": "set", "speed": self.speed}
            ),
        )


@dataclass(slots=True, frozen=True)
class FanPercent(Command):
    percent: int

    def __post_init__(self) -> None:
        _check_int("fan percent", self.percent, constants.FAN_PERCENT_RANGE)

    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest(
                "POST",
                constants.PATH_FAN,
                body={"action": "set-percent", "percent": self.percent},
            ),
        )


@dataclass(slots=True, frozen=True)
class FanOff(Command):
    def requests(self) -> Tuple[HttpRequest, ...]:
        return (HttpRequest("POST", constants.PATH_FAN, body={"action": "off"}),)


@dataclass(slots=True, frozen=True)
class _FactorOverride(Command):
    percent: int
    action: str = field(init=False, default="")

    def __post_init__(self) -> None:
        _check_int(f"{self.action} factor", self.percent, constants.FACTOR_PERCENT_RANGE)

    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest(
                "POST",
                constants.PATH_SPEED,
                body={"action": self.action, "percent": self.percent},
            ),
        )


@dataclass(slots=True, frozen=True)
class SpeedFactor(_FactorOverride):
    action: str = field(init=False, default="speed")


@dataclass(slots=True, frozen=True)
class FlowFactor(_FactorOverride):
    action: str = field(init=False, default="flow")


@dataclass(slots=True, frozen=True)
class _FilamentMove(Command):
    amount: float
    feedrate: int = constants.DEFAULT_EXTRUDE_FEEDRATE
    action: str = field(init=False, default="")

    def __post_init__(self) -> None:
        _check_positive(f"{self.action} amount", self.amount)
        if isinstance(self.feedrate, bool) or not isinstance(self.feedrate, int):
            raise InvalidCommand(f"feedrate must be an integer, got {self.feedrate!r}")
        _check_positive("feedrate", self.feedrate)

    def requests(self) -> Tuple[HttpRequest, ...]:
        return (
            HttpRequest(
                "POST",
                constants.PATH_EXTRUDER,
                body={
                    "action": self.action,
                    "amount": self.amount,
                    "feedrate": self.feedrate,
                },
            ),
        )


@dataclass(slots=True, frozen=True)
class Extrude(_FilamentMove):
    action: str = field(init=False, default="extrude")


@dataclass(slots=True, frozen=True)
class Retract(_FilamentMove):
    action: str = field(init=False, default="retract")
