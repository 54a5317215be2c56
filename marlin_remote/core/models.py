"""Domain models for printer readings, print progress and SD files.

Every record is immutable; the state store swaps whole records instead of
mutating fields, so a reader never observes a half-applied update.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..errors import DecodingFailed

LOGGER = logging.getLogger(__name__)

__all__ = [
    "EndstopStates",
    "FirmwareInfo",
    "Heater",
    "Material",
    "PrintProgress",
    "PrintTime",
    "PrinterSnapshot",
    "PrinterStatus",
    "SDAction",
    "SDFile",
    "TemperatureReadings",
]


class Heater(str, Enum):
    HOTEND = "hotend"
    BED = "bed"


class SDAction(str, Enum):
    PRINT = "print"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    INIT = "init"
    DELETE = "delete"


class Material(str, Enum):
    """Filament presets as (hotend, bed) targets in degrees Celsius."""

    PLA = "PLA"
    PETG = "PETG"
    ABS = "ABS"

    @property
    def hotend(self) -> int:
        return _PRESETS[self][0]

    @property
    def bed(self) -> int:
        return _PRESETS[self][1]


_PRESETS: Dict[Material, Tuple[int, int]] = {
    Material.PLA: (200, 60),
    Material.PETG: (235, 80),
    Material.ABS: (240, 100),
}


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise DecodingFailed(f"{what} payload must be a JSON object, got {type(payload).__name__}")
    return payload


def _number(payload: Mapping[str, Any], key: str) -> float:
    value = payload.get(key)
    # bool is an int subclass; a boolean is never a valid reading
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodingFailed(f"Field {key!r} must be a number, got {value!r}")
    # json.loads accepts NaN and Infinity tokens
    if not math.isfinite(value):
        raise DecodingFailed(f"Field {key!r} must be finite, got {value!r}")
    return float(value)


def _count(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodingFailed(f"Field {key!r} must be an integer, got {value!r}")
    if not math.isfinite(value):
        raise DecodingFailed(f"Field {key!r} must be finite, got {value!r}")
    if value < 0 or int(value) != value:
        raise DecodingFailed(f"Field {key!r} must be a non-negative integer, got {value!r}")
    return int(value)


@dataclass(slots=True, frozen=True)
class TemperatureReadings:
    hotend_temp: float = 0.0
    hotend_target: float = 0.0
    bed_temp: float = 0.0
    bed_target: float = 0.0

    @classmethod
    def from_payload(cls, payload: Any) -> "TemperatureReadings":
        """Decode ``{hotend_temp, hotend_target, bed_temp, bed_target}``."""

        data = _require_mapping(payload, "temperature")
        return cls(
            hotend_temp=_number(data, "hotend_temp"),
            hotend_target=_number(data, "hotend_target"),
            bed_temp=_number(data, "bed_temp"),
            bed_target=_number(data, "bed_target"),
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "hotend_temp": self.hotend_temp,
            "hotend_target": self.hotend_target,
            "bed_temp": self.bed_temp,
            "bed_target": self.bed_target,
        }


@dataclass(slots=True, frozen=True)
class PrintProgress:
    is_printing: bool = False
    filename: str = ""
    percent_complete: float = 0.0
    bytes_printed: int = 0
    total_bytes: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> "PrintProgress":
        """Decode ``{printing, filename, percent, bytes_printed, total_bytes}``."""

        data = _require_mapping(payload, "progress")

        printing = data.get("printing")
        if not isinstance(printing, bool):
            raise DecodingFailed(f"Field 'printing' must be a boolean, got {printing!r}")

        filename = data.get("filename")
        if filename is None:
            filename = ""
        if not isinstance(filename, str):
            raise DecodingFailed(f"Field 'filename' must be a string, got {filename!r}")

        percent = _number(data, "percent")
        return cls(
            is_printing=printing,
            filename=filename,
            percent_complete=min(100.0, max(0.0, percent)),
            bytes_printed=_count(data, "bytes_printed"),
            total_bytes=_count(data, "total_bytes"),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "printing": self.is_printing,
            "filename": self.filename,
            "percent": self.percent_complete,
            "bytes_printed": self.bytes_printed,
            "total_bytes": self.total_bytes,
        }


@dataclass(slots=True, frozen=True)
class SDFile:
    name: str
    size: Optional[int] = None

    @property
    def display_size(self) -> str:
        if self.size is None:
            return "Unknown"
        kb = self.size / 1024.0
        if kb < 1024:
            return f"{kb:.1f} KB"
        return f"{kb / 1024.0:.1f} MB"

    @classmethod
    def from_payload(cls, payload: Any) -> "SDFile":
        data = _require_mapping(payload, "SD file")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise DecodingFailed(f"SD file entry has no usable name: {payload!r}")
        size = _count(data, "size") if data.get("size") is not None else None
        return cls(name=name, size=size)

    @staticmethod
    def list_from_payload(payload: Any) -> Tuple["SDFile", ...]:
        """Decode ``{files: [{name, size?}]}`` keeping the first entry per name."""

        data = _require_mapping(payload, "SD list")
        entries = data.get("files")
        if not isinstance(entries, list):
            raise DecodingFailed(f"Field 'files' must be a list, got {entries!r}")

        files: list[SDFile] = []
        seen: set[str] = set()
        for entry in entries:
            sd_file = SDFile.from_payload(entry)
            if sd_file.name in seen:
                LOGGER.debug("Ignoring duplicate SD file entry %r", sd_file.name)
                continue
            seen.add(sd_file.name)
            files.append(sd_file)
        return tuple(files)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if self.size is not None:
            payload["size"] = self.size
        return payload


@dataclass(slots=True, frozen=True)
class FirmwareInfo:
    firmware: Optional[str] = None
    version: Optional[str] = None
    machine: Optional[str] = None
    uuid: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "FirmwareInfo":
        data = _require_mapping(payload, "firmware")
        info = _require_mapping(data.get("firmware"), "firmware")

        values: Dict[str, Optional[str]] = {}
        for key in ("firmware", "version", "machine", "uuid"):
            value = info.get(key)
            if value is not None and not isinstance(value, str):
                raise DecodingFailed(f"Firmware field {key!r} must be a string, got {value!r}")
            values[key] = value
        return cls(**values)

    @property
    def label(self) -> str:
        parts = [part for part in (self.firmware, self.version) if part]
        return " ".join(parts) if parts else "Unknown"


_ENDSTOP_KEYS = ("x_min", "y_min", "z_min", "x_max", "y_max", "z_max")


@dataclass(slots=True, frozen=True)
class EndstopStates:
    """Switch states as reported by M119; ``None`` means the printer did not report it."""

    x_min: Optional[str] = None
    y_min: Optional[str] = None
    z_min: Optional[str] = None
    x_max: Optional[str] = None
    y_max: Optional[str] = None
    z_max: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "EndstopStates":
        data = _require_mapping(payload, "endstops")
        states = _require_mapping(data.get("endstops"), "endstops")

        values: Dict[str, Optional[str]] = {}
        for key in _ENDSTOP_KEYS:
            value = states.get(key)
            if value is not None and not isinstance(value, str):
                raise DecodingFailed(f"Endstop {key!r} must be a string, got {value!r}")
            values[key] = value
        return cls(**values)

    @property
    def triggered(self) -> Tuple[str, ...]:
        return tuple(
            key
            for key in _ENDSTOP_KEYS
            if (getattr(self, key) or "").upper() == "TRIGGERED"
        )

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {key: getattr(self, key) for key in _ENDSTOP_KEYS}


@dataclass(slots=True, frozen=True)
class PrintTime:
    """Elapsed print time from M31."""

    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    total_seconds: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["PrintTime"]:
        """Decode ``{printTime: {hours, minutes, seconds, totalSeconds} | null}``.

        Returns ``None`` when the printer reply carried no recognisable time.
        """

        data = _require_mapping(payload, "print time")
        value = data.get("printTime")
        if value is None:
            return None
        elapsed = _require_mapping(value, "print time")
        return cls(
            hours=_count(elapsed, "hours"),
            minutes=_count(elapsed, "minutes"),
            seconds=_count(elapsed, "seconds"),
            total_seconds=_count(elapsed, "totalSeconds"),
        )

    def __str__(self) -> str:
        return f"{self.hours}h {self.minutes:02d}m {self.seconds:02d}s"


@dataclass(slots=True, frozen=True)
class PrinterStatus:
    connected: bool = False
    firmware: str = "Unknown"
    state: str = "idle"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "firmware": self.firmware,
            "state": self.state,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class PrinterSnapshot:
    """Complete view of the printer as last observed by the client."""

    connected: bool = False
    temperatures: TemperatureReadings = field(default_factory=TemperatureReadings)
    print_progress: PrintProgress = field(default_factory=PrintProgress)
    sd_files: Tuple[SDFile, ...] = ()
    status: PrinterStatus = field(default_factory=PrinterStatus)
    version: int = 0
    updated_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "temperatures": self.temperatures.as_dict(),
            "printProgress": self.print_progress.as_dict(),
            "sdFiles": [sd_file.as_dict() for sd_file in self.sd_files],
            "status": self.status.as_dict(),
            "version": self.version,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }
