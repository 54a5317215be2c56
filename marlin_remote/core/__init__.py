"""Core primitives for marlin-remote."""

from .models import (
    EndstopStates,
    FirmwareInfo,
    Heater,
    Material,
    PrintProgress,
    PrintTime,
    PrinterSnapshot,
    PrinterStatus,
    SDAction,
    SDFile,
    TemperatureReadings,
)
from .state import PrinterStateStore, StateListener

__all__ = [
    "EndstopStates",
    "FirmwareInfo",
    "Heater",
    "Material",
    "PrintProgress",
    "PrintTime",
    "PrinterSnapshot",
    "PrinterStateStore",
    "PrinterStatus",
    "SDAction",
    "SDFile",
    "StateListener",
    "TemperatureReadings",
]
