"""Constants used across the marlin-remote package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "marlin-remote"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_PRINTER_URL = "http://localhost:3000"

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 600.0

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
MIN_POLL_INTERVAL_SECONDS = 0.1

# HTTP API paths (relative to the printer base URL)
PATH_PING = "/api/ping"
PATH_TEMPERATURE = "/api/printer/temperature"
PATH_MOTION = "/api/printer/motion"
PATH_SD = "/api/printer/sd"
PATH_STATUS = "/api/printer/status"
PATH_SAFETY = "/api/printer/safety"
PATH_FAN = "/api/printer/fan"
PATH_SPEED = "/api/printer/speed"
PATH_EXTRUDER = "/api/printer/extruder"

# Accepted temperature ranges in degrees Celsius (inclusive)
HOTEND_TEMP_RANGE = (0, 300)
BED_TEMP_RANGE = (0, 120)

FAN_SPEED_RANGE = (0, 255)
FAN_PERCENT_RANGE = (0, 100)
FACTOR_PERCENT_RANGE = (10, 300)

DEFAULT_MOVE_FEEDRATE = 3000
DEFAULT_EXTRUDE_FEEDRATE = 300
