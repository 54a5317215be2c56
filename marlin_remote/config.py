"""Configuration loader for marlin-remote."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class PrinterConfig:
    url: str = constants.DEFAULT_PRINTER_URL
    connect_timeout_seconds: float = constants.DEFAULT_CONNECT_TIMEOUT_SECONDS
    request_timeout_seconds: float = constants.DEFAULT_REQUEST_TIMEOUT_SECONDS
    wait_timeout_seconds: float = constants.DEFAULT_WAIT_TIMEOUT_SECONDS  # "*-wait" actions block until the target is reached


@dataclass(slots=True)
class PollingConfig:
    interval_seconds: float = constants.DEFAULT_POLL_INTERVAL_SECONDS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class DiagnosticsConfig:
    health_enabled: bool = False
    health_host: str = "127.0.0.1"
    health_port: int = 0


@dataclass(slots=True)
class RemoteConfig:
    printer: PrinterConfig
    polling: PollingConfig
    logging: LoggingConfig
    diagnostics: DiagnosticsConfig
    raw: ConfigParser
    path: Path


def _get_float(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        return parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default


def _get_int(parser: ConfigParser, section: str, option: str, default: int) -> int:
    try:
        return parser.getint(section, option, fallback=default)
    except ValueError:
        return default


def load_config(path: Optional[Path] = None) -> RemoteConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "printer": {
                "url": constants.DEFAULT_PRINTER_URL,
                "connect_timeout_seconds": str(constants.DEFAULT_CONNECT_TIMEOUT_SECONDS),
                "request_timeout_seconds": str(constants.DEFAULT_REQUEST_TIMEOUT_SECONDS),
                "wait_timeout_seconds": str(constants.DEFAULT_WAIT_TIMEOUT_SECONDS),
            },
            "polling": {
                "interval_seconds": str(constants.DEFAULT_POLL_INTERVAL_SECONDS),
            },
            "logging": {
                "level": "INFO",
                "log_network": "false",
            },
            "diagnostics": {
                "health_enabled": "false",
                "health_host": "127.0.0.1",
                "health_port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    printer_defaults = PrinterConfig()
    printer = PrinterConfig(
        url=parser.get("printer", "url").strip(),
        connect_timeout_seconds=max(
            0.1,
            _get_float(
                parser,
                "printer",
                "connect_timeout_seconds",
                printer_defaults.connect_timeout_seconds,
            ),
        ),
        request_timeout_seconds=max(
            0.1,
            _get_float(
                parser,
                "printer",
                "request_timeout_seconds",
                printer_defaults.request_timeout_seconds,
            ),
        ),
        wait_timeout_seconds=max(
            1.0,
            _get_float(
                parser,
                "printer",
                "wait_timeout_seconds",
                printer_defaults.wait_timeout_seconds,
            ),
        ),
    )

    polling = PollingConfig(
        interval_seconds=max(
            constants.MIN_POLL_INTERVAL_SECONDS,
            _get_float(
                parser,
                "polling",
                "interval_seconds",
                constants.DEFAULT_POLL_INTERVAL_SECONDS,
            ),
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    diagnostics = DiagnosticsConfig(
        health_enabled=parser.getboolean(
            "diagnostics", "health_enabled", fallback=False
        ),
        health_host=parser.get("diagnostics", "health_host", fallback="127.0.0.1"),
        health_port=max(0, _get_int(parser, "diagnostics", "health_port", 0)),
    )

    return RemoteConfig(
        printer=printer,
        polling=polling,
        logging=logging_config,
        diagnostics=diagnostics,
        raw=parser,
        path=config_path,
    )


def save_config(config: RemoteConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
