"""Command-line interface for marlin-remote."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .client import PrinterClient
from .config import RemoteConfig, load_config, save_config
from .core import Heater, Material, PrinterSnapshot, SDAction
from .errors import PrinterClientError
from .health import HealthServer
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME, description="Control client for Marlin printers"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--url", help="Printer base URL (overrides the config file)")
    parser.add_argument("--log-level", help="Log level (overrides the config file)")
    parser.add_argument(
        "--log-network",
        action="store_true",
        help="Log every printer request and response at DEBUG",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Write --url back to the configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("ping", help="Check whether the printer API is reachable")
    subparsers.add_parser(
        "status", help="Fetch temperatures, progress and firmware once and print them"
    )

    monitor_parser = subparsers.add_parser(
        "monitor", help="Poll the printer and log every state change"
    )
    monitor_parser.add_argument(
        "--count", type=int, default=0, help="Stop after N polling passes (default: run forever)"
    )

    temp_parser = subparsers.add_parser("temp", help="Set a heater target")
    temp_parser.add_argument("heater", choices=[heater.value for heater in Heater])
    temp_parser.add_argument("degrees", type=int)
    temp_parser.add_argument(
        "--wait", action="store_true", help="Block until the target is reached"
    )

    subparsers.add_parser("off", help="Turn off all heaters")

    preheat_parser = subparsers.add_parser("preheat", help="Apply a material preset")
    preheat_parser.add_argument("material", choices=[material.value for material in Material])

    home_parser = subparsers.add_parser("home", help="Home axes")
    home_parser.add_argument(
        "--axes", default="xyz", help="Axes to home, e.g. 'xy' (default: xyz)"
    )

    move_parser = subparsers.add_parser("move", help="Relative move")
    move_parser.add_argument("--x", type=float)
    move_parser.add_argument("--y", type=float)
    move_parser.add_argument("--z", type=float)
    move_parser.add_argument("--feedrate", type=int, default=constants.DEFAULT_MOVE_FEEDRATE)

    fan_parser = subparsers.add_parser("fan", help="Set part fan speed in percent (0 turns it off)")
    fan_parser.add_argument("percent", type=int)

    sd_parser = subparsers.add_parser("sd", help="SD card operations")
    sd_parser.add_argument("action", choices=["list"] + [action.value for action in SDAction])
    sd_parser.add_argument("filename", nargs="?")

    subparsers.add_parser("endstops", help="Show endstop switch states")
    subparsers.add_parser("print-time", help="Show elapsed time of the current print")

    subparsers.add_parser("estop", help="Send an emergency stop")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def _format_snapshot(snapshot: PrinterSnapshot) -> str:
    temps = snapshot.temperatures
    progress = snapshot.print_progress
    line = (
        f"connected={snapshot.connected} "
        f"hotend={temps.hotend_temp:.1f}/{temps.hotend_target:.1f} "
        f"bed={temps.bed_temp:.1f}/{temps.bed_target:.1f} "
        f"state={snapshot.status.state}"
    )
    if progress.is_printing:
        line += f" file={progress.filename} progress={progress.percent_complete:.1f}%"
    return line


async def _monitor(client: PrinterClient, config: RemoteConfig, count: int) -> None:
    def on_change(section: str, snapshot: PrinterSnapshot) -> None:
        LOGGER.info("%s updated: %s", section, _format_snapshot(snapshot))

    health_server: Optional[HealthServer] = None
    if config.diagnostics.health_enabled:
        health_server = HealthServer(
            client.health,
            config.diagnostics.health_host,
            config.diagnostics.health_port,
            snapshot_provider=client.snapshot,
        )
        await health_server.start()

    client.state.add_listener(on_change)
    try:
        await client.connect()
        while count <= 0 or client.reconciler.passes < count:
            await asyncio.sleep(client.reconciler.interval / 4)
    finally:
        await client.stop_polling()
        client.state.remove_listener(on_change)
        if health_server is not None:
            await health_server.stop()


async def _run_command(args: argparse.Namespace, config: RemoteConfig) -> int:
    async with PrinterClient.from_config(config) as client:
        dispatcher = client.dispatcher

        if args.command == "ping":
            connected = await dispatcher.check_connection()
            if connected:
                print("reachable")
            else:
                status = await client.health.get("connection")
                print(f"unreachable: {status.detail}" if status else "unreachable")
            return 0 if connected else 1

        if args.command == "status":
            await dispatcher.check_connection()
            await client.reconciler.reconcile_once()
            await dispatcher.get_firmware_info()
            print(json.dumps(client.snapshot().as_dict(), indent=2))
            return 0

        if args.command == "endstops":
            endstops = await dispatcher.get_endstops()
            for name, value in endstops.as_dict().items():
                print(f"{name}\t{value or 'n/a'}")
            return 0

        if args.command == "print-time":
            elapsed = await dispatcher.get_print_time()
            print(elapsed if elapsed is not None else "no print time reported")
            return 0

        if args.command == "monitor":
            await _monitor(client, config, args.count)
            return 0

        if args.command == "temp":
            await dispatcher.set_temperature(args.heater, args.degrees, wait=args.wait)
        elif args.command == "off":
            await dispatcher.turn_off_heaters()
        elif args.command == "preheat":
            await dispatcher.preheat_preset(args.material)
        elif args.command == "home":
            axes = args.axes.lower()
            await dispatcher.home_axes(x="x" in axes, y="y" in axes, z="z" in axes)
        elif args.command == "move":
            await dispatcher.move_axis(x=args.x, y=args.y, z=args.z, feedrate=args.feedrate)
        elif args.command == "fan":
            if args.percent == 0:
                await dispatcher.fan_off()
            else:
                await dispatcher.set_fan_percent(args.percent)
        elif args.command == "sd":
            if args.action == "list":
                for sd_file in await dispatcher.list_sd_files():
                    print(f"{sd_file.name}\t{sd_file.display_size}")
            elif args.action == SDAction.DELETE.value:
                await dispatcher.delete_sd_file(args.filename)
            else:
                await dispatcher.sd_control(args.action, args.filename)
        elif args.command == "estop":
            if not await dispatcher.emergency_stop():
                return 1
        else:
            LOGGER.error("Unknown command: %s", args.command)
            return 1

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.url:
        config.printer.url = args.url
        config.raw.set("printer", "url", args.url)
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_network:
        config.logging.log_network = True
    if args.save:
        save_config(config)
        print(f"Configuration saved to {config.path!s}")

    configure_logging(
        config.logging.level,
        log_path=config.logging.path,
        log_network=config.logging.log_network,
    )

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    try:
        return asyncio.run(_run_command(args, config))
    except PrinterClientError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
