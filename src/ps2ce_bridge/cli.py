"""
Command line entry point.

  ps2ce-bridge ps2ce /dev/ttyACM0 --trigger-mode right-stick
  ps2ce-bridge test
  ps2ce-bridge list-ports
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from serial import SerialException

from .config import DEFAULT_BAUD, DEFAULT_FRAME_RATE, DEVICE_ENV_VAR, build_session_config
from .packet import TriggerMode
from .session import run_session
from .transport import SERIAL_HINT, EmulatorUART, discover_ports


def build_arg_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ps2ce-bridge",
        description="Drive a PS2 controller emulator board from an SDL2 game controller",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print more information about activity")
    parser.add_argument(
        "--sdl-mapping",
        action="append",
        default=[],
        help="Path to an extra SDL2 controller mapping database. Repeatable.",
    )
    parser.add_argument(
        "--update-controller-db",
        action="store_true",
        help="Download the latest SDL GameController database before loading mappings.",
    )
    parser.add_argument(
        "--controller-db-url",
        default=None,
        help="Override the URL used to download the SDL GameController database.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    session = subcommands.add_parser(
        "ps2ce", help="Start a transliteration session using a PS2 controller emulator"
    )
    session.add_argument(
        "device",
        nargs="?",
        help=f"Serial device to communicate with (default: ${DEVICE_ENV_VAR}). {SERIAL_HINT}",
    )
    session.add_argument(
        "-t",
        "--trigger-mode",
        choices=[mode.value for mode in TriggerMode],
        default=TriggerMode.NORMAL.value,
        help="How to map the analog triggers (default: normal)",
    )
    session.add_argument(
        "-n",
        "--normalise-sticks",
        action="store_true",
        help="Push stick values out by 10%% to match the DualShock's deadzone.",
    )
    session.add_argument("--baud", type=int, default=DEFAULT_BAUD, help=f"Serial baud rate (default {DEFAULT_BAUD})")
    session.add_argument(
        "--frame-rate",
        type=float,
        default=DEFAULT_FRAME_RATE,
        help=f"Packets per second for the timed refresh (default {DEFAULT_FRAME_RATE:g})",
    )

    subcommands.add_parser("test", help="Print controller events to test the game controller subsystem")

    ports = subcommands.add_parser("list-ports", help="List serial ports that could be an emulator board")
    ports.add_argument("--all-ports", action="store_true", help="Include non-USB serial ports.")
    ports.add_argument(
        "--include-port-desc",
        action="append",
        default=[],
        help="Only list ports whose description contains this text (case-insensitive). Repeatable.",
    )
    return parser


def list_serial_ports(console: Console, include_non_usb: bool, include_descriptions: List[str]) -> None:
    ports = discover_ports(include_non_usb=include_non_usb, include_descriptions=include_descriptions)
    if not ports:
        console.print("[yellow]No serial ports detected.[/yellow]")
        return
    table = Table(title="Serial Ports")
    table.add_column("Port")
    table.add_column("Description")
    for info in ports:
        table.add_row(info["device"], info["description"])
    console.print(table)


def start_sdl(console: Console, args: argparse.Namespace, parser: argparse.ArgumentParser):
    """Bring up SDL, load controller mappings and create an empty controller registry."""
    # Imported here so list-ports works on machines without SDL2.
    from . import sdl_controllers

    try:
        sdl_controllers.initialize_sdl()
    except RuntimeError as exc:
        parser.error(str(exc))
    sdl_controllers.prepare_mappings(
        console,
        args.sdl_mapping,
        args.update_controller_db,
        args.controller_db_url or sdl_controllers.CONTROLLER_DB_URL_DEFAULT,
    )
    return sdl_controllers, sdl_controllers.ControllerRegistry(console)


def open_connected_controllers(console: Console, registry) -> None:
    registry.add_available_controllers()
    console.print(f"(There are {len(registry)} controllers connected)")


def run_ps2ce(console: Console, args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = build_session_config(args)
    if not config.device:
        parser.error(f"No serial device given and ${DEVICE_ENV_VAR} is not set. {SERIAL_HINT}")

    sdl_controllers, registry = start_sdl(console, args, parser)
    uart: Optional[EmulatorUART] = None
    try:
        open_connected_controllers(console, registry)
        if config.verbose:
            console.print(f"[cyan]Connecting to PS2 Controller Emulator device at '{config.device}'...[/cyan]")
        try:
            uart = EmulatorUART.open(config.device, config.baud, config.read_timeout)
        except SerialException as exc:
            parser.error(f"Failed to open serial device: {exc}")
        try:
            run_session(uart, registry, sdl_controllers.SDLEventSource(), config, console)
        except SerialException as exc:
            console.print(f"[red]Serial link failed: {exc}[/red]")
            return 1
        except KeyboardInterrupt:
            console.print("[yellow]Interrupted, shutting down.[/yellow]")
        return 0
    except RuntimeError as exc:
        console.print(f"[red]SDL error: {exc}[/red]")
        return 1
    finally:
        if uart is not None:
            uart.close()
        registry.close_all()
        sdl_controllers.shutdown_sdl()


def run_test(console: Console, args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    sdl_controllers, registry = start_sdl(console, args, parser)
    try:
        open_connected_controllers(console, registry)
        sdl_controllers.print_events(registry, console)
    except KeyboardInterrupt:
        pass
    except RuntimeError as exc:
        console.print(f"[red]SDL error: {exc}[/red]")
        return 1
    finally:
        registry.close_all()
        sdl_controllers.shutdown_sdl()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point: parse args and dispatch to the chosen subcommand."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    console = Console()
    if args.command == "list-ports":
        list_serial_ports(console, args.all_ports, args.include_port_desc)
        return 0
    if args.command == "test":
        return run_test(console, args, parser)
    return run_ps2ce(console, args, parser)


if __name__ == "__main__":
    sys.exit(main())
