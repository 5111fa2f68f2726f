"""Command-line interface for print-relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import PrintRelayApp
from .backends import CupsBackend
from .config import apply_settings, load_config, save_config, select_server
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="print-relay", description="Relay print agent for receipt printers"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the print-relay agent")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    configure_parser = subparsers.add_parser(
        "configure", help="Update and save agent settings"
    )
    configure_parser.add_argument("--server-url", help="Relay server URL (ws:// or wss://)")
    configure_parser.add_argument("--company-id", help="Company identifier")
    configure_parser.add_argument("--token", help="Agent credential token")
    configure_parser.add_argument("--printer", help="Output device name")
    auto_group = configure_parser.add_mutually_exclusive_group()
    auto_group.add_argument(
        "--auto-connect",
        dest="auto_connect",
        action="store_true",
        default=None,
        help="Connect automatically on start",
    )
    auto_group.add_argument(
        "--no-auto-connect",
        dest="auto_connect",
        action="store_false",
        help="Wait for an explicit connect",
    )

    subparsers.add_parser("servers", help="List the named relay servers")

    use_parser = subparsers.add_parser(
        "use-server", help="Switch to one of the named relay servers"
    )
    use_parser.add_argument("name", help="Server preset name")

    subparsers.add_parser("devices", help="List installed output devices")

    subparsers.add_parser("test-print", help="Print a test page on the configured device")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        PrintRelayApp.start(config)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                if key == "token" and value:
                    value = "********"
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "configure":
        apply_settings(
            config,
            server_url=args.server_url,
            company_id=args.company_id,
            token=args.token,
            device_name=args.printer,
            auto_connect=args.auto_connect,
        )
        save_config(config)
        print(f"Configuration saved to {config.path!s}")
        return 0

    if args.command == "servers":
        for name, url in sorted(config.relay.servers.items()):
            marker = "*" if url == config.relay.server_url else " "
            print(f"{marker} {name}: {url}")
        return 0

    if args.command == "use-server":
        try:
            url = select_server(config, args.name)
        except ValueError as exc:
            LOGGER.error("%s", exc)
            return 1
        save_config(config)
        print(f"Relay server set to {url}")
        return 0

    configure_logging(config.logging.level, secrets=[config.relay.token])

    if args.command == "devices":
        backend = CupsBackend()
        if not backend.is_available:
            LOGGER.error("CUPS client tools (lp, lpstat) are not installed")
            return 1
        try:
            devices = asyncio.run(backend.list_devices())
        except (OSError, RuntimeError) as exc:
            LOGGER.error("Could not list devices: %s", exc)
            return 1
        for device in devices:
            marker = "*" if device.is_default else " "
            print(f"{marker} {device.name}")
        return 0

    if args.command == "test-print":
        result = asyncio.run(PrintRelayApp(config).test_print())
        if result.ok:
            print("Test print submitted")
            return 0
        LOGGER.error("Test print failed: %s", result.error)
        return 1

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
