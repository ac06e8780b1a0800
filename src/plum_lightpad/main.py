"""``plum-lightpad`` command line entry point.

Runs the platform stand-alone with a logging accessory layer in place of a
host plugin framework, which is enough to discover lightpads, inspect the
cloud topology and drive individual loads from a shell.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import dotenv
import uvloop
import yaml
from pydantic import ValidationError

from plum_lightpad.config import PlumConfig
from plum_lightpad.const import PLUM_DEBUG, PLUM_EXPORT_FILE_PATH, PLUM_VERSION
from plum_lightpad.correlation import correlation_context
from plum_lightpad.exceptions import CloudError, CommandError
from plum_lightpad.logging_abstraction import get_logger, set_package_level
from plum_lightpad.platform import PlumPlatform
from plum_lightpad.structs import DeviceHandle

logger = get_logger(__name__)

# quiet third-party loggers
logging.getLogger("aiohttp").setLevel(logging.ERROR)


class LoggingAccessoryLayer:
    """Accessory layer that just logs what a host framework would be told."""

    def register(self, handle: DeviceHandle) -> None:
        logger.info("Registered %s", handle.name, extra={"lpid": handle.lpid, "reachable": handle.reachable})

    def unregister(self, handle: DeviceHandle) -> None:
        logger.info("Unregistered %s", handle.name, extra={"lpid": handle.lpid})

    def update_reachability(self, handle: DeviceHandle) -> None:
        logger.info("%s reachable=%s", handle.name, handle.reachable, extra={"lpid": handle.lpid})

    def update_characteristics(self, handle: DeviceHandle, on: bool, brightness: int) -> None:
        logger.info("%s on=%s brightness=%s", handle.name, on, brightness, extra={"lpid": handle.lpid})


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="plum-lightpad", description="Plum Lightpad local controller")
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {PLUM_VERSION}")
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug logging")
    _ = parser.add_argument("--env", type=Path, default=None, help="Path to an environment file")
    _ = parser.add_argument("--config", type=Path, default=None, help="Path to a YAML config file")
    _ = parser.add_argument(
        "--wait",
        type=float,
        default=3.0,
        help="Seconds to collect discovery responses before acting (default: 3)",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    _ = sub.add_parser("run", help="Discover, sync from the cloud and stay running")
    _ = sub.add_parser("discover", help="Broadcast discovery and list responding lightpads")
    export = sub.add_parser("export", help="Write the cloud topology to a YAML file")
    _ = export.add_argument("path", nargs="?", type=Path, default=Path(PLUM_EXPORT_FILE_PATH))
    set_cmd = sub.add_parser("set", help="Set a lightpad's load level")
    _ = set_cmd.add_argument("lpid")
    _ = set_cmd.add_argument("percent", type=int, choices=range(101), metavar="percent")
    get_cmd = sub.add_parser("get", help="Read a lightpad's load level")
    _ = get_cmd.add_argument("lpid")

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> PlumConfig:
    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info("Environment variables loaded", extra={"source": str(env_path)})
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})
    if args.config:
        return PlumConfig.load(args.config.expanduser().resolve())
    return PlumConfig.from_env()


async def _run_forever(platform: PlumPlatform) -> int:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    _ = await platform.start()
    await stop_event.wait()
    logger.info("Shutting down...")
    return 0


async def _discover(platform: PlumPlatform, wait: float) -> int:
    await platform.resolver.start_discovery()
    await asyncio.sleep(wait)
    records = platform.resolver.records
    for record in records.values():
        print(f"{record.lpid}\t{record.address}:{record.command_port}")
    logger.info("Found %d lightpad(s)", len(records))
    return 0


async def _command(platform: PlumPlatform, args: argparse.Namespace) -> int:
    await platform.resolver.start_discovery()
    if not await platform.sync_topology():
        return 1
    await asyncio.sleep(args.wait)
    if args.command == "set":
        await platform.set_brightness(args.lpid, args.percent)
    else:
        print(await platform.get_brightness(args.lpid))
    return 0


async def run(args: argparse.Namespace, config: PlumConfig) -> int:
    platform = PlumPlatform(config, LoggingAccessoryLayer())
    try:
        match args.command:
            case "run":
                return await _run_forever(platform)
            case "discover":
                return await _discover(platform, args.wait)
            case "export":
                path = await platform.cloud_api.export_topology(args.path.expanduser())
                print(path)
                return 0
            case _:
                return await _command(platform, args)
    except CloudError as e:
        logger.error("Cloud request failed: %s", e, extra={"endpoint": e.endpoint})
        return 1
    except CommandError as e:
        logger.error("Lightpad command failed: %s", e, extra={"lpid": e.lpid, "kind": str(e.kind)})
        return 1
    except KeyError as e:
        logger.error("%s", e.args[0] if e.args else e)
        return 1
    finally:
        await platform.stop()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for plum-lightpad."""
    args = parse_cli(argv)
    if args.debug or PLUM_DEBUG:
        set_package_level(logging.DEBUG)

    with correlation_context():
        logger.info("Starting plum-lightpad", extra={"version": PLUM_VERSION})
        try:
            config = load_config(args)
        except (OSError, ValueError, ValidationError, yaml.YAMLError):
            logger.exception("Invalid configuration")
            return 2
        if not config.has_credentials and args.command != "discover":
            logger.error("Set PLUM_ACCOUNT_USERNAME and PLUM_ACCOUNT_PASSWORD or pass --config")
            return 2

        try:
            return uvloop.run(run(args, config))
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
            return 130


if __name__ == "__main__":
    sys.exit(main())
