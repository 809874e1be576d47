from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial
from pathlib import Path

import dotenv
import uvloop

from viera_controller import const
from viera_controller.connector import Connector
from viera_controller.correlation import correlation_context, ensure_correlation_id
from viera_controller.exceptions import VieraError
from viera_controller.logging_abstraction import get_logger
from viera_controller.metrics import start_metrics_server
from viera_controller.registry import YamlDeviceRegistry
from viera_controller.sink import LoggingSink

logger = get_logger(__name__)

# Keep aiohttp quiet unless something goes wrong
aio_handler = logging.StreamHandler(sys.stdout)
aio_handler.setLevel(logging.WARNING)
aio_handler.setFormatter(const.LOG_FORMATTER)
for _name in ("aiohttp.client", "aiohttp.internal"):
    _logger = logging.getLogger(_name)
    _logger.setLevel(logging.WARNING)
    _logger.propagate = False
    _logger.addHandler(aio_handler)

DRAIN_TIMEOUT = 5.0


class VieraController:
    lp: str = "VieraController:"

    def __init__(self, args: argparse.Namespace) -> None:
        self.args = args
        self.registry = YamlDeviceRegistry(const.env.config_file_path)
        self.connector = Connector(self.registry, LoggingSink(), const.env.connector_id)
        self._stopped = asyncio.Event()

    def signal_handler(self, signum: int) -> None:
        logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        self._stopped.set()

    async def start(self) -> None:
        _ = ensure_correlation_id()

        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, partial(self.signal_handler, signal.SIGINT))
        loop.add_signal_handler(signal.SIGTERM, partial(self.signal_handler, signal.SIGTERM))
        logger.debug("%s Signal handlers configured for SIGINT & SIGTERM", self.lp)

        if const.env.enable_exporter:
            start_metrics_server(const.env.exporter_port)

        try:
            if self.args.discover:
                devices = await self.connector.discover()
                logger.info("%s Discovery finished", self.lp, extra={"found": len(devices)})
            elif self.args.pair:
                await self.connector.pair(self.args.pair, _prompt_pin)
            else:
                await self.connector.execute()
                await self._stopped.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        logger.info("%s Shutting down...", self.lp)
        await self.connector.terminate()

        # Let queued messages reach the sink
        try:
            async with asyncio.timeout(DRAIN_TIMEOUT):
                while self.connector.has_unfinished_tasks():
                    await asyncio.sleep(const.QUEUE_PROCESSING_INTERVAL)
        except TimeoutError:
            logger.warning(
                "%s Queue was not drained before shutdown",
                self.lp,
                extra={"pending": len(self.connector.queue)},
            )


def _enable_debug() -> None:
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("viera_controller"):
            logging.getLogger(name).setLevel(logging.DEBUG)
            for handler in logging.getLogger(name).handlers:
                handler.setLevel(logging.DEBUG)


async def _prompt_pin() -> str:
    return (await asyncio.to_thread(input, "Enter the pin shown on the television: ")).strip()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Panasonic Viera television controller")
    parser.add_argument("--discover", action="store_true", help="Search the network for televisions and exit")
    parser.add_argument("--pair", metavar="DEVICE_ID", default=None, help="Pair with a configured television")
    parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    args = parser.parse_args(argv)

    if args.debug:
        _enable_debug()
        logger.info("Debug mode enabled via CLI argument")

    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info("Environment variables loaded", extra={"source": str(env_path)})
            const.reload_env()
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})

    return args


def main() -> None:
    """Main entry point for the Viera controller."""
    with correlation_context():
        logger.info("Starting Viera controller", extra={"version": const.VIERA_VERSION})
        args = parse_cli()

        if const.env.debug:
            _enable_debug()

        try:
            uvloop.run(_run(args))
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except VieraError as e:
            logger.exception("Viera controller stopped", extra={"reason": e.reason})
            sys.exit(1)


async def _run(args: argparse.Namespace) -> None:
    await VieraController(args).start()


if __name__ == "__main__":
    main()
