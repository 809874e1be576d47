"""SSDP discovery of televisions on the local network."""

from __future__ import annotations

import asyncio
import re
import socket
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit

from viera_controller import metrics
from viera_controller.api.messages import Application
from viera_controller.api.television import TelevisionApi
from viera_controller.const import (
    DEFAULT_PORT,
    MCAST_HOST,
    MCAST_PORT,
    SEARCH_TARGET,
    env,
)
from viera_controller.correlation import correlation_context
from viera_controller.exceptions import TelevisionApiCallError, VieraError
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.queue.messages import DeviceDiscovered
from viera_controller.queue.queue import Queue

__all__ = ["Discovery", "SearchResult", "build_search_request", "parse_search_response"]

MATCH_DEVICE_LOCATION = re.compile(r"LOCATION:\s(?P<location>[\da-zA-Z:/.]+)")
MATCH_DEVICE_ID = re.compile(r"USN:\suuid:(?P<usn>[\da-zA-Z-]+)::urn")

ApiFactory = Callable[[str, str, int], TelevisionApi]


@dataclass(frozen=True, slots=True)
class SearchResult:
    identifier: str
    host: str
    port: int


def build_search_request() -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {MCAST_HOST}:{MCAST_PORT}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"ST: {SEARCH_TARGET}\r\n"
        "MX: 1\r\n"
        "\r\n"
    ).encode("ascii")


def parse_search_response(data: bytes) -> SearchResult | None:
    """Read ``LOCATION`` and ``USN`` from an SSDP answer; None when either is missing."""
    text = data.decode("utf-8", errors="replace")

    location = MATCH_DEVICE_LOCATION.search(text)
    if location is None:
        return None
    url = urlsplit(location.group("location"))
    if not url.hostname:
        return None

    usn = MATCH_DEVICE_ID.search(text)
    if usn is None:
        return None

    try:
        port = url.port or DEFAULT_PORT
    except ValueError:
        return None
    return SearchResult(identifier=usn.group("usn"), host=url.hostname, port=port)


class _SearchProtocol(asyncio.DatagramProtocol):
    def __init__(self, discovery: Discovery) -> None:
        self.discovery = discovery

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.discovery.handle_response(data, addr)

    def error_received(self, exc: Exception) -> None:
        self.discovery.logger.debug("%s Datagram error: %s", self.discovery.lp, exc)


class Discovery:
    """One-shot SSDP search for Panasonic televisions.

    Every distinct USN found inside the search window is checked, described and
    queued as a single ``DeviceDiscovered`` message.
    """

    lp: str = "Discovery:"

    def __init__(
        self,
        queue: Queue,
        connector_id: str | None = None,
        api_factory: ApiFactory = TelevisionApi,
        timeout: float | None = None,
        logger: VieraLogger | None = None,
    ) -> None:
        self.queue = queue
        self.connector_id = connector_id or env.connector_id
        self.api_factory = api_factory
        self.timeout = env.discovery_timeout if timeout is None else timeout
        self.logger = logger or get_logger(__name__)

        self._found: dict[str, SearchResult] = {}
        self._transport: asyncio.DatagramTransport | None = None
        self._stop: asyncio.Event | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def discover(self, timeout: float | None = None) -> list[DeviceDiscovered]:
        """Run one search; ``timeout`` overrides the search window for this run."""
        search_window = self.timeout if timeout is None else timeout
        with correlation_context():
            self.logger.info("%s Starting devices discovery", self.lp, extra={"timeout": search_window})
            self._found = {}
            self._running = True
            try:
                await self._search(search_window)
            except OSError:
                self.logger.exception("%s Could not create discovery socket", self.lp)
                self._running = False
                return []

            if not self._running:
                self.logger.info("%s Discovery was cancelled", self.lp)
                return []

            found = list(self._found.values())
            self._found = {}
            results = await asyncio.gather(*(self._describe(result) for result in found))
            if not self._running:
                self.logger.info("%s Discovery was cancelled", self.lp)
                return []
            self._running = False

            devices = [device for device in results if device is not None]
            for device in devices:
                self.queue.append(device)
                metrics.record_device_discovered()

            self.logger.info(
                "%s Discovery finished",
                self.lp,
                extra={"responses": len(found), "devices": len(devices)},
            )
            return devices

    def disconnect(self) -> None:
        """Stop an in-flight search; results collected so far are dropped."""
        self._running = False
        if self._stop is not None:
            self._stop.set()
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def handle_response(self, data: bytes, addr: tuple[str, int] | None = None) -> None:
        if not self._running:
            return
        result = parse_search_response(data)
        if result is None:
            self.logger.debug("%s Ignoring unrelated SSDP answer", self.lp, extra={"from": addr})
            return
        # Last answer for an identifier wins
        self._found[result.identifier] = result

    async def _search(self, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.setblocking(False)
            sock.bind(("", 0))
            transport, _ = await loop.create_datagram_endpoint(lambda: _SearchProtocol(self), sock=sock)
        except OSError:
            sock.close()
            raise

        self._transport = transport
        try:
            transport.sendto(build_search_request(), (MCAST_HOST, MCAST_PORT))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=timeout)
            except TimeoutError:
                pass
        finally:
            transport.close()
            self._transport = None
            self._stop = None

    async def _describe(self, result: SearchResult) -> DeviceDiscovered | None:
        context = {"device_id": result.identifier, "host": result.host, "port": result.port}
        api = self.api_factory(result.identifier, result.host, result.port)
        try:
            if not await api.check_liveness():
                self.logger.error(
                    "%s The provided IP: %s:%d address is unreachable",
                    self.lp,
                    result.host,
                    result.port,
                    extra=context,
                )
                return None

            specs = await api.get_specs()

            apps: list[Application] = []
            # Apps can be listed only on a television that is on and not encrypted
            if not specs.requires_encryption and await api.is_turned_on():
                apps = (await api.get_apps()).apps
        except TelevisionApiCallError as e:
            self.logger.exception("%s Calling device api failed", self.lp, extra={**context, **e.log_context()})
            return None
        except VieraError as e:
            self.logger.exception("%s Unhandled error occur", self.lp, extra={**context, "reason": e.reason})
            return None
        finally:
            await api.disconnect()

        self.logger.info("%s Found television", self.lp, extra={**context, "model": specs.model})
        return DeviceDiscovered(
            connector=self.connector_id,
            identifier=result.identifier,
            ip_address=result.host,
            port=result.port,
            name=specs.name,
            model=specs.model,
            manufacturer=specs.manufacturer,
            serial_number=specs.serial_number,
            encrypted=specs.requires_encryption,
            applications=tuple(apps),
        )
