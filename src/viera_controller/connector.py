"""Connector service: owns the queue, the consumer chain and the active client."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from viera_controller import const
from viera_controller.api.handshake import PinHandshake
from viera_controller.api.messages import AuthorizePinCode
from viera_controller.clients.television import ApiFactory, TelevisionClient, api_from_config
from viera_controller.correlation import correlation_context
from viera_controller.discovery import Discovery
from viera_controller.exceptions import InvalidArgumentError, RuntimeViolationError
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.queue.consumers import (
    Consumers,
    StoreChannelPropertyState,
    StoreDevice,
    StoreDeviceConnectionState,
    WriteChannelPropertyState,
)
from viera_controller.queue.messages import DeviceDiscovered, PropertyValue, WriteChannelPropertyRequest
from viera_controller.queue.queue import Queue
from viera_controller.registry import DeviceRegistry
from viera_controller.sink import MessageSink
from viera_controller.types import ChannelPropertyIdentifier

__all__ = ["Connector"]


class Connector:
    """Runs either the television client (``execute``) or a discovery (``discover``).

    Messages produced by either side are drained by a periodic consume task,
    one message per tick.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        sink: MessageSink,
        connector_id: str | None = None,
        api_factory: ApiFactory = api_from_config,
        logger: VieraLogger | None = None,
    ) -> None:
        self.connector_id = connector_id or const.env.connector_id
        self.registry = registry
        self.sink = sink
        self.api_factory = api_factory
        self.logger = logger or get_logger(__name__)
        self.lp = f"Connector[{self.connector_id}]:"

        self.queue = Queue()
        self.consumers = Consumers(
            self.queue,
            [
                StoreDevice(registry, sink),
                StoreDeviceConnectionState(registry, sink),
                StoreChannelPropertyState(sink),
            ],
        )

        self.client: TelevisionClient | None = None
        self.discovery: Discovery | None = None
        self._write_consumer: WriteChannelPropertyState | None = None
        self._consume_task: asyncio.Task[None] | None = None
        self._terminating = False

    async def execute(self) -> None:
        if self.client is not None:
            raise RuntimeViolationError("Connector service is already running")

        with correlation_context():
            self.logger.info("%s Starting Viera connector service", self.lp)
            self._terminating = False

            self.client = TelevisionClient(self.registry, self.queue, self.connector_id, self.api_factory)
            self._write_consumer = WriteChannelPropertyState(self.registry, self.queue, self.client)
            self.consumers.append(self._write_consumer)
            self.client.connect()

            self._start_consumer()
            self.logger.info("%s Viera connector service has been started", self.lp)

    async def discover(self) -> list[DeviceDiscovered]:
        with correlation_context():
            self.logger.info("%s Starting Viera connector discovery", self.lp)
            self._terminating = False

            self.discovery = Discovery(self.queue, self.connector_id)
            self._start_consumer()
            return await self.discovery.discover()

    async def terminate(self) -> None:
        """Stop the active client; the consume task exits once the queue is drained."""
        self._terminating = True

        if self.client is not None:
            client, self.client = self.client, None
            await client.disconnect()
        if self._write_consumer is not None:
            self.consumers.remove(self._write_consumer)
            self._write_consumer = None
        if self.discovery is not None:
            self.discovery.disconnect()
            self.discovery = None

        if self._consume_task is not None and self.queue.is_empty():
            self._consume_task.cancel()
            self._consume_task = None

        self.logger.info("%s Viera connector has been terminated", self.lp)

    def has_unfinished_tasks(self) -> bool:
        return not self.queue.is_empty() and self._consume_task is not None and not self._consume_task.done()

    def write_channel_property(
        self,
        device_id: str,
        property_id: ChannelPropertyIdentifier,
        value: PropertyValue,
    ) -> None:
        """Queue a host write request; the outcome arrives as state messages."""
        self.queue.append(
            WriteChannelPropertyRequest(
                connector=self.connector_id,
                device=device_id,
                property=property_id,
                value=value,
            ),
        )

    async def pair(
        self,
        device_id: str,
        pin_provider: Callable[[], Awaitable[str]],
        device_name: str = "viera-controller",
    ) -> AuthorizePinCode:
        """Run the pin handshake and store the resulting credentials.

        ``pin_provider`` is awaited after the television shows the pin.
        """
        config = self.registry.get(device_id)
        if config is None:
            raise InvalidArgumentError(f"Device {device_id!r} is not configured")

        api = self.client.get_api(device_id) if self.client is not None else None
        owns_api = api is None
        if api is None:
            api = self.api_factory(config)

        try:
            handshake = PinHandshake(api)
            await handshake.request_pin(device_name)
            result = await handshake.authorize(await pin_provider())
        finally:
            if owns_api:
                await api.disconnect()

        self.registry.store(
            config.model_copy(
                update={"encrypted": True, "app_id": result.app_id, "encryption_key": result.encryption_key},
            ),
        )
        self.logger.info("%s Device paired", self.lp, extra={"device_id": device_id})
        return result

    def _start_consumer(self) -> None:
        if self._consume_task is None or self._consume_task.done():
            self._consume_task = asyncio.get_running_loop().create_task(self._consume_loop(), name="consume_queue")

    async def _consume_loop(self) -> None:
        while True:
            self.consumers.consume()
            if self._terminating and self.queue.is_empty():
                self._consume_task = None
                return
            await asyncio.sleep(const.QUEUE_PROCESSING_INTERVAL)
