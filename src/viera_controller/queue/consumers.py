"""Chain of consumers that drains the connector queue."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import ClassVar, Protocol

from viera_controller import metrics
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.queue.messages import (
    ChannelPropertyStateChanged,
    DeviceConnectionStateChanged,
    DeviceDiscovered,
    Message,
    MessageType,
    PropertyValue,
    WriteChannelPropertyRequest,
)
from viera_controller.queue.queue import EMPTY, Queue
from viera_controller.registry import DeviceConfig, DeviceRegistry
from viera_controller.sink import MessageSink
from viera_controller.types import ChannelPropertyIdentifier, ConnectionState

__all__ = [
    "ChannelPropertyWriter",
    "Consumer",
    "Consumers",
    "StoreChannelPropertyState",
    "StoreDevice",
    "StoreDeviceConnectionState",
    "WriteChannelPropertyState",
]


class Consumer(ABC):
    """Handles messages of one ``message_type``.

    ``consume`` returns True when the message was handled and False when it
    was rejected, so the chain can offer it to the next consumer.
    """

    message_type: ClassVar[MessageType]

    @abstractmethod
    def consume(self, message: Message) -> bool: ...


class Consumers:
    """Ordered consumer chain; one message is processed per ``consume()`` call."""

    lp: str = "Consumers:"

    def __init__(
        self,
        queue: Queue,
        consumers: Iterable[Consumer] = (),
        logger: VieraLogger | None = None,
    ) -> None:
        self.queue = queue
        self.logger = logger or get_logger(__name__)
        self._consumers: list[Consumer] = []
        for consumer in consumers:
            self.append(consumer)

    def append(self, consumer: Consumer) -> None:
        self._consumers.append(consumer)
        self.logger.debug(
            "%s Appended new messages consumer",
            self.lp,
            extra={"consumer": type(consumer).__name__, "message_type": consumer.message_type},
        )

    def remove(self, consumer: Consumer) -> None:
        if consumer in self._consumers:
            self._consumers.remove(consumer)

    def __len__(self) -> int:
        return len(self._consumers)

    def consume(self) -> None:
        message = self.queue.get()
        if message is EMPTY:
            return

        if not self._consumers:
            metrics.record_message_consumed(message.message_type, "unconsumed")
            self.logger.error("%s No consumer is registered, messages could not be consumed", self.lp)
            return

        for consumer in self._consumers:
            if consumer.message_type != message.message_type:
                continue
            try:
                consumed = consumer.consume(message)
            except Exception:
                metrics.record_message_consumed(message.message_type, "unconsumed")
                self.logger.exception(
                    "%s Consumer failed, message was dropped",
                    self.lp,
                    extra={"consumer": type(consumer).__name__, "message_type": message.message_type},
                )
                return
            if consumed:
                metrics.record_message_consumed(message.message_type, "consumed")
                return

        metrics.record_message_consumed(message.message_type, "unconsumed")
        self.logger.error(
            "%s Message could not be consumed",
            self.lp,
            extra={"message_type": message.message_type},
        )


class StoreDevice(Consumer):
    """Upsert a discovered television into the registry and publish it."""

    message_type = MessageType.DEVICE_DISCOVERED

    def __init__(self, registry: DeviceRegistry, sink: MessageSink, logger: VieraLogger | None = None) -> None:
        self.registry = registry
        self.sink = sink
        self.logger = logger or get_logger(__name__)

    def consume(self, message: Message) -> bool:
        if not isinstance(message, DeviceDiscovered):
            return False

        config = DeviceConfig(
            identifier=message.identifier,
            ip_address=message.ip_address,
            port=message.port,
            name=message.name,
            model=message.model,
            manufacturer=message.manufacturer,
            serial_number=message.serial_number,
            encrypted=message.encrypted,
            hdmi=list(message.hdmi),
            applications=list(message.applications),
            # None keeps the credentials already stored
            mac_address=message.mac_address,
            app_id=message.app_id,
            encryption_key=message.encryption_key,
        )

        self.registry.store(config)
        self.sink.publish(message)
        self.logger.debug(
            "StoreDevice: Consumed device discovered message",
            extra={"device_id": message.identifier, "ip_address": message.ip_address},
        )
        return True


class StoreDeviceConnectionState(Consumer):
    message_type = MessageType.DEVICE_CONNECTION_STATE

    def __init__(self, registry: DeviceRegistry, sink: MessageSink, logger: VieraLogger | None = None) -> None:
        self.registry = registry
        self.sink = sink
        self.logger = logger or get_logger(__name__)

    def consume(self, message: Message) -> bool:
        if not isinstance(message, DeviceConnectionStateChanged):
            return False

        if self.registry.get(message.device) is None:
            self.logger.error(
                "StoreDeviceConnectionState: Device could not be loaded",
                extra={"device_id": message.device},
            )
            return True

        previous = self.registry.get_connection_state(message.device)
        self.registry.set_connection_state(message.device, message.state)
        metrics.record_connection_state(message.device, message.state)
        if previous != message.state:
            self.sink.publish(message)
        return True


class StoreChannelPropertyState(Consumer):
    message_type = MessageType.CHANNEL_PROPERTY_STATE

    def __init__(self, sink: MessageSink) -> None:
        self.sink = sink

    def consume(self, message: Message) -> bool:
        if not isinstance(message, ChannelPropertyStateChanged):
            return False
        self.sink.publish(message)
        return True


class ChannelPropertyWriter(Protocol):
    async def write_channel_property(
        self,
        device_id: str,
        property_id: ChannelPropertyIdentifier,
        value: PropertyValue,
    ) -> bool: ...


class WriteChannelPropertyState(Consumer):
    """Hand a host write request to the television client.

    The write runs as a task; its outcome arrives later as state messages.
    """

    message_type = MessageType.WRITE_CHANNEL_PROPERTY

    def __init__(
        self,
        registry: DeviceRegistry,
        queue: Queue,
        writer: ChannelPropertyWriter,
        logger: VieraLogger | None = None,
    ) -> None:
        self.registry = registry
        self.queue = queue
        self.writer = writer
        self.logger = logger or get_logger(__name__)
        self.tasks: set[asyncio.Task[bool]] = set()

    def consume(self, message: Message) -> bool:
        if not isinstance(message, WriteChannelPropertyRequest):
            return False

        device = self.registry.get(message.device)
        if device is None:
            self.logger.error(
                "WriteChannelPropertyState: Device could not be loaded",
                extra={"device_id": message.device, "property": message.property},
            )
            return True

        if not device.ip_address:
            self.queue.append(
                DeviceConnectionStateChanged(
                    connector=message.connector,
                    device=message.device,
                    state=ConnectionState.DISCONNECTED,
                ),
            )
            self.logger.error(
                "WriteChannelPropertyState: Device is not configured",
                extra={"device_id": message.device},
            )
            return True

        task = asyncio.get_running_loop().create_task(
            self.writer.write_channel_property(message.device, message.property, message.value),
            name=f"write_{message.device}_{message.property}",
        )
        self.tasks.add(task)
        task.add_done_callback(self._write_done)
        return True

    def _write_done(self, task: asyncio.Task[bool]) -> None:
        self.tasks.discard(task)
        if task.cancelled():
            return
        if (error := task.exception()) is not None:
            self.logger.error(
                "WriteChannelPropertyState: Property could not be written",
                extra={"task": task.get_name(), "error": repr(error)},
            )
