"""Messages passed through the connector queue.

Every message carries a ``message_type`` tag; consumers are matched on the
tag, never on the Python class.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar

from viera_controller.api.messages import Application
from viera_controller.registry import HdmiInput
from viera_controller.types import TELEVISION_CHANNEL, ChannelPropertyIdentifier, ConnectionState

__all__ = [
    "ChannelPropertyStateChanged",
    "DeviceConnectionStateChanged",
    "DeviceDiscovered",
    "Message",
    "MessageType",
    "OutputMessage",
    "PropertyValue",
    "WriteChannelPropertyRequest",
]

PropertyValue = bool | int | float | str | None


class MessageType(StrEnum):
    DEVICE_DISCOVERED = "device_discovered"
    DEVICE_CONNECTION_STATE = "device_connection_state"
    CHANNEL_PROPERTY_STATE = "channel_property_state"
    WRITE_CHANNEL_PROPERTY = "write_channel_property"


@dataclass(frozen=True, slots=True)
class DeviceDiscovered:
    """Television found by discovery (or re-described by the client)."""

    message_type: ClassVar[MessageType] = MessageType.DEVICE_DISCOVERED

    connector: str
    identifier: str
    ip_address: str
    port: int
    name: str | None
    model: str
    manufacturer: str
    serial_number: str
    encrypted: bool
    mac_address: str | None = None
    app_id: str | None = None
    encryption_key: str | None = None
    hdmi: tuple[HdmiInput, ...] = field(default_factory=tuple)
    applications: tuple[Application, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class DeviceConnectionStateChanged:
    message_type: ClassVar[MessageType] = MessageType.DEVICE_CONNECTION_STATE

    connector: str
    device: str
    state: ConnectionState


@dataclass(frozen=True, slots=True)
class ChannelPropertyStateChanged:
    message_type: ClassVar[MessageType] = MessageType.CHANNEL_PROPERTY_STATE

    connector: str
    device: str
    property: ChannelPropertyIdentifier
    value: PropertyValue
    channel: str = TELEVISION_CHANNEL


@dataclass(frozen=True, slots=True)
class WriteChannelPropertyRequest:
    """Write request issued by the host for a channel property."""

    message_type: ClassVar[MessageType] = MessageType.WRITE_CHANNEL_PROPERTY

    connector: str
    device: str
    property: ChannelPropertyIdentifier
    value: PropertyValue
    channel: str = TELEVISION_CHANNEL


OutputMessage = DeviceDiscovered | DeviceConnectionStateChanged | ChannelPropertyStateChanged
Message = OutputMessage | WriteChannelPropertyRequest
