from viera_controller.queue.consumers import (
    Consumer,
    Consumers,
    StoreChannelPropertyState,
    StoreDevice,
    StoreDeviceConnectionState,
    WriteChannelPropertyState,
)
from viera_controller.queue.messages import (
    ChannelPropertyStateChanged,
    DeviceConnectionStateChanged,
    DeviceDiscovered,
    Message,
    MessageType,
    OutputMessage,
    WriteChannelPropertyRequest,
)
from viera_controller.queue.queue import EMPTY, Queue

__all__ = [
    "EMPTY",
    "ChannelPropertyStateChanged",
    "Consumer",
    "Consumers",
    "DeviceConnectionStateChanged",
    "DeviceDiscovered",
    "Message",
    "MessageType",
    "OutputMessage",
    "Queue",
    "StoreChannelPropertyState",
    "StoreDevice",
    "StoreDeviceConnectionState",
    "WriteChannelPropertyRequest",
    "WriteChannelPropertyState",
]
