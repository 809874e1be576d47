from viera_controller.api.crypto import Session
from viera_controller.api.handshake import HandshakeState, PinHandshake
from viera_controller.api.messages import (
    Application,
    AuthorizePinCode,
    DeviceApps,
    DeviceSpecs,
    DeviceVectorInfo,
    Event,
    RequestPinCode,
)
from viera_controller.api.television import TelevisionApi

__all__ = [
    "Application",
    "AuthorizePinCode",
    "DeviceApps",
    "DeviceSpecs",
    "DeviceVectorInfo",
    "Event",
    "HandshakeState",
    "PinHandshake",
    "RequestPinCode",
    "Session",
    "TelevisionApi",
]
