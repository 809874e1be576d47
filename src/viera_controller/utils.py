from __future__ import annotations

import re
import socket

from viera_controller.exceptions import InvalidArgumentError
from viera_controller.logging_abstraction import get_logger

logger = get_logger(__name__)

_MAC_PATTERN = re.compile(r"^(?:[A-F0-9]{2}:){5}[A-F0-9]{2}$")


def normalize_mac(mac: str) -> str:
    """Normalize a MAC address to ``AA:BB:CC:DD:EE:FF``.

    Accepts bare 12-digit hex, hyphen separated and colon separated forms.

    Raises:
        InvalidArgumentError: the value is not a MAC address

    """
    value = mac.strip()
    if len(value) == 12:
        # No separators => add colons in between
        value = ":".join(value[i : i + 2] for i in range(0, 12, 2))
    elif "-" in value:
        value = value.replace("-", ":")
    value = value.upper()

    if not _MAC_PATTERN.match(value):
        raise InvalidArgumentError(f"Invalid mac address given: {mac!r}")
    return value


def build_magic_packet(mac: str) -> bytes:
    """Wake-on-LAN magic packet: 6 x 0xFF followed by the MAC repeated 16 times."""
    address = bytes.fromhex(normalize_mac(mac).replace(":", ""))
    return b"\xff" * 6 + address * 16


def get_local_address(target: str = "8.8.8.8") -> str | None:
    """Return the local IP address used to reach ``target``.

    Connecting a UDP socket sends nothing; it only selects the outgoing interface.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect((target, 1))
            address = sock.getsockname()[0]
    except OSError:
        logger.exception("Could not resolve local address", extra={"target": target})
        return None
    return str(address)
