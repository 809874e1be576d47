"""SOAP request construction for the television control endpoints."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from viera_controller.api.crypto import Session, encrypt_payload
from viera_controller.const import URN_REMOTE_CONTROL
from viera_controller.exceptions import RequestInfo

__all__ = [
    "PLAIN_ACTIONS",
    "SoapRequest",
    "build_encrypted_command",
    "build_soap_envelope",
    "build_soap_headers",
    "echoed_sequence_number",
    "needs_encryption",
    "sanitize_payload",
]

# Handshake actions are never wrapped in an encrypted command
PLAIN_ACTIONS = frozenset({"X_GetEncryptSessionId", "X_DisplayPinCode", "X_RequestAuth"})

_NAMESPACE_PREFIX = re.compile(r"<(/?)\w+:(\w+/?) ?(\w+:\w+[^>]*)?>")
_SEQUENCE_NUMBER = re.compile(r"<X_SequenceNumber>(\d+)</X_SequenceNumber>")


@dataclass(slots=True)
class SoapRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    # Sequence number consumed by this request, when it was encrypted
    seq_num: int | None = None

    def info(self) -> RequestInfo:
        return RequestInfo(method=self.method, url=self.url, body=self.body)


def _action_element(urn: str, action: str, params: str) -> str:
    return f'<u:{action} xmlns:u="urn:{urn}">{params}</u:{action}>'


def build_soap_envelope(urn: str, action: str, params: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"'
        ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
        f"<s:Body>{_action_element(urn, action, params)}</s:Body>"
        "</s:Envelope>"
    )


def build_soap_headers(urn: str, action: str) -> dict[str, str]:
    return {
        "Content-Type": 'text/xml; charset="utf-8"',
        "SOAPAction": f'"urn:{urn}#{action}"',
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Accept": "text/xml",
    }


def needs_encryption(urn: str, action: str) -> bool:
    return urn == URN_REMOTE_CONTROL and action not in PLAIN_ACTIONS


def build_encrypted_command(
    session: Session,
    app_id: str,
    urn: str,
    action: str,
    params: str,
) -> tuple[str, str, int]:
    """Wrap an action into ``X_EncryptedCommand``.

    The sequence number is consumed before encryption so a failed send never
    frees it for reuse.

    Returns:
        Tuple of (action, params, sequence number used)
    """
    seq_num = session.next_sequence()
    command = (
        f"<X_SessionId>{session.session_id or ''}</X_SessionId>"
        f"<X_SequenceNumber>{seq_num:08d}</X_SequenceNumber>"
        f"<X_OriginalCommand>{_action_element(urn, action, params)}</X_OriginalCommand>"
    )
    encrypted = encrypt_payload(command, session.key, session.iv, session.hmac_key)
    wrapped = f"<X_ApplicationId>{app_id}</X_ApplicationId><X_EncInfo>{encrypted}</X_EncInfo>"
    return "X_EncryptedCommand", wrapped, seq_num


def sanitize_payload(payload: str) -> str:
    """Strip XML namespace prefixes and attributes (``<s:Body a:b="c">`` -> ``<Body>``)."""
    return _NAMESPACE_PREFIX.sub(r"<\1\2>", payload)


def echoed_sequence_number(payload: str) -> int | None:
    match = _SEQUENCE_NUMBER.search(payload)
    return int(match.group(1)) if match else None
