"""Exception hierarchy for the Viera controller.

Discovery, polling and event errors never reach the scheduling loop: they are
logged and turned into connection-state messages. Only malformed local input
(``InvalidArgumentError``) surfaces to callers as a hard error.
"""

from __future__ import annotations

from dataclasses import dataclass


class VieraError(Exception):
    """Base exception for all controller errors.

    Attributes:
        reason: Human readable failure reason
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidArgumentError(VieraError):
    """Malformed input to a query, write or configuration call.

    Raised when:
    - Volume outside 0..100
    - MAC address that cannot be normalized
    - Writing a property that is not writable or has no client
    """


class InvalidStateError(VieraError):
    """Operation is not allowed in the current state.

    Raised when:
    - A pin handshake step is called out of order
    - An encrypted call is attempted without a valid session
    """


class EncryptError(VieraError):
    """Payload could not be encrypted (bad key or IV material)."""


class DecryptError(VieraError):
    """Payload could not be decrypted or authenticated.

    Raised when:
    - Payload is not valid base64 or is too short
    - HMAC signature does not match
    - Echoed sequence number is not the one just sent

    A decrypt failure invalidates the session; a new pin handshake is required.
    """


class TelevisionApiError(VieraError):
    """Request to the television could not be prepared."""


@dataclass(frozen=True, slots=True)
class RequestInfo:
    """Summary of an outgoing HTTP request, kept for diagnostics."""

    method: str
    url: str
    body: str | None = None


@dataclass(frozen=True, slots=True)
class ResponseInfo:
    """Summary of a received HTTP response, kept for diagnostics."""

    status: int
    body: str | None = None


class TelevisionApiCallError(VieraError):
    """Transport-level failure while talking to the television.

    Raised when:
    - Connection refused or timed out
    - Non-2xx HTTP status
    - Response body is not the expected document

    Attributes:
        reason: Specific failure reason
        request: Request that failed (if built)
        response: Response received (if any)
    """

    def __init__(
        self,
        reason: str,
        request: RequestInfo | None = None,
        response: ResponseInfo | None = None,
    ):
        self.request = request
        self.response = response
        super().__init__(reason)

    def log_context(self) -> dict[str, object]:
        """Structured context for ``extra=`` logging."""
        context: dict[str, object] = {"reason": self.reason}
        if self.request is not None:
            context["request_method"] = self.request.method
            context["request_url"] = self.request.url
        if self.response is not None:
            context["response_status"] = self.response.status
            context["response_body"] = self.response.body
        return context


class RuntimeViolationError(VieraError):
    """Unexpected internal condition; the operation is aborted."""
