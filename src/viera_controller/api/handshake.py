"""Pin-code pairing for televisions that require encrypted sessions.

Each step is triggered explicitly by the caller because the user has to read
the pin off the screen. Nothing is retried automatically.
"""

from __future__ import annotations

from enum import StrEnum

from viera_controller import metrics
from viera_controller.api.messages import AuthorizePinCode
from viera_controller.api.television import TelevisionApi
from viera_controller.exceptions import InvalidStateError, TelevisionApiCallError, VieraError
from viera_controller.logging_abstraction import VieraLogger, get_logger

__all__ = ["HandshakeState", "PinHandshake"]


class HandshakeState(StrEnum):
    IDLE = "idle"
    CHALLENGE_REQUESTED = "challenge_requested"
    PIN_DISPLAYED = "pin_displayed"
    AUTHORIZED = "authorized"
    FAILED = "failed"


class PinHandshake:
    """Drive ``X_DisplayPinCode`` -> ``X_RequestAuth`` -> ``X_GetEncryptSessionId``.

    Usage::

        handshake = PinHandshake(api)
        await handshake.request_pin("viera-controller")
        result = await handshake.authorize("1234")

    A failure at any step leaves the handshake in ``FAILED`` and the api with
    the credentials and session it had before; call ``reset()`` to start over.
    """

    def __init__(self, api: TelevisionApi, logger: VieraLogger | None = None) -> None:
        self.api = api
        self.logger = logger or get_logger(__name__)
        self.lp = f"PinHandshake[{api.identifier}]:"
        self.state: HandshakeState = HandshakeState.IDLE
        self._challenge_key: str | None = None

    @property
    def challenge_key(self) -> str | None:
        return self._challenge_key

    def reset(self) -> None:
        self.state = HandshakeState.IDLE
        self._challenge_key = None

    async def request_pin(self, device_name: str) -> None:
        """Ask the television to show the pin on screen.

        Raises:
            InvalidStateError: handshake is not idle
            TelevisionApiCallError: the television rejected or did not answer the request
        """
        if self.state is not HandshakeState.IDLE:
            raise InvalidStateError(f"Pin can only be requested from idle state, current state: {self.state}")

        self.state = HandshakeState.CHALLENGE_REQUESTED
        try:
            result = await self.api.request_pin_code(device_name)
        except VieraError as e:
            self._fail("request_pin", e)
            raise

        if not result.challenge_key:
            # Pin keys are derived from the challenge
            error = TelevisionApiCallError("Television did not return a challenge key, pin pairing is not supported")
            self._fail("request_pin", error)
            raise error

        self._challenge_key = result.challenge_key
        self.state = HandshakeState.PIN_DISPLAYED
        metrics.record_handshake(self.api.identifier, "request_pin", "success")
        self.logger.info("%s Pin code displayed on television", self.lp)

    async def authorize(self, pin_code: str) -> AuthorizePinCode:
        """Submit the pin and establish the encrypted session.

        Raises:
            InvalidStateError: no pin was requested
            TelevisionApiCallError: wrong pin, rejection or transport failure
        """
        if self.state is not HandshakeState.PIN_DISPLAYED or self._challenge_key is None:
            raise InvalidStateError(f"Pin can only be authorized after it was displayed, current state: {self.state}")

        challenge_key = self._challenge_key
        # Challenge is single use
        self._challenge_key = None

        try:
            result = await self.api.authorize_pin_code(pin_code, challenge_key)
            if result.app_id is None or result.encryption_key is None:
                raise TelevisionApiCallError("Television rejected the pin code")

            await self.api.install_credentials(result.app_id, result.encryption_key)
        except VieraError as e:
            self._fail("authorize", e)
            raise

        self.state = HandshakeState.AUTHORIZED
        metrics.record_handshake(self.api.identifier, "authorize", "success")
        self.logger.info("%s Television paired", self.lp, extra={"app_id": result.app_id})
        return result

    def _fail(self, step: str, error: VieraError) -> None:
        self.state = HandshakeState.FAILED
        metrics.record_handshake(self.api.identifier, step, "failure")
        self.logger.error(
            "%s Pairing failed",
            self.lp,
            extra={"step": step, "reason": error.reason},
        )
