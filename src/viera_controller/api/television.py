"""HTTP/SOAP client for a single Panasonic Viera television.

One ``TelevisionApi`` owns the encrypted ``Session`` of its television. Every
call that goes through the remote-control URN consumes a sequence number when
the television requires encryption; handshake actions are always sent plain.
"""

from __future__ import annotations

import asyncio
import html
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from xml.etree.ElementTree import Element, ParseError

import aiohttp
from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException

from viera_controller import metrics
from viera_controller.api.crypto import (
    Session,
    decrypt_payload,
    derive_pin_keys,
    derive_session_keys,
    encrypt_payload,
)
from viera_controller.api.messages import (
    Application,
    AuthorizePinCode,
    DeviceApps,
    DeviceSpecs,
    DeviceVectorInfo,
    Event,
    RequestPinCode,
)
from viera_controller.api.request import (
    SoapRequest,
    build_encrypted_command,
    build_soap_envelope,
    build_soap_headers,
    echoed_sequence_number,
    needs_encryption,
    sanitize_payload,
)
from viera_controller.const import (
    DEFAULT_PORT,
    EVENTS_TIMEOUT,
    LIVENESS_TIMEOUT,
    SCREEN_STATE_WAIT,
    UNSUBSCRIBE_TIMEOUT,
    URL_CONTROL_DMR,
    URL_CONTROL_NRC,
    URL_DEVICE_DESCRIPTOR,
    URL_EVENT_NRC,
    URL_SERVICE_DESCRIPTOR,
    URN_REMOTE_CONTROL,
    URN_RENDERING_CONTROL,
    WOL_PORT,
    env,
)
from viera_controller.exceptions import (
    DecryptError,
    EncryptError,
    InvalidArgumentError,
    InvalidStateError,
    ResponseInfo,
    TelevisionApiCallError,
    TelevisionApiError,
)
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.types import ActionKey
from viera_controller.utils import build_magic_packet, get_local_address

__all__ = [
    "HttpResponse",
    "TelevisionApi",
    "parse_app_list",
    "parse_event",
]

EventListener = Callable[[Event], None]
ErrorListener = Callable[[BaseException], None]

_ENC_RESULT = re.compile(r"<X_EncResult>(.*?)</X_EncResult>", re.DOTALL)
_AUTH_RESULT = re.compile(r"<X_AuthResult>(.*?)</X_AuthResult>", re.DOTALL)
_SESSION_ID = re.compile(r"<X_SessionId>(.*?)</X_SessionId>", re.DOTALL)
_APP_ID = re.compile(r"<X_ApplicationId>(.*?)</X_ApplicationId>", re.DOTALL)
_KEYWORD = re.compile(r"<X_Keyword>(.*?)</X_Keyword>", re.DOTALL)
_APP_LIST = re.compile(r"<X_AppList>(.*?)</X_AppList>", re.DOTALL)
_APP_ENTRY = re.compile(r"'product_id=(?P<id>[\dA-Z]+)'(?P<name>[^']+)")
_PORT_NUMBER = re.compile(r"<X_PortNumber>(.*?)</X_PortNumber>", re.DOTALL)
_CURRENT_VOLUME = re.compile(r"<CurrentVolume>(.*?)</CurrentVolume>", re.DOTALL)
_CURRENT_MUTE = re.compile(r"<CurrentMute>(.*?)</CurrentMute>", re.DOTALL)
_SCREEN_STATE = re.compile(r"<X_ScreenState>(\w+)</X_ScreenState>")
_INPUT_MODE = re.compile(r"<X_InputMode>(\w+)</X_InputMode>")
_CONTENT_LENGTH = re.compile(rb"^content-length:\s*(\d+)\s*$", re.IGNORECASE | re.MULTILINE)

EVENT_RESPONSE = b'HTTP/1.1 200 OK\r\nContent-Type: text/xml; charset="utf-8"\r\nContent-Length: 0\r\n\r\n'


@dataclass(slots=True)
class HttpResponse:
    status: int
    body: str
    # Header names upper-cased
    headers: Mapping[str, str] = field(default_factory=dict)


def parse_app_list(raw: str) -> list[Application]:
    """Parse the ``X_AppList`` text into applications (``'product_id=<id>'<name>``)."""
    return [Application(id=m.group("id"), name=m.group("name")) for m in _APP_ENTRY.finditer(html.unescape(raw))]


def parse_event(body: str) -> tuple[bool | None, str | None]:
    """Extract ``(screen_on, input_mode)`` from a NOTIFY body; missing values are None."""
    screen_state: bool | None = None
    input_mode: str | None = None
    unescaped = html.unescape(body)
    if match := _SCREEN_STATE.search(unescaped):
        screen_state = match.group(1).lower() == "on"
    if match := _INPUT_MODE.search(unescaped):
        input_mode = match.group(1).lower()
    return screen_state, input_mode


def _strip_namespaces(root: Element) -> Element:
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def _text(element: Element | None, path: str) -> str:
    if element is None:
        return ""
    found = element.find(path)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


class TelevisionApi:
    """Control client for one television.

    Args:
        identifier: Device identifier (USN uuid)
        ip_address: Television address
        port: Control port (55000 unless the television says otherwise)
        app_id: Application id from a completed pin handshake
        encryption_key: Encryption key from a completed pin handshake
        mac_address: MAC address used for Wake-on-LAN
        requires_encryption: Refuse plain remote-control calls when no session exists
        http_session: Shared aiohttp session (created lazily when omitted)
        http_timeout: Total timeout per HTTP request in seconds
        logger: Logger to use (defaults to the module logger)
    """

    def __init__(
        self,
        identifier: str,
        ip_address: str,
        port: int = DEFAULT_PORT,
        app_id: str | None = None,
        encryption_key: str | None = None,
        mac_address: str | None = None,
        *,
        requires_encryption: bool = False,
        http_session: aiohttp.ClientSession | None = None,
        http_timeout: float | None = None,
        logger: VieraLogger | None = None,
    ) -> None:
        self.identifier: str = identifier
        self.ip_address: str = ip_address
        self.port: int = port
        self.app_id: str | None = app_id
        self.encryption_key: str | None = encryption_key
        self.mac_address: str | None = mac_address
        self.requires_encryption: bool = requires_encryption
        self.http_timeout: float = env.http_timeout if http_timeout is None else http_timeout
        self.logger: VieraLogger = logger or get_logger(__name__)
        self.lp: str = f"TelevisionApi[{identifier}]:"

        self._http_session: aiohttp.ClientSession | None = http_session
        self._owns_http_session: bool = http_session is None
        self._session: Session | None = None
        self._session_generation: int = 0
        self._connected: bool = False

        self._events_server: asyncio.Server | None = None
        self._subscription_created: bool = False
        self._subscription_id: str | None = None
        self._screen_state: bool | None = None
        self._event_listeners: list[EventListener] = []
        self._error_listeners: list[ErrorListener] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_encrypted(self) -> bool:
        return self.app_id is not None and self.encryption_key is not None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def session(self) -> Session | None:
        return self._session

    async def connect(self, subscribe: bool = False) -> None:
        """Establish the encrypted session (if paired) and optionally subscribe to events."""
        if self.encryption_key is not None and self.app_id is not None:
            self._install_session(self.encryption_key)
            await self.request_session_id()

        if subscribe:
            await self._subscribe_events()

        self._connected = True

    async def disconnect(self) -> None:
        self._session = None
        self._connected = False

        await self._unsubscribe_events()

        if self._owns_http_session and self._http_session is not None and not self._http_session.closed:
            self.logger.debug("%s Closing aiohttp ClientSession", self.lp)
            await self._http_session.close()
            self._http_session = None

    async def install_credentials(self, app_id: str, encryption_key: str) -> Session:
        """Adopt credentials from a pin handshake.

        A new session is negotiated with the credentials first. The current
        credentials and session are replaced only once the television accepts
        it, so a failed negotiation leaves the api as it was.
        """
        session = self._create_session(encryption_key)
        await self.request_session_id(session, app_id)

        self.app_id = app_id
        self.encryption_key = encryption_key
        self._session = session
        self._session_generation = session.generation
        return session

    def _create_session(self, encryption_key: str) -> Session:
        try:
            material = derive_session_keys(encryption_key)
        except EncryptError as e:
            raise TelevisionApiError(f"Session keys could not be derived: {e.reason}") from e
        return Session.from_material(material, generation=self._session_generation + 1)

    def _install_session(self, encryption_key: str) -> Session:
        self._session = self._create_session(encryption_key)
        self._session_generation = self._session.generation
        return self._session

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_event(self, listener: EventListener) -> None:
        self._event_listeners.append(listener)

    def remove_event_listener(self, listener: EventListener) -> None:
        if listener in self._event_listeners:
            self._event_listeners.remove(listener)

    def on_event_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        if listener in self._error_listeners:
            self._error_listeners.remove(listener)

    def _emit_event(self, event: Event) -> None:
        for listener in list(self._event_listeners):
            listener(event)

    def _emit_error(self, error: BaseException) -> None:
        for listener in list(self._error_listeners):
            listener(error)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def request_session_id(self, candidate: Session | None = None, app_id: str | None = None) -> Session:
        """Exchange the application id for a session id (``X_GetEncryptSessionId``).

        Without arguments the installed session is negotiated. A ``candidate``
        session is negotiated for ``app_id`` without being installed.
        """
        session = candidate if candidate is not None else self._session
        app_id = app_id if candidate is not None else self.app_id
        if session is None or app_id is None:
            raise InvalidStateError("Session is not created")

        try:
            enc_info = encrypt_payload(
                f"<X_ApplicationId>{app_id}</X_ApplicationId>",
                session.key,
                session.iv,
                session.hmac_key,
            )
        except EncryptError as e:
            raise TelevisionApiError("Could not prepare request") from e

        params = f"<X_ApplicationId>{app_id}</X_ApplicationId><X_EncInfo>{enc_info}</X_EncInfo>"
        request = self._create_xml_request(URL_CONTROL_NRC, URN_REMOTE_CONTROL, "X_GetEncryptSessionId", params)
        response = await self._call_xml_request(request, "X_GetEncryptSessionId")

        body = sanitize_payload(response.body)
        match = _ENC_RESULT.search(body)
        if match is None:
            raise TelevisionApiCallError("Could not parse received response", request.info(), _info(response))

        if candidate is None and self._session is not session:
            raise TelevisionApiCallError("Something went wrong. Session was lost", request.info(), _info(response))

        payload = self._decrypt(session, match.group(1))
        if session_id := _SESSION_ID.search(payload):
            session.session_id = session_id.group(1)
        session.seq_num = 1

        self.logger.info(
            "%s Encrypted session established",
            self.lp,
            extra={"device_id": self.identifier, "generation": session.generation},
        )
        return session

    def _require_session(self) -> Session:
        session = self._session
        if session is None or not session.valid:
            raise InvalidStateError("Encrypted session is not established; pair the television again")
        return session

    def _decrypt(self, session: Session, encrypted: str, expected_seq: int | None = None) -> str:
        try:
            payload = decrypt_payload(encrypted, session.key, session.iv, session.hmac_key)
            echoed = echoed_sequence_number(payload)
            if expected_seq is not None and echoed is not None and echoed != expected_seq:
                raise DecryptError(f"Unexpected sequence number {echoed}, expected {expected_seq}")
        except DecryptError:
            session.invalidate()
            metrics.record_decrypt_failure(self.identifier)
            self.logger.exception(
                "%s Encrypted response rejected, session invalidated",
                self.lp,
                extra={"device_id": self.identifier, "generation": session.generation},
            )
            raise
        return sanitize_payload(payload)

    def _decode_result(self, request: SoapRequest, response: HttpResponse) -> str:
        """Return the response body, decrypted when it carries ``X_EncResult``."""
        body = sanitize_payload(response.body)
        match = _ENC_RESULT.search(body)
        if match is None:
            return body
        session = self._require_session()
        return self._decrypt(session, match.group(1), request.seq_num)

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    async def get_specs(self) -> DeviceSpecs:
        """Read the device descriptor and detect whether encryption is required."""
        request = SoapRequest("GET", self._url(URL_DEVICE_DESCRIPTOR))
        response = await self._call(request, "GetSpecs")

        root = self._parse_xml(request, response)
        device = root.find("device")
        if device is None:
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response))

        udn = _text(device, "UDN")
        model_name = _text(device, "modelName")
        friendly_name = _text(device, "friendlyName")

        return DeviceSpecs(
            device_type=_text(device, "deviceType"),
            friendly_name=friendly_name or None,
            manufacturer=_text(device, "manufacturer"),
            model_name=model_name,
            model_number=_text(device, "modelNumber"),
            serial_number=udn[5:],
            requires_encryption=await self.needs_crypto(),
        )

    async def needs_crypto(self) -> bool:
        request = SoapRequest("GET", self._url(URL_SERVICE_DESCRIPTOR))
        response = await self._call(request, "NeedsCrypto")
        return "X_GetEncryptSessionId" in response.body

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def get_apps(self) -> DeviceApps:
        request = self._create_xml_request(URL_CONTROL_NRC, URN_REMOTE_CONTROL, "X_GetAppList", "None")
        response = await self._call_xml_request(request, "X_GetAppList")
        payload = self._decode_result(request, response)

        match = _APP_LIST.search(payload)
        if match is None:
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response))
        if not match.group(1).strip():
            raise TelevisionApiCallError(
                "Device is turned off. Apps could not be loaded",
                request.info(),
                _info(response),
            )

        return DeviceApps(apps=parse_app_list(match.group(1)))

    async def get_vector_info(self) -> DeviceVectorInfo:
        request = self._create_xml_request(URL_CONTROL_NRC, URN_REMOTE_CONTROL, "X_GetVectorInfo", "None")
        response = await self._call_xml_request(request, "X_GetVectorInfo")
        payload = self._decode_result(request, response)

        match = _PORT_NUMBER.search(payload)
        if match is None or not match.group(1).strip().isdigit():
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response))
        return DeviceVectorInfo(port=int(match.group(1)))

    async def get_volume(self) -> int:
        params = "<InstanceID>0</InstanceID><Channel>Master</Channel>"
        request = self._create_xml_request(URL_CONTROL_DMR, URN_RENDERING_CONTROL, "GetVolume", params)
        response = await self._call_xml_request(request, "GetVolume")
        payload = self._decode_result(request, response)

        match = _CURRENT_VOLUME.search(payload)
        if match is None or not match.group(1).strip().isdigit():
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response))
        return int(match.group(1))

    async def set_volume(self, volume: int) -> None:
        if not 0 <= volume <= 100:
            raise InvalidArgumentError("Bad request to volume control. Volume must be between 0 and 100")

        params = f"<InstanceID>0</InstanceID><Channel>Master</Channel><DesiredVolume>{volume}</DesiredVolume>"
        request = self._create_xml_request(URL_CONTROL_DMR, URN_RENDERING_CONTROL, "SetVolume", params)
        await self._call_xml_request(request, "SetVolume")

    async def get_mute(self) -> bool:
        params = "<InstanceID>0</InstanceID><Channel>Master</Channel>"
        request = self._create_xml_request(URL_CONTROL_DMR, URN_RENDERING_CONTROL, "GetMute", params)
        response = await self._call_xml_request(request, "GetMute")
        payload = self._decode_result(request, response)

        match = _CURRENT_MUTE.search(payload)
        if match is None:
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response))
        return match.group(1).strip() not in ("", "0")

    async def set_mute(self, mute: bool) -> None:
        params = f"<InstanceID>0</InstanceID><Channel>Master</Channel><DesiredMute>{1 if mute else 0}</DesiredMute>"
        request = self._create_xml_request(URL_CONTROL_DMR, URN_RENDERING_CONTROL, "SetMute", params)
        await self._call_xml_request(request, "SetMute")

    async def send_key(self, key: ActionKey) -> None:
        request = self._create_xml_request(
            URL_CONTROL_NRC,
            URN_REMOTE_CONTROL,
            "X_SendKey",
            f"<X_KeyEvent>{key.value}</X_KeyEvent>",
        )
        await self._call_xml_request(request, "X_SendKey")

    async def launch_application(self, application_id: str) -> None:
        """Launch an application; 16 character ids are product ids, others resource ids."""
        keyword = "product_id" if len(application_id) == 16 else "resource_id"
        params = (
            "<X_AppType>vc_app</X_AppType>"
            f"<X_LaunchKeyword>{keyword}={application_id}</X_LaunchKeyword>"
        )
        request = self._create_xml_request(URL_CONTROL_NRC, URN_REMOTE_CONTROL, "X_LaunchApp", params)
        await self._call_xml_request(request, "X_LaunchApp")

    async def turn_on(self) -> None:
        if await self.is_turned_on():
            return
        if self.mac_address is not None:
            await self.wake_on_lan()
        else:
            await self.send_key(ActionKey.POWER)

    async def turn_off(self) -> None:
        if await self.is_turned_on():
            await self.send_key(ActionKey.POWER)

    # ------------------------------------------------------------------
    # Pairing
    # ------------------------------------------------------------------

    async def request_pin_code(self, name: str) -> RequestPinCode:
        """Ask the television to display a pin and return its challenge key."""
        request = self._create_xml_request(
            URL_CONTROL_NRC,
            URN_REMOTE_CONTROL,
            "X_DisplayPinCode",
            f"<X_DeviceName>{html.escape(name)}</X_DeviceName>",
        )
        response = await self._call_xml_request(request, "X_DisplayPinCode")

        root = self._parse_xml(request, response)
        result = root.find("Body/X_DisplayPinCodeResponse")
        if result is None or result.find("X_ChallengeKey") is None:
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response))

        challenge_key = _text(result, "X_ChallengeKey")
        return RequestPinCode(challenge_key=challenge_key or None)

    async def authorize_pin_code(self, pin_code: str, challenge_key: str) -> AuthorizePinCode:
        """Submit the pin shown on screen; returns the application id and encryption key."""
        try:
            material = derive_pin_keys(challenge_key)
            payload = encrypt_payload(
                f"<X_PinCode>{pin_code}</X_PinCode>",
                material.key,
                material.iv,
                material.hmac_key,
            )
        except EncryptError as e:
            raise TelevisionApiError(f"Could not encrypt request: {e.reason}") from e

        request = self._create_xml_request(
            URL_CONTROL_NRC,
            URN_REMOTE_CONTROL,
            "X_RequestAuth",
            f"<X_AuthInfo>{payload}</X_AuthInfo>",
        )
        response = await self._call_xml_request(request, "X_RequestAuth")

        match = _AUTH_RESULT.search(sanitize_payload(response.body))
        if match is None:
            raise TelevisionApiCallError("Could not parse received response", request.info(), _info(response))

        try:
            result = decrypt_payload(match.group(1), material.key, material.iv, material.hmac_key)
        except DecryptError as e:
            raise TelevisionApiCallError(
                "Could not decrypt received response",
                request.info(),
                _info(response),
            ) from e

        app_id = _APP_ID.search(result)
        encryption_key = _KEYWORD.search(result)
        return AuthorizePinCode(
            app_id=app_id.group(1) if app_id else None,
            encryption_key=encryption_key.group(1) if encryption_key else None,
        )

    # ------------------------------------------------------------------
    # Network helpers
    # ------------------------------------------------------------------

    async def wake_on_lan(self) -> None:
        if self.mac_address is None:
            raise InvalidArgumentError("Television MAC address have to be configured")

        packet = build_magic_packet(self.mac_address)
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                asyncio.DatagramProtocol,
                remote_addr=(self.ip_address, WOL_PORT),
            )
        except OSError as e:
            raise TelevisionApiCallError(f"Wake-on-LAN packet could not be sent: {e}") from e

        try:
            transport.sendto(packet)
        finally:
            transport.close()

        self.logger.debug("%s Wake-on-LAN packet sent", self.lp, extra={"mac": self.mac_address})

    async def check_liveness(self, timeout: float = LIVENESS_TIMEOUT) -> bool:
        """Return True when the control port accepts a TCP connection within ``timeout``."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.ip_address, self.port),
                timeout=timeout,
            )
        except (TimeoutError, OSError):
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            self.logger.debug("%s Liveness socket close failed: %s", self.lp, e)
        return True

    async def is_turned_on(self) -> bool:
        """Screen state from the event subscription.

        While subscribed the cached state is returned. Otherwise a temporary
        subscription is made and the first event is awaited for a short window.
        """
        if self._subscription_created and self._screen_state is not None:
            return self._screen_state

        loop = asyncio.get_running_loop()
        result: asyncio.Future[bool] = loop.create_future()

        def handle_event(event: Event) -> None:
            if event.screen_state is not None and not result.done():
                result.set_result(event.screen_state)

        def handle_error(_error: BaseException) -> None:
            if not result.done():
                result.set_result(False)

        self.on_event(handle_event)
        self.on_event_error(handle_error)

        do_unsubscribe = False
        try:
            if not self._subscription_created:
                do_unsubscribe = True
                if not await self._subscribe_events():
                    return False

            try:
                return await asyncio.wait_for(result, timeout=SCREEN_STATE_WAIT)
            except TimeoutError:
                return False
        finally:
            self.remove_event_listener(handle_event)
            self.remove_error_listener(handle_error)
            if do_unsubscribe:
                await self._unsubscribe_events()

    # ------------------------------------------------------------------
    # Event subscription
    # ------------------------------------------------------------------

    async def _subscribe_events(self) -> bool:
        if self._events_server is not None:
            return True

        try:
            self._events_server = await asyncio.start_server(self._handle_event_connection, host="0.0.0.0", port=0)
        except OSError:
            self.logger.exception("%s Could not start event server", self.lp)
            return False

        self._subscription_created = True

        local_ip = get_local_address(self.ip_address)
        if local_ip is None:
            self.logger.error("%s Could not get connector local address", self.lp)
            await self._close_events_server()
            return False

        local_port = self._events_server.sockets[0].getsockname()[1]
        self._subscription_id = None

        request = SoapRequest(
            "SUBSCRIBE",
            self._url(URL_EVENT_NRC),
            headers={
                "CALLBACK": f"<http://{local_ip}:{local_port}>",
                "NT": "upnp:event",
                "TIMEOUT": f"Second-{EVENTS_TIMEOUT}",
            },
        )
        try:
            response = await self._call(request, "SUBSCRIBE")
        except TelevisionApiCallError as e:
            self.logger.debug("%s Event subscription failed", self.lp, extra=e.log_context())
            await self._close_events_server()
            return False

        self._subscription_id = response.headers.get("SID")
        self.logger.debug(
            "%s Subscribed to events",
            self.lp,
            extra={"sid": self._subscription_id, "callback_port": local_port},
        )
        return True

    async def _unsubscribe_events(self) -> None:
        self._subscription_created = False

        if self._subscription_id is not None:
            request = SoapRequest("UNSUBSCRIBE", self._url(URL_EVENT_NRC), headers={"SID": self._subscription_id})
            try:
                await self._call(request, "UNSUBSCRIBE", timeout=UNSUBSCRIBE_TIMEOUT)
            except TelevisionApiCallError as e:
                # Television may already be gone
                self.logger.debug("%s Unsubscribe failed", self.lp, extra=e.log_context())
            self._subscription_id = None

        await self._close_events_server()

    async def _close_events_server(self) -> None:
        server = self._events_server
        self._events_server = None
        self._subscription_created = False
        self._screen_state = None
        if server is not None:
            server.close()
            await server.wait_closed()

    async def _handle_event_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            head = await reader.readuntil(b"\r\n\r\n")
            length_match = _CONTENT_LENGTH.search(head)
            length = int(length_match.group(1)) if length_match else 0
            body = (await reader.readexactly(length)).decode("utf-8", errors="replace") if length else ""

            screen_state, input_mode = parse_event(body)
            if screen_state is not None:
                self._screen_state = screen_state

            writer.write(EVENT_RESPONSE)
            await writer.drain()

            self._emit_event(Event(screen_state=self._screen_state, input_mode=input_mode))
        except (asyncio.IncompleteReadError, asyncio.LimitOverrunError, OSError) as e:
            self.logger.exception("%s Something went wrong with subscription socket", self.lp)
            self._emit_error(e)
        finally:
            writer.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"http://{self.ip_address}:{self.port}{path}"

    def _create_xml_request(self, url: str, urn: str, action: str, params: str) -> SoapRequest:
        seq_num: int | None = None
        if (self.is_encrypted or self.requires_encryption) and needs_encryption(urn, action):
            session = self._require_session()
            try:
                action, params, seq_num = build_encrypted_command(session, self.app_id or "", urn, action, params)
            except EncryptError as e:
                raise TelevisionApiError("Could not prepare request") from e

        return SoapRequest(
            "POST",
            self._url(url),
            headers=build_soap_headers(urn, action),
            body=build_soap_envelope(urn, action, params),
            seq_num=seq_num,
        )

    def _parse_xml(self, request: SoapRequest, response: HttpResponse) -> Element:
        try:
            root = ElementTree.fromstring(sanitize_payload(response.body))
        except (ParseError, DefusedXmlException) as e:
            raise TelevisionApiCallError("Received response is not valid", request.info(), _info(response)) from e
        return _strip_namespaces(root)

    async def _call_xml_request(self, request: SoapRequest, action: str) -> HttpResponse:
        return await self._call(request, action)

    async def _call(self, request: SoapRequest, action: str, timeout: float | None = None) -> HttpResponse:
        self.logger.debug(
            "%s Request: method = %s url = %s",
            self.lp,
            request.method,
            request.url,
            extra={"action": action, "seq_num": request.seq_num},
        )
        started = time.perf_counter()
        try:
            response = await self._send(request, timeout)
        except TelevisionApiCallError:
            metrics.record_api_call(self.identifier, action, "error")
            raise
        finally:
            metrics.record_api_latency(self.identifier, action, time.perf_counter() - started)

        metrics.record_api_call(self.identifier, action, "success")
        self.logger.debug(
            "%s Received response",
            self.lp,
            extra={"action": action, "status": response.status, "body_length": len(response.body)},
        )
        return response

    async def _get_http_session(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self.logger.debug("%s Creating new aiohttp ClientSession", self.lp)
            self._http_session = aiohttp.ClientSession()
            self._owns_http_session = True
        return self._http_session

    async def _send(self, request: SoapRequest, timeout: float | None = None) -> HttpResponse:
        http_session = await self._get_http_session()
        try:
            async with http_session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body,
                timeout=aiohttp.ClientTimeout(total=timeout or self.http_timeout),
            ) as resp:
                body = await resp.text(errors="replace")
                response = HttpResponse(
                    status=resp.status,
                    body=body,
                    headers={key.upper(): value for key, value in resp.headers.items()},
                )
        except (aiohttp.ClientError, TimeoutError) as e:
            raise TelevisionApiCallError(f"Calling api endpoint failed: {e!r}", request.info()) from e

        if not 200 <= response.status < 300:
            raise TelevisionApiCallError(
                f"Calling api endpoint failed with status {response.status}",
                request.info(),
                _info(response),
            )
        return response


def _info(response: HttpResponse) -> ResponseInfo:
    return ResponseInfo(status=response.status, body=response.body)
