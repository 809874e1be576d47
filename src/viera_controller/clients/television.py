"""Per-device polling and command dispatch for configured televisions."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from viera_controller.api.messages import Event
from viera_controller.api.television import TelevisionApi
from viera_controller.const import (
    HANDLER_PROCESSING_INTERVAL,
    HANDLER_START_DELAY,
    MAX_HDMI_CODE,
    TV_CODE,
    YES_ANSWER,
    env,
)
from viera_controller.exceptions import (
    DecryptError,
    InvalidArgumentError,
    InvalidStateError,
    TelevisionApiCallError,
    VieraError,
)
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.queue.messages import (
    ChannelPropertyStateChanged,
    DeviceConnectionStateChanged,
    PropertyValue,
)
from viera_controller.queue.queue import Queue
from viera_controller.registry import DeviceConfig, DeviceRegistry
from viera_controller.types import (
    HDMI_KEYS,
    PROPERTIES_KEYS,
    ActionKey,
    ChannelPropertyIdentifier,
    ConnectionState,
)

__all__ = ["TelevisionClient", "api_from_config"]

ApiFactory = Callable[[DeviceConfig], TelevisionApi]


def api_from_config(config: DeviceConfig) -> TelevisionApi:
    return TelevisionApi(
        config.identifier,
        config.ip_address,
        config.port,
        config.app_id,
        config.encryption_key,
        config.mac_address,
        requires_encryption=config.encrypted,
    )


def _to_bool(value: PropertyValue) -> bool:
    if isinstance(value, str):
        return value.casefold() in YES_ANSWER
    return bool(value)


def _to_int(value: PropertyValue) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _hdmi_key(value: PropertyValue) -> ActionKey:
    number = _to_int(value)
    if number is None or number not in HDMI_KEYS:
        raise InvalidArgumentError(f"Unknown HDMI input: {value!r}")
    return HDMI_KEYS[number]


class TelevisionClient:
    """Keeps one ``TelevisionApi`` per registered television.

    A handler loop visits one device per tick. Device work runs in its own
    task, so a television that stops answering never holds up the others.
    """

    lp: str = "TelevisionClient:"

    def __init__(
        self,
        registry: DeviceRegistry,
        queue: Queue,
        connector_id: str | None = None,
        api_factory: ApiFactory = api_from_config,
        logger: VieraLogger | None = None,
    ) -> None:
        self.registry = registry
        self.queue = queue
        self.connector_id = connector_id or env.connector_id
        self.api_factory = api_factory
        self.logger = logger or get_logger(__name__)

        self._apis: dict[str, TelevisionApi] = {}
        self._processed_devices: set[str] = set()
        self._last_read: dict[str, float] = {}
        self._device_tasks: dict[str, asyncio.Task[None]] = {}
        self._handler_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def get_api(self, device_id: str) -> TelevisionApi | None:
        return self._apis.get(device_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        self._processed_devices = set()
        for config in self.registry.all():
            self._create_device_api(config)

        self._running = True
        self._handler_task = asyncio.get_running_loop().create_task(self._run_handler(), name="television_handler")
        self.logger.info("%s Started", self.lp, extra={"device_count": len(self._apis)})

    async def disconnect(self) -> None:
        self._running = False

        tasks = [t for t in (self._handler_task, *self._device_tasks.values()) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        self._handler_task = None
        self._device_tasks = {}

        for api in self._apis.values():
            try:
                await api.disconnect()
            except VieraError as e:
                self.logger.warning(
                    "%s Device disconnect failed",
                    self.lp,
                    extra={"device_id": api.identifier, "reason": e.reason},
                )

        self.logger.info("%s Stopped", self.lp)

    async def _run_handler(self) -> None:
        await asyncio.sleep(HANDLER_START_DELAY)
        while self._running:
            self.handle_communication()
            await asyncio.sleep(HANDLER_PROCESSING_INTERVAL)

    def handle_communication(self) -> None:
        """Schedule work for the next device not yet visited in this round."""
        for config in self.registry.all():
            device_id = config.identifier
            if device_id in self._processed_devices:
                continue
            if self.registry.get_connection_state(device_id) is ConnectionState.STOPPED:
                continue

            self._processed_devices.add(device_id)
            running = self._device_tasks.get(device_id)
            if running is not None and not running.done():
                continue

            task = asyncio.get_running_loop().create_task(self._process_device(config), name=f"process_{device_id}")
            self._device_tasks[device_id] = task
            task.add_done_callback(lambda t, d=device_id: self._device_task_done(d, t))
            return

        self._processed_devices = set()

    def _device_task_done(self, device_id: str, task: asyncio.Task[None]) -> None:
        if self._device_tasks.get(device_id) is task:
            del self._device_tasks[device_id]

    # ------------------------------------------------------------------
    # Device processing
    # ------------------------------------------------------------------

    async def _process_device(self, config: DeviceConfig) -> None:
        api = self._apis.get(config.identifier)
        if api is None:
            self._create_device_api(config)
            return

        if not api.is_connected:
            try:
                await api.connect(subscribe=True)
            except VieraError as e:
                self.logger.warning(
                    "%s Device could not be connected",
                    self.lp,
                    extra={"device_id": config.identifier, "reason": e.reason},
                )
                self._queue_connection_state(config.identifier, ConnectionState.DISCONNECTED)
                return
            self._queue_connection_state(config.identifier, ConnectionState.CONNECTED)

        now = time.monotonic()
        last_read = self._last_read.get(config.identifier)
        if last_read is not None and now - last_read < config.status_reading_delay:
            return
        self._last_read[config.identifier] = now

        try:
            is_on = await api.is_turned_on()
            self._queue_property_state(config.identifier, ChannelPropertyIdentifier.STATE, is_on)
            # Rendering control answers only while the screen is on
            if is_on:
                volume = await api.get_volume()
                self._queue_property_state(config.identifier, ChannelPropertyIdentifier.VOLUME, volume)
                mute = await api.get_mute()
                self._queue_property_state(config.identifier, ChannelPropertyIdentifier.MUTE, mute)
        except (TelevisionApiCallError, DecryptError, InvalidStateError) as e:
            self._last_read.pop(config.identifier, None)
            self.logger.warning(
                "%s Could not call local api",
                self.lp,
                extra={"device_id": config.identifier, "reason": e.reason},
            )
            if not isinstance(e, TelevisionApiCallError):
                # Session is unusable; the next connect negotiates a new one
                await api.disconnect()
            self._queue_connection_state(config.identifier, ConnectionState.DISCONNECTED)

    def _create_device_api(self, config: DeviceConfig) -> TelevisionApi:
        self._last_read.pop(config.identifier, None)
        api = self.api_factory(config)
        device_id = config.identifier

        def handle_event(event: Event) -> None:
            if event.screen_state is not None:
                self._queue_property_state(device_id, ChannelPropertyIdentifier.STATE, event.screen_state)

        def handle_event_error(error: BaseException) -> None:
            self.logger.warning(
                "%s Event subscription with device failed",
                self.lp,
                extra={"device_id": device_id, "error": repr(error)},
            )
            self._queue_connection_state(device_id, ConnectionState.DISCONNECTED)

        api.on_event(handle_event)
        api.on_event_error(handle_event_error)
        self._apis[device_id] = api
        return api

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write_channel_property(
        self,
        device_id: str,
        property_id: ChannelPropertyIdentifier,
        value: PropertyValue,
    ) -> bool:
        """Apply a property write on the television.

        Returns True when the television accepted the command. Transport
        failures are reported through the connection state instead of raised.

        Raises:
            InvalidArgumentError: unknown device, unsupported property or bad value
        """
        api = self._apis.get(device_id)
        if api is None:
            raise InvalidArgumentError("For provided device is not created client")
        if value is None:
            raise InvalidArgumentError("Property expected value is not set. Nothing to write")

        input_code: int | None = None
        try:
            match property_id:
                case ChannelPropertyIdentifier.STATE:
                    if _to_bool(value):
                        await api.turn_on()
                    else:
                        await api.turn_off()
                case ChannelPropertyIdentifier.VOLUME:
                    volume = _to_int(value)
                    if volume is None:
                        raise InvalidArgumentError(f"Invalid volume value: {value!r}")
                    await api.set_volume(volume)
                case ChannelPropertyIdentifier.MUTE:
                    await api.set_mute(_to_bool(value))
                case ChannelPropertyIdentifier.INPUT_SOURCE:
                    input_code = _to_int(value)
                    if input_code is not None and input_code < MAX_HDMI_CODE:
                        await api.send_key(_hdmi_key(input_code))
                    elif input_code == TV_CODE:
                        await api.send_key(ActionKey.AD_CHANGE)
                    else:
                        await api.launch_application(str(value))
                case ChannelPropertyIdentifier.APPLICATION:
                    await api.launch_application(str(value))
                case ChannelPropertyIdentifier.HDMI:
                    await api.send_key(_hdmi_key(value))
                case _ if property_id in PROPERTIES_KEYS:
                    await api.send_key(PROPERTIES_KEYS[property_id])
                case _:
                    raise InvalidArgumentError("Provided property is not supported for writing")
        except TelevisionApiCallError as e:
            self.logger.warning(
                "%s Could not write property",
                self.lp,
                extra={"device_id": device_id, "property": property_id, **e.log_context()},
            )
            self._queue_connection_state(device_id, ConnectionState.DISCONNECTED)
            return False
        except (DecryptError, InvalidStateError) as e:
            self.logger.error(
                "%s Could not write property",
                self.lp,
                extra={"device_id": device_id, "property": property_id, "reason": e.reason},
            )
            return False

        self._queue_written_states(device_id, property_id, value, input_code)
        return True

    def _queue_written_states(
        self,
        device_id: str,
        property_id: ChannelPropertyIdentifier,
        value: PropertyValue,
        input_code: int | None,
    ) -> None:
        self._queue_property_state(device_id, property_id, value)

        match property_id:
            case ChannelPropertyIdentifier.INPUT_SOURCE:
                self._queue_property_state(device_id, ChannelPropertyIdentifier.HDMI, None)
                self._queue_property_state(device_id, ChannelPropertyIdentifier.APPLICATION, None)
                if input_code is not None and input_code < MAX_HDMI_CODE:
                    self._queue_property_state(device_id, ChannelPropertyIdentifier.HDMI, value)
                elif input_code != TV_CODE:
                    self._queue_property_state(device_id, ChannelPropertyIdentifier.APPLICATION, value)
            case ChannelPropertyIdentifier.HDMI:
                self._queue_property_state(device_id, ChannelPropertyIdentifier.APPLICATION, None)
                self._queue_property_state(device_id, ChannelPropertyIdentifier.INPUT_SOURCE, value)
            case ChannelPropertyIdentifier.APPLICATION:
                self._queue_property_state(device_id, ChannelPropertyIdentifier.HDMI, None)
                self._queue_property_state(device_id, ChannelPropertyIdentifier.INPUT_SOURCE, value)
            case _:
                pass

    # ------------------------------------------------------------------
    # Queue helpers
    # ------------------------------------------------------------------

    def _queue_connection_state(self, device_id: str, state: ConnectionState) -> None:
        if not self._running:
            return
        self.queue.append(DeviceConnectionStateChanged(connector=self.connector_id, device=device_id, state=state))

    def _queue_property_state(
        self,
        device_id: str,
        property_id: ChannelPropertyIdentifier,
        value: PropertyValue,
    ) -> None:
        if not self._running:
            return
        self.queue.append(
            ChannelPropertyStateChanged(
                connector=self.connector_id,
                device=device_id,
                property=property_id,
                value=value,
            ),
        )
