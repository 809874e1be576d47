"""Shared fixtures for unit tests.

This module provides reusable fixtures for testing Viera controller components.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.helpers.television import DEVICE_HOST, DEVICE_ID, ENCRYPTION_KEY
from viera_controller.api.crypto import Session, derive_session_keys
from viera_controller.api.television import HttpResponse, TelevisionApi
from viera_controller.queue.queue import Queue
from viera_controller.registry import DeviceConfig, YamlDeviceRegistry


@pytest.fixture
def session() -> Session:
    """Session derived from ``ENCRYPTION_KEY`` with a session id already assigned."""
    material = derive_session_keys(ENCRYPTION_KEY)
    new_session = Session.from_material(material, generation=1)
    new_session.session_id = "12345"
    new_session.seq_num = 1
    return new_session


@pytest.fixture
def television_api() -> TelevisionApi:
    """Plain (unencrypted) api whose HTTP transport is an AsyncMock."""
    api = TelevisionApi(DEVICE_ID, DEVICE_HOST, 55000)
    api._send = AsyncMock(return_value=HttpResponse(status=200, body=""))  # type: ignore[method-assign]
    return api


@pytest.fixture
def make_response() -> Callable[..., HttpResponse]:
    def _make(body: str = "", status: int = 200, headers: dict[str, str] | None = None) -> HttpResponse:
        return HttpResponse(status=status, body=body, headers=headers or {})

    return _make


@pytest.fixture
def queue() -> Queue:
    return Queue()


@pytest.fixture
def device_config() -> DeviceConfig:
    return DeviceConfig(
        identifier=DEVICE_ID,
        ip_address=DEVICE_HOST,
        port=55000,
        name="49DX600_Series",
        model="Panasonic VIErA TX-49DX600EA",
        manufacturer="Panasonic",
        serial_number=DEVICE_ID,
        mac_address="A8:13:74:B3:03:14",
        status_reading_delay=120,
    )


@pytest.fixture
def registry(tmp_path: Path, device_config: DeviceConfig) -> YamlDeviceRegistry:
    """Registry in a temporary file holding ``device_config``."""
    yaml_registry = YamlDeviceRegistry(tmp_path / "devices.yaml")
    yaml_registry.store(device_config)
    return yaml_registry


@pytest.fixture
def mock_sink() -> MagicMock:
    sink: MagicMock = MagicMock()
    sink.publish = MagicMock()
    return sink


@pytest.fixture
def mock_api() -> MagicMock:
    """Mock TelevisionApi with async methods.

    Returns a MagicMock configured with the api surface used by the client.
    """
    api: MagicMock = MagicMock(spec=TelevisionApi)
    api.identifier = DEVICE_ID
    api.is_connected = False
    api.connect = AsyncMock()
    api.disconnect = AsyncMock()
    api.is_turned_on = AsyncMock(return_value=True)
    api.get_volume = AsyncMock(return_value=20)
    api.get_mute = AsyncMock(return_value=False)
    api.set_volume = AsyncMock()
    api.set_mute = AsyncMock()
    api.send_key = AsyncMock()
    api.launch_application = AsyncMock()
    api.turn_on = AsyncMock()
    api.turn_off = AsyncMock()
    api.on_event = MagicMock()
    api.on_event_error = MagicMock()
    return api
