"""Unit tests for the connector service."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tests.helpers.television import DEVICE_ID
from viera_controller.api.messages import AuthorizePinCode
from viera_controller.connector import Connector
from viera_controller.exceptions import InvalidArgumentError, RuntimeViolationError, TelevisionApiCallError
from viera_controller.queue.messages import ChannelPropertyStateChanged
from viera_controller.registry import YamlDeviceRegistry
from viera_controller.types import ChannelPropertyIdentifier


async def _wait_for(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(0.01)


def _connector(registry: YamlDeviceRegistry, sink: MagicMock, api: MagicMock) -> Connector:
    return Connector(registry, sink, "viera", api_factory=lambda _config: api)


class TestExecute:
    """Tests for the execute / terminate lifecycle."""

    @pytest.mark.asyncio
    async def test_execute_starts_client_and_consumer(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        connector = _connector(registry, mock_sink, mock_api)

        await connector.execute()

        assert connector.client is not None
        assert connector.client.running is True
        # Three store consumers plus the write consumer
        assert len(connector.consumers) == 4

        await connector.terminate()

        assert connector.client is None
        assert len(connector.consumers) == 3
        assert connector.has_unfinished_tasks() is False
        mock_api.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_execute_twice_raises(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        connector = _connector(registry, mock_sink, mock_api)
        await connector.execute()

        with pytest.raises(RuntimeViolationError):
            await connector.execute()

        assert len(connector.consumers) == 4
        await connector.terminate()

    @pytest.mark.asyncio
    async def test_write_reaches_television_and_sink(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        """Test a host write is consumed, applied and echoed as property state."""
        connector = _connector(registry, mock_sink, mock_api)
        await connector.execute()

        try:
            connector.write_channel_property(DEVICE_ID, ChannelPropertyIdentifier.VOLUME, 15)
            await _wait_for(lambda: mock_sink.publish.called)
        finally:
            await connector.terminate()

        mock_api.set_volume.assert_awaited_once_with(15)
        published = mock_sink.publish.call_args.args[0]
        assert isinstance(published, ChannelPropertyStateChanged)
        assert published.property is ChannelPropertyIdentifier.VOLUME
        assert published.value == 15

    @pytest.mark.asyncio
    async def test_terminate_drains_queue(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        """Test queued messages still reach the sink after terminate."""
        connector = _connector(registry, mock_sink, mock_api)
        await connector.execute()
        for value in (1, 2, 3):
            connector.queue.append(
                ChannelPropertyStateChanged(
                    connector="viera",
                    device=DEVICE_ID,
                    property=ChannelPropertyIdentifier.VOLUME,
                    value=value,
                ),
            )

        await connector.terminate()
        await _wait_for(lambda: not connector.has_unfinished_tasks())

        assert connector.queue.is_empty()
        assert [c.args[0].value for c in mock_sink.publish.call_args_list] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_consuming(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        """Test one failing publish loses only that message."""
        mock_sink.publish.side_effect = [OSError("disk full"), None, None]
        connector = _connector(registry, mock_sink, mock_api)
        await connector.execute()
        for value in (1, 2, 3):
            connector.queue.append(
                ChannelPropertyStateChanged(
                    connector="viera",
                    device=DEVICE_ID,
                    property=ChannelPropertyIdentifier.VOLUME,
                    value=value,
                ),
            )

        await _wait_for(lambda: mock_sink.publish.call_count == 3)

        assert connector.queue.is_empty()
        assert connector._consume_task is not None
        assert not connector._consume_task.done()

        await connector.terminate()


class TestDiscover:
    @pytest.mark.asyncio
    async def test_discover_delegates(self, registry: YamlDeviceRegistry, mock_sink: MagicMock, mock_api: MagicMock):
        connector = _connector(registry, mock_sink, mock_api)

        with patch("viera_controller.connector.Discovery") as discovery_cls:
            discovery_cls.return_value.discover = AsyncMock(return_value=[])
            devices = await connector.discover()
            await connector.terminate()

        assert devices == []
        discovery_cls.assert_called_once_with(connector.queue, "viera")
        discovery_cls.return_value.disconnect.assert_called_once()


class TestPair:
    """Tests for Connector.pair."""

    @pytest.mark.asyncio
    async def test_pair_stores_credentials(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        connector = _connector(registry, mock_sink, mock_api)
        pin_provider = AsyncMock(return_value="1234")

        with patch("viera_controller.connector.PinHandshake") as handshake_cls:
            handshake = handshake_cls.return_value
            handshake.request_pin = AsyncMock()
            handshake.authorize = AsyncMock(return_value=AuthorizePinCode(app_id="APP", encryption_key="KEY"))

            result = await connector.pair(DEVICE_ID, pin_provider, "living-room")

        handshake.request_pin.assert_awaited_once_with("living-room")
        handshake.authorize.assert_awaited_once_with("1234")
        assert result.app_id == "APP"
        stored = registry.get(DEVICE_ID)
        assert stored is not None
        assert stored.encrypted is True
        assert stored.app_id == "APP"
        assert stored.encryption_key == "KEY"
        mock_api.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_pairing_keeps_registry(
        self,
        registry: YamlDeviceRegistry,
        mock_sink: MagicMock,
        mock_api: MagicMock,
    ):
        connector = _connector(registry, mock_sink, mock_api)

        with patch("viera_controller.connector.PinHandshake") as handshake_cls:
            handshake_cls.return_value.request_pin = AsyncMock(side_effect=TelevisionApiCallError("refused"))
            with pytest.raises(TelevisionApiCallError):
                await connector.pair(DEVICE_ID, AsyncMock(return_value="1234"))

        stored = registry.get(DEVICE_ID)
        assert stored is not None
        assert stored.app_id is None
        mock_api.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pair_unknown_device(self, registry: YamlDeviceRegistry, mock_sink: MagicMock, mock_api: MagicMock):
        connector = _connector(registry, mock_sink, mock_api)

        with pytest.raises(InvalidArgumentError):
            await connector.pair("missing", AsyncMock(return_value="1234"))
