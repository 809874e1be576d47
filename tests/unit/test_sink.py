"""Unit tests for the logging sink."""

from __future__ import annotations

from unittest.mock import MagicMock

from viera_controller.api.messages import Application
from viera_controller.queue.messages import DeviceConnectionStateChanged, DeviceDiscovered
from viera_controller.sink import LoggingSink
from viera_controller.types import ConnectionState


class TestLoggingSink:
    """Tests for LoggingSink."""

    def test_connection_state(self):
        logger = MagicMock()
        sink = LoggingSink(logger=logger)

        sink.publish(DeviceConnectionStateChanged(connector="viera", device="tv", state=ConnectionState.CONNECTED))

        assert sink.published == 1
        logger.info.assert_called_once()
        assert logger.info.call_args.kwargs["extra"] == {
            "connector": "viera",
            "device": "tv",
            "state": "connected",
        }

    def test_nested_models_are_plain(self):
        """Test applications are logged as plain mappings."""
        logger = MagicMock()
        sink = LoggingSink(logger=logger)

        sink.publish(
            DeviceDiscovered(
                connector="viera",
                identifier="tv",
                ip_address="10.10.0.10",
                port=55000,
                name=None,
                model="Panasonic VIErA",
                manufacturer="Panasonic",
                serial_number="tv",
                encrypted=False,
                applications=(Application(id="0070000200000001", name="Netflix"),),
            ),
        )

        extra = logger.info.call_args.kwargs["extra"]
        assert extra["applications"] == [{"id": "0070000200000001", "name": "Netflix"}]
        assert extra["hdmi"] == []
        assert extra["name"] is None
