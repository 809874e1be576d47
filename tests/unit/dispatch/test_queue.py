"""Unit tests for the connector message queue."""

from __future__ import annotations

from viera_controller.queue.messages import ChannelPropertyStateChanged, DeviceConnectionStateChanged
from viera_controller.queue.queue import EMPTY, Queue
from viera_controller.types import ChannelPropertyIdentifier, ConnectionState


def _state(device: str) -> DeviceConnectionStateChanged:
    return DeviceConnectionStateChanged(connector="viera", device=device, state=ConnectionState.CONNECTED)


class TestQueue:
    """Tests for Queue."""

    def test_get_on_empty_queue(self, queue: Queue):
        """Test get returns the EMPTY sentinel instead of blocking."""
        assert queue.get() is EMPTY
        assert queue.is_empty() is True
        assert len(queue) == 0

    def test_fifo_order(self, queue: Queue):
        """Test messages come out in insertion order."""
        messages = [_state(f"device-{i}") for i in range(5)]
        for message in messages:
            queue.append(message)

        assert len(queue) == 5
        assert [queue.get() for _ in range(5)] == messages
        assert queue.get() is EMPTY

    def test_mixed_message_types(self, queue: Queue):
        volume = ChannelPropertyStateChanged(
            connector="viera",
            device="tv",
            property=ChannelPropertyIdentifier.VOLUME,
            value=10,
        )
        queue.append(volume)
        queue.append(_state("tv"))

        first = queue.get()

        assert first is volume
        assert queue.is_empty() is False
