"""Metrics module."""

from . import registry
from .registry import (
    record_api_call,
    record_api_latency,
    record_connection_state,
    record_decrypt_failure,
    record_device_discovered,
    record_handshake,
    record_message_consumed,
    record_queue_depth,
    start_metrics_server,
)

__all__ = [
    "record_api_call",
    "record_api_latency",
    "record_connection_state",
    "record_decrypt_failure",
    "record_device_discovered",
    "record_handshake",
    "record_message_consumed",
    "record_queue_depth",
    "registry",
    "start_metrics_server",
]
