"""Prometheus metrics registry for television control and queue dispatch."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

# Television API
viera_api_call_total: Final = Counter(  # type: ignore[assignment]
    "viera_api_call_total",
    "Total television API calls",
    ["device_id", "action", "outcome"],
)

viera_api_call_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "viera_api_call_latency_seconds",
    "Television API call latency in seconds",
    ["device_id", "action"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

viera_decrypt_failure_total: Final = Counter(  # type: ignore[assignment]
    "viera_decrypt_failure_total",
    "Total encrypted responses that failed verification",
    ["device_id"],
)

viera_handshake_total: Final = Counter(  # type: ignore[assignment]
    "viera_handshake_total",
    "Total pin handshake steps",
    ["device_id", "step", "outcome"],
)

viera_connection_state: Final = Gauge(  # type: ignore[assignment]
    "viera_connection_state",
    "Current television connection state",
    ["device_id", "state"],
)

# Discovery
viera_devices_discovered_total: Final = Counter(  # type: ignore[assignment]
    "viera_devices_discovered_total",
    "Total televisions discovered",
)

# Queue
viera_queue_depth: Final = Gauge(  # type: ignore[assignment]
    "viera_queue_depth",
    "Messages waiting in the dispatch queue",
)

viera_messages_consumed_total: Final = Counter(  # type: ignore[assignment]
    "viera_messages_consumed_total",
    "Total dispatched queue messages",
    ["message_type", "outcome"],
)

_server_lock = threading.Lock()
_server_state: dict[str, bool] = {"started": False}

CONNECTION_STATES: Final = ("connected", "disconnected", "stopped", "unknown")


def start_metrics_server(port: int = 9471) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_api_call(device_id: str, action: str, outcome: str) -> None:
    viera_api_call_total.labels(device_id=device_id, action=action, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_api_latency(device_id: str, action: str, latency_seconds: float) -> None:
    viera_api_call_latency_seconds.labels(device_id=device_id, action=action).observe(  # type: ignore[no-untyped-call]
        latency_seconds,
    )


def record_decrypt_failure(device_id: str) -> None:
    viera_decrypt_failure_total.labels(device_id=device_id).inc()  # type: ignore[no-untyped-call]


def record_handshake(device_id: str, step: str, outcome: str) -> None:
    viera_handshake_total.labels(device_id=device_id, step=step, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device_id: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        viera_connection_state.labels(device_id=device_id, state=s).set(value)  # type: ignore[no-untyped-call]


def record_device_discovered() -> None:
    viera_devices_discovered_total.inc()  # type: ignore[no-untyped-call]


def record_queue_depth(depth: int) -> None:
    viera_queue_depth.set(depth)  # type: ignore[no-untyped-call]


def record_message_consumed(message_type: str, outcome: str) -> None:
    """Record a dispatched message (outcome: consumed, rejected, unconsumed)."""
    viera_messages_consumed_total.labels(message_type=message_type, outcome=outcome).inc()  # type: ignore[no-untyped-call]
