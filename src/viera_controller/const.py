import logging
import os
from dataclasses import dataclass

from viera_controller import __version__

__all__ = [
    "DEFAULT_PORT",
    "EVENTS_TIMEOUT",
    "Env",
    "HANDLER_PROCESSING_INTERVAL",
    "HANDLER_START_DELAY",
    "LIVENESS_TIMEOUT",
    "LOG_FORMATTER",
    "MAX_HDMI_CODE",
    "MCAST_HOST",
    "MCAST_PORT",
    "MIN_APPLICATION_CODE",
    "QUEUE_PROCESSING_INTERVAL",
    "SCREEN_STATE_WAIT",
    "SEARCH_TARGET",
    "TV_CODE",
    "TV_IDENTIFIER",
    "UNSUBSCRIBE_TIMEOUT",
    "URL_CONTROL_DMR",
    "URL_CONTROL_NRC",
    "URL_DEVICE_DESCRIPTOR",
    "URL_EVENT_NRC",
    "URL_SERVICE_DESCRIPTOR",
    "URN_REMOTE_CONTROL",
    "URN_RENDERING_CONTROL",
    "VIERA_VERSION",
    "WOL_PORT",
    "YES_ANSWER",
    "env",
    "reload_env",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")

LOG_FORMATTER = logging.Formatter(
    "%(asctime)s.%(msecs)d %(levelname)s [%(module)s:%(lineno)d] > %(message)s",
    "%m/%d/%y %H:%M:%S",
)
VIERA_VERSION: str = __version__

# SSDP
MCAST_HOST: str = "239.255.255.250"
MCAST_PORT: int = 1900
SEARCH_TARGET: str = "urn:panasonic-com:service:p00NetworkControl:1"

# Television endpoints
DEFAULT_PORT: int = 55000
WOL_PORT: int = 9
URL_CONTROL_NRC: str = "/nrc/control_0"
URL_CONTROL_DMR: str = "/dmr/control_0"
URL_EVENT_NRC: str = "/nrc/event_0"
URL_DEVICE_DESCRIPTOR: str = "/nrc/ddd.xml"
URL_SERVICE_DESCRIPTOR: str = "/nrc/sdd_0.xml"
URN_REMOTE_CONTROL: str = "panasonic-com:service:p00NetworkControl:1"
URN_RENDERING_CONTROL: str = "schemas-upnp-org:service:RenderingControl:1"
EVENTS_TIMEOUT: int = 10
LIVENESS_TIMEOUT: float = 1.5
SCREEN_STATE_WAIT: float = 1.5
UNSUBSCRIBE_TIMEOUT: float = 1.0

# Scheduling
HANDLER_START_DELAY: float = 2.0
HANDLER_PROCESSING_INTERVAL: float = 0.01
QUEUE_PROCESSING_INTERVAL: float = 0.01

# Input source codes
TV_IDENTIFIER: str = "TV"
TV_CODE: int = 500
MAX_HDMI_CODE: int = 100
MIN_APPLICATION_CODE: int = 1000


def _float_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value and value.isdigit() else default


def _bool_env(name: str, default: str) -> bool:
    return os.environ.get(name, default).casefold() in YES_ANSWER


@dataclass
class Env:
    """Settings read from environment variables.

    Components read these when they are constructed, so values loaded later
    with ``reload_env()`` (e.g. from ``--env``) apply to everything built
    afterwards.
    """

    debug: bool = False
    connector_id: str = "viera"
    persistent_base_dir: str = "~/.config/viera-controller"
    config_file_path: str = "~/.config/viera-controller/devices.yaml"
    discovery_timeout: float = 5.0
    http_timeout: float = 10.0
    status_reading_delay: float = 120.0

    # Prometheus exporter
    enable_exporter: bool = False
    exporter_port: int = 9471

    # Logging
    log_format: str = "human"  # "json", "human", or "both"
    log_json_file: str | None = None
    log_human_output: str = "stdout"  # "stdout", "stderr", or file path
    log_correlation_enabled: bool = True


env = Env()


def reload_env() -> Env:
    """Re-evaluate environment variables into ``env`` (updated in place)."""
    env.debug = _bool_env("VIERA_DEBUG", "0")
    env.connector_id = os.environ.get("VIERA_CONNECTOR_ID") or "viera"
    env.persistent_base_dir = os.environ.get("VIERA_PERSISTENT_BASE_DIR", "~/.config/viera-controller")
    env.config_file_path = os.environ.get("VIERA_CONFIG_FILE_PATH", f"{env.persistent_base_dir}/devices.yaml")
    env.discovery_timeout = _float_env("VIERA_DISCOVERY_TIMEOUT", 5.0)
    env.http_timeout = _float_env("VIERA_HTTP_TIMEOUT", 10.0)
    env.status_reading_delay = _float_env("VIERA_STATUS_READING_DELAY", 120.0)

    env.enable_exporter = _bool_env("VIERA_ENABLE_EXPORTER", "0")
    env.exporter_port = _int_env("VIERA_EXPORTER_PORT", 9471)

    env.log_format = os.environ.get("VIERA_LOG_FORMAT", "human")
    env.log_json_file = os.environ.get("VIERA_LOG_JSON_FILE") or None
    env.log_human_output = os.environ.get("VIERA_LOG_HUMAN_OUTPUT", "stdout")
    env.log_correlation_enabled = _bool_env("VIERA_LOG_CORRELATION_ENABLED", "true")
    return env


reload_env()
