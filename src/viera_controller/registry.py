"""Configured televisions and their runtime connection state."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import yaml
from pydantic import BaseModel, Field, ValidationError

from viera_controller.api.messages import Application
from viera_controller.const import DEFAULT_PORT, env
from viera_controller.exceptions import InvalidArgumentError
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.types import ConnectionState
from viera_controller.utils import normalize_mac

__all__ = ["DeviceConfig", "DeviceRegistry", "HdmiInput", "YamlDeviceRegistry"]


class HdmiInput(BaseModel):
    id: int
    name: str


class DeviceConfig(BaseModel):
    """Connection parameters for one television."""

    identifier: str
    ip_address: str
    port: int = DEFAULT_PORT
    name: str | None = None
    model: str | None = None
    manufacturer: str | None = None
    serial_number: str | None = None
    mac_address: str | None = None
    encrypted: bool = False
    app_id: str | None = None
    encryption_key: str | None = None
    status_reading_delay: float = Field(default_factory=lambda: env.status_reading_delay)
    hdmi: list[HdmiInput] = []
    applications: list[Application] = []


class DeviceRegistry(Protocol):
    def get(self, identifier: str) -> DeviceConfig | None: ...

    def all(self) -> list[DeviceConfig]: ...

    def store(self, config: DeviceConfig) -> DeviceConfig: ...

    def set_connection_state(self, identifier: str, state: ConnectionState) -> None: ...

    def get_connection_state(self, identifier: str) -> ConnectionState: ...


class YamlDeviceRegistry:
    """Registry backed by a YAML file with a top-level ``devices:`` mapping.

    Example file::

        devices:
          4D454930-0200-1000-8001-A81374B30314:
            ip_address: 10.10.0.10
            mac_address: a8:13:74:b3:03:14
            app_id: ...
            encryption_key: ...

    Connection states are kept in memory only.
    """

    lp: str = "YamlDeviceRegistry:"

    def __init__(self, path: str | Path | None = None, logger: VieraLogger | None = None) -> None:
        self.path = Path(env.config_file_path if path is None else path).expanduser()
        self.logger = logger or get_logger(__name__)
        self._devices: dict[str, DeviceConfig] = {}
        self._states: dict[str, ConnectionState] = {}
        self.load()

    def load(self) -> None:
        """Read devices from the YAML file; invalid entries are skipped."""
        self._devices = {}
        if not self.path.exists():
            self.logger.debug("%s Registry file does not exist yet", self.lp, extra={"path": str(self.path)})
            return

        with self.path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        devices = data.get("devices") or {}
        if not isinstance(devices, dict):
            raise InvalidArgumentError(f"'devices' must be a mapping in {self.path}")

        for identifier, raw in devices.items():
            if not isinstance(raw, dict):
                self.logger.warning("%s Skipping malformed device entry", self.lp, extra={"device_id": identifier})
                continue
            try:
                config = DeviceConfig.model_validate({**raw, "identifier": str(identifier)})
                if config.mac_address:
                    config = config.model_copy(update={"mac_address": normalize_mac(config.mac_address)})
            except (ValidationError, InvalidArgumentError):
                self.logger.exception("%s Invalid device configuration", self.lp, extra={"device_id": identifier})
                continue
            self._devices[config.identifier] = config

        self.logger.info("%s Loaded devices", self.lp, extra={"device_count": len(self._devices)})

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "devices": {
                identifier: config.model_dump(mode="json", exclude={"identifier"}, exclude_none=True)
                for identifier, config in self._devices.items()
            },
        }
        with self.path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)

    def get(self, identifier: str) -> DeviceConfig | None:
        return self._devices.get(identifier)

    def all(self) -> list[DeviceConfig]:
        return list(self._devices.values())

    def store(self, config: DeviceConfig) -> DeviceConfig:
        """Insert or update a device; pairing credentials already stored are kept."""
        existing = self._devices.get(config.identifier)
        if existing is not None:
            update = {name: getattr(config, name) for name in config.model_fields_set}
            for field in ("app_id", "encryption_key", "mac_address"):
                if update.get(field) is None:
                    update[field] = getattr(existing, field)
            config = existing.model_copy(update=update)

        self._devices[config.identifier] = config
        self.save()
        return config

    def set_connection_state(self, identifier: str, state: ConnectionState) -> None:
        self._states[identifier] = state

    def get_connection_state(self, identifier: str) -> ConnectionState:
        return self._states.get(identifier, ConnectionState.UNKNOWN)
