"""Parsed television responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, computed_field


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True)


class DeviceSpecs(_Entity):
    """Identity of a television read from its device descriptor (``ddd.xml``)."""

    device_type: str
    friendly_name: str | None = None
    manufacturer: str
    model_name: str
    model_number: str
    serial_number: str
    requires_encryption: bool = False

    @computed_field
    @property
    def name(self) -> str:
        return self.friendly_name or self.model_name

    @computed_field
    @property
    def model(self) -> str:
        return f"{self.model_name} {self.model_number}".strip()


class Application(_Entity):
    id: str
    name: str


class DeviceApps(_Entity):
    apps: list[Application]


class DeviceVectorInfo(_Entity):
    port: int


class Event(_Entity):
    """Screen/input notification pushed on the event subscription."""

    screen_state: bool | None = None
    input_mode: str | None = None


class RequestPinCode(_Entity):
    challenge_key: str | None = None


class AuthorizePinCode(_Entity):
    app_id: str | None = None
    encryption_key: str | None = None
