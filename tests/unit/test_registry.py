"""Unit tests for the YAML device registry."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from tests.helpers.television import DEVICE_ID
from viera_controller import const
from viera_controller.exceptions import InvalidArgumentError
from viera_controller.registry import DeviceConfig, HdmiInput, YamlDeviceRegistry
from viera_controller.types import ConnectionState


class TestLoad:
    """Tests for reading the registry file."""

    def test_missing_file(self, tmp_path: Path):
        registry = YamlDeviceRegistry(tmp_path / "missing.yaml")

        assert registry.all() == []

    def test_load_devices(self, tmp_path: Path):
        """Test entries are keyed by identifier and MAC addresses are normalized."""
        path = tmp_path / "devices.yaml"
        path.write_text(
            "devices:\n"
            "  TV-1:\n"
            "    ip_address: 10.10.0.10\n"
            "    mac_address: a8-13-74-b3-03-14\n"
            "    encrypted: true\n"
            "    app_id: APP\n"
            "    encryption_key: KEY\n"
            "    hdmi:\n"
            "      - {id: 1, name: Console}\n"
            "  TV-2:\n"
            "    ip_address: 10.10.0.11\n"
            "    port: 55001\n",
            encoding="utf-8",
        )

        registry = YamlDeviceRegistry(path)

        first = registry.get("TV-1")
        assert first is not None
        assert first.mac_address == "A8:13:74:B3:03:14"
        assert first.encrypted is True
        assert first.hdmi == [HdmiInput(id=1, name="Console")]
        second = registry.get("TV-2")
        assert second is not None
        assert second.port == 55001
        assert second.app_id is None

    def test_invalid_entries_are_skipped(self, tmp_path: Path):
        path = tmp_path / "devices.yaml"
        path.write_text(
            "devices:\n"
            "  BROKEN: not-a-mapping\n"
            "  NO-IP:\n"
            "    port: 55000\n"
            "  BAD-MAC:\n"
            "    ip_address: 10.10.0.12\n"
            "    mac_address: zz\n"
            "  GOOD:\n"
            "    ip_address: 10.10.0.13\n",
            encoding="utf-8",
        )

        registry = YamlDeviceRegistry(path)

        assert [config.identifier for config in registry.all()] == ["GOOD"]

    def test_devices_must_be_mapping(self, tmp_path: Path):
        path = tmp_path / "devices.yaml"
        path.write_text("devices:\n  - 10.10.0.10\n", encoding="utf-8")

        with pytest.raises(InvalidArgumentError):
            YamlDeviceRegistry(path)


class TestStore:
    """Tests for upserting devices."""

    def test_store_persists(self, registry: YamlDeviceRegistry):
        """Test stored devices survive a reload without the identifier duplicated."""
        data = yaml.safe_load(registry.path.read_text(encoding="utf-8"))

        assert DEVICE_ID in data["devices"]
        assert "identifier" not in data["devices"][DEVICE_ID]

        reloaded = YamlDeviceRegistry(registry.path)
        original = registry.get(DEVICE_ID)
        stored = reloaded.get(DEVICE_ID)
        assert original is not None
        assert stored is not None
        assert stored.model_dump() == original.model_dump()

    def test_update_keeps_credentials(self, registry: YamlDeviceRegistry):
        registry.store(DeviceConfig(identifier=DEVICE_ID, ip_address="10.10.0.10", app_id="APP", encryption_key="KEY"))

        updated = registry.store(DeviceConfig(identifier=DEVICE_ID, ip_address="10.10.0.50"))

        assert updated.ip_address == "10.10.0.50"
        assert updated.app_id == "APP"
        assert updated.encryption_key == "KEY"
        # Fields not given in the update are untouched
        assert updated.model == "Panasonic VIErA TX-49DX600EA"

    def test_update_replaces_credentials(self, registry: YamlDeviceRegistry):
        registry.store(DeviceConfig(identifier=DEVICE_ID, ip_address="10.10.0.10", app_id="OLD", encryption_key="OLD"))

        updated = registry.store(
            DeviceConfig(identifier=DEVICE_ID, ip_address="10.10.0.10", app_id="NEW", encryption_key="NEW"),
        )

        assert updated.app_id == "NEW"
        assert updated.encryption_key == "NEW"


class TestConnectionState:
    def test_default_unknown(self, registry: YamlDeviceRegistry):
        assert registry.get_connection_state(DEVICE_ID) is ConnectionState.UNKNOWN

    def test_set_state(self, registry: YamlDeviceRegistry):
        registry.set_connection_state(DEVICE_ID, ConnectionState.STOPPED)

        assert registry.get_connection_state(DEVICE_ID) is ConnectionState.STOPPED


class TestEnvDefaults:
    """Tests for defaults taken from the environment settings."""

    def test_status_reading_delay_follows_env(self):
        with patch.object(const.env, "status_reading_delay", 30.0):
            config = DeviceConfig(identifier=DEVICE_ID, ip_address="10.10.0.10")

        assert config.status_reading_delay == 30.0

    def test_default_path_follows_env(self, tmp_path: Path):
        with patch.object(const.env, "config_file_path", str(tmp_path / "devices.yaml")):
            registry = YamlDeviceRegistry()

        assert registry.path == tmp_path / "devices.yaml"
