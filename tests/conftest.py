from __future__ import annotations

from pathlib import Path

import pytest

from trainctl.core.model import (
    BackendKind,
    CharacteristicSpec,
    Field,
    GattProfile,
    Settings,
    SimulationSettings,
)

SERVICE_UUID = "fcbd0001-5e25-4387-99b7-53a5495a0c35"
CHAR_UUIDS = {
    Field.SPEED: "fcbd0002-5e25-4387-99b7-53a5495a0c35",
    Field.ACCELERATION: "fcbd0003-5e25-4387-99b7-53a5495a0c35",
    Field.DIRECTION: "fcbd0005-5e25-4387-99b7-53a5495a0c35",
    Field.LONG_NAME: "fcbd0006-5e25-4387-99b7-53a5495a0c35",
    Field.DCC_CODE: "fcbd0007-5e25-4387-99b7-53a5495a0c35",
    Field.NETWORK_KEY: "fcbd000a-5e25-4387-99b7-53a5495a0c35",
}


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    config_home = tmp_path / "cfg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home


@pytest.fixture
def profile() -> GattProfile:
    return GattProfile(
        service_uuid=SERVICE_UUID,
        characteristics={
            field: CharacteristicSpec(uuid=uuid, write_with_response=field is not Field.NETWORK_KEY)
            for field, uuid in CHAR_UUIDS.items()
        },
    )


@pytest.fixture
def fast_simulation() -> SimulationSettings:
    return SimulationSettings(
        seed=7,
        connect_delay_s=0.0,
        read_delay_s=0.0,
        write_delay_s=0.0,
        discovery_interval_s=0.01,
        notify_interval_s=60.0,
    )


@pytest.fixture
def simulated_settings(profile: GattProfile, fast_simulation: SimulationSettings) -> Settings:
    return Settings(backend=BackendKind.SIMULATED, profile=profile, simulation=fast_simulation)
