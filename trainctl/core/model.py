"""Core data models used across directory, service, transports and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DIRECTION_STOP = "00"
DIRECTION_RIGHT = "01"
DIRECTION_LEFT = "10"
DIRECTIONS = (DIRECTION_STOP, DIRECTION_RIGHT, DIRECTION_LEFT)

MAX_SPEED = 128
MIN_ACCELERATION = -3
MAX_ACCELERATION = 3
MIN_DCC_CODE = 0
MAX_DCC_CODE = 30000
MAX_LONG_NAME_LENGTH = 100
SHORT_NAME_LENGTH = 8


class Field(str, Enum):
    LONG_NAME = "long_name"
    DCC_CODE = "dcc_code"
    SPEED = "speed"
    ACCELERATION = "acceleration"
    DIRECTION = "direction"
    NETWORK_KEY = "network_key"


class DeviceState(str, Enum):
    DISCOVERED = "discovered"
    CONNECTING = "connecting"
    BONDING = "bonding"
    BONDED = "bonded"
    CONNECTED = "connected"
    NOTIFYING = "notifying"


class BackendKind(str, Enum):
    AUTO = "auto"
    BLE = "ble"
    SIMULATED = "simulated"


@dataclass(frozen=True)
class TrainDevice:
    """One train device and its last-known characteristic values."""

    address: str
    short_name: str
    long_name: str = ""
    dcc_code: int = 0
    speed: int = 0
    acceleration: int = 0
    direction: str = DIRECTION_STOP
    network_key: str = ""
    is_bonded: bool = False


@dataclass(frozen=True)
class DirectorySnapshot:
    unbonded: tuple[TrainDevice, ...] = ()
    bonded: tuple[TrainDevice, ...] = ()
    selected: TrainDevice | None = None


@dataclass(frozen=True)
class CharacteristicSpec:
    uuid: str
    write_with_response: bool = True


@dataclass(frozen=True)
class GattProfile:
    service_uuid: str
    characteristics: dict[Field, CharacteristicSpec]


@dataclass(frozen=True)
class BleSettings:
    connect_timeout_s: float = 10.0
    probe_timeout_s: float = 5.0


@dataclass(frozen=True)
class SimulationSettings:
    seed: int | None = None
    connect_delay_s: float = 0.5
    read_delay_s: float = 0.05
    write_delay_s: float = 0.1
    discovery_interval_s: float = 5.0
    notify_interval_s: float = 2.0


@dataclass(frozen=True)
class Settings:
    backend: BackendKind
    profile: GattProfile
    ble: BleSettings = field(default_factory=BleSettings)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    log_level: str = "WARNING"
