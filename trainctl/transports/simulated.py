"""Simulated transport: fixed delays and a random-number generator instead of a radio."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field

from trainctl.core.codec import FIELD_CODECS, READ_ORDER
from trainctl.core.errors import (
    TransportConnectError,
    TransportReadError,
    TransportScanError,
    TransportSubscribeError,
    TransportWriteError,
)
from trainctl.core.model import (
    DIRECTION_LEFT,
    DIRECTION_RIGHT,
    DIRECTION_STOP,
    MAX_SPEED,
    Field,
    GattProfile,
    SimulationSettings,
    TrainDevice,
)
from trainctl.core.validation import clamp_speed
from trainctl.transports.base import DataCallback, DiscoveredPeripheral, DiscoveryCallback

LOGGER = logging.getLogger(__name__)

DEVICE_NAMES = (
    "Train01", "Train02", "Train03", "Train04", "Train05",
    "Engine01", "Engine02", "Engine03", "Engine04", "Engine05",
)
_UNBONDED_SEED = range(0, 5)
_BONDED_SEED = range(5, 7)
_LATE_ARRIVALS = range(7, 10)


def simulated_address(index: int) -> str:
    return f"00:11:22:33:44:{index:02x}"


@dataclass
class _Peripheral:
    address: str
    name: str
    values: dict[Field, bytes] = field(default_factory=dict)


class SimulatedTransport:
    def __init__(
        self,
        profile: GattProfile,
        settings: SimulationSettings | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.profile = profile
        self.settings = settings or SimulationSettings()
        self._rng = rng or random.Random(self.settings.seed)
        self._fields = {spec.uuid: f for f, spec in profile.characteristics.items()}
        self._peripherals = {
            simulated_address(i): self._make_peripheral(i) for i in range(len(DEVICE_NAMES))
        }
        self._advertised = {simulated_address(i) for i in (*_UNBONDED_SEED, *_BONDED_SEED)}
        self._connected: set[str] = set()
        self._subscriptions: dict[tuple[str, Field], asyncio.Task[None]] = {}
        self._scan_task: asyncio.Task[None] | None = None

    def seed_records(self) -> list[TrainDevice]:
        """Records the simulation starts with: five unbonded, two bonded."""
        records = [
            TrainDevice(address=simulated_address(i), short_name=DEVICE_NAMES[i])
            for i in _UNBONDED_SEED
        ]
        for i in _BONDED_SEED:
            peripheral = self._peripherals[simulated_address(i)]
            decoded = {
                FIELD_CODECS[f].attribute: FIELD_CODECS[f].decode(peripheral.values[f])
                for f in READ_ORDER
            }
            records.append(
                TrainDevice(
                    address=peripheral.address,
                    short_name=peripheral.name,
                    is_bonded=True,
                    **decoded,
                )
            )
        return records

    async def probe_adapter(self) -> bool:
        return True

    def has_peripheral(self, address: str) -> bool:
        return address in self._advertised

    async def start_scan(self, service_uuid: str, on_found: DiscoveryCallback) -> None:
        if service_uuid != self.profile.service_uuid:
            raise TransportScanError(f"Simulated devices do not expose service {service_uuid}")
        if self._scan_task is not None and not self._scan_task.done():
            return
        for address in sorted(self._advertised):
            on_found(self._advertisement(address))
        self._scan_task = asyncio.create_task(self._discovery_loop(on_found))

    async def stop_scan(self) -> None:
        task, self._scan_task = self._scan_task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def connect(self, address: str) -> None:
        if address not in self._advertised:
            raise TransportConnectError(f"No discovered peripheral for {address}; scan first")
        await asyncio.sleep(self.settings.connect_delay_s)
        self._connected.add(address)

    async def disconnect(self, address: str) -> None:
        for key in [k for k in self._subscriptions if k[0] == address]:
            await self._cancel_subscription(key)
        self._connected.discard(address)

    async def read(self, address: str, service_uuid: str, char_uuid: str) -> bytes:
        peripheral = self._peripheral(address, TransportReadError)
        field_ = self._field(service_uuid, char_uuid, TransportReadError)
        await asyncio.sleep(self.settings.read_delay_s)
        return peripheral.values.get(field_, b"")

    async def write(
        self,
        address: str,
        service_uuid: str,
        char_uuid: str,
        payload: bytes,
        *,
        with_response: bool = True,
    ) -> None:
        peripheral = self._peripheral(address, TransportWriteError)
        field_ = self._field(service_uuid, char_uuid, TransportWriteError)
        await asyncio.sleep(self.settings.write_delay_s)
        peripheral.values[field_] = bytes(payload)

    async def subscribe(
        self,
        address: str,
        service_uuid: str,
        char_uuid: str,
        on_data: DataCallback,
    ) -> None:
        self._peripheral(address, TransportSubscribeError)
        field_ = self._field(service_uuid, char_uuid, TransportSubscribeError)
        if field_ is not Field.SPEED:
            raise TransportSubscribeError(f"{field_.value} does not support notifications")
        key = (address, field_)
        await self._cancel_subscription(key)
        self._subscriptions[key] = asyncio.create_task(self._notify_loop(address, on_data))

    async def unsubscribe(self, address: str, service_uuid: str, char_uuid: str) -> None:
        field_ = self._field(service_uuid, char_uuid, TransportSubscribeError)
        await self._cancel_subscription((address, field_))

    def _make_peripheral(self, index: int) -> _Peripheral:
        name = DEVICE_NAMES[index]
        values = {
            Field.LONG_NAME: FIELD_CODECS[Field.LONG_NAME].encode(f"My {name}"),
            Field.DCC_CODE: FIELD_CODECS[Field.DCC_CODE].encode(self._rng.randrange(0, 30000)),
            Field.SPEED: FIELD_CODECS[Field.SPEED].encode(0),
            Field.ACCELERATION: FIELD_CODECS[Field.ACCELERATION].encode(0),
            Field.DIRECTION: FIELD_CODECS[Field.DIRECTION].encode(DIRECTION_STOP),
            Field.NETWORK_KEY: b"",
        }
        if index in _BONDED_SEED:
            values[Field.SPEED] = FIELD_CODECS[Field.SPEED].encode(self._rng.randrange(0, MAX_SPEED))
            values[Field.ACCELERATION] = FIELD_CODECS[Field.ACCELERATION].encode(
                self._rng.randint(-3, 3)
            )
            direction = DIRECTION_LEFT if self._rng.random() < 0.5 else DIRECTION_RIGHT
            values[Field.DIRECTION] = FIELD_CODECS[Field.DIRECTION].encode(direction)
        return _Peripheral(address=simulated_address(index), name=name, values=values)

    def _advertisement(self, address: str) -> DiscoveredPeripheral:
        return DiscoveredPeripheral(
            address=address,
            name=self._peripherals[address].name,
            service_uuids=(self.profile.service_uuid,),
        )

    def _peripheral(self, address: str, error: type[Exception]) -> _Peripheral:
        if address not in self._connected:
            raise error(f"{address} is not connected")
        return self._peripherals[address]

    def _field(self, service_uuid: str, char_uuid: str, error: type[Exception]) -> Field:
        if service_uuid != self.profile.service_uuid or char_uuid not in self._fields:
            raise error(f"Characteristic {char_uuid} not found in service {service_uuid}")
        return self._fields[char_uuid]

    async def _discovery_loop(self, on_found: DiscoveryCallback) -> None:
        while True:
            await asyncio.sleep(self.settings.discovery_interval_s)
            address = simulated_address(self._rng.choice(_LATE_ARRIVALS))
            self._advertised.add(address)
            on_found(self._advertisement(address))

    async def _notify_loop(self, address: str, on_data: DataCallback) -> None:
        peripheral = self._peripherals[address]
        while True:
            await asyncio.sleep(self.settings.notify_interval_s)
            current = peripheral.values.get(Field.SPEED, b"\x00")[0]
            if current <= 0:
                speed = self._rng.randint(0, 9)
            elif current >= MAX_SPEED:
                speed = self._rng.randint(MAX_SPEED - 10, MAX_SPEED - 1)
            else:
                speed = current + self._rng.randint(-5, 5)
            payload = bytes([clamp_speed(speed)])
            peripheral.values[Field.SPEED] = payload
            LOGGER.debug("Simulated speed notification %s -> %d", address, payload[0])
            on_data(payload)

    async def _cancel_subscription(self, key: tuple[str, Field]) -> None:
        task = self._subscriptions.pop(key, None)
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
