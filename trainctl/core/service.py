"""Service layer used by the CLI, the public API and future UI frontends."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from concurrent.futures import Future
from dataclasses import replace
from typing import Any

from trainctl.core.codec import FIELD_CODECS, READ_ORDER
from trainctl.core.directory import DeviceDirectory, Listener
from trainctl.core.errors import PayloadError, TransportError
from trainctl.core.model import DeviceState, DirectorySnapshot, Field, GattProfile, TrainDevice
from trainctl.core.validation import truncate_short_name
from trainctl.core.worker import ServiceWorker
from trainctl.transports.base import DiscoveredPeripheral, Transport

LOGGER = logging.getLogger(__name__)


def _completed() -> Future[None]:
    future: Future[None] = Future()
    future.set_result(None)
    return future


class ControlService:
    """Drive a transport on behalf of the presentation layer.

    Every intent is dispatched to the service worker and returns a future
    immediately; the outcome is observed through directory snapshots. Transport
    failures are logged and never leave this class. At most one device is
    connected (and notifying) at a time: connect, bond, disconnect and writes
    hold the session lock for their whole transport sequence.
    """

    def __init__(
        self,
        transport: Transport,
        profile: GattProfile,
        *,
        directory: DeviceDirectory | None = None,
        worker: ServiceWorker | None = None,
        available: bool = True,
    ) -> None:
        self.transport = transport
        self.profile = profile
        self.directory = directory or DeviceDirectory()
        self.available = available
        self._worker = worker or ServiceWorker()
        self._states: dict[str, DeviceState] = {}
        self._connected_address: str | None = None
        self._notifying_address: str | None = None
        self._scanning = False
        self._session_lock = asyncio.Lock()
        if not available:
            LOGGER.warning("No BLE adapter available; device operations are disabled")

    @property
    def connected_address(self) -> str | None:
        return self._connected_address

    @property
    def scanning(self) -> bool:
        return self._scanning

    def snapshot(self) -> DirectorySnapshot:
        return self.directory.snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.directory.subscribe(listener)

    def state_of(self, address: str) -> DeviceState | None:
        return self._states.get(address)

    def is_reachable(self, address: str) -> bool:
        return self.available and self.transport.has_peripheral(address)

    def seed(self, records: Iterable[TrainDevice]) -> None:
        records = list(records)
        self.directory.partition_and_replace_all(records)
        for record in records:
            self._states[record.address] = (
                DeviceState.BONDED if record.is_bonded else DeviceState.DISCOVERED
            )

    def start_scanning(self) -> Future[None]:
        return self._dispatch(self._start_scanning())

    def stop_scanning(self) -> Future[None]:
        return self._dispatch(self._stop_scanning())

    def connect(self, address: str) -> Future[None]:
        return self._dispatch(self._connect(address))

    def bond(self, address: str) -> Future[None]:
        return self._dispatch(self._bond(address))

    def disconnect(self) -> Future[None]:
        return self._dispatch(self._disconnect())

    def set_speed(self, address: str, speed: int) -> Future[None]:
        return self.set_field(address, Field.SPEED, speed)

    def set_acceleration(self, address: str, acceleration: int) -> Future[None]:
        return self.set_field(address, Field.ACCELERATION, acceleration)

    def set_direction(self, address: str, direction: str) -> Future[None]:
        return self.set_field(address, Field.DIRECTION, direction)

    def set_long_name(self, address: str, long_name: str) -> Future[None]:
        return self.set_field(address, Field.LONG_NAME, long_name)

    def set_network_key(self, address: str, network_key: str) -> Future[None]:
        return self.set_field(address, Field.NETWORK_KEY, network_key)

    def set_dcc_code(self, address: str, dcc_code: int) -> Future[None]:
        return self.set_field(address, Field.DCC_CODE, dcc_code)

    def set_field(self, address: str, field: Field | str, value: Any) -> Future[None]:
        try:
            field = Field(field)
            normalized = FIELD_CODECS[field].normalize(value)
        except (ValueError, PayloadError) as exc:
            LOGGER.warning("Ignoring write of %r to %s: %s", value, field, exc)
            return _completed()
        return self._dispatch(self._write_field(address, field, normalized))

    def close(self) -> None:
        if self.available and self._worker.running:
            try:
                self._worker.submit(self._shutdown()).result(timeout=10.0)
            except TimeoutError:
                LOGGER.warning("Timed out shutting down the BLE session")
        self._worker.stop()

    def _dispatch(self, coro: Coroutine[Any, Any, None]) -> Future[None]:
        if not self.available:
            coro.close()
            return _completed()
        return self._worker.submit(coro)

    async def _start_scanning(self) -> None:
        try:
            await self.transport.start_scan(self.profile.service_uuid, self._on_discovered)
        except TransportError as exc:
            LOGGER.error("Error scanning for devices: %s", exc)
            return
        self._scanning = True

    async def _stop_scanning(self) -> None:
        self._scanning = False
        try:
            await self.transport.stop_scan()
        except TransportError as exc:
            LOGGER.error("Error stopping scan: %s", exc)

    def _on_discovered(self, peripheral: DiscoveredPeripheral) -> None:
        if self.profile.service_uuid not in peripheral.service_uuids:
            return
        existing = self.directory.get(peripheral.address)
        if existing is not None and existing.is_bonded:
            return
        record = existing or TrainDevice(
            address=peripheral.address,
            short_name=truncate_short_name(peripheral.name),
        )
        if self.directory.upsert_unbonded(record) and existing is None:
            LOGGER.info("Discovered %s (%s)", record.address, record.short_name)
            self._states[record.address] = DeviceState.DISCOVERED

    async def _connect(self, address: str) -> None:
        async with self._session_lock:
            await self._connect_locked(address)

    async def _connect_locked(self, address: str) -> None:
        await self._retire_session()
        self.directory.select(None)

        record = self.directory.get(address)
        if record is None:
            LOGGER.warning("Cannot connect to unknown device %s", address)
            return

        previous = self._states.get(address, DeviceState.DISCOVERED)
        self._states[address] = DeviceState.CONNECTING
        try:
            await self.transport.connect(address)
        except TransportError as exc:
            LOGGER.error("Error connecting to device %s: %s", address, exc)
            self._states[address] = previous
            return
        self._connected_address = address
        self._states[address] = DeviceState.CONNECTED

        record = await self._read_characteristics(address, record)
        self._commit(record)
        self.directory.select(address)
        await self._start_speed_notifications(address)

    async def _bond(self, address: str) -> None:
        async with self._session_lock:
            await self._bond_locked(address)

    async def _bond_locked(self, address: str) -> None:
        record = self.directory.get(address)
        if record is None:
            LOGGER.warning("Cannot bond with unknown device %s", address)
            return

        reuse_session = address == self._connected_address
        previous = self._states.get(address, DeviceState.DISCOVERED)
        if not reuse_session:
            self._states[address] = DeviceState.CONNECTING
            try:
                await self.transport.connect(address)
            except TransportError as exc:
                LOGGER.error("Error bonding with device %s: %s", address, exc)
                self._states[address] = previous
                return

        self._states[address] = DeviceState.BONDING
        record = await self._read_characteristics(address, record)
        self.directory.promote_to_bonded(replace(record, is_bonded=True))
        LOGGER.info("Bonded with %s (%s)", address, record.short_name)

        if reuse_session:
            self._states[address] = previous
            return
        self._states[address] = DeviceState.BONDED
        try:
            await self.transport.disconnect(address)
        except TransportError as exc:
            LOGGER.error("Error disconnecting from %s after bonding: %s", address, exc)

    async def _read_characteristics(self, address: str, record: TrainDevice) -> TrainDevice:
        changes: dict[str, Any] = {}
        for field in READ_ORDER:
            codec = FIELD_CODECS[field]
            char_uuid = self.profile.characteristics[field].uuid
            try:
                data = await self.transport.read(address, self.profile.service_uuid, char_uuid)
                if not data:
                    continue
                changes[codec.attribute] = codec.decode(data)
            except (TransportError, PayloadError) as exc:
                LOGGER.error("Error reading %s from %s: %s", field.value, address, exc)
        return replace(record, **changes)

    async def _write_field(self, address: str, field: Field, value: Any) -> None:
        async with self._session_lock:
            await self._write_field_locked(address, field, value)

    async def _write_field_locked(self, address: str, field: Field, value: Any) -> None:
        if self._connected_address is None:
            LOGGER.debug("No connected device; ignoring %s write", field.value)
            return
        if address != self._connected_address:
            LOGGER.warning(
                "Ignoring %s write for %s; connected device is %s",
                field.value,
                address,
                self._connected_address,
            )
            return

        codec = FIELD_CODECS[field]
        spec = self.profile.characteristics[field]
        try:
            await self.transport.write(
                address,
                self.profile.service_uuid,
                spec.uuid,
                codec.encode(value),
                with_response=spec.write_with_response,
            )
        except TransportError as exc:
            LOGGER.error("Error setting %s on %s: %s", field.value, address, exc)
            return

        record = self.directory.get(address)
        if record is not None:
            self._commit(replace(record, **{codec.attribute: value}))

    async def _start_speed_notifications(self, address: str) -> None:
        char_uuid = self.profile.characteristics[Field.SPEED].uuid

        def _on_speed(data: bytes) -> None:
            self._on_speed_notification(address, data)

        try:
            await self.transport.subscribe(address, self.profile.service_uuid, char_uuid, _on_speed)
        except TransportError as exc:
            LOGGER.error("Error starting speed notifications for %s: %s", address, exc)
            return
        self._notifying_address = address
        self._states[address] = DeviceState.NOTIFYING

    def _on_speed_notification(self, address: str, data: bytes) -> None:
        if address != self._notifying_address:
            LOGGER.debug("Dropping stale speed notification from %s", address)
            return
        try:
            speed = FIELD_CODECS[Field.SPEED].decode(data)
        except PayloadError as exc:
            LOGGER.warning("Bad speed notification from %s: %s", address, exc)
            return
        record = self.directory.get(address)
        if record is None:
            return
        LOGGER.debug("Speed notification %s -> %d", address, speed)
        self._commit(replace(record, speed=speed))

    async def _disconnect(self) -> None:
        async with self._session_lock:
            await self._retire_session()

    async def _retire_session(self) -> None:
        # Caller holds _session_lock.
        address = self._connected_address
        if address is None:
            return
        if self._notifying_address == address:
            self._notifying_address = None
            char_uuid = self.profile.characteristics[Field.SPEED].uuid
            try:
                await self.transport.unsubscribe(address, self.profile.service_uuid, char_uuid)
            except TransportError as exc:
                LOGGER.error("Error stopping speed notifications for %s: %s", address, exc)
        self._connected_address = None
        try:
            await self.transport.disconnect(address)
        except TransportError as exc:
            LOGGER.error("Error disconnecting from %s: %s", address, exc)
        record = self.directory.get(address)
        bonded = record is not None and record.is_bonded
        self._states[address] = DeviceState.BONDED if bonded else DeviceState.DISCOVERED

    async def _shutdown(self) -> None:
        if self._scanning:
            await self._stop_scanning()
        await self._disconnect()

    def _commit(self, record: TrainDevice) -> None:
        if record.is_bonded:
            self.directory.update_bonded(record)
        else:
            self.directory.upsert_unbonded(record)
