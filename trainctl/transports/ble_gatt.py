"""BLE GATT transport implementation."""

from __future__ import annotations

import asyncio
import logging

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from trainctl.core.errors import (
    TransportConnectError,
    TransportError,
    TransportReadError,
    TransportScanError,
    TransportSubscribeError,
    TransportTimeoutError,
    TransportWriteError,
)
from trainctl.transports.base import DataCallback, DiscoveredPeripheral, DiscoveryCallback

LOGGER = logging.getLogger(__name__)


class BLEGATTTransport:
    def __init__(self, *, connect_timeout_s: float = 10.0) -> None:
        self.connect_timeout_s = connect_timeout_s
        self._handles: dict[str, BLEDevice] = {}
        self._clients: dict[str, BleakClient] = {}
        self._scanner: BleakScanner | None = None

    async def probe_adapter(self) -> bool:
        scanner = BleakScanner()
        try:
            await scanner.start()
            await scanner.stop()
        except Exception as exc:  # backend-specific (BlueZ D-Bus, CoreBluetooth, WinRT)
            LOGGER.info("No usable BLE adapter: %s", exc)
            return False
        return True

    def has_peripheral(self, address: str) -> bool:
        return address in self._handles

    async def start_scan(self, service_uuid: str, on_found: DiscoveryCallback) -> None:
        if self._scanner is not None:
            LOGGER.debug("Scan already running")
            return

        def _detection_handler(device: BLEDevice, advertisement: AdvertisementData) -> None:
            self._handles[device.address] = device
            on_found(
                DiscoveredPeripheral(
                    address=device.address,
                    name=advertisement.local_name or device.name or "",
                    service_uuids=tuple(u.lower() for u in advertisement.service_uuids),
                )
            )

        scanner = BleakScanner(
            detection_callback=_detection_handler,
            service_uuids=[service_uuid],
        )
        try:
            await scanner.start()
        except Exception as exc:
            raise TransportScanError(f"BLE scan start failed: {exc}") from exc
        self._scanner = scanner
        LOGGER.info("Scanning for service %s", service_uuid)

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except Exception as exc:
            raise TransportScanError(f"BLE scan stop failed: {exc}") from exc
        LOGGER.info("Scan stopped")

    async def connect(self, address: str) -> None:
        handle = self._handles.get(address)
        if handle is None:
            raise TransportConnectError(f"No discovered peripheral for {address}; scan first")
        if address in self._clients and self._clients[address].is_connected:
            return

        client = BleakClient(handle, timeout=self.connect_timeout_s)
        try:
            await client.connect()
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(f"BLE connect timed out for {address}") from exc
        except Exception as exc:
            raise TransportConnectError(f"BLE connect failed for {address}: {exc}") from exc
        if not client.is_connected:
            raise TransportConnectError(f"BLE connect failed for {address}")
        self._clients[address] = client

    async def disconnect(self, address: str) -> None:
        client = self._clients.pop(address, None)
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as exc:
            raise TransportConnectError(f"BLE disconnect failed for {address}: {exc}") from exc

    async def read(self, address: str, service_uuid: str, char_uuid: str) -> bytes:
        try:
            client = self._client(address)
            characteristic = _characteristic(client, service_uuid, char_uuid)
            data = await client.read_gatt_char(characteristic)
        except TransportError as exc:
            raise TransportReadError(str(exc)) from exc
        except Exception as exc:
            raise TransportReadError(f"BLE read of {char_uuid} failed: {exc}") from exc
        return bytes(data)

    async def write(
        self,
        address: str,
        service_uuid: str,
        char_uuid: str,
        payload: bytes,
        *,
        with_response: bool = True,
    ) -> None:
        try:
            client = self._client(address)
            characteristic = _characteristic(client, service_uuid, char_uuid)
            await client.write_gatt_char(characteristic, payload, response=with_response)
        except TransportError as exc:
            raise TransportWriteError(str(exc)) from exc
        except Exception as exc:
            raise TransportWriteError(f"BLE write of {char_uuid} failed: {exc}") from exc

    async def subscribe(
        self,
        address: str,
        service_uuid: str,
        char_uuid: str,
        on_data: DataCallback,
    ) -> None:
        def _notify_handler(_: BleakGATTCharacteristic, data: bytearray) -> None:
            on_data(bytes(data))

        try:
            client = self._client(address)
            characteristic = _characteristic(client, service_uuid, char_uuid)
            await client.start_notify(characteristic, _notify_handler)
        except TransportError as exc:
            raise TransportSubscribeError(str(exc)) from exc
        except Exception as exc:
            raise TransportSubscribeError(f"BLE notify on {char_uuid} failed: {exc}") from exc

    async def unsubscribe(self, address: str, service_uuid: str, char_uuid: str) -> None:
        try:
            client = self._client(address)
            characteristic = _characteristic(client, service_uuid, char_uuid)
            await client.stop_notify(characteristic)
        except TransportError as exc:
            raise TransportSubscribeError(str(exc)) from exc
        except Exception as exc:
            raise TransportSubscribeError(f"BLE stop notify on {char_uuid} failed: {exc}") from exc

    def _client(self, address: str) -> BleakClient:
        client = self._clients.get(address)
        if client is None or not client.is_connected:
            raise TransportConnectError(f"{address} is not connected")
        return client


def _characteristic(client: BleakClient, service_uuid: str, char_uuid: str) -> BleakGATTCharacteristic:
    service = client.services.get_service(service_uuid)
    if service is None:
        raise TransportError(f"Service {service_uuid} not found on {client.address}")
    characteristic = service.get_characteristic(char_uuid)
    if characteristic is None:
        raise TransportError(f"Characteristic {char_uuid} not found in service {service_uuid}")
    return characteristic
