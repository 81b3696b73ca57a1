"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DiscoveredPeripheral:
    address: str
    name: str
    service_uuids: tuple[str, ...]


DiscoveryCallback = Callable[[DiscoveredPeripheral], None]
DataCallback = Callable[[bytes], None]


class Transport(Protocol):
    async def probe_adapter(self) -> bool:
        """Return True when a usable BLE adapter is present."""

    def has_peripheral(self, address: str) -> bool:
        """Return True when discovery produced a live handle for `address`."""

    async def start_scan(self, service_uuid: str, on_found: DiscoveryCallback) -> None:
        """Start an open-ended scan reporting every advertisement to `on_found`."""

    async def stop_scan(self) -> None: ...

    async def connect(self, address: str) -> None: ...

    async def disconnect(self, address: str) -> None: ...

    async def read(self, address: str, service_uuid: str, char_uuid: str) -> bytes: ...

    async def write(
        self,
        address: str,
        service_uuid: str,
        char_uuid: str,
        payload: bytes,
        *,
        with_response: bool = True,
    ) -> None: ...

    async def subscribe(
        self,
        address: str,
        service_uuid: str,
        char_uuid: str,
        on_data: DataCallback,
    ) -> None: ...

    async def unsubscribe(self, address: str, service_uuid: str, char_uuid: str) -> None: ...
