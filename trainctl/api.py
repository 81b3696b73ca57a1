"""Stable public API for building tooling on top of trainctl.

This module is the supported integration surface for third-party callers
(GUI/TUI/scripts). Avoid importing from private/internal modules unless
intentionally depending on non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from trainctl.core.config import load_settings
from trainctl.core.directory import Listener
from trainctl.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    DeviceNotFoundError,
    PayloadError,
    TrainctlError,
    TransportConnectError,
    TransportError,
    TransportReadError,
    TransportScanError,
    TransportSubscribeError,
    TransportTimeoutError,
    TransportWriteError,
)
from trainctl.core.factory import create_service
from trainctl.core.model import (
    DIRECTION_LEFT,
    DIRECTION_RIGHT,
    DIRECTION_STOP,
    BackendKind,
    DeviceState,
    DirectorySnapshot,
    Field,
    GattProfile,
    Settings,
    TrainDevice,
)
from trainctl.transports.base import DiscoveredPeripheral, Transport

__all__ = [
    "TrainctlError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceNotFoundError",
    "PayloadError",
    "TransportError",
    "TransportConnectError",
    "TransportReadError",
    "TransportScanError",
    "TransportSubscribeError",
    "TransportTimeoutError",
    "TransportWriteError",
    "DIRECTION_LEFT",
    "DIRECTION_RIGHT",
    "DIRECTION_STOP",
    "BackendKind",
    "DeviceState",
    "DirectorySnapshot",
    "DiscoveredPeripheral",
    "Field",
    "GattProfile",
    "Settings",
    "TrainDevice",
    "Transport",
    "Client",
]


class Client:
    """Public client for interacting with trainctl core capabilities.

    A `Client` wraps settings loading, backend selection and the control
    service. Intents return futures immediately; state is observed through
    `snapshot()` or listeners registered with `subscribe()`.
    """

    def __init__(
        self,
        *,
        backend: BackendKind | str | None = None,
        settings: Settings | None = None,
        transport: Transport | None = None,
    ) -> None:
        load_warnings: tuple[str, ...] = ()
        if settings is None:
            loaded = load_settings()
            settings = loaded.settings
            load_warnings = loaded.warnings
        self.settings = settings
        self._load_warnings = load_warnings
        self._service = create_service(settings, backend, transport=transport)

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._load_warnings

    @property
    def available(self) -> bool:
        return self._service.available

    def snapshot(self) -> DirectorySnapshot:
        return self._service.snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._service.subscribe(listener)

    def state_of(self, address: str) -> DeviceState | None:
        return self._service.state_of(address)

    def start_scanning(self) -> Future[None]:
        return self._service.start_scanning()

    def stop_scanning(self) -> Future[None]:
        return self._service.stop_scanning()

    def connect(self, address: str) -> Future[None]:
        return self._service.connect(address)

    def bond(self, address: str) -> Future[None]:
        return self._service.bond(address)

    def disconnect(self) -> Future[None]:
        return self._service.disconnect()

    def set_field(self, address: str, field: Field | str, value: Any) -> Future[None]:
        return self._service.set_field(address, field, value)

    def close(self) -> None:
        self._service.close()
