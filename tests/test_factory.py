from __future__ import annotations

from dataclasses import replace

import pytest

from trainctl.core.errors import ConfigValidationError
from trainctl.core.factory import create_service
from trainctl.core.model import BackendKind, Settings
from trainctl.transports.simulated import SimulatedTransport


class ProbeOnlyTransport:
    def __init__(self, available: bool) -> None:
        self.available = available
        self.started = False

    async def probe_adapter(self) -> bool:
        return self.available

    def has_peripheral(self, address: str) -> bool:
        return True

    async def start_scan(self, service_uuid, on_found) -> None:
        self.started = True

    async def stop_scan(self) -> None:
        pass


def test_simulated_backend_is_seeded(simulated_settings: Settings) -> None:
    service = create_service(simulated_settings)
    try:
        snapshot = service.snapshot()
        assert isinstance(service.transport, SimulatedTransport)
        assert len(snapshot.unbonded) == 5
        assert len(snapshot.bonded) == 2
    finally:
        service.close()


def test_auto_uses_ble_transport_when_adapter_present(simulated_settings: Settings) -> None:
    transport = ProbeOnlyTransport(available=True)
    service = create_service(replace(simulated_settings, backend=BackendKind.AUTO), transport=transport)
    try:
        assert service.transport is transport
        assert service.available
        service.start_scanning().result(timeout=5.0)
        assert transport.started
    finally:
        service.close()


def test_auto_falls_back_to_simulation_without_adapter(simulated_settings: Settings) -> None:
    transport = ProbeOnlyTransport(available=False)
    service = create_service(simulated_settings, "auto", transport=transport)
    try:
        assert isinstance(service.transport, SimulatedTransport)
        assert service.available
    finally:
        service.close()


def test_explicit_ble_without_adapter_is_noop_service(simulated_settings: Settings) -> None:
    transport = ProbeOnlyTransport(available=False)
    service = create_service(simulated_settings, BackendKind.BLE, transport=transport)
    try:
        assert service.transport is transport
        assert not service.available
        assert service.start_scanning().done()
        assert not transport.started
    finally:
        service.close()


def test_unknown_backend_is_a_settings_error(simulated_settings: Settings) -> None:
    with pytest.raises(ConfigValidationError, match="Unknown backend 'bluetooth'"):
        create_service(simulated_settings, "bluetooth")
