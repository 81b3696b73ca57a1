"""Backend selection: build a ControlService over a real or simulated transport."""

from __future__ import annotations

import logging
import random

from trainctl.core.errors import ConfigValidationError
from trainctl.core.model import BackendKind, Settings
from trainctl.core.service import ControlService
from trainctl.core.worker import ServiceWorker
from trainctl.transports.base import Transport
from trainctl.transports.ble_gatt import BLEGATTTransport
from trainctl.transports.simulated import SimulatedTransport

LOGGER = logging.getLogger(__name__)


def create_service(
    settings: Settings,
    backend: BackendKind | str | None = None,
    *,
    transport: Transport | None = None,
) -> ControlService:
    """Return a service for `backend` (defaults to the configured one).

    `auto` probes the BLE adapter and falls back to the simulation when none is
    found. An explicit `ble` backend without an adapter yields a service whose
    intents are all no-ops.
    """
    kind = _backend_kind(backend) if backend is not None else settings.backend
    if kind is BackendKind.SIMULATED:
        return _simulated_service(settings)

    ble_transport = transport or BLEGATTTransport(connect_timeout_s=settings.ble.connect_timeout_s)
    worker = ServiceWorker()
    try:
        available = worker.submit(ble_transport.probe_adapter()).result(
            timeout=settings.ble.probe_timeout_s
        )
    except TimeoutError:
        LOGGER.warning("BLE adapter probe timed out after %.1fs", settings.ble.probe_timeout_s)
        available = False

    if available:
        LOGGER.info("Using BLE backend")
        return ControlService(ble_transport, settings.profile, worker=worker)
    if kind is BackendKind.BLE:
        return ControlService(ble_transport, settings.profile, worker=worker, available=False)

    LOGGER.warning("No BLE adapter found; falling back to simulated backend")
    worker.stop()
    return _simulated_service(settings)


def _backend_kind(backend: BackendKind | str) -> BackendKind:
    try:
        return BackendKind(backend)
    except ValueError:
        choices = ", ".join(kind.value for kind in BackendKind)
        raise ConfigValidationError(f"Unknown backend '{backend}'; expected one of: {choices}") from None


def _simulated_service(settings: Settings) -> ControlService:
    transport = SimulatedTransport(
        settings.profile,
        settings.simulation,
        rng=random.Random(settings.simulation.seed),
    )
    service = ControlService(transport, settings.profile)
    service.seed(transport.seed_records())
    LOGGER.info("Using simulated backend")
    return service
