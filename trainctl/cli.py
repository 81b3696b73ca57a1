"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future

import typer

from trainctl.core.codec import FIELD_CODECS
from trainctl.core.config import load_settings
from trainctl.core.errors import DeviceNotFoundError, TrainctlError, TransportTimeoutError
from trainctl.core.factory import create_service
from trainctl.core.model import (
    DIRECTION_LEFT,
    DIRECTION_RIGHT,
    DIRECTION_STOP,
    DirectorySnapshot,
    Field,
    TrainDevice,
)
from trainctl.core.service import ControlService

app = typer.Typer(help="Discover, bond with and drive BLE model trains")

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_DIRECTION_NAMES = {DIRECTION_STOP: "stop", DIRECTION_RIGHT: "right", DIRECTION_LEFT: "left"}
_COMMAND_TIMEOUT_S = 30.0

BackendOption = typer.Option(None, "--backend", help="auto, ble or simulated (default from settings)")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging")


def _build_service(backend: str | None, verbose: bool) -> ControlService:
    loaded = load_settings()
    level = logging.DEBUG if verbose else loaded.settings.log_level
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    service = create_service(loaded.settings, backend)
    if not service.available:
        typer.echo("Warning: no BLE adapter found; commands will have no effect", err=True)
    return service


def _wait(future: Future[None], what: str) -> None:
    try:
        future.result(timeout=_COMMAND_TIMEOUT_S)
    except TimeoutError:
        raise TransportTimeoutError(f"Timed out waiting for {what}") from None


def _find(snapshot: DirectorySnapshot, address: str) -> TrainDevice | None:
    for device in (*snapshot.unbonded, *snapshot.bonded):
        if device.address == address:
            return device
    return None


def _ensure_reachable(service: ControlService, address: str, scan_timeout: float) -> TrainDevice:
    """Scan until `address` is both known and reachable, or fail."""
    device = _find(service.snapshot(), address)
    if device is not None and service.is_reachable(address):
        return device

    _wait(service.start_scanning(), "scan start")
    deadline = time.monotonic() + scan_timeout
    try:
        while time.monotonic() < deadline:
            device = _find(service.snapshot(), address)
            if device is not None and service.is_reachable(address):
                return device
            time.sleep(0.1)
    finally:
        _wait(service.stop_scanning(), "scan stop")
    raise DeviceNotFoundError(f"Device {address} was not discovered within {scan_timeout:.0f}s")


def _format_device(device: TrainDevice) -> str:
    if not device.is_bonded:
        return f"{device.address} {device.short_name}"
    direction = _DIRECTION_NAMES.get(device.direction, device.direction)
    return (
        f"{device.address} {device.short_name} dcc={device.dcc_code} "
        f"name={device.long_name!r} speed={device.speed} "
        f"accel={device.acceleration} dir={direction}"
    )


def _print_snapshot(snapshot: DirectorySnapshot) -> None:
    typer.echo("Available devices:")
    if not snapshot.unbonded:
        typer.echo("  <none>")
    for device in snapshot.unbonded:
        typer.echo(f"  {_format_device(device)}")
    typer.echo("Bonded devices:")
    if not snapshot.bonded:
        typer.echo("  <none>")
    for device in snapshot.bonded:
        typer.echo(f"  {_format_device(device)}")


@app.command("profile")
def show_profile() -> None:
    """Show the GATT profile (service and characteristic UUIDs) in use."""
    try:
        loaded = load_settings()
        for warning in loaded.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        profile = loaded.settings.profile
        typer.echo(f"service: {profile.service_uuid}")
        for field, spec in profile.characteristics.items():
            mode = "with-response" if spec.write_with_response else "without-response"
            typer.echo(f"  {field.value}: {spec.uuid} ({mode})")
    except TrainctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan(
    duration: float = typer.Option(5.0, "--duration", help="Seconds to scan"),
    backend: str | None = BackendOption,
    verbose: bool = VerboseOption,
) -> None:
    """Scan for train devices and list available and bonded ones."""
    try:
        service = _build_service(backend, verbose)
        try:
            _wait(service.start_scanning(), "scan start")
            time.sleep(max(duration, 0.0))
            _wait(service.stop_scanning(), "scan stop")
            _print_snapshot(service.snapshot())
        finally:
            service.close()
    except TrainctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("bond")
def bond(
    address: str,
    scan_timeout: float = typer.Option(10.0, "--scan-timeout", help="Seconds to look for the device"),
    backend: str | None = BackendOption,
    verbose: bool = VerboseOption,
) -> None:
    """Bond with a device: connect, read its settings and disconnect."""
    address = address.upper()
    try:
        service = _build_service(backend, verbose)
        try:
            _ensure_reachable(service, address, scan_timeout)
            _wait(service.bond(address), "bonding")
            device = _find(service.snapshot(), address)
            if device is None or not device.is_bonded:
                typer.echo(f"Error: bonding with {address} failed", err=True)
                raise typer.Exit(code=1)
            typer.echo(f"Bonded {_format_device(device)}")
        finally:
            service.close()
    except TrainctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("connect")
def connect(
    address: str,
    watch: float = typer.Option(10.0, "--watch", help="Seconds to print speed notifications"),
    scan_timeout: float = typer.Option(10.0, "--scan-timeout", help="Seconds to look for the device"),
    backend: str | None = BackendOption,
    verbose: bool = VerboseOption,
) -> None:
    """Connect to a device and follow its speed notifications."""
    address = address.upper()
    try:
        service = _build_service(backend, verbose)
        try:
            _ensure_reachable(service, address, scan_timeout)
            _wait(service.connect(address), "connection")
            if service.connected_address != address:
                typer.echo(f"Error: could not connect to {address}", err=True)
                raise typer.Exit(code=1)

            selected = service.snapshot().selected
            if selected is not None:
                typer.echo(f"Connected {_format_device(selected)}")
            last_speed = selected.speed if selected is not None else None

            def _print_speed(snapshot: DirectorySnapshot) -> None:
                nonlocal last_speed
                current = snapshot.selected
                if current is None or current.address != address or current.speed == last_speed:
                    return
                last_speed = current.speed
                typer.echo(f"speed={current.speed}")

            unsubscribe = service.subscribe(_print_speed)
            try:
                time.sleep(max(watch, 0.0))
            finally:
                unsubscribe()
            _wait(service.disconnect(), "disconnect")
        finally:
            service.close()
    except TrainctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("set")
def set_field(
    field: str,
    value: str,
    device: str = typer.Option(..., "--device", help="Device address"),
    scan_timeout: float = typer.Option(10.0, "--scan-timeout", help="Seconds to look for the device"),
    backend: str | None = BackendOption,
    verbose: bool = VerboseOption,
) -> None:
    """Write FIELD (speed, acceleration, direction, long_name, network_key, dcc_code) on a device."""
    address = device.upper()
    try:
        try:
            target = Field(field)
        except ValueError:
            allowed = ", ".join(f.value for f in Field)
            typer.echo(f"Error: unknown field '{field}'. Allowed: {allowed}", err=True)
            raise typer.Exit(code=1) from None
        normalized = FIELD_CODECS[target].normalize(value)

        service = _build_service(backend, verbose)
        try:
            _ensure_reachable(service, address, scan_timeout)
            _wait(service.connect(address), "connection")
            if service.connected_address != address:
                typer.echo(f"Error: could not connect to {address}", err=True)
                raise typer.Exit(code=1)
            _wait(service.set_field(address, target, normalized), f"{target.value} write")
            updated = _find(service.snapshot(), address)
            if updated is not None:
                typer.echo(f"Set {target.value}={normalized!r}: {_format_device(updated)}")
            _wait(service.disconnect(), "disconnect")
        finally:
            service.close()
    except TrainctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
