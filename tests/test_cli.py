from __future__ import annotations

from concurrent.futures import Future
from pathlib import Path

import pytest
from typer.testing import CliRunner

from trainctl import cli
from trainctl.core.model import DirectorySnapshot, Field, TrainDevice

ENGINE = TrainDevice(
    address="00:11:22:33:44:05",
    short_name="Engine01",
    long_name="My Engine01",
    dcc_code=1234,
    speed=12,
    direction="01",
    is_bonded=True,
)
TRAIN = TrainDevice(address="00:11:22:33:44:00", short_name="Train01")


def _done() -> Future[None]:
    future: Future[None] = Future()
    future.set_result(None)
    return future


class FakeService:
    def __init__(self) -> None:
        self.available = True
        self.connected_address: str | None = None
        self.devices = {TRAIN.address: TRAIN, ENGINE.address: ENGINE}
        self.selected: str | None = None
        self.calls: list[tuple] = []
        self.closed = False

    def snapshot(self) -> DirectorySnapshot:
        devices = self.devices.values()
        return DirectorySnapshot(
            unbonded=tuple(d for d in devices if not d.is_bonded),
            bonded=tuple(d for d in devices if d.is_bonded),
            selected=self.devices.get(self.selected) if self.selected else None,
        )

    def subscribe(self, listener):
        self.calls.append(("subscribe",))
        return lambda: None

    def is_reachable(self, address: str) -> bool:
        return address in self.devices

    def start_scanning(self) -> Future[None]:
        self.calls.append(("start_scanning",))
        return _done()

    def stop_scanning(self) -> Future[None]:
        self.calls.append(("stop_scanning",))
        return _done()

    def bond(self, address: str) -> Future[None]:
        self.calls.append(("bond", address))
        device = self.devices[address]
        self.devices[address] = TrainDevice(
            address=address,
            short_name=device.short_name,
            long_name=f"My {device.short_name}",
            dcc_code=77,
            is_bonded=True,
        )
        return _done()

    def connect(self, address: str) -> Future[None]:
        self.calls.append(("connect", address))
        self.connected_address = address
        self.selected = address
        return _done()

    def disconnect(self) -> Future[None]:
        self.calls.append(("disconnect",))
        self.connected_address = None
        return _done()

    def set_field(self, address: str, field: Field, value) -> Future[None]:
        self.calls.append(("set_field", address, field, value))
        return _done()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_service(monkeypatch: pytest.MonkeyPatch) -> FakeService:
    service = FakeService()
    monkeypatch.setattr(cli, "_build_service", lambda backend, verbose: service)
    return service


def test_scan_lists_both_collections(fake_service: FakeService) -> None:
    result = CliRunner().invoke(cli.app, ["scan", "--duration", "0"])

    assert result.exit_code == 0
    assert "Available devices:" in result.stdout
    assert "00:11:22:33:44:00 Train01" in result.stdout
    assert "dcc=1234" in result.stdout
    assert "dir=right" in result.stdout
    assert fake_service.calls[:2] == [("start_scanning",), ("stop_scanning",)]
    assert fake_service.closed


def test_bond_prints_bonded_device(fake_service: FakeService) -> None:
    result = CliRunner().invoke(cli.app, ["bond", "00:11:22:33:44:00"])

    assert result.exit_code == 0
    assert "Bonded 00:11:22:33:44:00 Train01 dcc=77" in result.stdout
    assert ("bond", "00:11:22:33:44:00") in fake_service.calls


def test_bond_unknown_device_fails(fake_service: FakeService) -> None:
    result = CliRunner().invoke(cli.app, ["bond", "aa:bb:cc:dd:ee:ff", "--scan-timeout", "0"])

    assert result.exit_code == 1
    assert "AA:BB:CC:DD:EE:FF was not discovered" in result.output


def test_set_normalizes_value_before_writing(fake_service: FakeService) -> None:
    result = CliRunner().invoke(
        cli.app,
        ["set", "speed", "500", "--device", "00:11:22:33:44:05"],
    )

    assert result.exit_code == 0
    assert ("connect", ENGINE.address) in fake_service.calls
    assert ("set_field", ENGINE.address, Field.SPEED, 128) in fake_service.calls
    assert fake_service.calls[-1] == ("disconnect",)


def test_set_unknown_field(fake_service: FakeService) -> None:
    result = CliRunner().invoke(cli.app, ["set", "horn", "loud", "--device", ENGINE.address])

    assert result.exit_code == 1
    assert "unknown field 'horn'" in result.output
    assert fake_service.calls == []


def test_connect_reports_failure(fake_service: FakeService, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fake_service, "connect", lambda address: _done())

    result = CliRunner().invoke(cli.app, ["connect", ENGINE.address, "--watch", "0"])

    assert result.exit_code == 1
    assert "could not connect" in result.output


def test_connect_with_simulated_backend(isolated_config: Path) -> None:
    path = isolated_config / "trainctl" / "config.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(
        "simulation:\n  connect_delay_s: 0\n  read_delay_s: 0\n  notify_interval_s: 60\n",
        encoding="utf-8",
    )

    result = CliRunner().invoke(
        cli.app,
        ["connect", "00:11:22:33:44:05", "--watch", "0", "--backend", "simulated"],
    )

    assert result.exit_code == 0
    assert "Connected 00:11:22:33:44:05 Engine01" in result.stdout


def test_profile_command() -> None:
    result = CliRunner().invoke(cli.app, ["profile"])

    assert result.exit_code == 0
    assert "service: fcbd0001-5e25-4387-99b7-53a5495a0c35" in result.stdout
    assert "network_key: fcbd000a-5e25-4387-99b7-53a5495a0c35 (without-response)" in result.stdout


def test_unknown_backend_reports_error() -> None:
    result = CliRunner().invoke(cli.app, ["scan", "--duration", "0", "--backend", "foo"])

    assert result.exit_code == 1
    assert "Error: Unknown backend 'foo'" in result.output
