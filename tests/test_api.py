from __future__ import annotations

from pathlib import Path

from trainctl.api import DIRECTION_RIGHT, Client, DirectorySnapshot, Field, Settings


def test_public_client_simulated_session(simulated_settings: Settings) -> None:
    with Client(backend="simulated", settings=simulated_settings) as client:
        assert client.available
        snapshot = client.snapshot()
        assert [d.short_name for d in snapshot.unbonded][:2] == ["Train01", "Train02"]

        seen: list[DirectorySnapshot] = []
        client.subscribe(seen.append)

        address = snapshot.bonded[0].address
        client.connect(address).result(timeout=5.0)
        client.set_field(address, Field.DIRECTION, DIRECTION_RIGHT).result(timeout=5.0)
        client.set_field(address, "acceleration", "-9").result(timeout=5.0)

        selected = client.snapshot().selected
        assert selected.address == address
        assert selected.direction == DIRECTION_RIGHT
        assert selected.acceleration == -3
        assert seen and seen[-1].selected == selected


def test_public_client_reads_user_settings(isolated_config: Path) -> None:
    path = isolated_config / "trainctl" / "config.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(
        "backend: simulated\nsimulation:\n  connect_delay_s: 0\n  notify_interval_s: 60\n",
        encoding="utf-8",
    )

    client = Client()
    try:
        assert client.settings.simulation.connect_delay_s == 0.0
        assert len(client.snapshot().bonded) == 2
    finally:
        client.close()
