"""Bonded/unbonded device collections plus the selected device.

The directory owns the canonical `TrainDevice` per address. The two ordered
sequences and the selection only hold address keys, so a snapshot always
resolves every address against the same record.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace

from trainctl.core.errors import DeviceNotFoundError
from trainctl.core.model import DirectorySnapshot, TrainDevice

LOGGER = logging.getLogger(__name__)

Listener = Callable[[DirectorySnapshot], None]


def _unbonded_key(device: TrainDevice) -> str:
    return device.short_name


def _bonded_key(device: TrainDevice) -> tuple[int, str]:
    return device.dcc_code, device.long_name


class DeviceDirectory:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, TrainDevice] = {}
        self._unbonded: list[str] = []
        self._bonded: list[str] = []
        self._selected: str | None = None
        self._listeners: list[Listener] = []

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, address: str) -> TrainDevice | None:
        with self._lock:
            return self._records.get(address)

    def snapshot(self) -> DirectorySnapshot:
        with self._lock:
            return self._build_snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener` for every post-mutation snapshot.

        Returns a callable that removes the registration again.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def upsert_unbonded(self, record: TrainDevice) -> bool:
        """Insert or replace an unbonded record.

        Returns False without touching anything when the address is already
        bonded: a bonded device re-advertising must stay bonded.
        """
        if record.is_bonded:
            raise ValueError(f"{record.address} is bonded; use update_bonded")
        with self._lock:
            if record.address in self._bonded:
                LOGGER.debug("Ignoring advertisement from bonded device %s", record.address)
                return False
            self._records[record.address] = record
            if record.address not in self._unbonded:
                self._unbonded.append(record.address)
            self._sort_unbonded()
            self._publish()
        return True

    def promote_to_bonded(self, record: TrainDevice) -> None:
        if not record.is_bonded:
            record = replace(record, is_bonded=True)
        with self._lock:
            self._store_bonded(record)
            self._publish()

    def update_bonded(self, record: TrainDevice) -> None:
        if not record.is_bonded:
            raise ValueError(f"{record.address} is not bonded; use promote_to_bonded")
        with self._lock:
            self._store_bonded(record)
            self._publish()

    def partition_and_replace_all(self, records: Iterable[TrainDevice]) -> None:
        with self._lock:
            self._records = {}
            for record in records:
                self._records[record.address] = record
            self._unbonded = [a for a, r in self._records.items() if not r.is_bonded]
            self._bonded = [a for a, r in self._records.items() if r.is_bonded]
            self._sort_unbonded()
            self._sort_bonded()
            if self._selected not in self._records:
                self._selected = None
            self._publish()

    def select(self, address: str | None) -> None:
        with self._lock:
            if address is not None and address not in self._records:
                raise DeviceNotFoundError(f"Unknown device '{address}'")
            if address == self._selected:
                return
            self._selected = address
            self._publish()

    def _store_bonded(self, record: TrainDevice) -> None:
        if record.address in self._unbonded:
            self._unbonded.remove(record.address)
        self._records[record.address] = record
        if record.address not in self._bonded:
            self._bonded.append(record.address)
        self._sort_bonded()

    def _sort_unbonded(self) -> None:
        self._unbonded.sort(key=lambda a: _unbonded_key(self._records[a]))

    def _sort_bonded(self) -> None:
        self._bonded.sort(key=lambda a: _bonded_key(self._records[a]))

    def _build_snapshot(self) -> DirectorySnapshot:
        selected = self._records.get(self._selected) if self._selected else None
        return DirectorySnapshot(
            unbonded=tuple(self._records[a] for a in self._unbonded),
            bonded=tuple(self._records[a] for a in self._bonded),
            selected=selected,
        )

    def _publish(self) -> None:
        # Called with the lock held so listeners see snapshots in mutation order.
        snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Directory listener %r failed", listener)
