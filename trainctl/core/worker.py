"""Long-lived asyncio loop that runs every transport operation of a service."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from typing import Any, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceWorker:
    """Run coroutines on a private event loop living in a daemon thread.

    Callers submit work and get a `concurrent.futures.Future` back; they never
    block unless they choose to wait on it.
    """

    def __init__(self, name: str = "trainctl-worker") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._loop.is_closed()

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        if not self.running:
            coro.close()
            raise RuntimeError("Service worker is stopped")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def stop(self, timeout_s: float = 5.0) -> None:
        if not self.running:
            return
        shutdown = asyncio.run_coroutine_threadsafe(self._cancel_pending(), self._loop)
        try:
            shutdown.result(timeout=timeout_s)
        except TimeoutError:
            LOGGER.warning("Timed out cancelling pending worker tasks")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout_s)
        if not self._thread.is_alive():
            self._loop.close()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @staticmethod
    async def _cancel_pending() -> None:
        current = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks() if task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
