"""Short-lived snapshots of read-mostly reference tables."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class TimedSnapshot(Generic[T]):
    """Holds the result of ``loader`` for ``ttl_seconds``; ``invalidate`` forces a reload.

    A TTL of zero disables caching entirely.
    """

    def __init__(self, loader: Callable[[], T], ttl_seconds: float, *, name: str = "snapshot") -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._name = name
        self._value: T | None = None
        self._loaded_at: float | None = None
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            now = time.monotonic()
            stale = self._loaded_at is None or (now - self._loaded_at) >= self._ttl
            if stale:
                logging.debug(f"Reloading {self._name}")
                self._value = self._loader()
                self._loaded_at = now
            return self._value  # type: ignore[return-value]

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None
