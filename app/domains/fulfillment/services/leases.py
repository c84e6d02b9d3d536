# app/domains/fulfillment/services/leases.py
"""
Lease por idempotency key: no máximo uma chamada ao fornecedor em curso
por key dentro do processo. Tem TTL para que um lease perdido (task
cancelada sem passar pelo finally) não bloqueie a key para sempre.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager


class SubmissionLeases:
    def __init__(self, ttl_s: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._held: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> str | None:
        """Devolve o token do lease, ou None se outra submissão o detém."""
        now = self._clock()
        with self._lock:
            current = self._held.get(key)
            if current and current[1] > now:
                return None
            token = uuid.uuid4().hex
            self._held[key] = (token, now + self.ttl_s)
            return token

    def release(self, key: str, token: str) -> None:
        with self._lock:
            current = self._held.get(key)
            # só o dono liberta (um lease expirado pode já ter sido retomado)
            if current and current[0] == token:
                del self._held[key]

    def is_held(self, key: str) -> bool:
        with self._lock:
            current = self._held.get(key)
            return bool(current and current[1] > self._clock())

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """
        with leases.hold(key) as acquired:
            if not acquired: ...
        """
        token = self.try_acquire(key)
        try:
            yield token is not None
        finally:
            if token is not None:
                self.release(key, token)
