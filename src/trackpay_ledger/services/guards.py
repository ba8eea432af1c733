"""Re-entrancy latch for ledger mutations."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from trackpay_ledger.domain.errors import ConflictError


@dataclass
class InFlightGuard:
    """Rejects a mutation while an identical one is still running.

    Keys are usually ``"<operation>:<client_id>"``. The store-level checks in
    the services remain the backstop; this only stops duplicate taps from
    reaching the store at all.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock)
    _keys: set[str] = field(default_factory=set)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the latch for ``key`` or raise ``ConflictError``."""
        with self._lock:
            if key in self._keys:
                raise ConflictError("Operation already in progress", key=key)
            self._keys.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._keys.discard(key)

    def is_held(self, key: str) -> bool:
        with self._lock:
            return key in self._keys
