# autoheal/cache/memory.py
"""Bounded in-memory tier
------------------------
LRU-ordered map with three independent limits: maximum entry count,
expire-after-write and expire-after-access. Limits are enforced on every
read and mutation; evict_expired() sweeps the whole map on demand.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from autoheal.utils.timing import Clock, epoch_ms

V = TypeVar("V")


class RemovalCause(str, Enum):
    SIZE = "size"
    EXPIRED = "expired"
    EXPLICIT = "explicit"
    REPLACED = "replaced"

    @property
    def was_evicted(self) -> bool:
        return self in (RemovalCause.SIZE, RemovalCause.EXPIRED)


RemovalListener = Callable[[str, object, RemovalCause], None]


@dataclass
class _Slot(Generic[V]):
    value: V
    written_at: int
    accessed_at: int


class MemoryTier(Generic[V]):
    """Thread-safe; every public method holds the tier lock for its whole body."""

    def __init__(
        self,
        maximum_size: int,
        expire_after_write: timedelta,
        expire_after_access: timedelta,
        *,
        clock: Clock = epoch_ms,
        removal_listener: Optional[RemovalListener] = None,
    ) -> None:
        self.maximum_size = max(1, int(maximum_size))
        self._write_ttl_ms = expire_after_write.total_seconds() * 1000
        self._access_ttl_ms = expire_after_access.total_seconds() * 1000
        self._clock = clock
        self._listener = removal_listener
        self._data: "OrderedDict[str, _Slot[V]]" = OrderedDict()
        self._lock = threading.RLock()

    # ---------- internals ----------

    def _expired(self, slot: _Slot[V], now: int) -> bool:
        return (now - slot.written_at) > self._write_ttl_ms or (now - slot.accessed_at) > self._access_ttl_ms

    def _remove(self, key: str, cause: RemovalCause) -> Optional[V]:
        slot = self._data.pop(key, None)
        if slot is None:
            return None
        if self._listener is not None:
            self._listener(key, slot.value, cause)
        return slot.value

    def _enforce_capacity(self) -> None:
        while len(self._data) > self.maximum_size:
            oldest = next(iter(self._data))
            self._remove(oldest, RemovalCause.SIZE)

    # ---------- public API ----------

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            slot = self._data.get(key)
            if slot is None:
                return None
            now = self._clock()
            if self._expired(slot, now):
                self._remove(key, RemovalCause.EXPIRED)
                return None
            slot.accessed_at = now
            self._data.move_to_end(key)
            return slot.value

    def put(
        self,
        key: str,
        value: V,
        *,
        written_at: Optional[int] = None,
        accessed_at: Optional[int] = None,
    ) -> None:
        with self._lock:
            now = self._clock()
            if key in self._data:
                self._remove(key, RemovalCause.REPLACED)
            slot = _Slot(
                value=value,
                written_at=now if written_at is None else written_at,
                accessed_at=now if accessed_at is None else accessed_at,
            )
            if self._expired(slot, now):
                # admitted already stale: drop instead of resurrecting
                if self._listener is not None:
                    self._listener(key, value, RemovalCause.EXPIRED)
                return
            self._data[key] = slot
            self._enforce_capacity()

    def compute_if_present(self, key: str, fn: Callable[[V], None]) -> bool:
        """Apply `fn` to a live value under the tier lock; counts as an access."""
        with self._lock:
            value = self.get(key)
            if value is None:
                return False
            fn(value)
            return True

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._remove(key, RemovalCause.EXPLICIT) is not None

    def invalidate_all(self) -> int:
        """Drop everything without notifying the listener; returns the count."""
        with self._lock:
            n = len(self._data)
            self._data.clear()
            return n

    def evict_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [k for k, slot in self._data.items() if self._expired(slot, now)]
            for k in stale:
                self._remove(k, RemovalCause.EXPIRED)
            return len(stale)

    def snapshot(self) -> List[Tuple[str, V, int, int]]:
        """(key, value, written_at, accessed_at) for live entries, without touching them."""
        with self._lock:
            now = self._clock()
            return [
                (k, slot.value, slot.written_at, slot.accessed_at)
                for k, slot in self._data.items()
                if not self._expired(slot, now)
            ]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            slot = self._data.get(key)  # type: ignore[arg-type]
            return slot is not None and not self._expired(slot, self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
