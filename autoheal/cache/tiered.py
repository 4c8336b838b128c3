# autoheal/cache/tiered.py
"""Tiered selector cache
-----------------------
Memory tier is authoritative for reads; the durable tier is a best-effort
warm-start snapshot written on a background thread. The read path never
touches disk.

Typical lifecycle:

    with TieredSelectorCache(CacheConfig.from_settings(get_settings())) as cache:
        hit = cache.get(key)
        ...
    # leaving the block drains pending writes and performs the final flush
"""

from __future__ import annotations

import atexit
import threading
from typing import Dict, List, Optional, Tuple

from autoheal.cache.memory import MemoryTier, RemovalCause
from autoheal.cache.models import CachedSelectorEntry, CacheMetrics, StoredEntry, StoredUsage
from autoheal.cache.persistence import DurableStore, Snapshot, SnapshotFlusher
from autoheal.utils.config import CacheConfig, get_settings
from autoheal.utils.logger import get_logger
from autoheal.utils.timing import Clock, Stopwatch, epoch_ms

log = get_logger(__name__)


class TieredSelectorCache:
    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        clock: Clock = epoch_ms,
        flush_on_exit: bool = False,
    ) -> None:
        self.config = config or get_settings().cache_config()
        self._clock = clock
        self._metrics = CacheMetrics()
        self._usage: Dict[str, StoredUsage] = {}
        self._usage_lock = threading.Lock()

        self._memory: MemoryTier[CachedSelectorEntry] = MemoryTier(
            self.config.maximum_size,
            self.config.expire_after_write,
            self.config.expire_after_access,
            clock=clock,
            removal_listener=self._on_removal,
        )
        self._store = DurableStore(self.config.cache_dir)
        self._flusher = SnapshotFlusher(self._store, self._snapshot)
        self._closed = False

        self._load()
        if flush_on_exit:
            atexit.register(self.close)

        log.info(
            f"Selector cache initialized. Directory: {self._store.cache_dir}, Loaded entries: {len(self._memory)}"
        )

    # ---------- internals ----------

    def _on_removal(self, key: str, value: object, cause: RemovalCause) -> None:
        if cause == RemovalCause.REPLACED:
            return
        self._metrics.record_eviction()
        with self._usage_lock:
            self._usage.pop(key, None)
        log.debug(f"Memory cache entry evicted: {key} (cause: {cause.value})")

    def _touch_usage(self, key: str, success: Optional[bool] = None) -> None:
        now = self._clock()
        with self._usage_lock:
            usage = self._usage.get(key)
            if usage is None:
                usage = self._usage[key] = StoredUsage(last_access_time=now)
            if success is None:
                usage.last_access_time = now
            else:
                usage.record_usage(success, now)

    def _load(self) -> None:
        snap = self._store.load()
        now = self._clock()
        cfg = self.config

        loaded = expired = 0
        # oldest access first so capacity eviction keeps the most recent
        for key, stored in sorted(snap.entries.items(), key=lambda kv: kv[1].last_access_time):
            if stored.is_expired(cfg.expire_after_write, cfg.expire_after_access, now):
                expired += 1
                continue
            entry = stored.to_entry(now)
            self._memory.put(key, entry, written_at=entry.created_at, accessed_at=stored.last_access_time)
            loaded += 1

        with self._usage_lock:
            for key, usage in snap.usage.items():
                if not usage.is_expired(cfg.expire_after_access, now):
                    self._usage[key] = usage

        if snap.entries:
            log.info(f"Loaded {loaded} cache entries from file, {expired} expired entries skipped")

    def _snapshot(self) -> Snapshot:
        entries = {
            key: StoredEntry.from_entry(entry, written_at, accessed_at)
            for key, entry, written_at, accessed_at in self._memory.snapshot()
        }
        with self._usage_lock:
            usage = {k: v.model_copy() for k, v in self._usage.items()}
        return Snapshot(entries=entries, usage=usage)

    # ---------- public API ----------

    def get(self, key: str) -> Optional[CachedSelectorEntry]:
        entry = self._memory.get(key)
        if entry is None:
            self._metrics.record_miss()
            log.debug(f"Cache MISS: {key}")
            return None
        self._touch_usage(key)
        self._metrics.record_hit()
        log.debug(f"Cache HIT: {key}")
        return entry

    def put(self, key: str, entry: CachedSelectorEntry) -> None:
        with Stopwatch() as sw:
            self._memory.put(key, entry, written_at=self._clock())
            self._touch_usage(key)
            self._flusher.schedule()
        self._metrics.record_load(sw.elapsed_ms())
        log.debug(f"Cache STORED: {key} (expires in {self.config.expire_after_write})")

    def record_outcome(self, key: str, success: bool) -> None:
        now = self._clock()
        updated = self._memory.compute_if_present(key, lambda e: e.record_usage(success, now))
        if not updated:
            return
        self._touch_usage(key, success)
        self._flusher.schedule()
        log.debug(f"Updated success rate for key: {key} (success: {success})")

    def evict_expired(self) -> int:
        removed = self._memory.evict_expired()
        now = self._clock()
        with self._usage_lock:
            stale = [k for k, u in self._usage.items() if u.is_expired(self.config.expire_after_access, now)]
            for k in stale:
                del self._usage[k]
        if removed:
            self._flusher.schedule()
        log.debug(f"Evicted {removed} expired cache entries")
        return removed

    def remove(self, key: str) -> bool:
        if not self._memory.invalidate(key):
            log.debug(f"Attempted to remove non-existent cache entry: {key}")
            return False
        self._flusher.schedule()
        log.debug(f"Cache entry removed: {key}")
        return True

    def clear(self) -> None:
        removed = self._memory.invalidate_all()
        with self._usage_lock:
            self._usage.clear()
        self._flusher.discard()
        self._metrics.reset()
        log.info(f"Cache cleared completely: {removed} entries removed")

    def size(self) -> int:
        return len(self._memory.snapshot())

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return key in self._memory

    def entries(self) -> List[Tuple[str, CachedSelectorEntry]]:
        return [(k, v) for k, v, _w, _a in self._memory.snapshot()]

    def usage(self, key: str) -> Optional[StoredUsage]:
        with self._usage_lock:
            u = self._usage.get(key)
            return u.model_copy() if u is not None else None

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    @property
    def cache_file_path(self):
        return self._store.cache_file_path

    @property
    def metrics_file_path(self):
        return self._store.metrics_file_path

    # ---------- durability ----------

    def flush(self) -> bool:
        """Write the current snapshot synchronously."""
        return self._flusher.flush_now()

    def close(self) -> None:
        """Drain background writes (bounded by the grace period) and flush once more."""
        if self._closed:
            return
        self._closed = True
        log.info("Saving cache before shutdown...")
        self._flusher.shutdown(self.config.shutdown_grace.total_seconds())

    def __enter__(self) -> "TieredSelectorCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
