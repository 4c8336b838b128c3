# autoheal/cache/persistence.py
"""Durable tier
--------------
Two pretty-printed JSON documents under the cache directory:

    selector-cache.json   key -> {selector, successRate, usageCount, lastUsed, createdAt, lastAccessTime}
    cache-metrics.json    key -> {attempts, successes, lastUsed, lastAccessTime}

Every write is a whole-snapshot rewrite through a temp file. I/O problems are
logged here and never reach cache callers.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from autoheal.cache.models import StoredEntry, StoredUsage
from autoheal.utils.logger import get_logger

log = get_logger(__name__)

CACHE_FILE = "selector-cache.json"
METRICS_FILE = "cache-metrics.json"

M = TypeVar("M", bound=BaseModel)


@dataclass
class Snapshot:
    entries: Dict[str, StoredEntry] = field(default_factory=dict)
    usage: Dict[str, StoredUsage] = field(default_factory=dict)


class DurableStore:
    """Reads and writes the two cache documents. Not thread-safe on its own; see SnapshotFlusher."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_file_path = self.cache_dir / CACHE_FILE
        self.metrics_file_path = self.cache_dir / METRICS_FILE
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            log.exception(f"Failed to create cache directory: {self.cache_dir}")

    # ---------- reading ----------

    def _load_document(self, path: Path, model: Type[M]) -> Dict[str, M]:
        if not path.exists():
            log.debug(f"Cache file does not exist, starting empty: {path}")
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            return {str(k): model.model_validate(v) for k, v in raw.items()}
        except (OSError, ValueError, ValidationError):
            log.exception(f"Failed to load cache document: {path}")
            return {}

    def load(self) -> Snapshot:
        return Snapshot(
            entries=self._load_document(self.cache_file_path, StoredEntry),
            usage=self._load_document(self.metrics_file_path, StoredUsage),
        )

    # ---------- writing ----------

    @staticmethod
    def _write_document(path: Path, doc: Dict[str, BaseModel]) -> None:
        payload = {k: v.model_dump(mode="json", by_alias=True) for k, v in doc.items()}
        text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
        fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp, path)
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)

    def write(self, snapshot: Snapshot) -> None:
        """Raises OSError on failure; the flusher decides what to do with it."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._write_document(self.cache_file_path, snapshot.entries)
        self._write_document(self.metrics_file_path, snapshot.usage)

    def delete(self) -> None:
        for p in (self.cache_file_path, self.metrics_file_path):
            try:
                p.unlink(missing_ok=True)
            except OSError:
                log.exception(f"Failed to delete cache file: {p}")


class SnapshotFlusher:
    """
    Single-writer background flusher.

    schedule() marks the store dirty and makes sure one drain task is queued
    on a one-thread executor. Bursts of schedule() calls coalesce: the drain
    loop re-snapshots until no newer request arrived, so only the latest
    state is written. flush_now() and discard() share the same write lock.
    """

    def __init__(self, store: DurableStore, snapshot_fn: Callable[[], Snapshot]) -> None:
        self.store = store
        self._snapshot_fn = snapshot_fn
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="autoheal-flush")
        self._state_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._dirty = False
        self._unsaved = False
        self._pending: Optional[Future] = None
        self._closed = False
        self.failed_writes = 0

    def schedule(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._dirty = True
            self._unsaved = True
            if self._pending is not None:
                return
            self._pending = self._executor.submit(self._drain)

    def _drain(self) -> None:
        while True:
            with self._state_lock:
                if not self._dirty:
                    self._pending = None
                    return
                self._dirty = False
            try:
                self._write_once(force=False)
            except Exception:
                # keep the drain alive; the snapshot stays unsaved for the next schedule()
                log.exception("Background cache flush failed unexpectedly")

    def _write_once(self, force: bool = True) -> bool:
        with self._write_lock:
            with self._state_lock:
                if not force and not self._unsaved:
                    return True
                self._unsaved = False
            saved = False
            try:
                snap = self._snapshot_fn()
                self.store.write(snap)
                saved = True
                log.debug(f"Cache saved to files: {len(snap.entries)} entries, {len(snap.usage)} metrics")
            except (OSError, ValueError):
                log.exception("Failed to save cache to file")
            finally:
                if not saved:
                    # retried by the next schedule() or flush
                    self.failed_writes += 1
                    with self._state_lock:
                        self._unsaved = True
            return saved

    def flush_now(self) -> bool:
        with self._state_lock:
            self._dirty = False
        return self._write_once()

    def discard(self) -> None:
        """Drop pending work and delete the documents."""
        with self._state_lock:
            self._dirty = False
            self._unsaved = False
        with self._write_lock:
            self.store.delete()

    def shutdown(self, grace_seconds: float) -> bool:
        """Wait up to `grace_seconds` for queued work, then write the final snapshot if anything is unsaved."""
        with self._state_lock:
            if self._closed:
                return True
            self._closed = True
            pending = self._pending
        if pending is not None:
            done, _ = wait([pending], timeout=grace_seconds)
            if not done:
                log.warning(f"Background flush still running after {grace_seconds}s grace period")
        self._executor.shutdown(wait=False)

        if not self._write_lock.acquire(timeout=max(0.0, grace_seconds)):
            log.error("Final cache flush skipped: writer did not release within the grace period")
            return False
        self._write_lock.release()
        return self._write_once(force=False)
