# autoheal/cache/models.py
"""Cache entry and metrics types
-------------------------------
In-memory types are plain dataclasses mutated under the cache lock. The
persisted shapes are pydantic models whose camelCase aliases are the
on-disk field names.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from autoheal.selectors.keys import Position
from autoheal.utils.timing import datetime_to_ms, epoch_ms, ms_to_datetime


class ElementFingerprint(BaseModel):
    """Structural signature of the element a selector last matched. Opaque to the cache."""
    parent_path: str = ""
    position: Position = Field(default_factory=Position)
    attributes: Dict[str, str] = Field(default_factory=dict)
    visual_hash: str = ""
    context_siblings: List[str] = Field(default_factory=list)
    text_content: str = ""


@dataclass
class CachedSelectorEntry:
    selector: str
    fingerprint: ElementFingerprint = field(default_factory=ElementFingerprint)
    usage_count: int = 0
    success_count: int = 0
    created_at: int = field(default_factory=epoch_ms)
    last_used_at: int = field(default_factory=epoch_ms)

    @property
    def success_rate(self) -> float:
        return self.success_count / self.usage_count if self.usage_count > 0 else 0.0

    def record_usage(self, success: bool, now: Optional[int] = None) -> None:
        """Counters and timestamp move together; callers hold the cache lock."""
        self.usage_count += 1
        if success:
            self.success_count += 1
        self.last_used_at = epoch_ms() if now is None else now


@dataclass
class CacheMetrics:
    """Process-lifetime counters. Monotonic until reset() is called by clear."""
    hits: int = 0
    misses: int = 0
    loads: int = 0
    evictions: int = 0
    total_load_time_ms: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_load(self, elapsed_ms: int = 0) -> None:
        with self._lock:
            self.loads += 1
            self.total_load_time_ms += max(0, elapsed_ms)

    def record_eviction(self, count: int = 1) -> None:
        with self._lock:
            self.evictions += count

    def reset(self) -> None:
        with self._lock:
            self.hits = self.misses = self.loads = self.evictions = 0
            self.total_load_time_ms = 0

    @property
    def request_count(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.request_count
        return self.hits / total if total else 0.0

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "loads": self.loads,
                "evictions": self.evictions,
                "hit_rate": round(self.hit_rate, 4),
                "total_load_time_ms": self.total_load_time_ms,
            }


# ---------- Persisted shapes ----------

class StoredEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    selector: str
    success_rate: float = Field(default=0.0, alias="successRate", ge=0.0, le=1.0)
    usage_count: int = Field(default=0, alias="usageCount", ge=0)
    last_used: Optional[datetime] = Field(default=None, alias="lastUsed")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    last_access_time: int = Field(default_factory=epoch_ms, alias="lastAccessTime")

    @classmethod
    def from_entry(cls, entry: CachedSelectorEntry, written_ms: int, last_access_ms: int) -> "StoredEntry":
        return cls(
            selector=entry.selector,
            success_rate=entry.success_rate,
            usage_count=entry.usage_count,
            last_used=ms_to_datetime(entry.last_used_at),
            created_at=ms_to_datetime(written_ms),
            last_access_time=last_access_ms,
        )

    def created_ms(self, now: int) -> int:
        return datetime_to_ms(self.created_at) if self.created_at is not None else now

    def is_expired(self, expire_after_write: timedelta, expire_after_access: timedelta, now: int) -> bool:
        if now - self.created_ms(now) > expire_after_write.total_seconds() * 1000:
            return True
        return now - self.last_access_time > expire_after_access.total_seconds() * 1000

    def to_entry(self, now: int) -> CachedSelectorEntry:
        # success rate and usage count restore directly, no replay
        return CachedSelectorEntry(
            selector=self.selector,
            usage_count=self.usage_count,
            success_count=round(self.usage_count * self.success_rate),
            created_at=self.created_ms(now),
            last_used_at=datetime_to_ms(self.last_used) if self.last_used is not None else now,
        )


class StoredUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attempts: int = Field(default=0, ge=0)
    successes: int = Field(default=0, ge=0)
    last_used: datetime = Field(default_factory=lambda: ms_to_datetime(epoch_ms()), alias="lastUsed")
    last_access_time: int = Field(default_factory=epoch_ms, alias="lastAccessTime")

    @property
    def success_rate(self) -> float:
        return self.successes / self.attempts if self.attempts > 0 else 0.0

    def is_expired(self, expire_after_access: timedelta, now: int) -> bool:
        return now - self.last_access_time > expire_after_access.total_seconds() * 1000

    def record_usage(self, success: bool, now: int) -> None:
        self.attempts += 1
        if success:
            self.successes += 1
        self.last_used = ms_to_datetime(now)
        self.last_access_time = now
