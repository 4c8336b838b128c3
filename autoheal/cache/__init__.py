# autoheal/cache/__init__.py
"""
Cache package
-------------
Two-tier selector cache: a bounded, TTL-aware memory tier in front of a
JSON snapshot on the local filesystem.
"""

from .models import CachedSelectorEntry, CacheMetrics, ElementFingerprint
from .tiered import TieredSelectorCache

__all__ = [
    "CachedSelectorEntry",
    "CacheMetrics",
    "ElementFingerprint",
    "TieredSelectorCache",
]
