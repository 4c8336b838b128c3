# autoheal/healing.py
"""Resolution loop
----------------
HealingLocator ties the pieces together for one logical target:

    raw + description (+ context)
      -> parse / cache key
      -> cached locator?      try it, report the outcome
      -> original locator?    try it, remember it on success
      -> repair               optimized page snapshot -> oracle -> try -> remember

The browser, the page source and the repair oracle are collaborators passed
in by the caller; PlaywrightBackend covers the first two for a Playwright Page.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from autoheal.cache import CachedSelectorEntry, TieredSelectorCache
from autoheal.dom import DomSnapshotOptimizer
from autoheal.selectors import (
    ElementContext,
    MalformedLocatorError,
    UnsupportedConversionError,
    generate_cache_key,
    parse,
)
from autoheal.selectors.locator import resolve_raw
from autoheal.utils.logger import get_logger, log_with_context
from autoheal.utils.timing import epoch_ms

log = get_logger(__name__)


class HealingError(RuntimeError):
    """Raised when neither a known nor a repaired locator resolves."""


class RepairRejectedError(HealingError):
    """Raised when the oracle returns something that is not a single locator."""


# ---------- Collaborators ----------

class ExecutionBackend(Protocol):
    def try_locator(self, raw: str) -> bool:
        ...


class PageSourceProvider(Protocol):
    def page_source(self) -> str:
        ...


class ContextProvider(Protocol):
    def element_context(self, raw: str, description: str) -> Optional[ElementContext]:
        ...


class RepairOracle(Protocol):
    def propose(self, dom_snapshot: str, description: str, failed_locator: str) -> str:
        ...


class PlaywrightBackend:
    """ExecutionBackend and PageSourceProvider over a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def try_locator(self, raw: str) -> bool:
        try:
            return resolve_raw(self.page, raw).count() > 0
        except (PlaywrightError, UnsupportedConversionError, MalformedLocatorError) as e:
            log.debug(f"Locator {raw!r} did not resolve: {e}")
            return False

    def page_source(self) -> str:
        return self.page.content()


# ---------- Orchestration ----------

@dataclass(frozen=True)
class Resolution:
    cache_key: str
    selector: str
    source: str  # "cache" | "original" | "repaired"


def validate_repair(answer: Optional[str]) -> str:
    selector = (answer or "").strip()
    if not selector:
        raise RepairRejectedError("Repair oracle returned an empty locator")
    if "\n" in selector or "\r" in selector:
        raise RepairRejectedError("Repair oracle returned a multiline locator")
    if "```" in selector:
        raise RepairRejectedError("Repair oracle returned markdown instead of a locator")
    return selector


class HealingLocator:
    def __init__(
        self,
        cache: TieredSelectorCache,
        backend: ExecutionBackend,
        oracle: RepairOracle,
        page_source: PageSourceProvider,
        *,
        context_provider: Optional[ContextProvider] = None,
        optimizer: Optional[DomSnapshotOptimizer] = None,
    ) -> None:
        self.cache = cache
        self.backend = backend
        self.oracle = oracle
        self.page_source = page_source
        self.context_provider = context_provider
        self.optimizer = optimizer or DomSnapshotOptimizer()

    def resolve(self, raw: str, description: str, context: Optional[ElementContext] = None) -> Resolution:
        descriptor = parse(raw)
        if context is None and self.context_provider is not None:
            context = self.context_provider.element_context(raw, description)
        key = generate_cache_key(descriptor.kind, raw, description, context)
        scoped = log_with_context(log, cache_key=key)

        cached = self.cache.get(key)
        if cached is not None:
            ok = self.backend.try_locator(cached.selector)
            self.cache.record_outcome(key, ok)
            if ok:
                scoped.debug(f"Cached locator still works: {cached.selector}")
                return Resolution(key, cached.selector, "cache")
            scoped.info(f"Cached locator failed ({cached.success_rate:.0%} historical success): {cached.selector}")
            failed = cached.selector
        else:
            if self.backend.try_locator(raw):
                self._remember(key, raw)
                return Resolution(key, raw, "original")
            failed = raw

        selector = self._repair(key, failed, description)
        return Resolution(key, selector, "repaired")

    def _repair(self, key: str, failed: str, description: str) -> str:
        scoped = log_with_context(log, cache_key=key)
        snapshot = self.optimizer.optimize(self.page_source.page_source())
        if snapshot.metrics is not None:
            scoped.info(
                f"Requesting repair for {description!r}; snapshot reduced by "
                f"{snapshot.metrics.reduction_percentage:.1f}%"
            )

        try:
            answer = self.oracle.propose(snapshot.optimized_markup, description, failed)
            selector = validate_repair(answer)
            parse(selector)
        except HealingError:
            raise
        except Exception as exc:  # oracle failures surface uniformly
            raise HealingError(f"Repair oracle failed for {description!r}: {exc}") from exc

        if not self.backend.try_locator(selector):
            raise HealingError(f"Repaired locator did not resolve for {description!r}: {selector}")

        self._remember(key, selector)
        scoped.info(f"Healed {failed!r} -> {selector!r}")
        return selector

    def _remember(self, key: str, selector: str) -> None:
        now = epoch_ms()
        self.cache.put(
            key,
            CachedSelectorEntry(selector=selector, usage_count=1, success_count=1, created_at=now, last_used_at=now),
        )
