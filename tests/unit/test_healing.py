from datetime import timedelta
from pathlib import Path

import pytest

from autoheal.cache import TieredSelectorCache
from autoheal.healing import HealingError, HealingLocator, RepairRejectedError, validate_repair
from autoheal.selectors import ElementContext
from autoheal.utils.config import CacheConfig


class FakeBackend:
    def __init__(self, working):
        self.working = set(working)
        self.tried = []

    def try_locator(self, raw: str) -> bool:
        self.tried.append(raw)
        return raw in self.working


class FakeOracle:
    def __init__(self, answer="#login-v2", error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    def propose(self, dom_snapshot: str, description: str, failed_locator: str) -> str:
        self.calls.append((dom_snapshot, description, failed_locator))
        if self.error is not None:
            raise self.error
        return self.answer


class FakePage:
    def __init__(self, html: str):
        self.html = html

    def page_source(self) -> str:
        return self.html


class FixedContext:
    def element_context(self, raw, description):
        return ElementContext(parent_container="form#login")


PAGE = (
    "<html><body><script>track()</script>"
    "<form id='login'><button id='login-v2' class='btn'>Log in</button></form>"
    "</body></html>"
)


@pytest.fixture
def cache(tmp_path: Path):
    c = TieredSelectorCache(CacheConfig(cache_dir=tmp_path / "cache", expire_after_access=timedelta(hours=1)))
    yield c
    c.close()


def test_working_original_is_remembered_then_served_from_cache(cache):
    backend = FakeBackend({"#login"})
    oracle = FakeOracle()
    healer = HealingLocator(cache, backend, oracle, FakePage(PAGE))

    first = healer.resolve("#login", "login button")
    second = healer.resolve("#login", "login button")

    assert first.source == "original"
    assert second.source == "cache"
    assert second.cache_key == first.cache_key
    assert oracle.calls == []
    e = cache.get(first.cache_key)
    assert (e.usage_count, e.success_count) == (2, 2)


def test_broken_original_is_repaired_from_optimized_snapshot(cache):
    backend = FakeBackend({"#login-v2"})
    oracle = FakeOracle("  #login-v2  ")
    healer = HealingLocator(cache, backend, oracle, FakePage(PAGE))

    res = healer.resolve("#login", "login button")

    assert res.source == "repaired"
    assert res.selector == "#login-v2"
    snapshot, description, failed = oracle.calls[0]
    assert "track()" not in snapshot
    assert 'id="login-v2"' in snapshot
    assert (description, failed) == ("login button", "#login")
    assert cache.get(res.cache_key).selector == "#login-v2"


def test_failing_cached_locator_records_failure_and_heals(cache):
    backend = FakeBackend({"#login"})
    healer = HealingLocator(cache, backend, FakeOracle("getByRole('button', { name: 'Log in' })"), FakePage(PAGE))
    key = healer.resolve("#login", "login button").cache_key

    backend.working = {"getByRole('button', { name: 'Log in' })"}
    res = healer.resolve("#login", "login button")

    assert res.source == "repaired"
    assert res.cache_key == key
    assert cache.usage(key).attempts >= 1
    assert cache.usage(key).successes < cache.usage(key).attempts
    assert cache.get(key).selector == "getByRole('button', { name: 'Log in' })"


@pytest.mark.parametrize("answer", ["", "   ", "#a\n#b", "```css\n#a\n```", "```#a```"])
def test_unusable_oracle_answers_are_rejected(cache, answer):
    healer = HealingLocator(cache, FakeBackend(set()), FakeOracle(answer), FakePage(PAGE))
    with pytest.raises(RepairRejectedError):
        healer.resolve("#login", "login button")


def test_oracle_failure_is_wrapped(cache):
    healer = HealingLocator(cache, FakeBackend(set()), FakeOracle(error=TimeoutError("slow")), FakePage(PAGE))
    with pytest.raises(HealingError) as ei:
        healer.resolve("#login", "login button")
    assert isinstance(ei.value.__cause__, TimeoutError)


def test_repair_that_does_not_resolve_is_not_cached(cache):
    healer = HealingLocator(cache, FakeBackend(set()), FakeOracle("#nowhere"), FakePage(PAGE))
    with pytest.raises(HealingError):
        healer.resolve("#login", "login button")
    assert cache.size() == 0


def test_context_provider_feeds_the_key(cache):
    healer = HealingLocator(
        cache, FakeBackend({"#login"}), FakeOracle(), FakePage(PAGE), context_provider=FixedContext()
    )
    res = healer.resolve("#login", "login button")
    assert res.cache_key == "css_selector:#login|login button|parent:form#login"


def test_validate_repair_trims():
    assert validate_repair("  //button  ") == "//button"
