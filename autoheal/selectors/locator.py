# autoheal/selectors/locator.py
"""Playwright execution adapter
------------------------------
Turns a LocatorDescriptor into a Playwright Locator. Semantic kinds map to
the native get_by_* calls; classic kinds go through their structural
predicate. Nothing here inspects the result.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from playwright.sync_api import Locator, Page

from autoheal.selectors.models import LocatorDescriptor, LocatorFilter, LocatorKind
from autoheal.selectors.parser import compile_js_regex, parse
from autoheal.selectors.xpath import to_execution_primitive
from autoheal.utils.logger import get_logger

log = get_logger(__name__)

TextArg = Union[str, Any]


def _text_arg(value: str, is_regex: bool) -> TextArg:
    return compile_js_regex(value) if is_regex else value


def _base_locator(page: Page, d: LocatorDescriptor) -> Locator:
    kind = d.kind
    value = _text_arg(d.primary_value, d.is_regex)
    exact: Optional[bool] = d.option("exact")

    if kind == LocatorKind.GET_BY_ROLE:
        kwargs: Dict[str, Any] = {}
        if d.name is not None:
            kwargs["name"] = _text_arg(d.name, d.name_is_regex)
        if exact is not None:
            kwargs["exact"] = exact
        # unknown roles are not rejected here; they simply match nothing
        return page.get_by_role(d.primary_value, **kwargs)  # type: ignore[arg-type]

    if kind == LocatorKind.GET_BY_TEXT:
        return page.get_by_text(value, exact=exact)
    if kind == LocatorKind.GET_BY_LABEL:
        return page.get_by_label(value, exact=exact)
    if kind == LocatorKind.GET_BY_PLACEHOLDER:
        return page.get_by_placeholder(value, exact=exact)
    if kind == LocatorKind.GET_BY_ALT_TEXT:
        return page.get_by_alt_text(value, exact=exact)
    if kind == LocatorKind.GET_BY_TITLE:
        return page.get_by_title(value, exact=exact)
    if kind == LocatorKind.GET_BY_TEST_ID:
        return page.get_by_test_id(value)
    if kind == LocatorKind.CSS_SELECTOR:
        return page.locator(d.primary_value)
    if kind == LocatorKind.XPATH:
        return page.locator(f"xpath={d.primary_value}")

    # id / name / tag / class / link text
    bare = LocatorDescriptor(kind, d.primary_value, d.is_regex, d.options)
    return page.locator(to_execution_primitive(bare).as_selector())


def _apply_filter(page: Page, loc: Locator, flt: LocatorFilter) -> Locator:
    if flt.kind.is_text:
        arg = _text_arg(flt.value, flt.is_regex)
        key = "has_not_text" if flt.kind.is_negated else "has_text"
        return loc.filter(**{key: arg})
    nested = resolve_locator(page, parse(flt.value))
    key = "has_not" if flt.kind.is_negated else "has"
    return loc.filter(**{key: nested})


def resolve_locator(page: Page, descriptor: LocatorDescriptor) -> Locator:
    """Convert a descriptor into a Playwright Locator, filters applied in chain order."""
    loc = _base_locator(page, descriptor)
    for flt in descriptor.filters:
        loc = _apply_filter(page, loc, flt)
    return loc


def resolve_raw(page: Page, raw: str) -> Locator:
    descriptor = parse(raw)
    log.debug(f"Resolving {raw!r} as {descriptor.kind.display_name}")
    return resolve_locator(page, descriptor)
