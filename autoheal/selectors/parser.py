# autoheal/selectors/parser.py
"""Dual-dialect locator parser
-----------------------------
Turns a raw locator string into a LocatorDescriptor.

Semantic dialect:
    getByRole('button', { name: 'Login' }).filter({ hasText: 'Go' })
    getByText(/welcome/i, { exact: false })
    locator("getByTestId('save')")

Anything that is not one of the seven semantic call-forms falls through to
the classic waterfall in `detector`. Only null/empty input is an error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from autoheal.selectors.detector import detect_type
from autoheal.selectors.models import (
    FilterKind,
    LocatorDescriptor,
    LocatorFilter,
    LocatorKind,
    MalformedLocatorError,
)
from autoheal.utils.logger import get_logger

log = get_logger(__name__)


# ---------- Value grammar ----------

# 'text' | "text" (backslash escapes allowed) | /pattern/flags
_SQ = r"'(?:[^'\\]|\\.)*'"
_DQ = r'"(?:[^"\\]|\\.)*"'
_RX = r"/(?:[^/\\\n]|\\.)+/[a-z]*"
_VALUE = rf"(?:{_SQ}|{_DQ}|{_RX})"
_OPTION_VALUE = rf"(?:{_VALUE}|true|false|-?\d+(?:\.\d+)?)"
# braces inside quoted option values are allowed
_OPTIONS = rf"\{{\s*(?:\w+\s*:\s*{_OPTION_VALUE}\s*,?\s*)*\}}"

_FILTER_TAIL = re.compile(
    rf"\.filter\(\s*\{{\s*(?P<kind>hasNotText|hasText|hasNot|has)\s*:\s*(?P<value>{_VALUE})\s*,?\s*\}}\s*\)\s*$"
)
# any trailing filter block, recognised or not
_ANY_FILTER_TAIL = re.compile(r"\.filter\(\s*\{[^{}]*\}\s*\)\s*$")
_OPTION_ENTRY = re.compile(rf"(?P<key>\w+)\s*:\s*(?P<value>{_OPTION_VALUE})")
_WRAPPER = re.compile(r"""^locator\(\s*(?P<q>['"])(?P<inner>.*)(?P=q)\s*\)$""", re.DOTALL)

_JS_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}

SEMANTIC_CALLS: Dict[str, LocatorKind] = {
    "getByRole": LocatorKind.GET_BY_ROLE,
    "getByLabel": LocatorKind.GET_BY_LABEL,
    "getByPlaceholder": LocatorKind.GET_BY_PLACEHOLDER,
    "getByText": LocatorKind.GET_BY_TEXT,
    "getByAltText": LocatorKind.GET_BY_ALT_TEXT,
    "getByTitle": LocatorKind.GET_BY_TITLE,
    "getByTestId": LocatorKind.GET_BY_TEST_ID,
}


@dataclass(frozen=True)
class ParsedValue:
    text: str
    is_regex: bool


def parse_value(token: str) -> ParsedValue:
    """Decode one literal or regex token as it appears in source."""
    token = token.strip()
    if token[:1] in ("'", '"'):
        return ParsedValue(_unescape(token[1:-1]), False)
    return ParsedValue(token, True)


def _unescape(body: str) -> str:
    return re.sub(r"\\(.)", r"\1", body)


def compile_js_regex(value: str) -> "re.Pattern[str]":
    """Compile a `/pattern/flags` literal into a Python pattern."""
    pattern, _, flags = value[1:].rpartition("/")
    compiled_flags = 0
    for f in flags:
        compiled_flags |= _JS_REGEX_FLAGS.get(f, 0)
    return re.compile(pattern, compiled_flags)


# ---------- Pre-processing ----------

def unwrap_locator(raw: str) -> str:
    """Strip an enclosing locator("...") wrapper, if any."""
    m = _WRAPPER.match(raw)
    if m:
        inner = m.group("inner").strip()
        log.debug(f"Unwrapped locator() wrapper: {raw} -> {inner}")
        return inner
    return raw


def extract_filters(s: str) -> Tuple[str, List[LocatorFilter]]:
    """
    Peel trailing `.filter({...})` segments off `s`.
    Returns the base string and the filters in chain (left-to-right) order.
    """
    filters: List[LocatorFilter] = []
    base = s.rstrip()
    while True:
        m = _FILTER_TAIL.search(base)
        if m:
            pv = parse_value(m.group("value"))
            filters.insert(0, LocatorFilter(FilterKind(m.group("kind")), pv.text, pv.is_regex))
            base = base[: m.start()].rstrip()
            continue
        unknown = _ANY_FILTER_TAIL.search(base)
        if unknown:
            log.debug(f"Dropping unrecognised filter block: {unknown.group(0)}")
            base = base[: unknown.start()].rstrip()
            continue
        return base, filters


def _strip_page_prefix(s: str) -> str:
    return s[5:] if s.startswith("page.getBy") else s


# ---------- Semantic call-form matchers ----------

def _call_pattern(fn: str) -> "re.Pattern[str]":
    return re.compile(
        rf"^{fn}\(\s*(?P<value>{_VALUE})\s*(?:,\s*(?P<options>{_OPTIONS})\s*)?\)$",
        re.DOTALL,
    )


_CALL_PATTERNS = {fn: _call_pattern(fn) for fn in SEMANTIC_CALLS}


def _parse_options(block: Optional[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if not block:
        return options
    for m in _OPTION_ENTRY.finditer(block):
        key, raw_value = m.group("key"), m.group("value")
        if key == "exact":
            options["exact"] = raw_value == "true"
        elif key == "name":
            pv = parse_value(raw_value)
            options["name"] = pv.text
            options["name_is_regex"] = pv.is_regex
        else:
            log.debug(f"Ignoring unsupported locator option {key!r}")
    return options


def _match_semantic(
    base: str, filters: Sequence[LocatorFilter]
) -> Optional[LocatorDescriptor]:
    for fn, kind in SEMANTIC_CALLS.items():
        if not base.startswith(fn + "("):
            continue
        m = _CALL_PATTERNS[fn].match(base)
        if not m:
            return None
        pv = parse_value(m.group("value"))
        return LocatorDescriptor(
            kind=kind,
            primary_value=pv.text,
            is_regex=pv.is_regex,
            options=_parse_options(m.group("options")),
            filters=tuple(filters),
        )
    return None


# ---------- Classic fall-through ----------

def _match_prefixed(base: str, filters: Sequence[LocatorFilter]) -> Optional[LocatorDescriptor]:
    if base.startswith("xpath="):
        return LocatorDescriptor(LocatorKind.XPATH, base[6:].strip(), filters=tuple(filters))
    if base.startswith("(//"):
        return LocatorDescriptor(LocatorKind.XPATH, base, filters=tuple(filters))
    for prefix in ("css:", "css="):
        if base.startswith(prefix):
            return LocatorDescriptor(LocatorKind.CSS_SELECTOR, base[len(prefix):].strip(), filters=tuple(filters))
    return None


def _match_classic(base: str, filters: Sequence[LocatorFilter]) -> Optional[LocatorDescriptor]:
    if not base:
        return None
    return LocatorDescriptor(detect_type(base), base, filters=tuple(filters))


_STAGES: Sequence[Callable[[str, Sequence[LocatorFilter]], Optional[LocatorDescriptor]]] = (
    _match_semantic,
    _match_prefixed,
    _match_classic,
)


# ---------- Public API ----------

def parse(raw: str) -> LocatorDescriptor:
    """
    Parse a raw locator string of either dialect.

    Raises:
        MalformedLocatorError: only when `raw` is None or blank.
    """
    if raw is None or not raw.strip():
        raise MalformedLocatorError("Locator string cannot be null or empty")

    s = _strip_page_prefix(unwrap_locator(raw.strip()))
    base, filters = extract_filters(s)

    for stage in _STAGES:
        descriptor = stage(base, filters)
        if descriptor is not None:
            return descriptor

    log.debug(f"Treating locator as CSS selector: {s}")
    return LocatorDescriptor(LocatorKind.CSS_SELECTOR, base or s, filters=tuple(filters))


def is_semantic_locator(raw: Optional[str]) -> bool:
    if raw is None or not raw.strip():
        return False
    s = _strip_page_prefix(unwrap_locator(raw.strip()))
    return any(s.startswith(fn + "(") for fn in SEMANTIC_CALLS)


def extract_kind(raw: Optional[str]) -> LocatorKind:
    """Cheap prefix-based classification; never raises."""
    if raw is None or not raw.strip():
        return LocatorKind.CSS_SELECTOR
    s = _strip_page_prefix(unwrap_locator(raw.strip()))
    for fn, kind in SEMANTIC_CALLS.items():
        if s.startswith(fn + "("):
            return kind
    if s.startswith(("xpath=", "(//")):
        return LocatorKind.XPATH
    if s.startswith(("css:", "css=")):
        return LocatorKind.CSS_SELECTOR
    return detect_type(s)
