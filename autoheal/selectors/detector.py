# autoheal/selectors/detector.py
"""Classic-dialect detection
---------------------------
Ordered waterfall of small matchers. Each matcher answers with a kind or
None; the first answer wins and there is no backtracking. The last matcher
always answers, so detection never fails for non-empty input.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, Sequence, Tuple

from autoheal.selectors.models import LocatorKind, MalformedLocatorError
from autoheal.utils.logger import get_logger

log = get_logger(__name__)

Matcher = Callable[[str], Optional[LocatorKind]]


_XPATH_PREFIXES = ("//", "/", "./", "../")
_CSS_ID = re.compile(r"^#[A-Za-z][A-Za-z0-9_-]*$")
_CSS_CLASS = re.compile(r"^\.[A-Za-z][A-Za-z0-9_-]*$")
_CSS_ATTRIBUTE = re.compile(r"\[[^\]]*\]")
_CSS_COMBINATOR = re.compile(r"[>+~]")
_CSS_MARKER = re.compile(r"[#.]")
_SIMPLE_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
_CSS_OR_XPATH_PUNCTUATION = re.compile(r"[#.\[\]@/]")

HTML_TAGS = frozenset(
    """
    a abbr address area article aside audio b base bdi bdo big blockquote body br
    button canvas caption cite code col colgroup data datalist dd del details dfn
    dialog div dl dt em embed fieldset figcaption figure footer form h1 h2 h3 h4 h5
    h6 head header hr html i iframe img input ins kbd label legend li link main map
    mark meta meter nav noscript object ol optgroup option output p param picture
    pre progress q rp rt ruby s samp script section select small source span strong
    style sub summary sup svg table tbody td textarea tfoot th thead time title tr
    track u ul var video wbr
    """.split()
)

LINK_WORDS = (
    "click", "here", "more", "read", "view", "login", "logout", "sign",
    "register", "home", "about", "contact", "help", "support",
)
LONG_TEXT_THRESHOLD = 15


# ---------- Matchers (waterfall order) ----------

def _match_xpath(s: str) -> Optional[LocatorKind]:
    return LocatorKind.XPATH if s.startswith(_XPATH_PREFIXES) else None


def _match_css_id(s: str) -> Optional[LocatorKind]:
    return LocatorKind.CSS_SELECTOR if _CSS_ID.match(s) else None


def _match_css_class(s: str) -> Optional[LocatorKind]:
    return LocatorKind.CSS_SELECTOR if _CSS_CLASS.match(s) else None


def _match_complex_css(s: str) -> Optional[LocatorKind]:
    if (
        _CSS_ATTRIBUTE.search(s)
        or ":" in s
        or _CSS_COMBINATOR.search(s)
        or _CSS_MARKER.search(s)
    ):
        return LocatorKind.CSS_SELECTOR
    return None


def _match_tag_name(s: str) -> Optional[LocatorKind]:
    return LocatorKind.TAG_NAME if s.lower() in HTML_TAGS else None


def _match_link_text(s: str) -> Optional[LocatorKind]:
    return LocatorKind.LINK_TEXT if is_likely_link_text(s) else None


def _match_identifier(s: str) -> Optional[LocatorKind]:
    return LocatorKind.ID if _SIMPLE_IDENTIFIER.match(s) else None


def _match_name(s: str) -> Optional[LocatorKind]:
    return LocatorKind.NAME


WATERFALL: Sequence[Tuple[str, Matcher]] = (
    ("xpath", _match_xpath),
    ("css id", _match_css_id),
    ("css class", _match_css_class),
    ("complex css", _match_complex_css),
    ("tag name", _match_tag_name),
    ("link text", _match_link_text),
    ("identifier", _match_identifier),
    ("name fallback", _match_name),
)


# ---------- Public API ----------

def detect_type(raw: str) -> LocatorKind:
    """Classify an un-annotated classic-dialect locator string."""
    if raw is None or not raw.strip():
        raise MalformedLocatorError("Locator cannot be null or empty")

    s = raw.strip()
    for label, matcher in WATERFALL:
        kind = matcher(s)
        if kind is not None:
            log.debug(f"Detected {s!r} as {kind.display_name} ({label})")
            return kind

    # unreachable: the name matcher always answers
    return LocatorKind.NAME


def is_likely_link_text(s: str) -> bool:
    if any(ch.isspace() for ch in s):
        return True
    lower = s.lower()
    if any(word in lower for word in LINK_WORDS):
        return True
    return len(lower) > LONG_TEXT_THRESHOLD and not _CSS_OR_XPATH_PUNCTUATION.search(lower)


def needs_healing_context(kind: LocatorKind) -> bool:
    """Kinds whose repair benefits from a DOM snapshot rather than text alone."""
    return kind in (LocatorKind.CSS_SELECTOR, LocatorKind.XPATH, LocatorKind.ID, LocatorKind.NAME)


def describe_detection(raw: str, kind: LocatorKind) -> str:
    return f"Auto-detected '{raw}' as {kind.display_name} locator"
