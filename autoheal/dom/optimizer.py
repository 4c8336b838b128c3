# autoheal/dom/optimizer.py
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from autoheal.utils.config import get_settings
from autoheal.utils.logger import get_logger
from autoheal.utils.timing import measure


REMOVE_TAGS = ("script", "style", "meta", "link", "svg", "canvas", "noscript")
ALWAYS_KEEP_ATTRS: FrozenSet[str] = frozenset(
    {"id", "name", "value", "class", "data-qa-marker", "data-testid"}
)
STRUCTURAL_TAGS = frozenset({"html", "head", "body"})

TRUNCATION_MARKER = "\n<!-- HTML TRUNCATED DUE TO SIZE LIMIT -->"
ELLIPSIS = "…"


@dataclass(frozen=True)
class DomMetrics:
    original_node_count: int
    optimized_node_count: int
    original_size_chars: int
    optimized_size_chars: int

    @property
    def reduction_percentage(self) -> float:
        if self.original_size_chars == 0:
            return 0.0
        return 100.0 * (self.original_size_chars - self.optimized_size_chars) / self.original_size_chars

    def to_dict(self) -> dict:
        return {
            "original_node_count": self.original_node_count,
            "optimized_node_count": self.optimized_node_count,
            "original_size_chars": self.original_size_chars,
            "optimized_size_chars": self.optimized_size_chars,
            "reduction_percentage": round(self.reduction_percentage, 2),
        }


@dataclass(frozen=True)
class DomOptimizationResult:
    optimized_markup: str
    metrics: Optional[DomMetrics]
    retained_attributes: FrozenSet[str]


class DomSnapshotOptimizer:
    """
    Reduces page markup to a bounded, structure-preserving subset for repair prompts.

    Steps (in order):
      - drop non-semantic subtrees (script, style, svg, ...) and comments
      - keep an attribute only if it is frequent enough or always-keep
      - clip each element's own text
      - prune unattributed elements below the depth limit
      - remove empty leaves, cascading upwards
      - cap the serialized size

    Results are memoized by a hash of the exact input string, so identical
    snapshots return the same result object.
    """

    def __init__(
        self,
        max_html_chars: int | None = None,
        attribute_frequency_threshold: int | None = None,
        max_text_length: int | None = None,
        max_depth: int | None = None,
    ):
        s = get_settings()
        self.log = get_logger(__name__)

        self.max_html_chars = max_html_chars if max_html_chars is not None else s.DOM_MAX_HTML_CHARS
        self.attribute_frequency_threshold = (
            attribute_frequency_threshold
            if attribute_frequency_threshold is not None
            else s.DOM_ATTRIBUTE_FREQUENCY_THRESHOLD
        )
        self.max_text_length = max_text_length if max_text_length is not None else s.DOM_MAX_TEXT_LENGTH
        self.max_depth = max_depth if max_depth is not None else s.DOM_MAX_DEPTH

        self._cache: Dict[str, DomOptimizationResult] = {}

    # ---------- Public API ----------

    def optimize(self, markup: Optional[str]) -> DomOptimizationResult:
        if not markup:
            return DomOptimizationResult("", None, ALWAYS_KEEP_ATTRS)

        key = _content_hash(markup)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        result = self._optimize_uncached(markup)
        # racing fills compute equal results; keep whichever landed first
        return self._cache.setdefault(key, result)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    # ---------- Internals ----------

    @measure("optimize dom snapshot")
    def _optimize_uncached(self, markup: str) -> DomOptimizationResult:
        soup = BeautifulSoup(markup, "html.parser")
        original_nodes = len(soup.find_all(True))

        for tag in soup.find_all(list(REMOVE_TAGS)):
            tag.decompose()
        for comment in soup.find_all(string=lambda t: isinstance(t, Comment)):
            comment.extract()

        retained = self._retained_attributes(soup.find_all(True))
        for el in soup.find_all(True):
            el.attrs = {k: v for k, v in el.attrs.items() if k in retained}

        self._compact_text(soup)

        root = soup.body if soup.body is not None else soup
        self._prune_deep(root, 0)
        self._remove_empty_leaves(root)

        optimized = root.decode_contents() if root is soup.body else str(soup)
        optimized = self._enforce_size_limit(optimized)

        metrics = DomMetrics(
            original_node_count=original_nodes,
            optimized_node_count=len(soup.find_all(True)),
            original_size_chars=len(markup),
            optimized_size_chars=len(optimized),
        )
        self.log.debug(
            f"DOM reduced {metrics.original_size_chars} -> {metrics.optimized_size_chars} chars "
            f"({metrics.reduction_percentage:.1f}%), {len(retained)} attributes kept"
        )
        return DomOptimizationResult(optimized, metrics, frozenset(retained))

    def _retained_attributes(self, elements: Iterable[Tag]) -> FrozenSet[str]:
        frequency: Dict[str, int] = {}
        for el in elements:
            for attr in el.attrs:
                frequency[attr] = frequency.get(attr, 0) + 1
        frequent = {a for a, n in frequency.items() if n >= self.attribute_frequency_threshold}
        return ALWAYS_KEEP_ATTRS | frequent

    def _compact_text(self, soup: BeautifulSoup) -> None:
        for el in soup.find_all(True):
            for child in list(el.children):
                if not isinstance(child, NavigableString) or isinstance(child, Comment):
                    continue
                text = child.strip()
                if len(text) > self.max_text_length:
                    child.replace_with(text[: self.max_text_length] + ELLIPSIS)

    def _prune_deep(self, el: Tag, depth: int) -> None:
        for child in list(el.find_all(True, recursive=False)):
            child_depth = depth + 1
            if child_depth > self.max_depth and not child.attrs and not _has_attributed_descendant(child):
                child.decompose()
                continue
            self._prune_deep(child, child_depth)

    def _remove_empty_leaves(self, root: Tag) -> None:
        # reverse document order: children are judged before their parents
        for el in reversed(root.find_all(True)):
            if el.name in STRUCTURAL_TAGS:
                continue
            if el.attrs or el.find(True) is not None:
                continue
            if el.get_text().strip():
                continue
            el.decompose()

    def _enforce_size_limit(self, html: str) -> str:
        if len(html) <= self.max_html_chars:
            return html
        return html[: self.max_html_chars] + TRUNCATION_MARKER


# ---------- helpers ----------

def _content_hash(markup: str) -> str:
    return hashlib.sha256(markup.encode("utf-8", "surrogatepass")).hexdigest()


def _has_attributed_descendant(el: Tag) -> bool:
    return any(d.attrs for d in el.find_all(True))


_default: Optional[DomSnapshotOptimizer] = None


def default_optimizer() -> DomSnapshotOptimizer:
    global _default
    if _default is None:
        _default = DomSnapshotOptimizer()
    return _default


def optimize_html(markup: Optional[str]) -> DomOptimizationResult:
    """Optimize with the process-wide optimizer built from settings."""
    return default_optimizer().optimize(markup)
