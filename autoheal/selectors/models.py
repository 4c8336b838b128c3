# autoheal/selectors/models.py
"""Locator descriptor types
--------------------------
One tagged descriptor covers both dialects: classic (CSS, XPath, id, name,
tag, link text) and semantic (by-role, by-text, ...). Parsed once per raw
string and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple


class MalformedLocatorError(ValueError):
    """Raised for null/empty locator input; never for merely odd input."""


class UnsupportedConversionError(ValueError):
    """Raised when a descriptor has no structural (XPath/CSS) equivalent."""


class LocatorKind(str, Enum):
    # classic dialect
    CSS_SELECTOR = "css_selector"
    XPATH = "xpath"
    ID = "id"
    NAME = "name"
    CLASS_NAME = "class_name"
    TAG_NAME = "tag_name"
    LINK_TEXT = "link_text"
    PARTIAL_LINK_TEXT = "partial_link_text"

    # semantic dialect
    GET_BY_ROLE = "get_by_role"
    GET_BY_LABEL = "get_by_label"
    GET_BY_PLACEHOLDER = "get_by_placeholder"
    GET_BY_TEXT = "get_by_text"
    GET_BY_ALT_TEXT = "get_by_alt_text"
    GET_BY_TITLE = "get_by_title"
    GET_BY_TEST_ID = "get_by_test_id"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def report_name(self) -> str:
        return self.value

    @property
    def is_semantic(self) -> bool:
        return self.name.startswith("GET_BY_")

    def __str__(self) -> str:
        return self.display_name


_DISPLAY_NAMES = {
    LocatorKind.CSS_SELECTOR: "CSS Selector",
    LocatorKind.XPATH: "XPath",
    LocatorKind.ID: "ID",
    LocatorKind.NAME: "Name",
    LocatorKind.CLASS_NAME: "Class Name",
    LocatorKind.TAG_NAME: "Tag Name",
    LocatorKind.LINK_TEXT: "Link Text",
    LocatorKind.PARTIAL_LINK_TEXT: "Partial Link Text",
    LocatorKind.GET_BY_ROLE: "Get By Role",
    LocatorKind.GET_BY_LABEL: "Get By Label",
    LocatorKind.GET_BY_PLACEHOLDER: "Get By Placeholder",
    LocatorKind.GET_BY_TEXT: "Get By Text",
    LocatorKind.GET_BY_ALT_TEXT: "Get By Alt Text",
    LocatorKind.GET_BY_TITLE: "Get By Title",
    LocatorKind.GET_BY_TEST_ID: "Get By Test ID",
}


class FilterKind(str, Enum):
    HAS_TEXT = "hasText"
    HAS_NOT_TEXT = "hasNotText"
    HAS = "has"
    HAS_NOT = "hasNot"

    @property
    def is_text(self) -> bool:
        return self in (FilterKind.HAS_TEXT, FilterKind.HAS_NOT_TEXT)

    @property
    def is_negated(self) -> bool:
        return self in (FilterKind.HAS_NOT_TEXT, FilterKind.HAS_NOT)


@dataclass(frozen=True)
class LocatorFilter:
    kind: FilterKind
    value: str
    is_regex: bool = False


@dataclass(frozen=True)
class LocatorDescriptor:
    """
    Structured form of a raw locator.

    `primary_value` is the role for by-role, the text/label/... for the other
    semantic kinds, and the raw selector for classic kinds. `options` carries
    recognised modifiers (`name`, `exact`, `name_is_regex`).
    """
    kind: LocatorKind
    primary_value: str
    is_regex: bool = False
    options: Mapping[str, Any] = field(default_factory=dict)
    filters: Tuple[LocatorFilter, ...] = ()

    def __post_init__(self) -> None:
        # freeze the option bag as well
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        object.__setattr__(self, "filters", tuple(self.filters))

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    @property
    def name(self) -> Optional[str]:
        return self.options.get("name")

    @property
    def exact(self) -> bool:
        return bool(self.options.get("exact", False))

    @property
    def name_is_regex(self) -> bool:
        return bool(self.options.get("name_is_regex", False))

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "primary_value": self.primary_value,
            "is_regex": self.is_regex,
            "options": dict(self.options),
            "filters": [
                {"kind": f.kind.value, "value": f.value, "is_regex": f.is_regex}
                for f in self.filters
            ],
        }
