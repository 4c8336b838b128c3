# autoheal/selectors/__init__.py
"""
Selectors package
-----------------
Parses locators of both dialects into one descriptor, derives cache keys,
and converts descriptors into structural predicates or Playwright locators.
"""

from .models import (
    FilterKind,
    LocatorDescriptor,
    LocatorFilter,
    LocatorKind,
    MalformedLocatorError,
    UnsupportedConversionError,
)
from .detector import detect_type
from .parser import parse, is_semantic_locator, extract_kind
from .xpath import ExecutablePredicate, escape_xpath_literal, to_execution_primitive
from .keys import ElementContext, Position, cache_key_for, contextual_key, generate_cache_key

__all__ = [
    "FilterKind",
    "LocatorDescriptor",
    "LocatorFilter",
    "LocatorKind",
    "MalformedLocatorError",
    "UnsupportedConversionError",
    "detect_type",
    "parse",
    "is_semantic_locator",
    "extract_kind",
    "ExecutablePredicate",
    "escape_xpath_literal",
    "to_execution_primitive",
    "ElementContext",
    "Position",
    "cache_key_for",
    "contextual_key",
    "generate_cache_key",
]
