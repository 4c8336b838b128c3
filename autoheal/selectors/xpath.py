# autoheal/selectors/xpath.py
"""Structural predicates
-----------------------
Converts a LocatorDescriptor into the CSS/XPath form an execution backend
can evaluate without understanding the semantic dialect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from autoheal.selectors.models import (
    LocatorDescriptor,
    LocatorFilter,
    LocatorKind,
    UnsupportedConversionError,
)
from autoheal.selectors.parser import parse


@dataclass(frozen=True)
class ExecutablePredicate:
    strategy: str  # "xpath" | "css"
    expression: str

    def as_selector(self) -> str:
        """Engine-prefixed selector string (Playwright `page.locator` form)."""
        if self.strategy == "xpath":
            return f"xpath={self.expression}"
        return self.expression


# Implicit ARIA roles for the common native elements.
IMPLICIT_ROLE_TAGS = {
    "button": ["self::button", "self::input[@type='button' or @type='submit' or @type='reset']"],
    "link": ["self::a[@href]"],
    "textbox": ["self::textarea", "self::input[not(@type) or @type='text' or @type='email' or @type='tel' or @type='url' or @type='password']"],
    "checkbox": ["self::input[@type='checkbox']"],
    "radio": ["self::input[@type='radio']"],
    "combobox": ["self::select"],
    "heading": [f"self::h{i}" for i in range(1, 7)],
    "img": ["self::img[@alt]"],
    "list": ["self::ul", "self::ol"],
    "listitem": ["self::li"],
    "navigation": ["self::nav"],
    "table": ["self::table"],
    "row": ["self::tr"],
    "form": ["self::form"],
}

_TAG_TOKEN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")


# ---------- Escaping ----------

def escape_xpath_literal(value: str) -> str:
    """
    Quote `value` as a single XPath 1.0 string expression.

    Uses single quotes, else double quotes, else a concat() of runs that
    alternate quote style so any embedded quote survives.
    """
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'

    parts: List[str] = []
    for run in re.findall(r"'+|[^']+", value):
        parts.append(f'"{run}"' if run.startswith("'") else f"'{run}'")
    return "concat(" + ", ".join(parts) + ")"


# ---------- Conversion ----------

def _require_literal(descriptor: LocatorDescriptor) -> str:
    if descriptor.is_regex:
        raise UnsupportedConversionError(
            f"Regex value {descriptor.primary_value!r} for {descriptor.kind.display_name} has no structural equivalent"
        )
    return descriptor.primary_value


def _role_xpath(descriptor: LocatorDescriptor) -> str:
    role = _require_literal(descriptor)
    alternatives = [f"@role={escape_xpath_literal(role)}"] + IMPLICIT_ROLE_TAGS.get(role.lower(), [])
    expr = f"//*[{' or '.join(alternatives)}]"
    name = descriptor.name
    if name is not None:
        if descriptor.name_is_regex:
            raise UnsupportedConversionError(f"Regex accessible name {name!r} has no structural equivalent")
        lit = escape_xpath_literal(name)
        if descriptor.exact:
            expr += f"[normalize-space(.)={lit} or @aria-label={lit}]"
        else:
            expr += f"[contains(normalize-space(.), {lit}) or contains(@aria-label, {lit})]"
    return expr


def _text_xpath(descriptor: LocatorDescriptor) -> str:
    lit = escape_xpath_literal(_require_literal(descriptor))
    if descriptor.exact:
        return f"//*[normalize-space(.)={lit}]"
    # innermost element containing the text
    contains = f"contains(normalize-space(.), {lit})"
    return f"//*[{contains}][not(.//*[{contains}])]"


def _classic_xpath(descriptor: LocatorDescriptor) -> str:
    kind, value = descriptor.kind, descriptor.primary_value
    lit = escape_xpath_literal(value)
    if kind == LocatorKind.ID:
        return f"//*[@id={lit}]"
    if kind == LocatorKind.NAME:
        return f"//*[@name={lit}]"
    if kind == LocatorKind.CLASS_NAME:
        padded = escape_xpath_literal(f" {value.strip()} ")
        return f"//*[contains(concat(' ', normalize-space(@class), ' '), {padded})]"
    if kind == LocatorKind.TAG_NAME:
        if not _TAG_TOKEN.match(value):
            raise UnsupportedConversionError(f"Invalid tag name {value!r}")
        return f"//{value.lower()}"
    if kind == LocatorKind.LINK_TEXT:
        return f"//a[normalize-space(.)={lit}]"
    if kind == LocatorKind.PARTIAL_LINK_TEXT:
        return f"//a[contains(normalize-space(.), {lit})]"
    raise UnsupportedConversionError(f"Cannot convert locator type to XPath: {kind.display_name}")


def _semantic_xpath(descriptor: LocatorDescriptor) -> str:
    kind = descriptor.kind
    if kind == LocatorKind.GET_BY_ROLE:
        return _role_xpath(descriptor)
    if kind == LocatorKind.GET_BY_TEXT:
        return _text_xpath(descriptor)

    lit = escape_xpath_literal(_require_literal(descriptor))
    if kind == LocatorKind.GET_BY_LABEL:
        return (
            f"//label[normalize-space(.)={lit}]"
            "/following::*[self::input or self::textarea or self::select][1]"
        )
    if kind == LocatorKind.GET_BY_PLACEHOLDER:
        return f"//*[@placeholder={lit}]"
    if kind == LocatorKind.GET_BY_ALT_TEXT:
        return f"//*[@alt={lit}]"
    if kind == LocatorKind.GET_BY_TITLE:
        return f"//*[@title={lit}]"
    if kind == LocatorKind.GET_BY_TEST_ID:
        return f"//*[@data-testid={lit}]"
    raise UnsupportedConversionError(f"Unsupported semantic locator type: {kind.display_name}")


def _filter_predicate(flt: LocatorFilter) -> str:
    if flt.is_regex:
        raise UnsupportedConversionError(f"Regex filter {flt.kind.value}={flt.value!r} has no structural equivalent")

    if flt.kind.is_text:
        inner = f"contains(normalize-space(.), {escape_xpath_literal(flt.value)})"
    else:
        # has / hasNot carry a nested locator
        nested = to_execution_primitive(parse(flt.value))
        if nested.strategy != "xpath" or not nested.expression.startswith("//"):
            raise UnsupportedConversionError(f"Nested locator {flt.value!r} cannot be used as a descendant predicate")
        inner = "." + nested.expression

    return f"not({inner})" if flt.kind.is_negated else inner


def to_execution_primitive(descriptor: LocatorDescriptor) -> ExecutablePredicate:
    """
    Produce the structural-search form of `descriptor`.

    Raises:
        UnsupportedConversionError: regex values, CSS selectors combined with
        filters, and nested filters that do not reduce to a relative XPath.
    """
    kind = descriptor.kind

    if kind == LocatorKind.CSS_SELECTOR:
        if descriptor.filters:
            raise UnsupportedConversionError("Content filters cannot be applied to a CSS selector structurally")
        return ExecutablePredicate("css", descriptor.primary_value)

    if kind == LocatorKind.XPATH:
        expr = descriptor.primary_value
        if descriptor.filters:
            expr = f"({expr})"
    elif kind.is_semantic:
        expr = _semantic_xpath(descriptor)
    else:
        expr = _classic_xpath(descriptor)

    for flt in descriptor.filters:
        expr += f"[{_filter_predicate(flt)}]"
    return ExecutablePredicate("xpath", expr)
