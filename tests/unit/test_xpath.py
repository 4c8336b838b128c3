import re

import pytest

from autoheal.selectors import (
    FilterKind,
    LocatorDescriptor,
    LocatorFilter,
    LocatorKind,
    UnsupportedConversionError,
    escape_xpath_literal,
    parse,
    to_execution_primitive,
)


def test_escape_plain_and_single_quote():
    assert escape_xpath_literal("Login") == "'Login'"
    assert escape_xpath_literal("it's") == "\"it's\""
    assert escape_xpath_literal('say "hi"') == "'say \"hi\"'"


def test_escape_both_quote_types_uses_concat():
    value = 'He said "it\'s"'
    assert escape_xpath_literal(value) == "concat('He said \"it', \"'\", 's\"')"


@pytest.mark.parametrize(
    "kind, value, expected",
    [
        (LocatorKind.ID, "user", "//*[@id='user']"),
        (LocatorKind.NAME, "email", "//*[@name='email']"),
        (LocatorKind.TAG_NAME, "BUTTON", "//button"),
        (LocatorKind.LINK_TEXT, "Read more", "//a[normalize-space(.)='Read more']"),
        (LocatorKind.PARTIAL_LINK_TEXT, "more", "//a[contains(normalize-space(.), 'more')]"),
        (LocatorKind.GET_BY_PLACEHOLDER, "Search", "//*[@placeholder='Search']"),
        (LocatorKind.GET_BY_TEST_ID, "save", "//*[@data-testid='save']"),
    ],
)
def test_simple_kinds_convert_to_xpath(kind, value, expected):
    p = to_execution_primitive(LocatorDescriptor(kind, value))
    assert p.strategy == "xpath"
    assert p.expression == expected
    assert p.as_selector() == f"xpath={expected}"


def test_class_name_matches_whole_token():
    p = to_execution_primitive(LocatorDescriptor(LocatorKind.CLASS_NAME, "btn"))
    assert p.expression == "//*[contains(concat(' ', normalize-space(@class), ' '), ' btn ')]"


def test_css_passes_through():
    p = to_execution_primitive(parse("#submit-btn"))
    assert p.strategy == "css"
    assert p.as_selector() == "#submit-btn"


def test_css_with_filters_is_unsupported():
    d = LocatorDescriptor(
        LocatorKind.CSS_SELECTOR, "div.card", filters=(LocatorFilter(FilterKind.HAS_TEXT, "x"),)
    )
    with pytest.raises(UnsupportedConversionError):
        to_execution_primitive(d)


def test_role_with_exact_name():
    p = to_execution_primitive(parse("getByRole('button', { name: 'Log in', exact: true })"))
    assert p.expression.startswith("//*[@role='button' or self::button")
    assert p.expression.endswith("[normalize-space(.)='Log in' or @aria-label='Log in']")


def test_regex_values_are_unsupported():
    with pytest.raises(UnsupportedConversionError):
        to_execution_primitive(parse("getByText(/welcome/i)"))
    with pytest.raises(UnsupportedConversionError):
        to_execution_primitive(parse("getByRole('link', { name: /docs/i })"))
    with pytest.raises(UnsupportedConversionError):
        to_execution_primitive(parse("getByText('a').filter({ hasText: /b/ })"))


def test_text_filters_become_predicates():
    p = to_execution_primitive(parse("getByTestId('row').filter({ hasNotText: 'Sold out' })"))
    assert p.expression == "//*[@data-testid='row'][not(contains(normalize-space(.), 'Sold out'))]"


def test_descendant_filter_nests_relative_xpath():
    p = to_execution_primitive(
        parse("getByTestId('row').filter({ has: \"getByTestId('buy')\" })")
    )
    assert p.expression == "//*[@data-testid='row'][.//*[@data-testid='buy']]"


def test_xpath_with_filter_is_parenthesised():
    p = to_execution_primitive(parse("xpath=//li.filter({ hasText: 'x' })"))
    assert p.expression == "(//li)[contains(normalize-space(.), 'x')]"


def _evaluate_xpath_string(expr: str) -> str:
    """Evaluate a quoted literal or a concat() of quoted literals."""
    body = expr[len("concat("):-1] if expr.startswith("concat(") else expr
    tokens = re.findall(r"'([^']*)'|\"([^\"]*)\"", body)
    leftover = re.sub(r"'[^']*'|\"[^\"]*\"", "", body)
    assert leftover.replace(",", "").strip() == ""
    if not expr.startswith("concat("):
        assert len(tokens) == 1
    return "".join(single or double for single, double in tokens)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "plain",
        "it's",
        'say "hi"',
        'He said "it\'s"',
        "'",
        '"',
        "'\"",
        "''\"\"",
        "a'b\"c'd\"e",
        "''''",
        "\"'\"'\"",
        "line\nbreak 'q' \"dq\"",
    ],
)
def test_escaped_literal_evaluates_back_to_value(value):
    assert _evaluate_xpath_string(escape_xpath_literal(value)) == value
