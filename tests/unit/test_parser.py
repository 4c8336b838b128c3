import dataclasses

import pytest

from autoheal.selectors import (
    FilterKind,
    LocatorKind,
    MalformedLocatorError,
    detect_type,
    extract_kind,
    is_semantic_locator,
    parse,
)
from autoheal.selectors.parser import compile_js_regex, extract_filters, unwrap_locator


def test_role_with_name_and_filter():
    d = parse("getByRole('button', { name: 'Login' }).filter({ hasText: 'Go' })")
    assert d.kind == LocatorKind.GET_BY_ROLE
    assert d.primary_value == "button"
    assert d.is_regex is False
    assert d.name == "Login"
    assert d.name_is_regex is False
    assert len(d.filters) == 1
    f = d.filters[0]
    assert (f.kind, f.value, f.is_regex) == (FilterKind.HAS_TEXT, "Go", False)


def test_filters_keep_chain_order():
    d = parse(
        "getByRole('listitem')"
        ".filter({ hasText: 'Product 2' })"
        ".filter({ hasNot: \"getByRole('button')\" })"
        ".filter({ hasNotText: /sold out/i })"
    )
    assert [f.kind for f in d.filters] == [FilterKind.HAS_TEXT, FilterKind.HAS_NOT, FilterKind.HAS_NOT_TEXT]
    assert d.filters[1].value == "getByRole('button')"
    assert d.filters[2].value == "/sold out/i"
    assert d.filters[2].is_regex is True


def test_regex_values_and_options():
    d = parse("getByText(/welcome/i)")
    assert d.kind == LocatorKind.GET_BY_TEXT
    assert d.primary_value == "/welcome/i"
    assert d.is_regex is True

    d = parse("getByRole('link', { name: /docs/i, exact: true })")
    assert d.name == "/docs/i"
    assert d.name_is_regex is True
    assert d.exact is True


@pytest.mark.parametrize(
    "raw, kind, value",
    [
        ("getByLabel('Email')", LocatorKind.GET_BY_LABEL, "Email"),
        ('getByPlaceholder("Search")', LocatorKind.GET_BY_PLACEHOLDER, "Search"),
        ("getByAltText('logo')", LocatorKind.GET_BY_ALT_TEXT, "logo"),
        ("getByTitle('Close')", LocatorKind.GET_BY_TITLE, "Close"),
        ("getByTestId('save')", LocatorKind.GET_BY_TEST_ID, "save"),
        ("page.getByLabel('Email')", LocatorKind.GET_BY_LABEL, "Email"),
        ("getByText('It\\'s here')", LocatorKind.GET_BY_TEXT, "It's here"),
    ],
)
def test_semantic_call_forms(raw, kind, value):
    d = parse(raw)
    assert d.kind == kind
    assert d.primary_value == value


def test_locator_wrapper_is_stripped():
    assert unwrap_locator('locator("getByTestId(\'save\')")') == "getByTestId('save')"
    d = parse('locator("getByTestId(\'save\')")')
    assert d.kind == LocatorKind.GET_BY_TEST_ID
    assert d.primary_value == "save"


@pytest.mark.parametrize(
    "raw, kind, value",
    [
        ("xpath=//div[@id='a']", LocatorKind.XPATH, "//div[@id='a']"),
        ("(//a)[2]", LocatorKind.XPATH, "(//a)[2]"),
        ("css:div.card", LocatorKind.CSS_SELECTOR, "div.card"),
        ("#submit-btn", LocatorKind.CSS_SELECTOR, "#submit-btn"),
        ("//button", LocatorKind.XPATH, "//button"),
        ("username", LocatorKind.ID, "username"),
    ],
)
def test_classic_fall_through(raw, kind, value):
    d = parse(raw)
    assert d.kind == kind
    assert d.primary_value == value
    assert d.filters == ()


def test_unrecognised_filter_block_is_dropped():
    d = parse("getByText('Hi').filter({ visible: true })")
    assert d.kind == LocatorKind.GET_BY_TEXT
    assert d.primary_value == "Hi"
    assert d.filters == ()


def test_extract_filters_returns_base():
    base, filters = extract_filters("getByText('a').filter({ hasText: 'b' })")
    assert base == "getByText('a')"
    assert len(filters) == 1


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_parse_rejects_empty(raw):
    with pytest.raises(MalformedLocatorError):
        parse(raw)


def test_descriptor_is_immutable():
    d = parse("getByRole('button', { name: 'Save' })")
    with pytest.raises(dataclasses.FrozenInstanceError):
        d.primary_value = "link"
    with pytest.raises(TypeError):
        d.options["name"] = "Other"


def test_is_semantic_and_extract_kind():
    assert is_semantic_locator("getByRole('button')")
    assert is_semantic_locator("page.getByText('x')")
    assert not is_semantic_locator("#id")
    assert not is_semantic_locator("")
    assert extract_kind("getByTestId('x')") == LocatorKind.GET_BY_TEST_ID
    assert extract_kind("xpath=//a") == LocatorKind.XPATH
    assert extract_kind("Read more") == LocatorKind.LINK_TEXT
    assert extract_kind(None) == LocatorKind.CSS_SELECTOR


def test_compile_js_regex_flags():
    rx = compile_js_regex("/sign\\s+in/i")
    assert rx.search("SIGN   IN")


def test_option_values_may_contain_braces():
    d = parse("getByRole('button', { name: 'Save {draft}' })")
    assert d.kind == LocatorKind.GET_BY_ROLE
    assert d.primary_value == "button"
    assert d.name == "Save {draft}"

    d = parse('getByRole("heading", { name: "}{", exact: true }).filter({ hasText: \'x\' })')
    assert d.kind == LocatorKind.GET_BY_ROLE
    assert d.name == "}{"
    assert d.exact is True
    assert [f.value for f in d.filters] == ["x"]


def test_numeric_option_is_accepted_and_ignored():
    d = parse("getByRole('heading', { name: 'Title', level: 2 })")
    assert d.kind == LocatorKind.GET_BY_ROLE
    assert d.name == "Title"
    assert "level" not in d.options


ODD_LOCATORS = [
    "{",
    "}",
    "'",
    '"',
    "/",
    "\\",
    "((",
    "[",
    "xpath=",
    "css=",
    "page.getBy",
    "getByRole(",
    "getByRole('button'",
    "getByRole('button', { name: 'a' ",
    "getByText(/unterminated",
    "getByText('a').filter(",
    ".filter({ hasText: 'x' })",
    'locator("")',
    'locator("   ")',
    "locator(",
    "a b c",
    "\t#",
    "héllo wörld",
    "💥",
    "//*[",
    "::",
    "> + ~",
]


@pytest.mark.parametrize("raw", ODD_LOCATORS)
def test_parse_and_detect_never_fail_on_non_empty_input(raw):
    d = parse(raw)
    assert isinstance(d.kind, LocatorKind)
    assert isinstance(d.primary_value, str)
    assert isinstance(detect_type(raw), LocatorKind)
