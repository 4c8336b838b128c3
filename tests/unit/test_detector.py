import pytest

from autoheal.selectors import LocatorKind, MalformedLocatorError, detect_type
from autoheal.selectors.detector import describe_detection, is_likely_link_text, needs_healing_context


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("#submit-btn", LocatorKind.CSS_SELECTOR),
        ("Read more", LocatorKind.LINK_TEXT),
        ("xyz123", LocatorKind.ID),
        ("//button[@type='submit']", LocatorKind.XPATH),
        ("/html/body/div", LocatorKind.XPATH),
        ("./span", LocatorKind.XPATH),
        ("../td", LocatorKind.XPATH),
        (".primary", LocatorKind.CSS_SELECTOR),
        ("input[type='email']", LocatorKind.CSS_SELECTOR),
        ("a:hover", LocatorKind.CSS_SELECTOR),
        ("ul > li", LocatorKind.CSS_SELECTOR),
        ("div#main.wide", LocatorKind.CSS_SELECTOR),
        ("button", LocatorKind.TAG_NAME),
        ("TEXTAREA", LocatorKind.TAG_NAME),
        ("Logout", LocatorKind.LINK_TEXT),
        ("averyveryverylongword", LocatorKind.LINK_TEXT),
        ("main-nav", LocatorKind.ID),
        ("1st_field", LocatorKind.NAME),
        ("$weird", LocatorKind.NAME),
    ],
)
def test_detect_type_waterfall(raw, expected):
    assert detect_type(raw) == expected


def test_detect_type_strips_whitespace():
    assert detect_type("  #submit-btn  ") == LocatorKind.CSS_SELECTOR


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_detect_type_rejects_empty(raw):
    with pytest.raises(MalformedLocatorError):
        detect_type(raw)


def test_detection_never_yields_explicit_only_kinds():
    samples = ["foo", "foo bar", ".x", "#y", "//z", "a", "q1", "???"]
    kinds = {detect_type(s) for s in samples}
    assert LocatorKind.CLASS_NAME not in kinds
    assert LocatorKind.PARTIAL_LINK_TEXT not in kinds


def test_long_text_with_punctuation_is_not_link_text():
    assert not is_likely_link_text("section_header_title/x")
    assert is_likely_link_text("please continue")


def test_needs_healing_context_and_description():
    assert needs_healing_context(LocatorKind.XPATH)
    assert not needs_healing_context(LocatorKind.GET_BY_ROLE)
    assert describe_detection("xyz123", LocatorKind.ID) == "Auto-detected 'xyz123' as ID locator"
