import pytest

from autoheal.selectors import (
    ElementContext,
    LocatorKind,
    MalformedLocatorError,
    Position,
    cache_key_for,
    contextual_key,
    generate_cache_key,
)


def test_key_without_context():
    assert generate_cache_key(LocatorKind.ID, "user", "username field") == "id:user|username field"
    assert contextual_key("user", None) == "user|"


def test_key_with_full_context_in_fixed_order():
    ctx = ElementContext(
        parent_container="form#login",
        relative_position=Position(x=10, y=20.5),
        sibling_elements=["username", "password"],
    )
    key = generate_cache_key(LocatorKind.CSS_SELECTOR, "#go", "submit", ctx)
    assert key == "css_selector:#go|submit|parent:form#login|pos:10,20.5|siblings:username,password"


def test_key_is_stable_and_kind_sensitive():
    a = cache_key_for("getByRole('button', { name: 'Save' })", "save button")
    b = cache_key_for("getByRole('button', { name: 'Save' })", "save button")
    assert a == b
    assert a.startswith("get_by_role:")
    assert generate_cache_key(LocatorKind.ID, "x", "d") != generate_cache_key(LocatorKind.NAME, "x", "d")


def test_empty_context_adds_nothing():
    assert contextual_key("a", "b", ElementContext()) == "a|b"


@pytest.mark.parametrize("raw", ["", "  ", None])
def test_empty_raw_is_rejected(raw):
    with pytest.raises(MalformedLocatorError):
        generate_cache_key(LocatorKind.ID, raw, "desc")
