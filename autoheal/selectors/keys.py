# autoheal/selectors/keys.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from autoheal.selectors.models import LocatorKind, MalformedLocatorError
from autoheal.selectors.parser import extract_kind


class Position(BaseModel):
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


class ElementContext(BaseModel):
    """Optional page-context hints used to tell apart identical locator/description pairs."""
    parent_container: Optional[str] = None
    relative_position: Optional[Position] = None
    sibling_elements: List[str] = Field(default_factory=list)


def _num(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else str(v)


def contextual_key(raw: str, description: Optional[str], context: Optional[ElementContext] = None) -> str:
    """raw|description[|parent:..][|pos:x,y][|siblings:a,b] in that fixed order."""
    parts = [raw, description or ""]
    if context is not None:
        if context.parent_container:
            parts.append(f"parent:{context.parent_container}")
        if context.relative_position is not None:
            pos = context.relative_position
            parts.append(f"pos:{_num(pos.x)},{_num(pos.y)}")
        if context.sibling_elements:
            parts.append("siblings:" + ",".join(context.sibling_elements))
    return "|".join(parts)


def generate_cache_key(
    kind: LocatorKind,
    raw: str,
    description: Optional[str],
    context: Optional[ElementContext] = None,
) -> str:
    if raw is None or not raw.strip():
        raise MalformedLocatorError("Cannot derive a cache key from an empty locator")
    return f"{kind.report_name}:{contextual_key(raw.strip(), description, context)}"


def cache_key_for(raw: str, description: Optional[str], context: Optional[ElementContext] = None) -> str:
    """Key for a raw locator whose kind has not been determined yet."""
    if raw is None or not raw.strip():
        raise MalformedLocatorError("Cannot derive a cache key from an empty locator")
    return generate_cache_key(extract_kind(raw), raw, description, context)
