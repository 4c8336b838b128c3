# autoheal/registry.py
"""Target registry
-----------------
Named logical targets (locator + human description + optional page context)
kept in YAML, one or more documents per file:

    version: "1"
    targets:
      - name: login_button
        locator: getByRole('button', { name: 'Log in' })
        description: primary login button
        context:
          parent: form#login
          position: {x: 10, y: 20}
          siblings: [username, password]

`${VAR}` references in string values are expanded from the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional
import os
import re

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from autoheal.selectors import ElementContext, Position, generate_cache_key, parse


class RegistryError(ValueError):
    pass


# ---------- Models ----------


class TargetContext(BaseModel):
    parent: Optional[str] = None
    position: Optional[Position] = None
    siblings: List[str] = Field(default_factory=list)

    def to_element_context(self) -> ElementContext:
        return ElementContext(
            parent_container=self.parent,
            relative_position=self.position,
            sibling_elements=list(self.siblings),
        )


class LocatorTarget(BaseModel):
    name: str
    locator: str
    description: str = ""
    context: Optional[TargetContext] = None

    @field_validator("name", "locator")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("value cannot be empty")
        return v

    def element_context(self) -> Optional[ElementContext]:
        return self.context.to_element_context() if self.context else None

    def cache_key(self) -> str:
        kind = parse(self.locator).kind
        return generate_cache_key(kind, self.locator, self.description, self.element_context())


class RegistryDocument(BaseModel):
    version: str = Field(default="1")
    targets: List[LocatorTarget] = Field(default_factory=list)


# ---------- Loading ----------


_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _subst_env(obj):
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


def _format_validation(path: Path, idx: int, ve: ValidationError) -> str:
    lines = [f"Invalid registry '{path}' (document {idx}):"]
    for e in ve.errors():
        loc = ".".join(str(p) for p in e.get("loc", []))
        msg = e.get("msg", "invalid value")
        lines.append(f"  - {loc}: {msg}")
    return "\n".join(lines)


def load_registry(path: Path | str) -> List[LocatorTarget]:
    """Load every target from a YAML file; names must be unique across documents."""
    reg_path = Path(path)
    if not reg_path.exists():
        raise FileNotFoundError(f"Registry file not found: {reg_path}")

    try:
        docs = list(yaml.safe_load_all(reg_path.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise RegistryError(f"YAML parse error in {reg_path}: {ye}") from ye

    targets: List[LocatorTarget] = []
    seen: set[str] = set()
    for idx, data in enumerate(docs, start=1):
        if data is None:
            continue
        if not isinstance(data, dict):
            raise RegistryError(f"Document {idx} in {reg_path} must be a mapping/object.")
        try:
            doc = RegistryDocument.model_validate(_subst_env(data))
        except ValidationError as ve:
            raise RegistryError(_format_validation(reg_path, idx, ve)) from ve
        for t in doc.targets:
            if t.name in seen:
                raise RegistryError(f"Duplicate target name '{t.name}' in {reg_path}")
            seen.add(t.name)
            targets.append(t)

    if not targets:
        raise RegistryError(f"No targets found in {reg_path}")
    return targets


__all__ = [
    "RegistryError",
    "TargetContext",
    "LocatorTarget",
    "load_registry",
]
