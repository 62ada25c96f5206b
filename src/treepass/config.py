from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, Sequence

from .tree import ChildKeys


@dataclass
class PassOptions:
    """Ambient settings for one run.

    ``source`` and ``filename`` only feed diagnostics. ``child_keys`` adds
    node types to the walker (an empty sequence registers a leaf) and
    ``fallback`` lets it walk unregistered mapping nodes field by field.
    """
    source: str = ""
    filename: str = "<unknown>"
    child_keys: Mapping[str, Sequence[str]] = field(default_factory=dict)
    fallback: bool = False

    @classmethod
    def coerce(cls, value: Optional[Any]) -> PassOptions:
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            known = {f.name for f in fields(cls)}
            unknown = sorted(set(value) - known)
            if unknown:
                raise TypeError(f"unknown pass option(s): {', '.join(map(str, unknown))}")
            return cls(**dict(value))
        raise TypeError(f"expected PassOptions or a mapping, got {type(value).__name__}")

    def make_child_keys(self) -> ChildKeys:
        return ChildKeys(self.child_keys, fallback=self.fallback)
