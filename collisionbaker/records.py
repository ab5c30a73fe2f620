"""Parsed scene records and typed field access.

A scene file is a flat stream of tagged records::

    [node name="Body" type="CollisionShape3D" parent="."]
    transform = Transform3D(1, 0, 0, 0, 1, 0, 0, 0, 1, 5, 0, 0)
    shape = SubResource("shape_a")

The ``[header]`` pairs are the record's *fields*, the ``key = value`` lines
below it are its *assignments*. Values are untyped variants; callers pull them
out with :func:`extract`, which answers ``None`` both when a key is missing and
when it holds a value of another type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Type, Union


class StringName(str):
    """``&"name"`` literal."""


class NodePath(str):
    """``^"path"`` literal."""


@dataclass(frozen=True)
class Constructable:
    """A typed literal such as ``Transform3D(...)`` or ``PackedVector3Array(...)``."""

    identifier: str
    arguments: Tuple[Variant, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def __len__(self) -> int:
        return len(self.arguments)


Variant = Union[str, int, float, bool, None, list, dict, Constructable]

NUMERIC = (int, float)

Kind = Union[Type, Tuple[Type, ...]]


def _matches(value: Any, kind: Kind) -> bool:
    if isinstance(value, bool):
        kinds = kind if isinstance(kind, tuple) else (kind,)
        return bool in kinds
    return isinstance(value, kind)


def extract(values: Mapping[str, Variant], name: str, kind: Kind) -> Optional[Variant]:
    """Return ``values[name]`` if present and of ``kind``, otherwise ``None``.

    Booleans only match when ``bool`` is asked for explicitly, so a ``true``
    never passes as the integer 1.
    """
    if name not in values:
        return None
    value = values[name]
    if not _matches(value, kind):
        return None
    return value


@dataclass(frozen=True)
class Record:
    identifier: str
    fields: Mapping[str, Variant] = field(default_factory=dict)
    assignments: Mapping[str, Variant] = field(default_factory=dict)
    line: int = 0

    def __post_init__(self):
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(self, "assignments", MappingProxyType(dict(self.assignments)))

    def get_field(self, name: str, kind: Kind = str) -> Optional[Variant]:
        return extract(self.fields, name, kind)

    def get_assignment(self, name: str, kind: Kind = Constructable) -> Optional[Variant]:
        return extract(self.assignments, name, kind)

    def describe(self) -> str:
        """Short human label used in diagnostics."""
        name = self.get_field("name")
        resource_id = self.get_field("id")
        label = f"[{self.identifier}"
        if name is not None:
            label += f' name="{name}"'
        elif resource_id is not None:
            label += f' id="{resource_id}"'
        label += "]"
        if self.line:
            label += f" (line {self.line})"
        return label
