"""
Semantic type expressions carried on handler descriptors.

The analyzer never runs a type checker; it builds these small values from
syntax and renders them back to TypeScript text for the emitters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Union

_IDENT = re.compile(r"^[A-Za-z_$][\w$]*$")


@dataclass(frozen=True)
class Unknown:
    def render(self) -> str:
        return "unknown"


@dataclass(frozen=True)
class Void:
    def render(self) -> str:
        return "void"


@dataclass(frozen=True)
class Primitive:
    name: str  # string | number | boolean | null | undefined | bigint | any

    def render(self) -> str:
        return self.name


@dataclass(frozen=True)
class ArrayOf:
    element: "TypeExpr"

    def render(self) -> str:
        inner = self.element.render()
        if isinstance(self.element, (Union_, Named)) and not _is_simple(inner):
            inner = f"({inner})"
        return f"{inner}[]"


@dataclass(frozen=True)
class Field:
    name: str
    type: "TypeExpr"
    optional: bool = False

    def render(self) -> str:
        key = self.name if _IDENT.match(self.name) else f"'{self.name}'"
        return f"{key}{'?' if self.optional else ''}: {self.type.render()}"


@dataclass(frozen=True)
class Record:
    fields: tuple[Field, ...]

    def render(self) -> str:
        if not self.fields:
            return "{}"
        return "{ " + "; ".join(f.render() for f in self.fields) + " }"

    def field(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class Union_:
    members: tuple["TypeExpr", ...]

    def render(self) -> str:
        return " | ".join(m.render() for m in self.members)


@dataclass(frozen=True)
class Named:
    """An external or otherwise opaque type, kept as its TypeScript text."""

    text: str

    def render(self) -> str:
        return self.text


TypeExpr = Union[Unknown, Void, Primitive, ArrayOf, Record, Union_, Named]

UNKNOWN = Unknown()
VOID = Void()
STRING = Primitive("string")
NUMBER = Primitive("number")
BOOLEAN = Primitive("boolean")
NULL = Primitive("null")
UNDEFINED = Primitive("undefined")


def _is_simple(text: str) -> bool:
    return bool(re.match(r"^[\w$.<>, ]+$", text)) and "|" not in text


def union_of(types: Iterable[TypeExpr]) -> TypeExpr:
    """Flatten and de-duplicate union members; any unknown member makes it unknown."""
    flat: list[TypeExpr] = []
    for t in types:
        members = t.members if isinstance(t, Union_) else (t,)
        for m in members:
            if isinstance(m, Unknown):
                return UNKNOWN
            if m not in flat:
                flat.append(m)
    if not flat:
        return UNKNOWN
    if len(flat) == 1:
        return flat[0]
    return Union_(tuple(flat))


def record_of(fields: Iterable[Field]) -> Record:
    """Build a record; later fields with the same name replace earlier ones in place."""
    ordered: dict[str, Field] = {}
    for f in fields:
        ordered[f.name] = f
    return Record(tuple(ordered.values()))


def render(t: TypeExpr) -> str:
    return t.render()
