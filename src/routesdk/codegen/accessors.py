"""
The nested accessor object both artifacts export.

Static children become `KEY: {...}`, dynamic and catch-all children become
`KEY: (param: string | string[]) => ({...})`, and every handler of a node
becomes one member produced by the artifact's member emitter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from routesdk.codegen.paths import path_template
from routesdk.domain.models import HandlerDescriptor
from routesdk.graph.model import RouteNode
from routesdk.routing.segments import classify

_IDENT = re.compile(r"^[A-Za-z_$][\w$]*$")

INDENT = "  "


@dataclass(frozen=True)
class AccessorContext:
    segments: tuple[str, ...] = ()
    route_params: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        return path_template(self.segments)

    def descend(self, segment: str) -> "AccessorContext":
        seg = classify(segment)
        params = self.route_params + ((seg.param,) if seg.param else ())
        return AccessorContext(self.segments + (segment,), params)


MemberEmitter = Callable[[HandlerDescriptor, AccessorContext], str]


def js_string(value: str) -> str:
    """Single-quoted JavaScript string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def property_key(key: str) -> str:
    upper = key.upper()
    return upper if _IDENT.match(upper) else js_string(upper)


def indent(text: str, level: int = 1) -> str:
    prefix = INDENT * level
    return "\n".join(prefix + line if line.strip() else "" for line in text.split("\n"))


def _body_lines(node: RouteNode, ctx: AccessorContext, emit: MemberEmitter) -> list[str]:
    lines: list[str] = []
    for handler in node.methods:
        lines.append(indent(f"{handler.name}: {emit(handler, ctx)},"))

    for key, child in node.children.items():
        seg = classify(child.segment)
        child_ctx = ctx.descend(child.segment)
        inner = _body_lines(child, child_ctx, emit)
        if seg.is_dynamic:
            head = f"{property_key(key)}: ({seg.param}: {seg.param_type}) => ({{"
            tail = "}),"
        else:
            head = f"{property_key(key)}: {{"
            tail = "},"
        lines.append(indent(head))
        lines.extend(indent(line) if line else line for line in inner)
        lines.append(indent(tail))
    return lines


def build_object(tree: RouteNode, emit: MemberEmitter) -> str:
    """Render the accessor object literal for the whole tree."""
    lines = _body_lines(tree, AccessorContext(), emit)
    if not lines:
        return "{}"
    return "\n".join(["{", *lines, "}"])
