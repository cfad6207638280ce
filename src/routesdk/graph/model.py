from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterator, Mapping, Optional, Sequence

from routesdk.domain.models import HandlerDescriptor, ImportSpec
from routesdk.errors import TreeNavigationError
from routesdk.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RouteNode:
    """
    One retained directory of the route tree.

    Nodes are values: every update returns a new node and shares untouched
    subtrees with the previous version. `children` is always ordered by key.
    """

    segment: str
    methods: tuple[HandlerDescriptor, ...] = ()
    children: Mapping[str, "RouteNode"] = field(default_factory=dict)
    imports: tuple[ImportSpec, ...] = ()
    directory: Optional[Path] = None

    def method(self, name: str) -> Optional[HandlerDescriptor]:
        for m in self.methods:
            if m.name == name:
                return m
        return None

    @property
    def method_names(self) -> tuple[str, ...]:
        return tuple(m.name for m in self.methods)

    def with_child(self, key: str, child: "RouteNode") -> "RouteNode":
        children = dict(self.children)
        children[key] = child
        return replace(self, children=_ordered(children))

    def without_child(self, key: str) -> "RouteNode":
        if key not in self.children:
            return self
        children = {k: v for k, v in self.children.items() if k != key}
        return replace(self, children=children)

    def iter_nodes(self, path: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], "RouteNode"]]:
        """Depth-first (path of raw segments, node) pairs, the root's path being empty."""
        yield path, self
        for child in self.children.values():
            yield from child.iter_nodes(path + (child.segment,))


def _ordered(children: Mapping[str, RouteNode]) -> dict[str, RouteNode]:
    return {k: children[k] for k in sorted(children)}


def merge_nodes(node: RouteNode, other: RouteNode) -> RouteNode:
    """
    Fold a transparent directory (route group or collector) into `node`.

    On a verb or key collision the existing entry is kept.
    """
    methods = list(node.methods)
    for m in other.methods:
        if node.method(m.name) is not None:
            logger.warning("[PARSE] Duplicate %s for '%s' from '%s'; keeping the first", m.name, node.segment, other.segment)
            continue
        methods.append(m)

    children = dict(node.children)
    for key, child in other.children.items():
        if key in children:
            logger.warning("[PARSE] Duplicate route '%s' under '%s' from '%s'; keeping the first", key, node.segment, other.segment)
            continue
        children[key] = child

    return replace(
        node,
        methods=tuple(methods),
        children=_ordered(children),
        imports=node.imports + other.imports,
    )


def add_child(node: RouteNode, key: str, child: RouteNode) -> RouteNode:
    if key in node.children:
        logger.warning("[PARSE] Duplicate route '%s' under '%s'; keeping the first", key, node.segment)
        return node
    return node.with_child(key, child)


def node_at(root: RouteNode, keys: Sequence[str]) -> Optional[RouteNode]:
    current: Optional[RouteNode] = root
    for key in keys:
        if current is None:
            return None
        current = current.children.get(key)
    return current


def replace_at(root: RouteNode, keys: Sequence[str], new_node: Optional[RouteNode]) -> RouteNode:
    """
    Return a new tree with the subtree at `keys` replaced (or removed when
    `new_node` is None). Every ancestor must exist; the last key may be new.
    """
    path = tuple(keys)
    if not path:
        if new_node is None:
            raise TreeNavigationError("", path)
        return new_node

    def _replace(node: RouteNode, depth: int) -> RouteNode:
        key = path[depth]
        if depth == len(path) - 1:
            return node.without_child(key) if new_node is None else node.with_child(key, new_node)
        child = node.children.get(key)
        if child is None:
            raise TreeNavigationError(key, path)
        return node.with_child(key, _replace(child, depth + 1))

    return _replace(root, 0)
