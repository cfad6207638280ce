"""
Thin helpers over tree-sitter's TypeScript grammar.

Source text is always handled as UTF-8 bytes so node byte offsets can be
used for slicing; helpers return decoded strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterator, Optional

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser

FUNCTION_NODE_TYPES = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "arrow_function",
        "method_definition",
        "generator_function_declaration",
        "generator_function",
    }
)

_IDENT_CHARS = r"[\w$]"


@lru_cache(maxsize=1)
def _language() -> Language:
    return Language(tstypescript.language_typescript())


def make_parser() -> Parser:
    return Parser(_language())


@dataclass(frozen=True)
class SourceTree:
    """A parsed source fragment: the bytes and the tree-sitter root node."""

    source: bytes
    root: Node

    def text(self, node: Optional[Node]) -> str:
        return node_text(node, self.source)

    @property
    def has_error(self) -> bool:
        return self.root.has_error


def parse(text: str) -> SourceTree:
    source = text.encode("utf-8")
    tree = make_parser().parse(source)
    return SourceTree(source=source, root=tree.root_node)


def node_text(node: Optional[Node], source: bytes) -> str:
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8")


def walk(node: Node) -> Iterator[Node]:
    """Pre-order walk over every node below (and including) `node`."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def walk_scope(node: Node) -> Iterator[Node]:
    """Like walk(), but does not descend into nested function bodies."""
    yield node
    for child in node.children:
        if child.type in FUNCTION_NODE_TYPES:
            continue
        yield from walk_scope(child)


def field(node: Optional[Node], name: str) -> Optional[Node]:
    if node is None:
        return None
    return node.child_by_field_name(name)


def first_named(node: Optional[Node]) -> Optional[Node]:
    if node is None:
        return None
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def named_children(node: Optional[Node]) -> list[Node]:
    if node is None:
        return []
    return [c for c in node.named_children if c.type != "comment"]


def unwrap_parens(node: Optional[Node]) -> Optional[Node]:
    """Strip parenthesized/await/non-null/`as` wrappers around an expression."""
    while node is not None and node.type in (
        "parenthesized_expression",
        "non_null_expression",
        "as_expression",
        "satisfies_expression",
    ):
        node = first_named(node)
    return node


def unwrap_await(node: Optional[Node]) -> Optional[Node]:
    node = unwrap_parens(node)
    while node is not None and node.type == "await_expression":
        node = unwrap_parens(first_named(node))
    return node


def string_value(node: Optional[Node], source: bytes) -> Optional[str]:
    """Value of a plain string literal (or a template with no substitutions)."""
    node = unwrap_parens(node)
    if node is None:
        return None
    if node.type == "string":
        raw = node_text(node, source)
        return raw[1:-1] if len(raw) >= 2 else ""
    if node.type == "template_string":
        if any(c.type == "template_substitution" for c in node.children):
            return None
        raw = node_text(node, source)
        return raw[1:-1]
    return None


def call_parts(node: Optional[Node], source: bytes) -> tuple[str, list[Node]] | None:
    """For a call or `new` expression return (callee text, argument nodes)."""
    if node is None:
        return None
    if node.type == "call_expression":
        callee = field(node, "function")
        args = field(node, "arguments")
    elif node.type == "new_expression":
        callee = field(node, "constructor")
        args = field(node, "arguments")
    else:
        return None
    if callee is None:
        return None
    arg_nodes = named_children(args) if args is not None and args.type == "arguments" else []
    return node_text(callee, source), arg_nodes


def member_parts(node: Optional[Node], source: bytes) -> tuple[Node, str] | None:
    """For `obj.prop` return (obj node, prop name)."""
    if node is None or node.type != "member_expression":
        return None
    obj = field(node, "object")
    prop = field(node, "property")
    if obj is None or prop is None:
        return None
    return obj, node_text(prop, source)


def references_identifier(text: str, name: str) -> bool:
    return re.search(rf"(?<!{_IDENT_CHARS}){re.escape(name)}(?!{_IDENT_CHARS})", text) is not None


def declared_names(pattern: Optional[Node], source: bytes) -> list[str]:
    """Names bound by a declarator pattern (identifier or object/array pattern)."""
    if pattern is None:
        return []
    if pattern.type == "identifier":
        return [node_text(pattern, source)]
    names: list[str] = []
    for node in walk(pattern):
        if node.type in ("shorthand_property_identifier_pattern",):
            names.append(node_text(node, source))
        elif node.type == "identifier" and node.parent is not None and node.parent.type in (
            "pair_pattern",
            "array_pattern",
            "rest_pattern",
            "object_assignment_pattern",
            "assignment_pattern",
        ):
            parent = node.parent
            if parent.type == "pair_pattern" and field(parent, "key") == node:
                continue
            if parent.type in ("object_assignment_pattern", "assignment_pattern") and field(parent, "right") == node:
                continue
            names.append(node_text(node, source))
    return names


def object_pattern_keys(pattern: Node, source: bytes) -> list[str]:
    """Top-level property names read by an object destructuring pattern."""
    keys: list[str] = []
    for child in named_children(pattern):
        if child.type == "shorthand_property_identifier_pattern":
            keys.append(node_text(child, source))
        elif child.type == "pair_pattern":
            key = field(child, "key")
            if key is not None:
                keys.append(node_text(key, source).strip("'\""))
        elif child.type == "object_assignment_pattern":
            left = field(child, "left")
            if left is not None:
                keys.append(node_text(left, source))
    return keys


def type_annotation_node(node: Optional[Node]) -> Optional[Node]:
    """The type node inside a `: T` annotation."""
    if node is None:
        return None
    if node.type == "type_annotation":
        return first_named(node)
    return node


def render(node: Node, source: bytes, transform: Callable[[Node, Callable[[Node], str]], Optional[str]]) -> str:
    """
    Serialize `node`, letting `transform` replace any subtree.

    `transform(node, render_child)` returns replacement text or None to keep
    the node; `render_child` serializes a descendant with the same transform,
    so nested matches are rewritten inside-out.
    """

    def _render(current: Node) -> str:
        replaced = transform(current, _render)
        if replaced is not None:
            return replaced
        if current.child_count == 0:
            return node_text(current, source)
        out: list[bytes] = []
        cursor = current.start_byte
        for child in current.children:
            out.append(source[cursor : child.start_byte])
            out.append(_render(child).encode("utf-8"))
            cursor = child.end_byte
        out.append(source[cursor : current.end_byte])
        return b"".join(out).decode("utf-8")

    return _render(node)
