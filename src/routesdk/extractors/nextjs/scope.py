from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tree_sitter import Node

from routesdk.extractors.nextjs.discovery import function_parameters, parameter_pattern, parameter_type
from routesdk.extractors.nextjs.syntax import (
    FUNCTION_NODE_TYPES,
    SourceTree,
    declared_names,
    field,
    named_children,
    type_annotation_node,
    walk_scope,
)


@dataclass(frozen=True)
class Binding:
    name: str
    kind: str  # "variable" | "destructured" | "parameter" | "function"
    value: Optional[Node] = None
    annotation: Optional[Node] = None
    function: Optional[Node] = None


class Scope:
    """Name bindings visible to a handler: its locals layered over the module's top level."""

    def __init__(self, tree: SourceTree, parent: Optional["Scope"] = None) -> None:
        self.tree = tree
        self.parent = parent
        self.bindings: dict[str, Binding] = {}

    def lookup(self, name: str) -> Optional[Binding]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.bindings:
                return scope.bindings[name]
            scope = scope.parent
        return None

    def _bind(self, binding: Binding) -> None:
        # first declaration wins; shadowing inside nested blocks is not modelled
        self.bindings.setdefault(binding.name, binding)

    def _bind_declarator(self, declarator: Node) -> None:
        pattern = field(declarator, "name")
        value = field(declarator, "value")
        annotation = field(declarator, "type")
        annotation = type_annotation_node(annotation)
        if pattern is None:
            return
        if pattern.type == "identifier":
            fn = value if value is not None and value.type in FUNCTION_NODE_TYPES else None
            self._bind(
                Binding(
                    name=self.tree.text(pattern),
                    kind="function" if fn is not None else "variable",
                    value=value,
                    annotation=annotation,
                    function=fn,
                )
            )
            return
        for name in declared_names(pattern, self.tree.source):
            self._bind(Binding(name=name, kind="destructured", value=value))

    def _bind_statement(self, stmt: Node) -> None:
        if stmt.type == "export_statement":
            decl = field(stmt, "declaration")
            if decl is not None:
                self._bind_statement(decl)
            return
        if stmt.type in ("lexical_declaration", "variable_declaration"):
            for declarator in named_children(stmt):
                if declarator.type == "variable_declarator":
                    self._bind_declarator(declarator)
        elif stmt.type in ("function_declaration", "generator_function_declaration"):
            name = self.tree.text(field(stmt, "name"))
            if name:
                self._bind(Binding(name=name, kind="function", function=stmt))
        elif stmt.type == "class_declaration":
            name = self.tree.text(field(stmt, "name"))
            if name:
                self._bind(Binding(name=name, kind="variable", value=stmt))

    @classmethod
    def module(cls, tree: SourceTree) -> "Scope":
        scope = cls(tree)
        for stmt in tree.root.named_children:
            scope._bind_statement(stmt)
        return scope

    @classmethod
    def for_function(cls, tree: SourceTree, function: Node, parent: Optional["Scope"]) -> "Scope":
        scope = cls(tree, parent)
        for param in function_parameters(function):
            pattern = parameter_pattern(param)
            if pattern is None:
                continue
            annotation = parameter_type(param)
            if pattern.type == "identifier":
                scope._bind(Binding(name=tree.text(pattern), kind="parameter", annotation=annotation))
            else:
                for name in declared_names(pattern, tree.source):
                    scope._bind(Binding(name=name, kind="parameter"))

        body = field(function, "body")
        if body is None:
            return scope
        for node in walk_scope(body):
            if node.type == "variable_declarator":
                scope._bind_declarator(node)
        # walk_scope skips function nodes, so local function declarations are bound here
        for stmt in named_children(body) if body.type == "statement_block" else []:
            if stmt.type in ("function_declaration", "generator_function_declaration"):
                scope._bind_statement(stmt)
        return scope
