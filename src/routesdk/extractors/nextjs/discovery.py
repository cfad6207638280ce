from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from tree_sitter import Node

from routesdk.domain.models import HTTP_METHODS, ImportSpec, NamedImport
from routesdk.extractors.nextjs.syntax import (
    SourceTree,
    field,
    first_named,
    named_children,
    string_value,
    type_annotation_node,
)
from routesdk.observability.logging import get_logger

logger = get_logger(__name__)

_FUNCTION_VALUES = ("arrow_function", "function_expression", "function")


@dataclass(frozen=True)
class HandlerSource:
    """A discovered verb handler: its function node plus declared signature bits."""

    name: str
    function: Node
    declared_return_type: Optional[str]


def _function_return_type(tree: SourceTree, function: Node) -> Optional[str]:
    annotation = type_annotation_node(field(function, "return_type"))
    text = tree.text(annotation).strip()
    return text or None


def _iter_exported_declarations(tree: SourceTree) -> Iterable[tuple[str, Node]]:
    """
    Yield (name, node) for exported declarations of the form:
      export [async] function NAME(...) {...}
      export function NAME(...): T;            (overload signature)
      export const NAME = [async] (...) => ...
      export const NAME = [async] function (...) {...}
    """
    for stmt in tree.root.named_children:
        if stmt.type != "export_statement":
            continue
        decl = field(stmt, "declaration")
        if decl is None:
            continue
        if decl.type in ("function_declaration", "function_signature", "generator_function_declaration"):
            name = tree.text(field(decl, "name"))
            yield name, decl
        elif decl.type in ("lexical_declaration", "variable_declaration"):
            for declarator in named_children(decl):
                if declarator.type != "variable_declarator":
                    continue
                name = tree.text(field(declarator, "name"))
                yield name, declarator


def discover_handlers(tree: SourceTree) -> list[HandlerSource]:
    """
    Find exported HTTP-verb handlers in source order.

    The first implementation of a verb wins; later declarations of the same
    verb (overload signatures included) only backfill a missing return type.
    """
    found: dict[str, HandlerSource] = {}
    pending_return: dict[str, str] = {}

    for name, node in _iter_exported_declarations(tree):
        if name not in HTTP_METHODS:
            continue

        if node.type == "function_signature":
            ret = _function_return_type(tree, node)
            if ret:
                pending_return.setdefault(name, ret)
            continue

        function: Optional[Node]
        if node.type == "variable_declarator":
            value = field(node, "value")
            function = value if value is not None and value.type in _FUNCTION_VALUES else None
            if function is None:
                logger.debug("Skipping %s: unsupported handler shape %s", name, value.type if value else "<none>")
                continue
        else:
            function = node

        if field(function, "body") is None:
            continue

        ret = _function_return_type(tree, function)
        existing = found.get(name)
        if existing is None:
            found[name] = HandlerSource(name=name, function=function, declared_return_type=ret)
        elif existing.declared_return_type is None and ret:
            found[name] = HandlerSource(name=name, function=existing.function, declared_return_type=ret)

    out: list[HandlerSource] = []
    for h in found.values():
        if h.declared_return_type is None and h.name in pending_return:
            h = HandlerSource(name=h.name, function=h.function, declared_return_type=pending_return[h.name])
        out.append(h)
    return out


def function_parameters(function: Node) -> list[Node]:
    """Parameter nodes of a function (handles `x => ...` single-identifier arrows)."""
    params = field(function, "parameters")
    if params is not None:
        return named_children(params)
    single = field(function, "parameter")
    return [single] if single is not None else []


def parameter_pattern(param: Node) -> Optional[Node]:
    if param.type in ("required_parameter", "optional_parameter"):
        return field(param, "pattern")
    return param


def parameter_type(param: Node) -> Optional[Node]:
    if param.type in ("required_parameter", "optional_parameter"):
        return type_annotation_node(field(param, "type"))
    return None


def extract_imports(tree: SourceTree, origin_dir: Optional[Path] = None) -> list[ImportSpec]:
    """Collect import declarations as ImportSpecs (side-effect-only imports are skipped)."""
    specs: list[ImportSpec] = []
    for stmt in tree.root.named_children:
        if stmt.type != "import_statement":
            continue
        module = string_value(field(stmt, "source"), tree.source)
        if module is None:
            continue
        clause = next((c for c in stmt.named_children if c.type == "import_clause"), None)
        if clause is None:
            continue

        is_type_only = any(not c.is_named and c.type == "type" for c in stmt.children)
        spec = ImportSpec(module_specifier=module, is_type_only=is_type_only, origin_dir=origin_dir)

        for part in named_children(clause):
            if part.type == "identifier":
                spec.default_import = tree.text(part)
            elif part.type == "namespace_import":
                ident = first_named(part)
                spec.namespace_import = tree.text(ident)
            elif part.type == "named_imports":
                for specifier in named_children(part):
                    if specifier.type != "import_specifier":
                        continue
                    name = tree.text(field(specifier, "name")).strip("'\"")
                    alias_node = field(specifier, "alias")
                    spec.named_imports.append(
                        NamedImport(name=name, alias=tree.text(alias_node) if alias_node is not None else None)
                    )
        specs.append(spec)
    return specs
