from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Optional

from tree_sitter import Node

from routesdk.domain.models import (
    HTTP_METHODS,
    AnalysisResult,
    HandlerDescriptor,
    Pagination,
    PayloadMarker,
)
from routesdk.domain.types import render
from routesdk.errors import RouteParseError
from routesdk.extractors.nextjs.discovery import (
    HandlerSource,
    discover_handlers,
    extract_imports,
    function_parameters,
    parameter_pattern,
)
from routesdk.extractors.nextjs.inference import (
    ExpressionTyper,
    InputContext,
    find_payload_bindings,
    infer_input_type,
    infer_output_type,
    request_param_name,
    returned_expressions,
)
from routesdk.extractors.nextjs.responses import REDIRECT_CALLS
from routesdk.extractors.nextjs.rewrite import (
    EXTRACTION_RULES,
    Fragment,
    apply_rules,
    free_declarations,
    leading_marker,
    prepend_declarations,
)
from routesdk.extractors.nextjs.scope import Scope
from routesdk.extractors.nextjs.syntax import (
    SourceTree,
    call_parts,
    field,
    member_parts,
    named_children,
    node_text,
    parse,
    string_value,
    unwrap_await,
    unwrap_parens,
    walk,
    walk_scope,
)
from routesdk.observability.logging import get_logger

logger = get_logger(__name__)

_MARKER_KINDS = {
    "paginated": PayloadMarker.PAGINATED,
    "streaming": PayloadMarker.STREAMING,
    "mutation": PayloadMarker.MUTATION,
}


def handler_body_text(tree: SourceTree, function: Node) -> str:
    """Block content of the handler, or `return <expr>;` for expression-bodied arrows."""
    body = field(function, "body")
    if body is None:
        return ""
    if body.type == "statement_block":
        return textwrap.dedent(_expand_indent(tree.text(body)[1:-1].strip("\n"))).strip()
    return f"return {tree.text(body)};"


def _expand_indent(text: str) -> str:
    """Leading tabs become spaces so mixed indentation still shares a margin."""
    lines = []
    for line in text.split("\n"):
        rest = line.lstrip(" \t")
        lines.append(line[: len(line) - len(rest)].expandtabs(4) + rest)
    return "\n".join(lines)


def redirect_target(function: Node, source: bytes) -> Optional[str]:
    """Literal URL of a returned `NextResponse.redirect('<url>')`, if any."""
    for expr in returned_expressions(function):
        parts = call_parts(unwrap_await(expr), source)
        if parts is None:
            continue
        callee, args = parts
        if callee in REDIRECT_CALLS and args:
            url = string_value(args[0], source)
            if url is not None:
                return url
    return None


def route_params_expression(function: Node, source: bytes) -> Optional[str]:
    """How the handler reaches its dynamic params: `params` or `<ctx>.params`."""
    params = function_parameters(function)
    if len(params) < 2:
        return None
    pattern = parameter_pattern(params[1])
    if pattern is None:
        return None
    if pattern.type == "identifier":
        return f"{node_text(pattern, source)}.params"
    if pattern.type != "object_pattern":
        return None
    for child in named_children(pattern):
        if child.type == "shorthand_property_identifier_pattern" and node_text(child, source) == "params":
            return "params"
        if child.type == "pair_pattern" and node_text(field(child, "key"), source) == "params":
            value = field(child, "value")
            if value is not None and value.type == "identifier":
                return node_text(value, source)
    return None


def _query_key(value: Optional[Node], source: bytes) -> Optional[str]:
    """The string key of the first `<x>.get('<key>')` call inside an initializer."""
    if value is None:
        return None
    for node in walk(value):
        if node.type != "call_expression":
            continue
        parts = member_parts(field(node, "function"), source)
        if parts is None or parts[1] != "get":
            continue
        args = named_children(field(node, "arguments"))
        key = string_value(args[0], source) if args else None
        if key is not None:
            return key
    return None


def _page_size_source(body: Node, page_variable: str, source: bytes) -> Optional[str]:
    """`X` in `(page - 1) * X`."""
    for node in walk_scope(body):
        if node.type != "binary_expression" or node_text(field(node, "operator"), source) != "*":
            continue
        left = unwrap_parens(field(node, "left"))
        if left is None or left.type != "binary_expression":
            continue
        if node_text(field(left, "operator"), source) != "-":
            continue
        if node_text(field(left, "left"), source) != page_variable or node_text(field(left, "right"), source) != "1":
            continue
        return node_text(field(node, "right"), source)
    return None


def detect_pagination(function: Node, source: bytes) -> Pagination:
    body = field(function, "body")
    if body is None:
        return Pagination()

    candidates: list[tuple[str, str]] = []
    for node in walk_scope(body):
        if node.type != "variable_declarator":
            continue
        name = field(node, "name")
        if name is None or name.type != "identifier":
            continue
        key = _query_key(field(node, "value"), source)
        if key is not None:
            candidates.append((node_text(name, source), key))

    for variable, key in candidates:
        size = _page_size_source(body, variable, source)
        if size is not None:
            return Pagination(page_variable=variable, page_query_key=key, page_size_source=size)

    by_name = dict(candidates)
    if "page" in by_name:
        return Pagination(page_variable="page", page_query_key=by_name["page"])
    if candidates:
        variable, key = candidates[0]
        return Pagination(page_variable=variable, page_query_key=key)
    return Pagination()


def _decide_marker(marker_kind: Optional[str], redirect_url: Optional[str], output_text: str) -> PayloadMarker:
    if redirect_url is not None:
        return PayloadMarker.REDIRECT
    if marker_kind is not None:
        return _MARKER_KINDS[marker_kind]
    if output_text.startswith("ReadableStream"):
        return PayloadMarker.STREAMING
    return PayloadMarker.PLAIN


def describe_handler(tree: SourceTree, module_scope: Scope, handler: HandlerSource) -> HandlerDescriptor:
    function = handler.function
    source = tree.source

    declared_param = request_param_name(source, function)
    scope = Scope.for_function(tree, function, module_scope)
    payload = find_payload_bindings(source, function, declared_param)

    ctx = InputContext(source=source, function=function, scope=scope, param_name=declared_param, payload=payload)
    input_type = infer_input_type(ctx, handler.name)
    typer = ExpressionTyper(scope, ctx.translator)
    output_type = infer_output_type(function, handler.declared_return_type, typer)

    raw_body = handler_body_text(tree, function)
    marker_kind = leading_marker(Fragment.parse(raw_body)) if raw_body else None
    body_text = apply_rules(raw_body, EXTRACTION_RULES) if raw_body else ""
    body_text = prepend_declarations(body_text, free_declarations(tree, body_text, HTTP_METHODS))

    redirect_url = redirect_target(function, source)
    marker = _decide_marker(marker_kind, redirect_url, render(output_type))

    descriptor = HandlerDescriptor(
        name=handler.name,
        input_type=input_type,
        output_type=output_type,
        body_text=body_text,
        param_name=declared_param or "req",
        route_params_expr=route_params_expression(function, source),
        body_variable_name=payload.variables[0] if payload.variables else None,
        body_params=payload.destructured,
        marker=marker,
        redirect_url=redirect_url,
        pagination=detect_pagination(function, source) if marker is PayloadMarker.PAGINATED else None,
        declared_return_type=handler.declared_return_type,
    )
    logger.debug(
        "%s: input=%s output=%s marker=%s",
        handler.name,
        descriptor.input_text,
        descriptor.output_text,
        marker.value,
    )
    return descriptor


def analyze_source(text: str, origin_dir: Optional[Path] = None, route_file: Optional[Path] = None) -> AnalysisResult:
    """
    Analyze one route file's source text.

    Raises RouteParseError when the file does not parse; every inference
    shortfall degrades to unknown/void instead of raising.
    """
    tree = parse(text)
    if tree.has_error:
        raise RouteParseError("syntax errors in route file", route_file=route_file)

    imports = extract_imports(tree, origin_dir=origin_dir)
    module_scope = Scope.module(tree)
    methods = tuple(describe_handler(tree, module_scope, h) for h in discover_handlers(tree))
    return AnalysisResult(methods=methods, imports=tuple(imports))


def analyze_file(path: Path) -> AnalysisResult:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RouteParseError(f"could not read route file: {e}", route_file=path) from e
    return analyze_source(text, origin_dir=path.parent, route_file=path)
