"""
Rewrite-rule engine for handler bodies.

A body is parsed as a fragment wrapped in a synthetic function, and each rule
maps matching nodes to replacement text built from the rendered children.
Rules run one at a time and the fragment is re-parsed between them, so every
rule sees a syntax tree of the previous rule's output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from tree_sitter import Node

from routesdk.extractors.nextjs.inference import is_payload_read
from routesdk.extractors.nextjs.responses import (
    JSON_HELPERS,
    RESPONSE_CONSTRUCTORS,
    SERIALIZE_CALL,
    is_success_status,
    response_status,
)
from routesdk.extractors.nextjs.syntax import (
    SourceTree,
    call_parts,
    declared_names,
    field,
    first_named,
    named_children,
    node_text,
    parse,
    render,
    string_value,
    unwrap_await,
    unwrap_parens,
    walk,
)
from routesdk.observability.logging import get_logger

logger = get_logger(__name__)

Transform = Callable[[Node, Callable[[Node], str]], Optional[str]]

_WRAPPER_OPEN = "async function __handler__() {\n"
_WRAPPER_CLOSE = "\n}\n"

MARKERS = {
    "use infinite": "paginated",
    "use pagination": "paginated",
    "use stream": "streaming",
    "use streaming": "streaming",
    "use mutation": "mutation",
}

REFERENCE_NODE_TYPES = frozenset({"identifier", "type_identifier", "shorthand_property_identifier"})
_DECLARATION_TYPES = frozenset(
    {
        "lexical_declaration",
        "variable_declaration",
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "abstract_class_declaration",
        "type_alias_declaration",
        "interface_declaration",
        "enum_declaration",
    }
)


@dataclass(frozen=True)
class Fragment:
    """A handler body parsed inside a synthetic function wrapper."""

    tree: SourceTree
    block: Node

    @classmethod
    def parse(cls, body_text: str) -> "Fragment":
        tree = parse(_WRAPPER_OPEN + body_text + _WRAPPER_CLOSE)
        function = first_named(tree.root)
        block = field(function, "body")
        if block is None:
            raise ValueError("fragment wrapper did not parse as a function")
        return cls(tree=tree, block=block)

    @property
    def source(self) -> bytes:
        return self.tree.source

    def text(self, node: Optional[Node]) -> str:
        return self.tree.text(node)

    def statements(self) -> list[Node]:
        return named_children(self.block)

    def render(self, transform: Transform) -> str:
        rendered = render(self.block, self.source, transform)
        return _tidy(rendered[1:-1])


Rule = Callable[[Fragment], Transform]


def _tidy(text: str) -> str:
    lines = text.strip("\n").split("\n")
    out: list[str] = []
    for line in lines:
        if not line.strip() and out and not out[-1].strip():
            continue
        out.append(line.rstrip())
    return "\n".join(out).strip()


def apply_rules(body_text: str, rules: Sequence[Rule]) -> str:
    for rule in rules:
        fragment = Fragment.parse(body_text)
        if fragment.tree.has_error:
            logger.debug("Body fragment has syntax errors; applying %s anyway", getattr(rule, "__name__", rule))
        body_text = fragment.render(rule(fragment))
    return body_text


def references(node: Node, source: bytes) -> set[str]:
    """Identifier-like names referenced anywhere under `node`."""
    return {node_text(n, source) for n in walk(node) if n.type in REFERENCE_NODE_TYPES}


def body_references(body_text: str) -> set[str]:
    fragment = Fragment.parse(body_text)
    return references(fragment.block, fragment.source)


# ============================================================
# Extraction rules (applied once, during analysis)
# ============================================================


def unwrap_serialize(fragment: Fragment) -> Transform:
    """JSON.stringify(x) -> x"""

    def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
        if node.type != "call_expression":
            return None
        parts = call_parts(node, fragment.source)
        if parts is None or parts[0] != SERIALIZE_CALL or not parts[1]:
            return None
        return render_child(parts[1][0])

    return transform


def unwrap_response(fragment: Fragment) -> Transform:
    """
    NextResponse.json(x) / new Response(x, init) -> x

    A literal non-2xx `status` in the init turns the payload into a thrown error
    so replayed handlers fail the same way a client sees the response fail.
    """

    def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
        parts = call_parts(node, fragment.source)
        if parts is None:
            return None
        callee, args = parts
        if node.type == "new_expression":
            if callee not in RESPONSE_CONSTRUCTORS:
                return None
        elif callee not in JSON_HELPERS:
            return None

        payload = render_child(args[0]) if args else "undefined"
        status = response_status(args[1], fragment.source) if len(args) > 1 else None
        if not is_success_status(status):
            return f"(() => {{ const __body = {payload}; throw new Error(JSON.stringify(__body)); }})()"
        return payload

    return transform


def strip_return_comma(fragment: Fragment) -> Transform:
    """`return a, b;` as the only statement keeps `a` only."""
    statements = fragment.statements()
    target: Optional[Node] = None
    if len(statements) == 1 and statements[0].type == "return_statement":
        value = first_named(statements[0])
        if value is not None and value.type == "sequence_expression":
            target = value

    def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
        if target is not None and node == target:
            first = first_named(node)
            while first is not None and first.type == "sequence_expression":
                first = first_named(first)
            return render_child(first) if first is not None else None
        return None

    return transform


def leading_marker(fragment: Fragment) -> Optional[str]:
    """The marker kind selected by a leading bare string statement, if any."""
    statements = fragment.statements()
    if not statements or statements[0].type != "expression_statement":
        return None
    value = string_value(first_named(statements[0]), fragment.source)
    return MARKERS.get(value.strip()) if value is not None else None


def strip_marker(fragment: Fragment) -> Transform:
    statements = fragment.statements()
    target = statements[0] if statements and leading_marker(fragment) is not None else None

    def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
        return "" if target is not None and node == target else None

    return transform


EXTRACTION_RULES: tuple[Rule, ...] = (unwrap_serialize, unwrap_response, strip_return_comma, strip_marker)


# ============================================================
# Free declarations
# ============================================================


def statement_names(stmt: Node, source: bytes) -> list[str]:
    """Names a top-level statement declares (export wrappers looked through)."""
    if stmt.type == "export_statement":
        decl = field(stmt, "declaration")
        return statement_names(decl, source) if decl is not None else []
    if stmt.type in ("lexical_declaration", "variable_declaration"):
        names: list[str] = []
        for declarator in named_children(stmt):
            if declarator.type == "variable_declarator":
                names.extend(declared_names(field(declarator, "name"), source))
        return names
    if stmt.type in _DECLARATION_TYPES:
        name = node_text(field(stmt, "name"), source)
        return [name] if name else []
    return []


def declaration_text(stmt: Node, source: bytes) -> str:
    if stmt.type == "export_statement":
        decl = field(stmt, "declaration")
        if decl is not None:
            return node_text(decl, source)
    return node_text(stmt, source)


def free_declarations(module: SourceTree, body_text: str, excluded: Iterable[str]) -> list[str]:
    """
    Top-level declarations the body depends on, closed transitively, in source order.

    Imports, bare re-exports and declarations of any name in `excluded` (the
    verb handlers) are never included.
    """
    excluded = set(excluded)
    candidates: list[tuple[Node, list[str]]] = []
    for stmt in module.root.named_children:
        if stmt.type == "export_statement" and field(stmt, "declaration") is None:
            continue
        names = statement_names(stmt, module.source)
        if not names or any(n in excluded for n in names):
            continue
        candidates.append((stmt, names))

    # names the body declares itself shadow the module's
    fragment = Fragment.parse(body_text)
    own = {name for stmt in fragment.statements() for name in statement_names(stmt, fragment.source)}
    needed = references(fragment.block, fragment.source) - own
    chosen: set[int] = set()
    changed = True
    while changed:
        changed = False
        for i, (stmt, names) in enumerate(candidates):
            if i in chosen or not any(n in needed for n in names):
                continue
            chosen.add(i)
            needed |= references(stmt, module.source)
            changed = True

    return [declaration_text(stmt, module.source) for i, (stmt, _) in enumerate(candidates) if i in chosen]


def prepend_declarations(body_text: str, declarations: Sequence[str]) -> str:
    if not declarations:
        return body_text
    return "\n".join([*declarations, body_text])


# ============================================================
# Replay rules (server accessors)
# ============================================================


def replace_request_accessors(param_name: str) -> Rule:
    """<req>.headers -> headersVal, <req>.cookies -> cookiesVal"""
    replacements = {f"{param_name}.headers": "headersVal", f"{param_name}.cookies": "cookiesVal"}

    def rule(fragment: Fragment) -> Transform:
        def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
            if node.type != "member_expression":
                return None
            return replacements.get(fragment.text(node))

        return transform

    return rule


def replace_payload_reads(param_name: str, body_name: str) -> Rule:
    """
    Drop `const X = await <req>.json()` and read the payload from `body_name` elsewhere.

    Destructuring straight from the payload (`const { a } = await req.json()`)
    is kept and rewritten to destructure `body_name`.
    """

    def rule(fragment: Fragment) -> Transform:
        def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
            if node.type in ("lexical_declaration", "variable_declaration"):
                declarators = [d for d in named_children(node) if d.type == "variable_declarator"]
                if declarators and all(
                    field(d, "name") is not None
                    and field(d, "name").type == "identifier"
                    and is_payload_read(field(d, "value"), fragment.source, param_name)
                    for d in declarators
                ):
                    return ""
                return None
            if node.type in ("await_expression", "call_expression", "member_expression"):
                if is_payload_read(node, fragment.source, param_name):
                    return body_name
            return None

        return transform

    return rule


def substitute_route_params(params_expr: str, names: Sequence[str]) -> Rule:
    """
    `params.x`, `(await params).x` -> `x` for the accessor's own parameters.

    `const x = params.x;` and `const { x } = await params;` disappear since the
    accessor parameter already binds `x`.
    """
    wanted = set(names)

    def _is_params(node: Optional[Node], source: bytes) -> bool:
        return node is not None and node_text(unwrap_await(node), source) == params_expr

    def rule(fragment: Fragment) -> Transform:
        source = fragment.source

        def _declaration(node: Node) -> Optional[str]:
            declarators = [d for d in named_children(node) if d.type == "variable_declarator"]
            if len(declarators) != 1:
                return None
            pattern, value = field(declarators[0], "name"), field(declarators[0], "value")
            if pattern is None or value is None:
                return None
            if pattern.type == "identifier":
                member = unwrap_parens(value)
                if (
                    member is not None
                    and member.type == "member_expression"
                    and _is_params(field(member, "object"), source)
                    and node_text(field(member, "property"), source) == node_text(pattern, source)
                    and node_text(pattern, source) in wanted
                ):
                    return ""
                return None
            if pattern.type != "object_pattern" or not _is_params(value, source):
                return None
            aliases: list[str] = []
            for child in named_children(pattern):
                if child.type == "shorthand_property_identifier_pattern" and node_text(child, source) in wanted:
                    continue
                if child.type == "pair_pattern":
                    key = node_text(field(child, "key"), source).strip("'\"")
                    target = field(child, "value")
                    if key in wanted and target is not None and target.type == "identifier":
                        aliases.append(f"const {node_text(target, source)} = {key};")
                        continue
                return None
            return "\n".join(aliases)

        def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
            if node.type in ("lexical_declaration", "variable_declaration"):
                return _declaration(node)
            if node.type == "member_expression" and _is_params(field(node, "object"), source):
                prop = node_text(field(node, "property"), source)
                if prop in wanted:
                    return prop
            return None

        return transform

    return rule


def replace_page_variable(page_variable: str, replacement: str = "pageParam") -> Rule:
    """The query-derived page declaration becomes `const <page> = pageParam;`."""

    def rule(fragment: Fragment) -> Transform:
        def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
            if node.parent is None or node.parent != fragment.block:
                return None
            if node.type not in ("lexical_declaration", "variable_declaration"):
                return None
            if statement_names(node, fragment.source) == [page_variable]:
                return f"const {page_variable} = {replacement};"
            return None

        return transform

    return rule


def drop_unused_request_reads(param_name: str) -> Rule:
    """Remove top-level declarations reading the request whose bindings nothing else uses."""

    def rule(fragment: Fragment) -> Transform:
        source = fragment.source
        statements = fragment.statements()
        doomed: set[int] = set()
        for stmt in statements:
            if stmt.type not in ("lexical_declaration", "variable_declaration"):
                continue
            if param_name not in references(stmt, source):
                continue
            names = set(statement_names(stmt, source))
            used_elsewhere = any(
                names & references(other, source) for other in statements if other != stmt and other.id not in doomed
            )
            if not used_elsewhere:
                doomed.add(stmt.id)

        def transform(node: Node, render_child: Callable[[Node], str]) -> Optional[str]:
            return "" if node.id in doomed and node.parent == fragment.block else None

        return transform

    return rule


def declares_name(body_text: str, name: str) -> bool:
    fragment = Fragment.parse(body_text)
    for node in walk(fragment.block):
        if node.type == "variable_declarator" and name in declared_names(field(node, "name"), fragment.source):
            return True
    return False


def apply_until_stable(body_text: str, rule: Rule, limit: int = 8) -> str:
    for _ in range(limit):
        rewritten = apply_rules(body_text, [rule])
        if rewritten == body_text:
            break
        body_text = rewritten
    return body_text
