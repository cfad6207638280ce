"""
Input/output type inference for one verb handler.

Input types come from an ordered chain of independent strategies (the first
one that produces a type wins):

  1. validator call on the payload variable  (schema.parse(body))
  2. annotated helper invoked with the payload  (check(body) where check(data: T))
  3. structural usage of payload properties  (body.count * 2 -> count: number)
  4. unknown / void

Output types come from the declared return type, looking through response
wrappers at the handler's return statements and typing their payloads with a
small local expression evaluator.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import Callable, Optional

from tree_sitter import Node

from routesdk.domain.types import (
    BOOLEAN,
    NULL,
    NUMBER,
    STRING,
    UNDEFINED,
    UNKNOWN,
    VOID,
    ArrayOf,
    Field,
    Named,
    Record,
    TypeExpr,
    Unknown,
    record_of,
    union_of,
)
from routesdk.extractors.nextjs.discovery import function_parameters, parameter_pattern
from routesdk.extractors.nextjs.responses import (
    JSON_HELPERS,
    RESPONSE_CONSTRUCTORS,
    RESPONSE_WRAPPER_TYPES,
    SERIALIZE_CALL,
    is_success_status,
    response_status,
)
from routesdk.extractors.nextjs.schemas import ZodTranslator, annotation_type, unwrap_generic
from routesdk.extractors.nextjs.scope import Scope
from routesdk.extractors.nextjs.syntax import (
    FUNCTION_NODE_TYPES,
    call_parts,
    field,
    first_named,
    member_parts,
    named_children,
    node_text,
    object_pattern_keys,
    string_value,
    unwrap_await,
    unwrap_parens,
    walk_scope,
)

VALIDATOR_METHODS = frozenset({"parse", "safeParse", "parseAsync", "safeParseAsync"})

STRING_METHODS = frozenset(
    {
        "toLowerCase", "toUpperCase", "toLocaleLowerCase", "toLocaleUpperCase", "trim", "trimStart",
        "trimEnd", "split", "startsWith", "endsWith", "charAt", "charCodeAt", "codePointAt",
        "substring", "substr", "replace", "replaceAll", "padStart", "padEnd", "localeCompare",
        "match", "matchAll", "normalize", "repeat", "search",
    }
)
ARRAY_METHODS = frozenset(
    {
        "map", "filter", "forEach", "reduce", "reduceRight", "push", "pop", "shift", "unshift",
        "some", "every", "find", "findIndex", "findLast", "findLastIndex", "join", "sort",
        "reverse", "splice", "flat", "flatMap", "fill", "entries", "keys", "values",
    }
)
ARITHMETIC_OPERATORS = frozenset({"-", "*", "/", "%", "**", "<", ">", "<=", ">=", "&", "|", "^", "<<", ">>", ">>>"})
EQUALITY_OPERATORS = frozenset({"===", "!==", "==", "!="})
LOGICAL_OPERATORS = frozenset({"&&", "||"})
_CONDITION_PARENTS = frozenset({"if_statement", "while_statement", "do_statement"})


# ============================================================
# Payload variables
# ============================================================


@dataclass(frozen=True)
class PayloadBindings:
    """Locals bound from the request payload inside one handler."""

    variables: tuple[str, ...] = ()
    destructured: tuple[str, ...] = ()

    @property
    def any(self) -> bool:
        return bool(self.variables or self.destructured)


def request_param_name(tree_source: bytes, function: Node) -> Optional[str]:
    params = function_parameters(function)
    if not params:
        return None
    pattern = parameter_pattern(params[0])
    if pattern is None or pattern.type != "identifier":
        return None
    return node_text(pattern, tree_source)


def is_payload_read(node: Optional[Node], source: bytes, param_name: Optional[str]) -> bool:
    """`await req.json()` or `req.body` for the handler's request parameter."""
    if param_name is None:
        return False
    node = unwrap_await(node)
    if node is None:
        return False
    if node.type == "call_expression":
        parts = call_parts(node, source)
        return parts is not None and parts[0] in (f"{param_name}.json", f"{param_name}.body")
    if node.type == "member_expression":
        return node_text(node, source) == f"{param_name}.body"
    return False


def find_payload_bindings(source: bytes, function: Node, param_name: Optional[str]) -> PayloadBindings:
    body = field(function, "body")
    if body is None or param_name is None:
        return PayloadBindings()
    variables: list[str] = []
    destructured: list[str] = []
    declarators = [n for n in walk_scope(body) if n.type == "variable_declarator"]

    for declarator in declarators:
        pattern = field(declarator, "name")
        if pattern is None or not is_payload_read(field(declarator, "value"), source, param_name):
            continue
        if pattern.type == "identifier":
            variables.append(node_text(pattern, source))
        elif pattern.type == "object_pattern":
            destructured.extend(object_pattern_keys(pattern, source))

    # const { a, b } = body
    for declarator in declarators:
        pattern = field(declarator, "name")
        value = unwrap_parens(field(declarator, "value"))
        if pattern is None or pattern.type != "object_pattern" or value is None:
            continue
        if value.type == "identifier" and node_text(value, source) in variables:
            destructured.extend(object_pattern_keys(pattern, source))

    return PayloadBindings(tuple(dict.fromkeys(variables)), tuple(dict.fromkeys(destructured)))


# ============================================================
# Input strategies
# ============================================================

InputStrategy = Callable[["InputContext"], Optional[TypeExpr]]


@dataclass
class InputContext:
    source: bytes
    function: Node
    scope: Scope
    param_name: Optional[str]
    payload: PayloadBindings
    translator: ZodTranslator = dc_field(init=False)

    def __post_init__(self) -> None:
        self.translator = ZodTranslator(self.scope)

    def is_payload_arg(self, node: Node) -> bool:
        inner = unwrap_parens(node)
        if inner is None:
            return False
        if inner.type == "identifier" and node_text(inner, self.source) in self.payload.variables:
            return True
        return is_payload_read(inner, self.source, self.param_name)

    def calls(self) -> list[Node]:
        body = field(self.function, "body")
        return [n for n in walk_scope(body)] if body is not None else []


def from_validator_call(ctx: InputContext) -> Optional[TypeExpr]:
    """schema.parse(body) / schema.safeParse(await req.json())."""
    for node in ctx.calls():
        if node.type != "call_expression":
            continue
        parts = member_parts(field(node, "function"), ctx.source)
        if parts is None or parts[1] not in VALIDATOR_METHODS:
            continue
        args = named_children(field(node, "arguments"))
        if not args or not ctx.is_payload_arg(args[0]):
            continue
        schema = unwrap_parens(parts[0])
        if schema is not None and schema.type == "identifier":
            name = node_text(schema, ctx.source)
            declared = ctx.translator.declared_schema_type(name)
            if declared is not None:
                return declared
            translated = ctx.translator.schema_type(schema)
            return translated if translated is not None else Named(f"z.infer<typeof {name}>")
        translated = ctx.translator.schema_type(schema)
        return translated if translated is not None else UNKNOWN
    return None


def from_helper_signature(ctx: InputContext) -> Optional[TypeExpr]:
    """A local function whose first parameter is annotated, called with the payload."""
    for node in ctx.calls():
        if node.type != "call_expression":
            continue
        callee = unwrap_parens(field(node, "function"))
        if callee is None or callee.type != "identifier":
            continue
        args = named_children(field(node, "arguments"))
        if not any(ctx.is_payload_arg(a) for a in args):
            continue
        binding = ctx.scope.lookup(node_text(callee, ctx.source))
        if binding is None or binding.function is None:
            continue
        params = function_parameters(binding.function)
        if not params:
            continue
        annotation = field(params[0], "type")
        if annotation is None:
            continue
        return annotation_type(annotation, ctx.source)
    return None


@dataclass
class _Evidence:
    number: bool = False
    string: bool = False
    boolean: bool = False
    array: bool = False
    record: bool = False
    nested: dict[str, "_Evidence"] = dc_field(default_factory=dict)
    element: Optional["_Evidence"] = None

    def child(self, name: str) -> "_Evidence":
        return self.nested.setdefault(name, _Evidence())

    def resolve(self) -> TypeExpr:
        # array evidence takes precedence over everything else, boolean included
        if self.array:
            element = self.element or _Evidence()
            if self.number or element.number:
                return ArrayOf(NUMBER)
            if self.string or element.string:
                return ArrayOf(STRING)
            if element.nested:
                return ArrayOf(element.resolve())
            return ArrayOf(UNKNOWN)
        if self.nested:
            return Record(tuple(Field(k, v.resolve()) for k, v in self.nested.items()))
        if self.record:
            return Named("Record<string, unknown>")
        if self.number:
            return NUMBER
        if self.string:
            return STRING
        if self.boolean:
            return BOOLEAN
        return UNKNOWN


def _climb(node: Node) -> Node:
    """Walk up through wrappers that do not change the value."""
    while node.parent is not None and node.parent.type in (
        "parenthesized_expression",
        "non_null_expression",
        "as_expression",
        "await_expression",
    ):
        node = node.parent
    return node


def _literal_primitive(node: Optional[Node]) -> Optional[TypeExpr]:
    node = unwrap_parens(node)
    if node is None:
        return None
    if node.type in ("string", "template_string"):
        return STRING
    if node.type == "number":
        return NUMBER
    if node.type in ("true", "false"):
        return BOOLEAN
    return None


def classify_usage(value: Node, ev: _Evidence, source: bytes) -> None:
    """Record what the operations applied to `value` say about its type."""
    value = _climb(value)
    parent = value.parent
    if parent is None:
        return
    ptype = parent.type

    if ptype == "member_expression" and field(parent, "object") == value:
        prop = node_text(field(parent, "property"), source)
        outer = _climb(parent)
        is_call = outer.parent is not None and outer.parent.type == "call_expression" and field(
            outer.parent, "function"
        ) == outer
        if is_call:
            if prop in STRING_METHODS:
                ev.string = True
            elif prop in ARRAY_METHODS:
                ev.array = True
            return
        if prop == "length":
            return
        classify_usage(parent, ev.child(prop), source)
        return

    if ptype == "subscript_expression" and field(parent, "object") == value:
        index = unwrap_parens(field(parent, "index"))
        if index is not None and index.type == "number":
            ev.array = True
            if ev.element is None:
                ev.element = _Evidence()
            classify_usage(parent, ev.element, source)
            return
        key = string_value(index, source)
        if key is not None:
            classify_usage(parent, ev.child(key), source)
        else:
            ev.record = True
        return

    if ptype == "binary_expression":
        op = node_text(field(parent, "operator"), source)
        left, right = field(parent, "left"), field(parent, "right")
        other = right if left == value else left
        other_literal = _literal_primitive(other)
        if op == "+":
            if other_literal is STRING:
                ev.string = True
            else:
                ev.number = True
        elif op in ARITHMETIC_OPERATORS:
            ev.number = True
        elif op in EQUALITY_OPERATORS:
            if other_literal is STRING:
                ev.string = True
            elif other_literal is NUMBER:
                ev.number = True
            else:
                ev.boolean = True
        elif op in LOGICAL_OPERATORS:
            ev.boolean = True
        return

    if ptype == "unary_expression":
        op = node_text(field(parent, "operator"), source)
        if op == "!":
            ev.boolean = True
        elif op in ("-", "+", "~"):
            ev.number = True
        return

    if ptype == "update_expression":
        ev.number = True
        return

    if ptype == "augmented_assignment_expression" and field(parent, "left") == value:
        op = node_text(field(parent, "operator"), source)
        if op == "+=" and _literal_primitive(field(parent, "right")) is STRING:
            ev.string = True
        else:
            ev.number = True
        return

    if ptype in _CONDITION_PARENTS or (ptype == "ternary_expression" and field(parent, "condition") == value):
        ev.boolean = True
        return

    if ptype == "for_in_statement" and field(parent, "right") == value:
        ev.array = True


def _identifier_uses(body: Node, name: str, source: bytes) -> list[Node]:
    uses: list[Node] = []
    for node in walk_scope(body):
        if node.type not in ("identifier", "shorthand_property_identifier"):
            continue
        if node_text(node, source) != name:
            continue
        parent = node.parent
        if parent is not None and parent.type == "variable_declarator" and field(parent, "name") == node:
            continue
        uses.append(node)
    return uses


def from_structural_usage(ctx: InputContext) -> Optional[TypeExpr]:
    """Record of every observed payload property, typed by how it is used."""
    body = field(ctx.function, "body")
    if body is None or not ctx.payload.any:
        return None

    root = _Evidence()
    for name in ctx.payload.destructured:
        ev = root.child(name)
        for use in _identifier_uses(body, name, ctx.source):
            classify_usage(use, ev, ctx.source)

    for variable in ctx.payload.variables:
        for use in _identifier_uses(body, variable, ctx.source):
            parent = _climb(use).parent
            if parent is None:
                continue
            if parent.type in ("member_expression", "subscript_expression"):
                classify_usage(use, root, ctx.source)

    if not root.nested:
        return None
    return Record(tuple(Field(k, v.resolve()) for k, v in root.nested.items()))


INPUT_STRATEGIES: tuple[InputStrategy, ...] = (
    from_validator_call,
    from_helper_signature,
    from_structural_usage,
)


def infer_input_type(ctx: InputContext, method: str) -> TypeExpr:
    for strategy in INPUT_STRATEGIES:
        inferred = strategy(ctx)
        if inferred is not None and not isinstance(inferred, Unknown):
            return inferred
    if method == "GET" and not ctx.payload.any:
        return VOID
    return UNKNOWN


# ============================================================
# Expression typing (output payloads)
# ============================================================

_STRING_RESULT_METHODS = STRING_METHODS - {"split", "startsWith", "endsWith", "localeCompare", "match", "matchAll", "charCodeAt", "codePointAt", "search"} | {
    "toString", "toFixed", "toISOString", "toJSON", "toLocaleString", "toDateString", "join", "concat",
}
_BOOLEAN_RESULT_METHODS = frozenset({"includes", "some", "every", "startsWith", "endsWith", "has", "test", "isArray"})
_NUMBER_RESULT_METHODS = frozenset(
    {"indexOf", "lastIndexOf", "push", "unshift", "findIndex", "findLastIndex", "charCodeAt", "getTime", "localeCompare", "search"}
)
_SAME_ARRAY_METHODS = frozenset({"slice", "filter", "sort", "reverse", "concat", "toSorted", "toReversed"})
_NUMBER_FUNCTIONS = frozenset({"parseInt", "parseFloat", "Number", "Date.now", "Math.floor", "Math.ceil", "Math.round", "Math.random", "Math.max", "Math.min", "Math.abs"})
_STRING_FUNCTIONS = frozenset({"String", "JSON.stringify", "crypto.randomUUID", "encodeURIComponent", "decodeURIComponent"})


class ExpressionTyper:
    """Best-effort local typing of expressions; unknown whenever unsure."""

    def __init__(self, scope: Scope, translator: Optional[ZodTranslator] = None) -> None:
        self.scope = scope
        self.source = scope.tree.source
        self.translator = translator or ZodTranslator(scope)
        self._resolving: set[str] = set()

    def text(self, node: Optional[Node]) -> str:
        return node_text(node, self.source)

    def type_of(self, node: Optional[Node]) -> TypeExpr:
        if node is None:
            return UNKNOWN
        kind = node.type

        if kind in ("string", "template_string"):
            return STRING
        if kind == "number":
            return NUMBER
        if kind in ("true", "false"):
            return BOOLEAN
        if kind == "null":
            return NULL
        if kind == "undefined":
            return UNDEFINED
        if kind in ("parenthesized_expression", "non_null_expression", "satisfies_expression"):
            return self.type_of(first_named(node))
        if kind == "as_expression":
            parts = named_children(node)
            if len(parts) > 1:
                return annotation_type(parts[-1], self.source)
            # `x as const`
            return self.type_of(parts[0]) if parts else UNKNOWN
        if kind == "await_expression":
            inner = self.type_of(first_named(node))
            if isinstance(inner, Named):
                unwrapped = unwrap_generic(inner.text, "Promise")
                if unwrapped is not None:
                    return Named(unwrapped)
            return inner
        if kind == "identifier":
            return self._identifier(self.text(node))
        if kind == "object":
            return self._object(node)
        if kind == "array":
            elements = [self.type_of(e) for e in named_children(node) if e.type != "spread_element"]
            return ArrayOf(union_of(elements)) if elements else ArrayOf(UNKNOWN)
        if kind == "new_expression":
            return self._new(node)
        if kind == "call_expression":
            return self._call(node)
        if kind == "member_expression":
            return self._member(node)
        if kind == "subscript_expression":
            obj = self.type_of(field(node, "object"))
            if isinstance(obj, ArrayOf):
                return obj.element
            if isinstance(obj, Record):
                key = string_value(field(node, "index"), self.source)
                f = obj.field(key) if key is not None else None
                return f.type if f is not None else UNKNOWN
            return UNKNOWN
        if kind == "binary_expression":
            return self._binary(node)
        if kind == "ternary_expression":
            return union_of([self.type_of(field(node, "consequence")), self.type_of(field(node, "alternative"))])
        if kind == "unary_expression":
            op = self.text(field(node, "operator"))
            if op == "!":
                return BOOLEAN
            if op in ("-", "+", "~"):
                return NUMBER
            if op == "typeof":
                return STRING
            if op == "void":
                return UNDEFINED
            return UNKNOWN
        if kind == "update_expression":
            return NUMBER
        return UNKNOWN

    def _identifier(self, name: str) -> TypeExpr:
        if name == "undefined":
            return UNDEFINED
        binding = self.scope.lookup(name)
        if binding is None:
            return UNKNOWN
        if binding.annotation is not None:
            return annotation_type(binding.annotation, self.source)
        if binding.kind != "variable" or binding.value is None:
            return UNKNOWN
        if name in self._resolving:
            return UNKNOWN
        self._resolving.add(name)
        try:
            return self.type_of(binding.value)
        finally:
            self._resolving.discard(name)

    def _object(self, node: Node) -> TypeExpr:
        fields: list[Field] = []
        for member in named_children(node):
            if member.type == "pair":
                key = field(member, "key")
                if key is None or key.type == "computed_property_name":
                    continue
                name = string_value(key, self.source) or self.text(key)
                fields.append(Field(name, self.type_of(field(member, "value"))))
            elif member.type == "shorthand_property_identifier":
                name = self.text(member)
                fields.append(Field(name, self._identifier(name)))
            elif member.type == "spread_element":
                spread = self.type_of(first_named(member))
                if isinstance(spread, Record):
                    fields.extend(spread.fields)
        return record_of(fields)

    def _new(self, node: Node) -> TypeExpr:
        ctor = self.text(field(node, "constructor"))
        type_args = field(node, "type_arguments")
        if type_args is not None:
            return Named(ctor + self.text(type_args))
        if ctor == "ReadableStream":
            return Named("ReadableStream<any>")
        return Named(ctor) if ctor else UNKNOWN

    def _return_of(self, function: Optional[Node]) -> TypeExpr:
        if function is None:
            return UNKNOWN
        annotated = field(function, "return_type")
        if annotated is not None:
            return annotation_type(annotated, self.source)
        body = field(function, "body")
        if body is None:
            return UNKNOWN
        if body.type != "statement_block":
            return self.type_of(body)
        returns = [n for n in walk_scope(body) if n.type == "return_statement"]
        if len(returns) == 1:
            return self.type_of(first_named(returns[0]))
        return UNKNOWN

    def _call(self, node: Node) -> TypeExpr:
        callee_node = field(node, "function")
        callee = self.text(callee_node)
        args = named_children(field(node, "arguments"))

        if callee in _NUMBER_FUNCTIONS:
            return NUMBER
        if callee in _STRING_FUNCTIONS:
            return STRING
        if callee == "Boolean":
            return BOOLEAN
        if callee == "Array.from":
            if len(args) >= 2 and args[1].type in FUNCTION_NODE_TYPES:
                return ArrayOf(self._return_of(args[1]))
            return ArrayOf(UNKNOWN)

        callee_inner = unwrap_parens(callee_node)
        if callee_inner is not None and callee_inner.type == "identifier":
            binding = self.scope.lookup(callee)
            if binding is not None and binding.function is not None:
                return self._return_of(binding.function)
            return UNKNOWN

        parts = member_parts(callee_inner, self.source)
        if parts is None:
            return UNKNOWN
        obj, method = parts

        if method in ("parse", "parseAsync"):
            translated = self.translator.schema_type(obj)
            if translated is not None:
                return translated if method == "parse" else Named(f"Promise<{translated.render()}>")
        if method in _BOOLEAN_RESULT_METHODS:
            return BOOLEAN
        if method in _NUMBER_RESULT_METHODS:
            return NUMBER
        if method == "split":
            return ArrayOf(STRING)

        receiver = self.type_of(obj)
        if isinstance(receiver, ArrayOf):
            if method in _SAME_ARRAY_METHODS:
                return receiver
            if method in ("map", "flatMap") and args:
                return ArrayOf(self._return_of(args[0]) if args[0].type in FUNCTION_NODE_TYPES else UNKNOWN)
            if method in ("find", "findLast", "at", "pop", "shift"):
                return union_of([receiver.element, UNDEFINED])
            if method == "join":
                return STRING
        if method in _STRING_RESULT_METHODS:
            return STRING
        if receiver == STRING and method in ("slice", "at"):
            return STRING
        return UNKNOWN

    def _member(self, node: Node) -> TypeExpr:
        parts = member_parts(node, self.source)
        if parts is None:
            return UNKNOWN
        obj, prop = parts
        receiver = self.type_of(obj)
        if prop == "length" and (isinstance(receiver, ArrayOf) or receiver == STRING):
            return NUMBER
        if isinstance(receiver, Record):
            f = receiver.field(prop)
            if f is not None:
                return union_of([f.type, UNDEFINED]) if f.optional else f.type
        return UNKNOWN

    def _binary(self, node: Node) -> TypeExpr:
        op = self.text(field(node, "operator"))
        if op in EQUALITY_OPERATORS or op in ("<", ">", "<=", ">=", "instanceof", "in"):
            return BOOLEAN
        left = self.type_of(field(node, "left"))
        right = self.type_of(field(node, "right"))
        if op == "+":
            if left == STRING or right == STRING:
                return STRING
            if left == NUMBER or right == NUMBER:
                return NUMBER
            return UNKNOWN
        if op in ARITHMETIC_OPERATORS:
            return NUMBER
        if op == "&&":
            return right
        if op in ("||", "??"):
            return union_of([left, right])
        return UNKNOWN


# ============================================================
# Output type
# ============================================================


def _response_payload(expr: Optional[Node], typer: ExpressionTyper) -> Optional[TypeExpr]:
    """Type carried by a returned response wrapper, or None if `expr` is not one."""
    expr = unwrap_await(expr)
    parts = call_parts(expr, typer.source)
    if expr is None or parts is None:
        return None
    callee, args = parts

    if expr.type == "new_expression" and callee in RESPONSE_CONSTRUCTORS:
        if len(args) > 1 and not is_success_status(response_status(args[1], typer.source)):
            return None
        if not args:
            return UNKNOWN
        first = unwrap_parens(args[0])
        inner = call_parts(first, typer.source)
        if first is not None and first.type == "call_expression" and inner is not None and inner[0] == SERIALIZE_CALL:
            return typer.type_of(inner[1][0]) if inner[1] else UNKNOWN
        return typer.type_of(first)

    if expr.type == "call_expression" and callee in JSON_HELPERS:
        if len(args) > 1 and not is_success_status(response_status(args[1], typer.source)):
            return None
        return typer.type_of(args[0]) if args else UNKNOWN
    return None


def returned_expressions(function: Node) -> list[Node]:
    """Expressions returned by the function itself (nested functions excluded)."""
    body = field(function, "body")
    if body is None:
        return []
    if body.type != "statement_block":
        return [body]
    out: list[Node] = []
    for node in walk_scope(body):
        if node.type == "return_statement":
            value = first_named(node)
            if value is not None:
                out.append(value)
    return out


def infer_output_type(function: Node, declared: Optional[str], typer: ExpressionTyper) -> TypeExpr:
    resolved = declared.strip() if declared else None
    if resolved:
        resolved = unwrap_generic(resolved, "Promise") or resolved
        base = resolved.split("<", 1)[0].strip()
        if base not in RESPONSE_WRAPPER_TYPES:
            return Named(resolved)

    for expr in returned_expressions(function):
        payload = _response_payload(expr, typer)
        if payload is not None:
            return payload

    return Named(resolved) if resolved else UNKNOWN
