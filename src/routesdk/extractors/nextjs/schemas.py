"""
Type sources that do not need a type checker:

* zod builder chains (``z.object({...}).extend(...)``) translated to records,
* TypeScript annotation nodes (``{ name: string }``) translated to type expressions.
"""

from __future__ import annotations

from typing import Optional

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
    Primitive,
    Record,
    TypeExpr,
    record_of,
    union_of,
)
from routesdk.extractors.nextjs.scope import Scope
from routesdk.extractors.nextjs.syntax import (
    field,
    first_named,
    member_parts,
    named_children,
    node_text,
    string_value,
    unwrap_parens,
)

ZOD_NAMESPACES = frozenset({"z", "zod", "z.coerce", "zod.coerce"})

# generic schema annotations whose first type argument is the parsed type
_SCHEMA_ANNOTATIONS = frozenset({"ZodType", "ZodSchema", "z.ZodType", "z.ZodSchema", "Schema"})

_PRIMITIVE_BUILDERS: dict[str, TypeExpr] = {
    "string": STRING,
    "number": NUMBER,
    "bigint": Primitive("bigint"),
    "boolean": BOOLEAN,
    "date": Named("Date"),
    "null": NULL,
    "undefined": UNDEFINED,
    "any": Primitive("any"),
    "unknown": UNKNOWN,
    "void": VOID,
    "never": Primitive("never"),
}

# refinements and checks that keep the parsed type unchanged
_PASSTHROUGH = frozenset(
    {
        "min", "max", "length", "email", "url", "uuid", "cuid", "regex", "trim", "toLowerCase",
        "toUpperCase", "startsWith", "endsWith", "int", "positive", "negative", "nonnegative",
        "nonpositive", "finite", "gt", "gte", "lt", "lte", "multipleOf", "nonempty", "refine",
        "superRefine", "describe", "default", "catch", "strict", "passthrough", "strip", "brand",
        "readonly", "datetime", "ip", "emoji", "includes",
    }
)


class _Result:
    __slots__ = ("type", "optional")

    def __init__(self, type_: TypeExpr, optional: bool = False) -> None:
        self.type = type_
        self.optional = optional

    def as_type(self) -> TypeExpr:
        return union_of([self.type, UNDEFINED]) if self.optional else self.type


class ZodTranslator:
    """Translate zod schema expressions into type expressions using a name scope."""

    def __init__(self, scope: Scope) -> None:
        self.scope = scope
        self.source = scope.tree.source
        self._resolving: set[str] = set()

    def schema_type(self, node: Optional[Node]) -> Optional[TypeExpr]:
        """The parsed type of a schema expression, or None when it is not recognizable."""
        result = self._translate(node)
        return result.as_type() if result is not None else None

    def declared_schema_type(self, name: str) -> Optional[TypeExpr]:
        """The type argument of an explicit `const S: z.ZodType<T> = ...` annotation."""
        binding = self.scope.lookup(name)
        if binding is None or binding.annotation is None:
            return None
        ann = binding.annotation
        if ann.type != "generic_type":
            return None
        base = node_text(field(ann, "name"), self.source) or node_text(first_named(ann), self.source)
        if base not in _SCHEMA_ANNOTATIONS:
            return None
        args = next((c for c in ann.named_children if c.type == "type_arguments"), None)
        arg_nodes = named_children(args)
        if not arg_nodes:
            return None
        return annotation_type(arg_nodes[-1], self.source)

    # ----------------------------
    # Internals
    # ----------------------------

    def _translate(self, node: Optional[Node]) -> Optional[_Result]:
        node = unwrap_parens(node)
        if node is None:
            return None

        if node.type == "identifier":
            return self._translate_identifier(node_text(node, self.source))

        if node.type != "call_expression":
            return None
        callee = field(node, "function")
        args = named_children(field(node, "arguments"))
        parts = member_parts(callee, self.source)
        if parts is None:
            return None
        obj, method = parts
        obj_text = node_text(obj, self.source)

        if obj_text in ZOD_NAMESPACES:
            return self._base_builder(method, args)
        return self._modifier(obj, method, args)

    def _translate_identifier(self, name: str) -> Optional[_Result]:
        declared = self.declared_schema_type(name)
        if declared is not None:
            return _Result(declared)
        if name in self._resolving:
            return _Result(Named(f"z.infer<typeof {name}>"))
        binding = self.scope.lookup(name)
        if binding is None or binding.value is None or binding.kind != "variable":
            return None
        self._resolving.add(name)
        try:
            return self._translate(binding.value)
        finally:
            self._resolving.discard(name)

    def _element(self, node: Optional[Node]) -> TypeExpr:
        result = self._translate(node)
        return result.as_type() if result is not None else UNKNOWN

    def _base_builder(self, method: str, args: list[Node]) -> Optional[_Result]:
        if method in _PRIMITIVE_BUILDERS:
            return _Result(_PRIMITIVE_BUILDERS[method])
        if method == "literal" and args:
            return _Result(_literal_type(args[0], self.source))
        if method == "enum" and args:
            arr = unwrap_parens(args[0])
            if arr is not None and arr.type == "array":
                return _Result(union_of(_literal_type(e, self.source) for e in named_children(arr)))
            return _Result(Named("string"))
        if method == "nativeEnum" and args:
            return _Result(Named(node_text(args[0], self.source)))
        if method == "array" and args:
            return _Result(ArrayOf(self._element(args[0])))
        if method in ("object", "strictObject", "looseObject") and args:
            return _Result(self._object_shape(args[0]))
        if method == "record" and args:
            value = args[-1]
            return _Result(Named(f"Record<string, {self._element(value).render()}>"))
        if method in ("union", "discriminatedUnion") and args:
            options = unwrap_parens(args[-1])
            if options is not None and options.type == "array":
                return _Result(union_of(self._element(o) for o in named_children(options)))
            return None
        if method == "tuple" and args:
            items = unwrap_parens(args[0])
            if items is not None and items.type == "array":
                inner = ", ".join(self._element(i).render() for i in named_children(items))
                return _Result(Named(f"[{inner}]"))
            return None
        if method == "optional" and args:
            return _Result(self._element(args[0]), optional=True)
        if method == "nullable" and args:
            return _Result(union_of([self._element(args[0]), NULL]))
        return None

    def _object_shape(self, node: Node) -> TypeExpr:
        node = unwrap_parens(node)
        if node is None or node.type != "object":
            return UNKNOWN
        fields: list[Field] = []
        for member in named_children(node):
            if member.type == "pair":
                key = field(member, "key")
                name = string_value(key, self.source) or node_text(key, self.source)
                result = self._translate(field(member, "value"))
            elif member.type == "shorthand_property_identifier":
                name = node_text(member, self.source)
                result = self._translate_identifier(name)
            else:
                continue
            if result is None:
                fields.append(Field(name, UNKNOWN))
            else:
                fields.append(Field(name, result.type, optional=result.optional))
        return Record(tuple(fields))

    def _modifier(self, obj: Node, method: str, args: list[Node]) -> Optional[_Result]:
        inner = self._translate(obj)
        if inner is None:
            return None
        if method in _PASSTHROUGH:
            return inner
        if method == "optional":
            return _Result(inner.type, optional=True)
        if method == "nullable":
            return _Result(union_of([inner.type, NULL]), inner.optional)
        if method == "nullish":
            return _Result(union_of([inner.type, NULL]), optional=True)
        if method == "array":
            return _Result(ArrayOf(inner.as_type()))
        if method == "or" and args:
            return _Result(union_of([inner.as_type(), self._element(args[0])]))
        if method in ("extend", "merge", "partial", "required", "pick", "omit", "deepPartial"):
            if not isinstance(inner.type, Record):
                return _Result(UNKNOWN)
            return _Result(self._reshape(inner.type, method, args))
        if method in ("transform", "pipe", "preprocess"):
            return _Result(UNKNOWN)
        return None

    def _reshape(self, record: Record, method: str, args: list[Node]) -> TypeExpr:
        if method == "extend" and args:
            extra = self._object_shape(args[0])
            extra_fields = extra.fields if isinstance(extra, Record) else ()
            return record_of([*record.fields, *extra_fields])
        if method == "merge" and args:
            other = self._element(args[0])
            other_fields = other.fields if isinstance(other, Record) else ()
            return record_of([*record.fields, *other_fields])
        if method in ("partial", "deepPartial"):
            return Record(tuple(Field(f.name, f.type, optional=True) for f in record.fields))
        if method == "required":
            return Record(tuple(Field(f.name, f.type) for f in record.fields))
        if method in ("pick", "omit") and args:
            keys = _mask_keys(args[0], self.source)
            keep = (lambda n: n in keys) if method == "pick" else (lambda n: n not in keys)
            return Record(tuple(f for f in record.fields if keep(f.name)))
        return record


def _mask_keys(node: Node, source: bytes) -> set[str]:
    node = unwrap_parens(node)
    keys: set[str] = set()
    if node is None or node.type != "object":
        return keys
    for member in named_children(node):
        if member.type == "pair":
            key = field(member, "key")
            keys.add(string_value(key, source) or node_text(key, source))
        elif member.type == "shorthand_property_identifier":
            keys.add(node_text(member, source))
    return keys


def _literal_type(node: Node, source: bytes) -> TypeExpr:
    node = unwrap_parens(node)
    if node is None:
        return UNKNOWN
    if node.type == "string":
        value = string_value(node, source) or ""
        return Named("'" + value.replace("'", "\\'") + "'")
    if node.type in ("number", "true", "false", "null"):
        return Named(node_text(node, source))
    return UNKNOWN


def annotation_type(node: Optional[Node], source: bytes) -> TypeExpr:
    """Translate a TypeScript type node into a type expression."""
    if node is None:
        return UNKNOWN
    if node.type == "type_annotation":
        return annotation_type(first_named(node), source)
    text = node_text(node, source).strip()

    if node.type == "predefined_type":
        if text == "unknown":
            return UNKNOWN
        if text == "void":
            return VOID
        return Primitive(text)
    if node.type == "parenthesized_type":
        return annotation_type(first_named(node), source)
    if node.type == "array_type":
        return ArrayOf(annotation_type(first_named(node), source))
    if node.type == "union_type":
        return union_of(annotation_type(c, source) for c in named_children(node))
    if node.type == "object_type":
        fields: list[Field] = []
        for member in named_children(node):
            if member.type != "property_signature":
                continue
            name = node_text(field(member, "name"), source).strip("'\"")
            optional = any(not c.is_named and c.type == "?" for c in member.children)
            fields.append(Field(name, annotation_type(field(member, "type"), source), optional=optional))
        return Record(tuple(fields))
    if node.type == "literal_type":
        inner = first_named(node)
        if inner is not None and inner.type == "null":
            return NULL
        if inner is not None and inner.type == "undefined":
            return UNDEFINED
        return Named(text)
    if node.type == "generic_type":
        base = node_text(field(node, "name") or first_named(node), source)
        if base == "Array":
            args = next((c for c in node.named_children if c.type == "type_arguments"), None)
            arg_nodes = named_children(args)
            if len(arg_nodes) == 1:
                return ArrayOf(annotation_type(arg_nodes[0], source))
    return Named(text) if text else UNKNOWN


def unwrap_generic(text: str, wrapper: str) -> Optional[str]:
    """`Promise<X>` -> `X` for the given wrapper name; None when it does not match."""
    text = text.strip()
    prefix = wrapper + "<"
    if text.startswith(prefix) and text.endswith(">"):
        return text[len(prefix) : -1].strip()
    return None
