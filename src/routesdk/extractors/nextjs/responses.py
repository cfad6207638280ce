"""Call shapes of the framework's response capabilities, recognized by name only."""

from __future__ import annotations

from typing import Optional

from tree_sitter import Node

from routesdk.extractors.nextjs.syntax import field, named_children, node_text, string_value, unwrap_parens

RESPONSE_CONSTRUCTORS = frozenset({"NextResponse", "Response", "NextApiResponse"})
JSON_HELPERS = frozenset({"NextResponse.json", "Response.json"})
REDIRECT_CALLS = frozenset({"NextResponse.redirect", "Response.redirect"})
RESPONSE_WRAPPER_TYPES = frozenset({"NextResponse", "Response", "NextApiResponse"})
SERIALIZE_CALL = "JSON.stringify"


def response_status(init: Optional[Node], source: bytes) -> Optional[int]:
    """Numeric `status` of a response init object (`{ status: 400 }`), if literal."""
    init = unwrap_parens(init)
    if init is None or init.type != "object":
        return None
    for member in named_children(init):
        if member.type != "pair":
            continue
        key = field(member, "key")
        name = string_value(key, source) or node_text(key, source)
        if name != "status":
            continue
        value = unwrap_parens(field(member, "value"))
        if value is not None and value.type == "number":
            try:
                return int(node_text(value, source))
            except ValueError:
                return None
    return None


def is_success_status(status: Optional[int]) -> bool:
    return status is None or 200 <= status < 300
