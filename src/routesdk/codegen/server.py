"""
Server-side accessors: each handler body replayed in-process.

The retained body is rewritten for replay outside a request: request
headers and cookies come from next/headers, query parameters from a
synthetic request object, the payload from the accessor's `body` option and
dynamic params from the accessor's own parameters.
"""

from __future__ import annotations

from routesdk.codegen.accessors import AccessorContext, build_object, indent, js_string
from routesdk.domain.models import HandlerDescriptor
from routesdk.extractors.nextjs.rewrite import (
    Rule,
    apply_rules,
    apply_until_stable,
    body_references,
    declares_name,
    drop_unused_request_reads,
    replace_page_variable,
    replace_payload_reads,
    replace_request_accessors,
    substitute_route_params,
)
from routesdk.graph.model import RouteNode

SEARCH_PARAMS_TYPE = "Record<string, string>"


def _wrap(params: str, body: str) -> str:
    return f"({params}) => tryCatchFunction(async () => {{\n{indent(body)}\n}})"


def synthetic_request(param_name: str, query: str) -> str:
    return (
        f"const {param_name}: any = {{ url: 'http://localhost' + ({query} ? '?' + new URLSearchParams({query}) : ''), "
        f"nextUrl: {{ searchParams: new URLSearchParams({query}) }} }};"
    )


def _common_rules(handler: HandlerDescriptor, ctx: AccessorContext) -> list[Rule]:
    rules: list[Rule] = []
    if ctx.route_params and handler.route_params_expr:
        rules.append(substitute_route_params(handler.route_params_expr, ctx.route_params))
    rules.append(replace_request_accessors(handler.param_name))
    if handler.uses_body:
        rules.append(replace_payload_reads(handler.param_name, handler.body_variable_name or "body"))
    return rules


def _options(handler: HandlerDescriptor, uses_query: bool, query: str) -> tuple[list[str], list[str]]:
    names: list[str] = []
    props: list[str] = []
    if handler.uses_body:
        alias = handler.body_variable_name
        names.append(f"body: {alias}" if alias and alias != "body" else "body")
        props.append(f"body: {handler.input_text}")
    if uses_query:
        names.append("searchParams" if query == "searchParams" else f"searchParams: {query}")
        props.append(f"searchParams?: {SEARCH_PARAMS_TYPE}")
    return names, props


def _preamble(handler: HandlerDescriptor, body: str, uses_query: bool, query: str) -> list[str]:
    refs = body_references(body)
    lines: list[str] = []
    if uses_query:
        lines.append(synthetic_request(handler.param_name, query))
    if "headersVal" in refs:
        lines.append("const headersVal = await nextHeaders();")
    if "cookiesVal" in refs:
        lines.append("const cookiesVal = await nextCookies();")
    return lines


def _query_name(body: str) -> str:
    # the body may declare its own `searchParams`, which would shadow the option
    return "__searchParams" if declares_name(body, "searchParams") else "searchParams"


def _redirect(handler: HandlerDescriptor) -> str:
    url = js_string(handler.redirect_url or "")
    return _wrap(f"_options: {{ searchParams?: {SEARCH_PARAMS_TYPE} }} = {{}}", f"redirect({url});")


def _paginated(handler: HandlerDescriptor, ctx: AccessorContext) -> str:
    pagination = handler.pagination
    page_variable = pagination.page_variable if pagination else "page"

    body = apply_rules(handler.body_text, _common_rules(handler, ctx))
    if declares_name(body, page_variable):
        body = apply_rules(body, [replace_page_variable(page_variable)])
    else:
        body = f"const {page_variable} = pageParam;\n{body}"
    body = apply_until_stable(body, drop_unused_request_reads(handler.param_name))

    query = _query_name(body)
    uses_query = handler.param_name in body_references(body)
    preamble = _preamble(handler, body, uses_query, query)

    names, props = _options(handler, True, query)
    default = "" if handler.uses_body else " = {}"
    params = f"{{ {', '.join(names)} }}: {{ {'; '.join(props)} }}{default}, pageParam: number = 1"
    return _wrap(params, "\n".join([*preamble, body]))


def _general(handler: HandlerDescriptor, ctx: AccessorContext) -> str:
    body = apply_rules(handler.body_text, _common_rules(handler, ctx))

    refs = body_references(body)
    query = _query_name(body)
    uses_query = handler.param_name in refs or "searchParams" in refs
    preamble = _preamble(handler, body, uses_query, query)

    names, props = _options(handler, uses_query, query)
    params = ""
    if props:
        default = "" if handler.uses_body else " = {}"
        params = f"{{ {', '.join(names)} }}: {{ {'; '.join(props)} }}{default}"
    return _wrap(params, "\n".join([*preamble, body]))


def build_server_member(handler: HandlerDescriptor, ctx: AccessorContext) -> str:
    if handler.is_redirect:
        return _redirect(handler)
    if handler.is_paginated:
        return _paginated(handler, ctx)
    return _general(handler, ctx)


def build_server_object(tree: RouteNode) -> str:
    return build_object(tree, build_server_member)
