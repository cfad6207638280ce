"""Browser-side accessors: react-query hooks over fetch."""

from __future__ import annotations

from routesdk.codegen.accessors import AccessorContext, build_object, js_string
from routesdk.domain.models import HandlerDescriptor
from routesdk.graph.model import RouteNode

QUERY_SUFFIX = "(searchParams ? '?' + new URLSearchParams(searchParams) : '')"
SEARCH_PARAMS_PROP = "searchParams?: Record<string, string>"


def options_signature(handler: HandlerDescriptor) -> str:
    props: list[str] = []
    names: list[str] = []
    if handler.uses_body:
        props.append(f"body: {handler.input_text}")
        names.append("body")
    props.append(SEARCH_PARAMS_PROP)
    names.append("searchParams")
    default = "" if handler.uses_body else " = {}"
    return f"({{ {', '.join(names)} }}: {{ {'; '.join(props)} }}{default})"


def _fetch(path: str, method: str | None = None, with_body: bool = False) -> str:
    url = f"{path} + {QUERY_SUFFIX}"
    if method is None:
        return f"fetch({url})"
    if with_body:
        return (
            f"fetch({url}, {{ method: '{method}', headers: {{'Content-Type':'application/json'}}, "
            f"body: JSON.stringify(body) }})"
        )
    return f"fetch({url}, {{ method: '{method}' }})"


def _redirect(handler: HandlerDescriptor, signature: str) -> str:
    url = js_string(handler.redirect_url or "")
    return (
        f"{signature}: void => {{\n"
        f"  const url = {url} + {QUERY_SUFFIX};\n"
        f"  window.location.assign(url);\n"
        f"}}"
    )


def _stream(handler: HandlerDescriptor, signature: str, path: str) -> str:
    if handler.is_get:
        request = _fetch(path)
    else:
        request = _fetch(path, handler.name, with_body=handler.uses_body)
    return (
        f"{signature} => tryCatchFunction(async () => {{\n"
        f"  const res = await {request};\n"
        f"  const reader = res.body!.getReader();\n"
        f"  const decoder = new TextDecoder();\n"
        f"  return {{ reader, decoder }};\n"
        f"}})"
    )


def _infinite(handler: HandlerDescriptor, signature: str, path: str) -> str:
    data = handler.output_text
    page_key = js_string(handler.pagination.page_query_key if handler.pagination else "page")
    request = f"fetch({path} + '?' + new URLSearchParams({{ ...searchParams, {page_key}: String(pageParam) }}))"
    return (
        f"{signature}: UseInfiniteQueryResult<{data}, unknown> =>\n"
        f"  useInfiniteQuery<{data}, unknown>(\n"
        f"    ['{handler.name}', {path}, searchParams],\n"
        f"    ({{ pageParam = 1 }}) => {request}.then(res => res.json()),\n"
        f"    {{ getNextPageParam: (lastPage: any) => lastPage?.nextPage ?? undefined }},\n"
        f"  )"
    )


def build_client_member(handler: HandlerDescriptor, ctx: AccessorContext) -> str:
    signature = options_signature(handler)
    path = ctx.path
    data = handler.output_text

    if handler.is_redirect:
        return _redirect(handler, signature)
    if handler.is_streaming:
        return _stream(handler, signature, path)

    if handler.is_get and handler.is_paginated:
        return _infinite(handler, signature, path)
    if handler.is_get and not handler.is_mutation_hint:
        return (
            f"{signature}: UseQueryResult<{data}, unknown> =>\n"
            f"  useQuery<{data}, unknown>(['{handler.name}', {path}, searchParams], () => "
            f"{_fetch(path)}.then(res => res.json()))"
        )
    if not handler.uses_body:
        return (
            f"{signature}: UseMutationResult<{data}, unknown, void> =>\n"
            f"  useMutation<{data}, unknown, void>(() => {_fetch(path, handler.name)}.then(res => res.json()))"
        )
    inp = handler.input_text
    return (
        f"{signature}: UseMutationResult<{data}, unknown, {inp}> =>\n"
        f"  useMutation<{data}, unknown, {inp}>(() => "
        f"{_fetch(path, handler.name, with_body=True)}.then(res => res.json()))"
    )


def build_client_object(tree: RouteNode) -> str:
    return build_object(tree, build_client_member)
