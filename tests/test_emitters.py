import textwrap

from routesdk.codegen.accessors import AccessorContext, build_object, indent, property_key
from routesdk.codegen.client import build_client_member, build_client_object, options_signature
from routesdk.codegen.server import build_server_member, build_server_object
from routesdk.domain.models import HandlerDescriptor
from routesdk.extractors.nextjs.analyzer import analyze_source
from routesdk.graph.model import RouteNode


def handler(s: str, name: str) -> HandlerDescriptor:
    result = analyze_source(textwrap.dedent(s))
    found = next(m for m in result.methods if m.name == name)
    return found


def ctx(*segments: str) -> AccessorContext:
    out = AccessorContext()
    for seg in segments:
        out = out.descend(seg)
    return out


USERS = """
import { NextRequest, NextResponse } from 'next/server';
import { z } from 'zod';

const postSchema = z.object({ userName: z.string() });

export function GET() { return NextResponse.json({ data: "Hello Users GET" }); }
export async function POST(request: NextRequest) {
    const body = await request.json();
    const parsed = postSchema.safeParse(body);
    if (!parsed.success) {
        return NextResponse.json({ error: parsed.error.errors }, { status: 400 });
    }
    return NextResponse.json({ data: `Hello Users POST: ${parsed.data.userName}` });
}
"""

REDIRECT = """
import { NextResponse } from 'next/server';

export async function GET() {
  // Redirect to a specific URL
  return NextResponse.redirect('https://example.com');
}
"""

INFINITE = """
import { NextRequest, NextResponse } from 'next/server';

const ALL_POSTS = Array.from({ length: 50 }, (_, i) => ({
    id: i + 1,
    title: `Post ${i + 1}`,
}));

const PAGE_SIZE = 10;

export async function GET(req: NextRequest) {
    'use infinite';

    const { searchParams } = req.nextUrl;
    const page = parseInt(searchParams.get('pagination') || '1', 10);

    const start = (page - 1) * PAGE_SIZE;
    const end = start + PAGE_SIZE;
    const items = ALL_POSTS.slice(start, end);

    const hasNextPage = end < ALL_POSTS.length;
    const nextPage = hasNextPage ? page + 1 : null;

    return NextResponse.json({
        items,
        nextPage,
    });
}
"""

STREAM = """
import { NextResponse } from 'next/server';

export async function GET() {
  const encoder = new TextEncoder();
  const stream = new ReadableStream({
    async start(controller) {
      controller.enqueue(encoder.encode('hi'));
      controller.close();
    },
  });
  return new NextResponse(stream);
}
"""

POST_ID = """
import { NextRequest, NextResponse } from 'next/server';

export async function GET(request: NextRequest, { params }: { params: Promise<{ postId: string }> }) {
  const { postId } = await params;
  return NextResponse.json({ data: `Hello Post GET: ${postId}` });
}
"""


# ----------------------------
# Client
# ----------------------------


def test_options_signature_only_takes_body_when_payload_is_used():
    get = handler(USERS, "GET")
    post = handler(USERS, "POST")
    assert options_signature(get) == "({ searchParams }: { searchParams?: Record<string, string> } = {})"
    assert (
        options_signature(post)
        == "({ body, searchParams }: { body: { userName: string }; searchParams?: Record<string, string> })"
    )


def test_plain_get_becomes_query_hook():
    member = build_client_member(handler(USERS, "GET"), ctx("users"))
    assert ": UseQueryResult<{ data: string }, unknown> =>" in member
    assert "useQuery<{ data: string }, unknown>(['GET', `/users`, searchParams]" in member
    assert "fetch(`/users` + (searchParams ? '?' + new URLSearchParams(searchParams) : ''))" in member


def test_post_with_schema_becomes_typed_mutation():
    member = build_client_member(handler(USERS, "POST"), ctx("users"))
    assert "UseMutationResult<{ data: string }, unknown, { userName: string }>" in member
    assert "method: 'POST'" in member
    assert "body: JSON.stringify(body)" in member


def test_redirect_client_navigates_without_fetch():
    member = build_client_member(handler(REDIRECT, "GET"), ctx("redirect"))
    assert "fetch(" not in member
    assert "const url = 'https://example.com' + (searchParams ? '?' + new URLSearchParams(searchParams) : '');" in member
    assert "window.location.assign(url);" in member


def test_streaming_client_returns_reader_and_decoder():
    member = build_client_member(handler(STREAM, "GET"), ctx("stream"))
    assert "const reader = res.body!.getReader();" in member
    assert "const decoder = new TextDecoder();" in member
    assert "return { reader, decoder };" in member
    assert "useQuery" not in member


def test_paginated_client_uses_infinite_query():
    member = build_client_member(handler(INFINITE, "GET"), ctx("infinite"))
    assert "useInfiniteQuery<{ items: { id: number; title: string }[]; nextPage: number | null }, unknown>(" in member
    assert "{ ...searchParams, 'pagination': String(pageParam) }" in member
    assert "getNextPageParam: (lastPage: any) => lastPage?.nextPage ?? undefined" in member


def test_mutation_marker_turns_get_into_mutation():
    get = handler(
        """
        export async function GET() {
          'use mutation';
          return Response.json({ ok: true });
        }
        """,
        "GET",
    )
    member = build_client_member(get, ctx("ping"))
    assert "useMutation<{ ok: boolean }, unknown, void>" in member
    assert "method: 'GET'" in member


# ----------------------------
# Server
# ----------------------------


def test_redirect_server_calls_framework_redirect():
    member = build_server_member(handler(REDIRECT, "GET"), ctx("redirect"))
    assert member == (
        "(_options: { searchParams?: Record<string, string> } = {}) => tryCatchFunction(async () => {\n"
        "  redirect('https://example.com');\n"
        "})"
    )


def test_server_reads_payload_from_body_option():
    member = build_server_member(handler(USERS, "POST"), ctx("users"))
    assert member.startswith("({ body }: { body: { userName: string } }) => tryCatchFunction(async () => {")
    assert "request.json()" not in member
    assert "const postSchema = z.object({ userName: z.string() });" in member
    assert "const parsed = postSchema.safeParse(body);" in member
    assert "throw new Error(JSON.stringify(__body))" in member


def test_server_substitutes_route_params():
    member = build_server_member(handler(POST_ID, "GET"), ctx("posts", "[postId]"))
    assert member.startswith("() => tryCatchFunction(async () => {")
    assert "await params" not in member
    assert "return { data: `Hello Post GET: ${postId}` };" in member


def test_server_paginated_replay():
    member = build_server_member(handler(INFINITE, "GET"), ctx("infinite"))
    assert member.startswith(
        "({ searchParams }: { searchParams?: Record<string, string> } = {}, pageParam: number = 1) => "
        "tryCatchFunction(async () => {"
    )
    assert "const page = pageParam;" in member
    assert "req.nextUrl" not in member
    assert "const PAGE_SIZE = 10;" in member
    assert "const items = ALL_POSTS.slice(start, end);" in member


def test_server_request_accessors_use_next_headers():
    get = handler(
        """
        import { NextRequest, NextResponse } from 'next/server';

        export function GET(request: NextRequest) {
            const val = request.cookies.get("x-custom") || null;
            const agent = request.headers.get("user-agent");
            return NextResponse.json({ data: val, agent });
        }
        """,
        "GET",
    )
    member = build_server_member(get, ctx("cookies"))
    assert member.startswith("() => tryCatchFunction(async () => {")
    assert "const headersVal = await nextHeaders();" in member
    assert "const cookiesVal = await nextCookies();" in member
    assert 'cookiesVal.get("x-custom")' in member
    assert "request." not in member


def test_server_query_reads_get_a_synthetic_request():
    get = handler(
        """
        import { NextRequest, NextResponse } from 'next/server';

        export async function GET(request: NextRequest) {
            const searchParams = request.nextUrl.searchParams;
            const formId = searchParams.get('formId');
            return NextResponse.json({ formId });
        }
        """,
        "GET",
    )
    member = build_server_member(get, ctx("form"))
    assert member.startswith(
        "({ searchParams: __searchParams }: { searchParams?: Record<string, string> } = {}) => "
    )
    assert "const request: any = { url: 'http://localhost' + (__searchParams ? " in member
    assert "nextUrl: { searchParams: new URLSearchParams(__searchParams) }" in member


# ----------------------------
# Accessor object
# ----------------------------


def test_property_keys_and_indent():
    assert property_key("users") == "USERS"
    assert property_key("my-route") == "'MY-ROUTE'"
    assert indent("a\n\nb") == "  a\n\n  b"


def test_accessor_object_nests_children():
    users = RouteNode(segment="users", methods=(handler(USERS, "GET"),))
    post = RouteNode(segment="[postId]", methods=(handler(POST_ID, "GET"),))
    slug = RouteNode(segment="[...slug]", methods=(handler(REDIRECT, "GET"),))
    tree = (
        RouteNode(segment="app")
        .with_child("blog", RouteNode(segment="blog").with_child("slug", slug))
        .with_child("posts", RouteNode(segment="posts").with_child("postId", post))
        .with_child("users", users)
    )

    client = build_client_object(tree)
    assert client.startswith("{\n  BLOG: {\n    SLUG: (slug: string[]) => ({\n      GET: ")
    assert "  POSTS: {\n    POSTID: (postId: string) => ({\n      GET: " in client
    assert "['GET', `/posts/${postId}`, searchParams]" in client
    assert "  USERS: {\n    GET: " in client
    assert client.endswith("\n  },\n}")

    server = build_server_object(tree)
    assert "POSTID: (postId: string) => ({" in server
    assert "return { data: `Hello Post GET: ${postId}` };" in server


def test_empty_tree_renders_empty_object():
    assert build_object(RouteNode(segment="app"), build_client_member) == "{}"
