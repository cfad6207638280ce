import asyncio
import textwrap
from pathlib import Path

import pytest

from routesdk.config import GeneratorConfig
from routesdk.errors import TreeNavigationError
from routesdk.graph.builder import build_route_tree
from routesdk.graph.model import RouteNode, merge_nodes, node_at, replace_at
from routesdk.repo.scanner import is_route_file, scan_route_files


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def make_app(root: Path) -> Path:
    app = root / "app"
    write(
        app / "users" / "route.ts",
        """
        import { NextResponse } from 'next/server';

        export function GET() { return NextResponse.json({ data: "Hello Users GET" }); }
        export async function POST(request: Request) {
          const body = await request.json();
          return NextResponse.json({ name: body.userName.trim() });
        }
        """,
    )
    write(
        app / "posts" / "[postId]" / "route.ts",
        """
        export async function GET(req: Request, { params }: { params: Promise<{ postId: string }> }) {
          return Response.json({ id: (await params).postId });
        }
        export async function PUT(req: Request, { params }: { params: Promise<{ postId: string }> }) {
          return Response.json({ id: (await params).postId });
        }
        export async function DELETE(req: Request, { params }: { params: Promise<{ postId: string }> }) {
          return Response.json({ id: (await params).postId });
        }
        """,
    )
    write(
        app / "blog" / "[...slug]" / "route.ts",
        """
        export async function GET() {
          return Response.json({ ok: true });
        }
        """,
    )
    write(
        app / "(marketing)" / "contact" / "route.ts",
        """
        export async function GET() {
          return Response.json({ email: 'hi@example.com' });
        }
        """,
    )
    write(
        app / "api" / "health" / "route.ts",
        """
        export async function GET() {
          return Response.json({ up: true });
        }
        """,
    )
    write(
        app / "_drafts" / "route.ts",
        """
        export async function GET() {
          return Response.json({ hidden: true });
        }
        """,
    )
    return app


def load(root: Path) -> tuple[GeneratorConfig, RouteNode]:
    config = GeneratorConfig.load(root, formatter=[])
    return config, asyncio.run(build_route_tree(config.app_dir, config))


def test_tree_mirrors_routable_directories(tmp_path: Path):
    make_app(tmp_path)
    _, tree = load(tmp_path)

    assert list(tree.children) == ["blog", "contact", "health", "posts", "users"]
    assert tree.methods == ()

    assert tree.children["users"].method_names == ("GET", "POST")
    post = node_at(tree, ["posts", "postId"])
    assert post is not None
    assert post.segment == "[postId]"
    assert post.method_names == ("GET", "PUT", "DELETE")

    slug = node_at(tree, ["blog", "slug"])
    assert slug is not None and slug.segment == "[...slug]"

    # groups and collectors leave no trace in the tree
    assert "(marketing)" not in tree.children
    assert "api" not in tree.children
    assert tree.children["contact"].method_names == ("GET",)


def test_private_and_hidden_directories_are_skipped(tmp_path: Path):
    app = make_app(tmp_path)
    write(app / ".cache" / "route.ts", "export async function GET() { return Response.json(1); }\n")
    _, tree = load(tmp_path)

    assert "_drafts" not in tree.children
    assert ".cache" not in tree.children
    assert not is_route_file(app / "_drafts" / "route.ts", app)
    assert is_route_file(app / "users" / "route.ts", app)

    found = scan_route_files(app)
    assert (app / "users" / "route.ts").resolve() in found
    assert (app / "_drafts" / "route.ts").resolve() not in found


def test_build_is_deterministic(tmp_path: Path):
    make_app(tmp_path)
    _, first = load(tmp_path)
    _, second = load(tmp_path)
    assert first == second


def test_flattening_is_idempotent(tmp_path: Path):
    make_app(tmp_path)
    _, tree = load(tmp_path)
    assert merge_nodes(tree, RouteNode(segment="(empty)")) == tree


def test_group_collision_keeps_first_entry(tmp_path: Path):
    app = make_app(tmp_path)
    write(
        app / "(shop)" / "users" / "route.ts",
        """
        export async function DELETE() {
          return Response.json({ gone: true });
        }
        """,
    )
    _, tree = load(tmp_path)
    # `(shop)` sorts before `users`, so its `users` entry is the one kept
    assert tree.children["users"].method_names == ("DELETE",)


def test_unparseable_route_file_contributes_no_methods(tmp_path: Path):
    app = make_app(tmp_path)
    write(app / "broken" / "route.ts", "export async function GET( {\n")
    _, tree = load(tmp_path)
    assert tree.children["broken"].methods == ()
    assert tree.children["users"].method_names == ("GET", "POST")


def test_replace_at_swaps_and_removes_subtrees():
    leaf = RouteNode(segment="[postId]")
    tree = RouteNode(segment="app").with_child("posts", RouteNode(segment="posts").with_child("postId", leaf))

    replaced = replace_at(tree, ["posts", "postId"], RouteNode(segment="[postId]", directory=Path("/x")))
    assert node_at(replaced, ["posts", "postId"]).directory == Path("/x")
    # the previous version is untouched
    assert node_at(tree, ["posts", "postId"]).directory is None

    removed = replace_at(tree, ["posts", "postId"], None)
    assert node_at(removed, ["posts"]).children == {}

    added = replace_at(tree, ["users"], RouteNode(segment="users"))
    assert list(added.children) == ["posts", "users"]


def test_replace_at_requires_ancestors():
    tree = RouteNode(segment="app")
    with pytest.raises(TreeNavigationError):
        replace_at(tree, ["ghost", "deep"], RouteNode(segment="deep"))
