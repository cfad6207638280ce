import asyncio
import textwrap
from pathlib import Path

import pytest

from routesdk.codegen.artifacts import CLIENT_BANNER, SERVER_BANNER, write_atomic
from routesdk.codegen.formatting import format_source
from routesdk.config import GeneratorConfig
from routesdk.errors import ArtifactWriteError, ConfigError
from routesdk.orchestrator.pipeline import load_tree, render_artifacts, route_rows, run_generate


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def make_project(root: Path) -> GeneratorConfig:
    app = root / "app"
    write(
        app / "users" / "route.ts",
        """
        import { NextRequest, NextResponse } from 'next/server';
        import { z } from 'zod';
        import { audit } from '../../lib/audit';

        const postSchema = z.object({ userName: z.string() });

        export function GET() { return NextResponse.json({ data: "Hello Users GET" }); }
        export async function POST(request: NextRequest) {
            const body = await request.json();
            const parsed = postSchema.safeParse(body);
            audit(parsed);
            return NextResponse.json({ ok: parsed.success });
        }
        """,
    )
    write(
        app / "posts" / "[postId]" / "route.ts",
        """
        import { NextRequest, NextResponse } from 'next/server';

        export async function GET(request: NextRequest, { params }: { params: Promise<{ postId: string }> }) {
          return NextResponse.json({ data: `Hello Post GET: ${(await params).postId}` });
        }
        """,
    )
    return GeneratorConfig.load(root, formatter=[])


def test_generate_writes_both_artifacts(tmp_path: Path):
    config = make_project(tmp_path)
    result = asyncio.run(run_generate(config))

    assert result.client_path == tmp_path.resolve() / "api" / "client-sdk.ts"
    assert result.server_path == tmp_path.resolve() / "api" / "server-sdk.ts"

    client = result.client_path.read_text(encoding="utf-8")
    server = result.server_path.read_text(encoding="utf-8")

    assert client.startswith("'use client';\n\n" + CLIENT_BANNER + "\n")
    assert "import { useQuery, useMutation, useInfiniteQuery } from 'react-query';" in client
    assert 'import { tryCatchFunction } from "../utils/tryCatch.ts";' in client
    assert "export const API = {" in client
    assert "POSTID: (postId: string) => ({" in client

    assert server.startswith(SERVER_BANNER + "\n")
    assert 'import { headers as nextHeaders } from "next/headers";' in server
    assert 'import { redirect } from "next/navigation";' in server
    # the replayed POST body keeps the schema and the helper, so their imports follow
    assert "import { z } from 'zod';" in server
    assert "import { audit } from '../lib/audit';" in server

    # the client never references zod or the helper
    assert "from 'zod'" not in client
    assert "audit" not in client


def test_generation_is_deterministic(tmp_path: Path):
    config = make_project(tmp_path)
    asyncio.run(run_generate(config))
    first = (config.client_path.read_bytes(), config.server_path.read_bytes())
    asyncio.run(run_generate(config))
    second = (config.client_path.read_bytes(), config.server_path.read_bytes())
    assert first == second


def test_artifacts_render_from_one_snapshot(tmp_path: Path):
    config = make_project(tmp_path)
    tree = asyncio.run(load_tree(config))
    client, server = asyncio.run(render_artifacts(tree, config))
    assert client.path == config.client_path
    assert server.path == config.server_path
    assert not config.client_path.exists()


def test_route_rows_list_every_handler(tmp_path: Path):
    config = make_project(tmp_path)
    tree = asyncio.run(load_tree(config))
    rows = [(r.method, r.path, r.input_type, r.marker) for r in route_rows(tree)]
    assert rows == [
        ("GET", "/posts/[postId]", "void", "plain"),
        ("GET", "/users", "void", "plain"),
        ("POST", "/users", "{ userName: string }", "plain"),
    ]


def test_missing_app_dir_is_a_config_error(tmp_path: Path):
    config = GeneratorConfig.load(tmp_path, formatter=[])
    with pytest.raises(ConfigError):
        asyncio.run(load_tree(config))


def test_write_atomic_replaces_file(tmp_path: Path):
    target = tmp_path / "out" / "client-sdk.ts"
    write_atomic(target, "one")
    write_atomic(target, "two")
    assert target.read_text(encoding="utf-8") == "two"
    assert [p.name for p in target.parent.iterdir()] == ["client-sdk.ts"]


def test_write_atomic_reports_unwritable_destination(tmp_path: Path):
    blocker = tmp_path / "out"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(ArtifactWriteError):
        write_atomic(blocker / "client-sdk.ts", "x")


def test_formatter_failure_keeps_unformatted_text(tmp_path: Path):
    text = "export const API = {};\n"
    missing = [str(tmp_path / "no-such-prettier")]
    assert asyncio.run(format_source(text, tmp_path / "client-sdk.ts", missing)) == text
    assert asyncio.run(format_source(text, tmp_path / "client-sdk.ts", [])) == text
