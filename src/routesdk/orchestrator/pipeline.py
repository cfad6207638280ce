from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from routesdk.codegen.artifacts import Artifact, assemble_client, assemble_server, write_atomic
from routesdk.codegen.client import build_client_object
from routesdk.codegen.formatting import format_source
from routesdk.codegen.imports import aggregate
from routesdk.codegen.paths import route_path
from routesdk.codegen.server import build_server_object
from routesdk.config import GeneratorConfig
from routesdk.domain.models import ImportSpec
from routesdk.errors import ConfigError
from routesdk.graph.builder import build_route_tree
from routesdk.graph.model import RouteNode
from routesdk.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RouteRow:
    method: str
    path: str
    input_type: str
    output_type: str
    marker: str


@dataclass(frozen=True)
class GenerateResult:
    tree: RouteNode
    client_path: Path
    server_path: Path
    routes: list[RouteRow]
    elapsed_ms: int


def route_rows(tree: RouteNode) -> list[RouteRow]:
    rows: list[RouteRow] = []
    for path, node in tree.iter_nodes():
        for m in node.methods:
            rows.append(
                RouteRow(
                    method=m.name,
                    path=route_path(path),
                    input_type=m.input_text,
                    output_type=m.output_text,
                    marker=m.marker.value,
                )
            )
    return rows


async def load_tree(config: GeneratorConfig) -> RouteNode:
    if not config.app_dir.is_dir():
        raise ConfigError(f"App directory does not exist: {config.app_dir}")
    start = time.perf_counter()
    logger.debug("[PARSE] Parsing routes and processing imports...")
    tree = await build_route_tree(config.app_dir, config)
    logger.debug("[PARSE] Parsed routes in %dms", (time.perf_counter() - start) * 1000)
    return tree


async def _render(
    label: str,
    tree: RouteNode,
    specs: list[ImportSpec],
    destination: Path,
    config: GeneratorConfig,
    build: Callable[[RouteNode], str],
    assemble: Callable[[str, list[ImportSpec], str], str],
) -> Artifact:
    logger.debug("[GEN] Generating %s SDK...", label)
    body = await asyncio.to_thread(build, tree)
    text = assemble(body, specs, config.try_catch_module)
    text = await format_source(text, destination, config.formatter)
    return Artifact(path=destination, text=text)


async def render_artifacts(tree: RouteNode, config: GeneratorConfig) -> tuple[Artifact, Artifact]:
    """Both artifacts from one tree snapshot; the emitters run concurrently."""
    specs = aggregate(tree, relative_to=config.out_dir)
    client, server = await asyncio.gather(
        _render("client", tree, specs, config.client_path, config, build_client_object, assemble_client),
        _render("server", tree, specs, config.server_path, config, build_server_object, assemble_server),
    )
    return client, server


def write_artifacts(artifacts: tuple[Artifact, ...]) -> None:
    for artifact in artifacts:
        write_atomic(artifact.path, artifact.text)
        logger.debug("[GEN] Wrote %s", artifact.path)


async def regenerate(tree: RouteNode, config: GeneratorConfig) -> tuple[Artifact, Artifact]:
    start = time.perf_counter()
    artifacts = await render_artifacts(tree, config)
    await asyncio.to_thread(write_artifacts, artifacts)
    logger.debug("[DONE] SDK generation complete in %dms", (time.perf_counter() - start) * 1000)
    return artifacts


async def run_generate(config: GeneratorConfig) -> GenerateResult:
    """One-shot mode: walk, analyze, emit and write both artifacts."""
    start = time.perf_counter()
    tree = await load_tree(config)
    await regenerate(tree, config)
    return GenerateResult(
        tree=tree,
        client_path=config.client_path,
        server_path=config.server_path,
        routes=route_rows(tree),
        elapsed_ms=int((time.perf_counter() - start) * 1000),
    )
