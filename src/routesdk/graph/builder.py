from __future__ import annotations

import asyncio
from pathlib import Path

from routesdk.config import GeneratorConfig
from routesdk.domain.models import AnalysisResult
from routesdk.errors import RouteParseError
from routesdk.extractors.nextjs.analyzer import analyze_file
from routesdk.graph.model import RouteNode, add_child, merge_nodes
from routesdk.observability.logging import get_logger
from routesdk.repo.scanner import child_directories
from routesdk.routing.segments import classify

logger = get_logger(__name__)


async def _analyze_route_file(route_file: Path) -> AnalysisResult:
    if not route_file.is_file():
        return AnalysisResult()
    try:
        return await asyncio.to_thread(analyze_file, route_file)
    except RouteParseError as e:
        logger.warning("[PARSE] Skipping %s", e)
        return AnalysisResult()


async def build_route_tree(directory: Path, config: GeneratorConfig) -> RouteNode:
    """
    Build the route tree rooted at `directory`.

    Children are built concurrently but combined in sorted directory-name
    order, so the result never depends on which task finishes first. Route
    groups and `api` collectors are folded into this node instead of nesting.
    """
    subdirs = child_directories(directory)
    analysis, *subtrees = await asyncio.gather(
        _analyze_route_file(directory / config.route_file_name),
        *(build_route_tree(d, config) for d in subdirs),
    )

    node = RouteNode(
        segment=directory.name,
        methods=analysis.methods,
        imports=analysis.imports,
        directory=directory,
    )
    for subdir, subtree in zip(subdirs, subtrees):
        seg = classify(subdir.name)
        if seg.is_transparent:
            node = merge_nodes(node, subtree)
        else:
            node = add_child(node, seg.key, subtree)

    if analysis.methods:
        logger.debug("[PARSE] %s: %s", directory, ", ".join(m.name for m in analysis.methods))
    return node
