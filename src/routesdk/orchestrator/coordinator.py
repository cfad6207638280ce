from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from watchfiles import Change, DefaultFilter, awatch

from routesdk.config import GeneratorConfig
from routesdk.errors import ArtifactWriteError, TreeNavigationError
from routesdk.graph.builder import build_route_tree
from routesdk.graph.model import RouteNode, replace_at
from routesdk.observability.logging import get_logger
from routesdk.orchestrator.pipeline import load_tree, regenerate
from routesdk.repo.scanner import is_route_file
from routesdk.routing.segments import classify, visible_segments

logger = get_logger(__name__)


class RouteFileFilter(DefaultFilter):
    """Only route files under the app directory (ignored folders excluded)."""

    def __init__(self, app_dir: Path, route_file_name: str) -> None:
        super().__init__()
        self.app_dir = app_dir
        self.route_file_name = route_file_name

    def __call__(self, change: Change, path: str) -> bool:
        return super().__call__(change, path) and is_route_file(Path(path), self.app_dir, self.route_file_name)


@dataclass(frozen=True)
class UpdateTarget:
    """The directory to re-analyze and its key path in the live tree (empty = root)."""

    directory: Path
    keys: tuple[str, ...]


class IncrementalCoordinator:
    """
    Owns the live route tree across file notifications.

    Notifications are applied one at a time, in arrival order: each one
    re-analyzes the smallest affected subtree, swaps it in by key path
    (producing a new tree version) and regenerates both artifacts.
    """

    def __init__(self, config: GeneratorConfig, tree: Optional[RouteNode] = None) -> None:
        self.config = config
        self.tree = tree
        self.version = 0
        self._lock = asyncio.Lock()

    async def initialize(self) -> RouteNode:
        async with self._lock:
            self.tree = await load_tree(self.config)
            self.version += 1
            await self._regenerate()
        return self.tree

    def locate(self, changed_file: Path) -> UpdateTarget:
        """
        The deepest non-transparent directory holding `changed_file`.

        Groups and collectors merge into their parent, so a change inside one
        re-analyzes the nearest retained ancestor instead.
        """
        app_dir = self.config.app_dir.resolve()
        directory = changed_file.resolve().parent
        while directory != app_dir and classify(directory.name).is_transparent:
            directory = directory.parent
        if directory == app_dir:
            return UpdateTarget(app_dir, ())
        rel = directory.relative_to(app_dir)
        return UpdateTarget(directory, tuple(seg.key for seg in visible_segments(rel.parts)))

    async def _apply(self, change: Change, changed_file: Path) -> RouteNode:
        target = self.locate(changed_file)
        if not target.keys or self.tree is None:
            logger.debug("[UPDATE] Change at the root; re-walking %s", self.config.app_dir)
            return await build_route_tree(self.config.app_dir.resolve(), self.config)

        if change == Change.deleted and not target.directory.is_dir():
            logger.debug("[UPDATE] Removing %s", "/".join(target.keys))
            return replace_at(self.tree, target.keys, None)

        node = await build_route_tree(target.directory, self.config)
        logger.debug("[UPDATE] Re-analyzed %s", "/".join(target.keys))
        return replace_at(self.tree, target.keys, node)

    async def _regenerate(self) -> None:
        assert self.tree is not None
        try:
            await regenerate(self.tree, self.config)
        except ArtifactWriteError as e:
            # watch mode keeps going; the next change retries the write
            logger.error("[GEN] %s", e)

    async def handle_event(self, change: Change, changed_file: Path) -> bool:
        """Apply one notification. Returns False when the update was dropped."""
        if not is_route_file(changed_file, self.config.app_dir, self.config.route_file_name):
            logger.debug("[UPDATE] Ignoring %s", changed_file)
            return False

        async with self._lock:
            start = time.perf_counter()
            logger.debug("[REGEN] Regenerating SDK due to %s on %s", change.name, changed_file)
            try:
                new_tree = await self._apply(change, changed_file)
            except TreeNavigationError as e:
                logger.warning("[UPDATE] %s; dropping update for %s", e, changed_file)
                return False

            self.tree = new_tree
            self.version += 1
            await self._regenerate()
            logger.debug("[REGEN] Regenerated SDK in %dms", (time.perf_counter() - start) * 1000)
            return True

    async def handle_changes(self, changes: Iterable[tuple[Change, str]]) -> None:
        for change, raw_path in sorted(changes, key=lambda c: (c[1], c[0].value)):
            await self.handle_event(change, Path(raw_path))

    async def watch(self, stop_event: Optional[asyncio.Event] = None) -> None:
        if self.tree is None:
            await self.initialize()
        logger.debug("[DONE] Initial SDK generation complete. Watching for route changes...")

        app_dir = self.config.app_dir.resolve()
        watch_filter = RouteFileFilter(app_dir, self.config.route_file_name)
        async for changes in awatch(app_dir, watch_filter=watch_filter, stop_event=stop_event):
            await self.handle_changes(changes)
