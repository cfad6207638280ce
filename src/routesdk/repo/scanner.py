from __future__ import annotations

import os
from pathlib import Path

from routesdk.repo.ignore import should_ignore_dir

ROUTE_FILE_NAME = "route.ts"


def find_app_dir(project_root: Path) -> Path:
    """`<root>/app`, or `<root>/src/app` when only that one exists."""
    app_dir = project_root / "app"
    src_app_dir = project_root / "src" / "app"
    if not app_dir.is_dir() and src_app_dir.is_dir():
        return src_app_dir
    return app_dir


def child_directories(directory: Path) -> list[Path]:
    """Routable subdirectories in sorted name order."""
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except (FileNotFoundError, NotADirectoryError):
        return []
    return [Path(e.path) for e in entries if e.is_dir() and not should_ignore_dir(Path(e.path))]


def scan_route_files(app_dir: Path, route_file_name: str = ROUTE_FILE_NAME) -> list[Path]:
    """
    Return every route file under app_dir (sorted).
    Ignored directories are pruned the same way the tree builder skips them.
    """
    out: list[Path] = []
    for root, dirs, files in os.walk(app_dir):
        root_p = Path(root)

        # prune ignored dirs
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))

        if route_file_name in files:
            out.append((root_p / route_file_name).resolve())
    return sorted(out)


def is_route_file(path: Path, app_dir: Path, route_file_name: str = ROUTE_FILE_NAME) -> bool:
    if path.name != route_file_name:
        return False
    try:
        rel = path.resolve().relative_to(app_dir.resolve())
    except ValueError:
        return False
    return not any(should_ignore_dir(Path(part)) for part in rel.parts[:-1])
