from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = {
    ".git",
    ".next",
    ".turbo",
    ".vercel",
    "node_modules",
    "dist",
    "build",
    "out",
    "coverage",
}


def should_ignore_dir(dir_path: Path) -> bool:
    name = dir_path.name
    # hidden directories, and `_private` folders which the router never exposes
    if name.startswith(".") or name.startswith("_"):
        return True
    return name in DEFAULT_IGNORES
