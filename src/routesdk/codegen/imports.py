from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Optional

from routesdk.domain.models import ImportSpec, NamedImport
from routesdk.extractors.nextjs.syntax import references_identifier
from routesdk.graph.model import RouteNode


def collect_imports(tree: RouteNode) -> list[ImportSpec]:
    """Every node's import specs, depth-first in child-key order."""
    out: list[ImportSpec] = []
    for _, node in tree.iter_nodes():
        out.extend(node.imports)
    return out


def rebase_specifier(specifier: str, origin_dir: Optional[Path], target_dir: Optional[Path]) -> str:
    """Re-point a relative specifier written in `origin_dir` so it resolves from `target_dir`."""
    if origin_dir is None or target_dir is None:
        return specifier
    if not (specifier.startswith("./") or specifier.startswith("../")):
        return specifier
    absolute = os.path.normpath(os.path.join(str(origin_dir), specifier))
    rel = Path(os.path.relpath(absolute, str(target_dir))).as_posix()
    return rel if rel.startswith(".") else f"./{rel}"


def _merge_into(existing: ImportSpec, imp: ImportSpec) -> None:
    if imp.default_import:
        if not existing.default_import:
            existing.default_import = imp.default_import
        elif existing.default_import != imp.default_import:
            alias = NamedImport(name="default", alias=imp.default_import)
            if alias not in existing.named_imports:
                existing.named_imports.append(alias)
    if imp.namespace_import and not existing.namespace_import:
        existing.namespace_import = imp.namespace_import
    for ni in imp.named_imports:
        if not any(e.name == ni.name and e.alias == ni.alias for e in existing.named_imports):
            existing.named_imports.append(ni.model_copy())
    if not imp.is_type_only:
        existing.is_type_only = False


def combine_imports(specs: Iterable[ImportSpec], relative_to: Optional[Path] = None) -> list[ImportSpec]:
    merged: dict[str, ImportSpec] = {}
    for imp in specs:
        key = rebase_specifier(imp.module_specifier, imp.origin_dir, relative_to)
        existing = merged.get(key)
        if existing is None:
            merged[key] = imp.model_copy(update={"module_specifier": key, "origin_dir": None}, deep=True)
        else:
            _merge_into(existing, imp)
    return list(merged.values())


def aggregate(tree: RouteNode, relative_to: Optional[Path] = None) -> list[ImportSpec]:
    """
    One ImportSpec per module specifier across the whole tree.

    Relative specifiers are rebased from each route file's directory onto
    `relative_to` (the artifact's directory) before merging.
    """
    return combine_imports(collect_imports(tree), relative_to=relative_to)


def _namespace_used(ns: str, text: str) -> bool:
    return re.search(rf"(?<![\w$]){re.escape(ns)}\.", text) is not None


def filter_used(specs: Iterable[ImportSpec], texts: Iterable[str]) -> list[ImportSpec]:
    """Drop specs none of whose local identifiers appear in the emitted texts."""
    texts = list(texts)
    out: list[ImportSpec] = []
    for spec in specs:
        names = [ni.local_name for ni in spec.named_imports]
        if spec.default_import:
            names.append(spec.default_import)
        used = any(references_identifier(text, name) for name in names for text in texts)
        if not used and spec.namespace_import:
            used = any(_namespace_used(spec.namespace_import, text) for text in texts)
        if used:
            out.append(spec)
    return out


def dealias(specs: list[ImportSpec]) -> None:
    """
    Suffix `_1`, `_2`... onto identifiers imported more than once, every
    occurrence after the first, across default, namespace and named imports.
    """
    counts: dict[str, int] = {}
    for spec in specs:
        for name in spec.local_names():
            counts[name] = counts.get(name, 0) + 1

    seen: dict[str, int] = {}

    def _next(name: str) -> Optional[str]:
        if counts.get(name, 0) < 2:
            return None
        occ = seen.get(name, 0)
        seen[name] = occ + 1
        return f"{name}_{occ}" if occ > 0 else None

    for spec in specs:
        if spec.default_import:
            renamed = _next(spec.default_import)
            if renamed:
                spec.default_import = renamed
        if spec.namespace_import:
            renamed = _next(spec.namespace_import)
            if renamed:
                spec.namespace_import = renamed
        for ni in spec.named_imports:
            renamed = _next(ni.local_name)
            if renamed:
                ni.alias = renamed


def format_import(spec: ImportSpec) -> str:
    type_only = "type " if spec.is_type_only else ""
    named = ""
    if spec.named_imports:
        named = "{ " + ", ".join(f"{n.name} as {n.alias}" if n.alias else n.name for n in spec.named_imports) + " }"

    head: list[str] = []
    if spec.default_import:
        head.append(spec.default_import)
    if spec.namespace_import:
        head.append(f"* as {spec.namespace_import}")
        line = f"import {type_only}{', '.join(head)} from '{spec.module_specifier}';"
        # a namespace import cannot share a statement with named bindings
        if named:
            line += f"\nimport {type_only}{named} from '{spec.module_specifier}';"
        return line
    if named:
        head.append(named)
    return f"import {type_only}{', '.join(head)} from '{spec.module_specifier}';"


def import_block(specs: Iterable[ImportSpec]) -> list[str]:
    return [format_import(s) for s in specs]
