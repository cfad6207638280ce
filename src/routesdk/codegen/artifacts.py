from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from routesdk.codegen.imports import dealias, filter_used, import_block
from routesdk.domain.models import ImportSpec
from routesdk.errors import ArtifactWriteError

CLIENT_BANNER = "/* Auto-generated API SDK - do not edit */"
SERVER_BANNER = "/* Auto-generated API SERVER SDK - do not edit */"

REACT_QUERY_IMPORTS = (
    "import { useQuery, useMutation, useInfiniteQuery } from 'react-query';",
    "import type { UseQueryResult, UseMutationResult, UseInfiniteQueryResult } from 'react-query';",
)
SERVER_RUNTIME_IMPORTS = (
    'import { headers as nextHeaders } from "next/headers";',
    'import { cookies as nextCookies } from "next/headers";',
    'import { redirect } from "next/navigation";',
)


@dataclass(frozen=True)
class Artifact:
    path: Path
    text: str


def artifact_imports(specs: Sequence[ImportSpec], body: str) -> list[str]:
    """Import lines for one artifact: only specs its body uses, de-aliased."""
    used = filter_used([s.model_copy(deep=True) for s in specs], [body])
    dealias(used)
    return import_block(used)


def try_catch_import(module: str) -> str:
    return f'import {{ tryCatchFunction }} from "{module}";'


def assemble_client(body: str, specs: Sequence[ImportSpec], try_catch_module: str) -> str:
    lines = [
        "'use client';",
        "",
        CLIENT_BANNER,
        *artifact_imports(specs, body),
        try_catch_import(try_catch_module),
        "",
        *REACT_QUERY_IMPORTS,
        "",
        f"export const API = {body};",
        "",
    ]
    return "\n".join(lines)


def assemble_server(body: str, specs: Sequence[ImportSpec], try_catch_module: str) -> str:
    lines = [
        SERVER_BANNER,
        "",
        *artifact_imports(specs, body),
        try_catch_import(try_catch_module),
        *SERVER_RUNTIME_IMPORTS,
        "",
        f"export const API = {body};",
        "",
    ]
    return "\n".join(lines)


def write_atomic(path: Path, text: str) -> None:
    """Replace `path` with `text` in one step; readers never see a partial file."""
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as f:
            tmp_name = f.name
            f.write(text)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ArtifactWriteError(path, str(e)) from e
