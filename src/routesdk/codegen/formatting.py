from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

from routesdk.observability.logging import get_logger

logger = get_logger(__name__)

FORMAT_TIMEOUT_S = 30.0


async def format_source(text: str, file_path: Path, command: Sequence[str], timeout: float = FORMAT_TIMEOUT_S) -> str:
    """
    Pipe `text` through an external pretty-printer (`prettier --stdin-filepath <file>`).

    Any failure keeps the unformatted text; formatting never fails a run.
    """
    if not command:
        return text

    argv = [*command, "--stdin-filepath", str(file_path)]
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.warning("[PRETTIER] Could not format %s: %s", file_path.name, e)
        return text

    try:
        out, err = await asyncio.wait_for(proc.communicate(text.encode("utf-8")), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("[PRETTIER] Timed out formatting %s after %.0fs", file_path.name, timeout)
        return text

    if proc.returncode != 0:
        detail = err.decode("utf-8", errors="replace").strip().splitlines()
        logger.warning("[PRETTIER] Could not format %s: %s", file_path.name, detail[0] if detail else proc.returncode)
        return text
    return out.decode("utf-8")
