from __future__ import annotations

import logging
import os
from typing import Final

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_ATTACHED: bool = False
_ROOT_LOGGER: Final[str] = "routesdk"

console = Console(stderr=True)


def _resolve_level() -> int:
    level_name = os.getenv("ROUTESDK_LOG_LEVEL", "WARNING").upper()
    return getattr(logging, level_name, logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the package root, attaching a rich handler once."""
    global _HANDLER_ATTACHED

    root = logging.getLogger(_ROOT_LOGGER)
    if not _HANDLER_ATTACHED:
        handler = RichHandler(console=console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        root.addHandler(handler)
        root.setLevel(_resolve_level())
        root.propagate = False
        _HANDLER_ATTACHED = True

    if name == _ROOT_LOGGER or name.startswith(_ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def set_debug(enabled: bool) -> None:
    """Toggle diagnostic output for every generator logger."""
    get_logger(_ROOT_LOGGER).setLevel(logging.DEBUG if enabled else _resolve_level())
