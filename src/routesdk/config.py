from __future__ import annotations

import os
import shlex
import shutil
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from routesdk.errors import ConfigError
from routesdk.repo.scanner import ROUTE_FILE_NAME, find_app_dir

ENV_PREFIX = "ROUTESDK_"

# env var suffix -> config field
_ENV_FIELDS = {
    "APP_DIR": "app_dir",
    "OUT_DIR": "out_dir",
    "CLIENT_FILE": "client_file",
    "SERVER_FILE": "server_file",
    "ROUTE_FILE": "route_file_name",
    "TRY_CATCH_MODULE": "try_catch_module",
    "FORMATTER": "formatter",
    "DEBUG": "debug",
}

_FALSEY = {"", "0", "false", "no", "off", "none"}


class GeneratorConfig(BaseModel):
    project_root: Path
    app_dir: Path
    out_dir: Path
    client_file: str = "client-sdk.ts"
    server_file: str = "server-sdk.ts"
    route_file_name: str = ROUTE_FILE_NAME
    try_catch_module: str = "../utils/tryCatch.ts"

    # command line of an external pretty-printer; empty disables formatting
    formatter: list[str] = Field(default_factory=list)
    debug: bool = False

    @field_validator("client_file", "server_file", "route_file_name")
    @classmethod
    def _bare_file_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError(f"expected a bare file name, got {v!r}")
        return v

    @property
    def client_path(self) -> Path:
        return self.out_dir / self.client_file

    @property
    def server_path(self) -> Path:
        return self.out_dir / self.server_file

    @classmethod
    def load(cls, project_root: Path, **overrides: Any) -> "GeneratorConfig":
        """
        Defaults, then ROUTESDK_* environment variables, then explicit overrides
        (None-valued overrides are ignored). Relative paths resolve against the
        project root.
        """
        root = Path(project_root).expanduser().resolve()
        values: dict[str, Any] = {"project_root": root}

        for suffix, name in _ENV_FIELDS.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw is not None:
                values[name] = _from_env(name, raw)
        values.update({k: v for k, v in overrides.items() if v is not None})

        values["app_dir"] = _resolve(root, values.get("app_dir")) or find_app_dir(root)
        values["out_dir"] = _resolve(root, values.get("out_dir")) or root / "api"
        if "formatter" not in values:
            values["formatter"] = detect_formatter(root)
        elif isinstance(values["formatter"], str):
            values["formatter"] = _split_command(values["formatter"])

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


def _from_env(name: str, raw: str) -> Any:
    if name == "debug":
        return raw.strip().lower() not in _FALSEY
    if name == "formatter":
        return _split_command(raw)
    return raw


def _split_command(raw: str) -> list[str]:
    if raw.strip().lower() in _FALSEY:
        return []
    return shlex.split(raw)


def _resolve(root: Path, value: Optional[Any]) -> Optional[Path]:
    if value is None:
        return None
    p = Path(value).expanduser()
    return p if p.is_absolute() else (root / p).resolve()


def detect_formatter(project_root: Path) -> list[str]:
    """Project-local prettier first, then one on PATH; empty when neither exists."""
    local = project_root / "node_modules" / ".bin" / "prettier"
    if local.is_file():
        return [str(local)]
    found = shutil.which("prettier")
    return [found] if found else []
