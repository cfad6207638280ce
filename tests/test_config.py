from pathlib import Path

import pytest
from typer.testing import CliRunner

from routesdk.cli import app
from routesdk.config import GeneratorConfig
from routesdk.errors import ConfigError


def test_defaults_resolve_against_project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("ROUTESDK_APP_DIR", raising=False)
    (tmp_path / "app").mkdir()
    config = GeneratorConfig.load(tmp_path, formatter=[])

    root = tmp_path.resolve()
    assert config.app_dir == root / "app"
    assert config.client_path == root / "api" / "client-sdk.ts"
    assert config.server_path == root / "api" / "server-sdk.ts"
    assert config.route_file_name == "route.ts"
    assert config.formatter == []


def test_src_app_dir_is_found(tmp_path: Path):
    (tmp_path / "src" / "app").mkdir(parents=True)
    config = GeneratorConfig.load(tmp_path, formatter=[])
    assert config.app_dir == tmp_path.resolve() / "src" / "app"


def test_environment_then_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ROUTESDK_OUT_DIR", "generated")
    monkeypatch.setenv("ROUTESDK_DEBUG", "1")
    monkeypatch.setenv("ROUTESDK_FORMATTER", "npx prettier")

    config = GeneratorConfig.load(tmp_path)
    assert config.out_dir == tmp_path.resolve() / "generated"
    assert config.debug is True
    assert config.formatter == ["npx", "prettier"]

    config = GeneratorConfig.load(tmp_path, out_dir="sdk", formatter=[], debug=None)
    assert config.out_dir == tmp_path.resolve() / "sdk"
    assert config.formatter == []
    assert config.debug is True


def test_file_names_must_be_bare(tmp_path: Path):
    with pytest.raises(ConfigError):
        GeneratorConfig.load(tmp_path, client_file="nested/client.ts", formatter=[])


def test_cli_generate_and_routes(tmp_path: Path):
    route = tmp_path / "app" / "users" / "route.ts"
    route.parent.mkdir(parents=True)
    route.write_text("export async function GET() { return Response.json({ ok: true }); }\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["generate", str(tmp_path), "--no-format"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "api" / "client-sdk.ts").is_file()
    assert (tmp_path / "api" / "server-sdk.ts").is_file()

    result = runner.invoke(app, ["routes", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "/users" in result.output
    assert "Route files: 1" in result.output


def test_cli_rejects_missing_app_dir(tmp_path: Path):
    result = CliRunner().invoke(app, ["generate", str(tmp_path), "--no-format"])
    assert result.exit_code != 0
