"""CLI 命令：show / check / example。"""

import json

import pytest
from typer.testing import CliRunner

from flatpack import __version__
from flatpack.cli.commands import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    for name in ("FLATPACK_ENV_PREFIX", "FLATPACK_CONFIG_FILE", "FLATPACK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"flatpack v{__version__}" in result.stdout


def test_show_lists_resolved_values(monkeypatch):
    monkeypatch.setenv("FPTEST_WORKERS", "4")
    monkeypatch.setenv("FPTEST_DATABASE_HOST", "db.internal")
    result = runner.invoke(app, ["show", "tests.schemas:AppConfig", "--prefix", "FPTEST"])
    assert result.exit_code == 0
    assert "workers" in result.stdout
    assert "database.host" in result.stdout
    assert "db.internal" in result.stdout


def test_show_uses_prefix_from_settings(monkeypatch):
    monkeypatch.setenv("FLATPACK_ENV_PREFIX", "FPSET")
    monkeypatch.setenv("FPSET_NAME", "from-settings")
    result = runner.invoke(app, ["show", "tests.schemas:AppConfig"])
    assert result.exit_code == 0
    assert "from-settings" in result.stdout


def test_check_valid_config():
    result = runner.invoke(app, ["check", "tests.schemas:AppConfig", "--prefix", "FPEMPTY"])
    assert result.exit_code == 0
    assert "is valid" in result.stdout


def test_check_reports_errors(monkeypatch):
    monkeypatch.setenv("FPSTRICT_EXTRA", "1")
    result = runner.invoke(app, ["check", "tests.schemas:StrictConfig", "--prefix", "FPSTRICT"])
    assert result.exit_code == 1
    assert "required" in result.stdout
    assert "Unknown key" in result.stdout


def test_check_reports_coercion_failure(monkeypatch):
    monkeypatch.setenv("FPBAD_WORKERS", "many")
    result = runner.invoke(app, ["check", "tests.schemas:AppConfig", "--prefix", "FPBAD"])
    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_check_reads_json_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"token": "t"}))
    result = runner.invoke(
        app, ["check", "tests.schemas:StrictConfig", "--prefix", "FPFILE", "--file", str(path)]
    )
    assert result.exit_code == 0


def test_example_prints_json():
    result = runner.invoke(app, ["example", "tests.schemas:AppConfig"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["database"]["host"] == "localhost"
    assert data["workers"] == 2


def test_bad_target_is_rejected():
    result = runner.invoke(app, ["check", "tests.schemas:DoesNotExist"])
    assert result.exit_code != 0
    result = runner.invoke(app, ["check", "no_colon_here"])
    assert result.exit_code != 0
