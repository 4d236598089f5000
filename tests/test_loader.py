"""loader：环境变量、JSON 文件、合并顺序、严格模式、保存。"""

import json

import pytest

from flatpack import ValidationFailed, load_config, load_env, load_file, save_config
from flatpack.loader import camel_to_snake, convert_keys, snake_to_camel
from tests.schemas import AppConfig, StrictConfig


def test_load_env_without_prefix_copies_everything():
    environ = {"A": "1", "B": "2"}
    env = load_env(environ)
    assert env == environ
    assert env is not environ


def test_load_env_strips_prefix_case_insensitively():
    environ = {"MYAPP_DATABASE_HOST": "h", "myapp_debug": "1", "OTHER": "x"}
    assert load_env(environ, prefix="MyApp") == {"DATABASE_HOST": "h", "debug": "1"}


def test_load_env_uses_separator():
    assert load_env({"APP__NAME": "n", "APP_X": "x"}, prefix="APP", separator="__") == {"NAME": "n"}


def test_load_config_from_environment():
    cfg = load_config(AppConfig, environ={"APP_WORKERS": "4", "APP_DATABASE_HOST": "db"}, prefix="APP")
    assert cfg.workers == 4
    assert cfg.database.host == "db"


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"name": "from-file", "workers": 1, "database": {"port": 1}}))

    cfg = load_config(AppConfig, path=path, environ={"NAME": "from-env", "DATABASE_PORT": "2"})
    assert cfg.name == "from-env"
    assert cfg.workers == 1
    assert cfg.database.port == 2


def test_missing_file_is_skipped(tmp_path):
    cfg = load_config(AppConfig, path=tmp_path / "absent.json", environ={})
    assert cfg.name == "app"


def test_camel_case_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"fooBar": "x"}))
    assert load_config(AppConfig, path=path, environ={}, camel_case=True).foo_bar == "x"


def test_corrupt_file_falls_back_unless_strict(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    assert load_config(AppConfig, path=path, environ={}).name == "app"
    with pytest.raises(json.JSONDecodeError):
        load_config(AppConfig, path=path, environ={}, strict=True)


def test_load_file_requires_object(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_file(path)


def test_strict_mode_raises_validation_failed():
    with pytest.raises(ValidationFailed) as exc_info:
        load_config(StrictConfig, environ={"S_EXTRA": "1"}, prefix="S", strict=True)
    assert exc_info.value.errors == [
        "Attribute $.token is required.",
        "Unknown key received: 'EXTRA' for $",
    ]


def test_save_config_writes_dump(tmp_path):
    cfg = AppConfig({"WORKERS": "4", "FOO_BAR": "x"})
    path = tmp_path / "out" / "config.json"

    save_config(cfg, path)
    assert json.loads(path.read_text()) == cfg.dump()

    save_config(cfg, path, camel_case=True)
    assert json.loads(path.read_text())["fooBar"] == "x"


def test_key_case_conversion():
    assert camel_to_snake("maxTokens") == "max_tokens"
    assert camel_to_snake("DATABASE_HOST") == "DATABASE_HOST"
    assert snake_to_camel("max_tokens") == "maxTokens"
    assert convert_keys({"apiBase": [{"extraHeaders": 1}]}) == {"api_base": [{"extra_headers": 1}]}
