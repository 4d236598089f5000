"""Config.validate：属性校验、跨字段约束、多余键检查。"""

import pytest

from flatpack import CoercionError, Config
from tests.schemas import AppConfig, CacheConfig, StrictConfig


def test_valid_config_has_no_errors():
    assert AppConfig().validate() == []


def test_unknown_keys_rejected_when_extra_not_allowed():
    errors = StrictConfig({"token": "t", "extra": 1}).validate()
    assert errors == ["Unknown key received: 'extra' for $"]


def test_unknown_keys_ignored_by_default():
    assert AppConfig({"extra": 1}).validate() == []


def test_required_attribute():
    assert StrictConfig().validate() == ["Attribute $.token is required."]


def test_allowed_values():
    errors = AppConfig({"workers": "3"}).validate()
    assert errors == ["Attribute $.workers: 3 is not within the allowed values=[1, 2, 4, 8]"]


def test_requirements_run_against_resolved_values():
    assert CacheConfig({"url": "u"}).validate() == []
    assert CacheConfig({"HOST": "h"}).validate() == []

    errors = CacheConfig().validate()
    assert len(errors) == 1
    assert errors[0].startswith("Exactly 1 of the following keys")

    errors = CacheConfig({"url": "u", "host": "h"}).validate()
    assert len(errors) == 1
    assert "Found 2" in errors[0]


def test_nested_errors_carry_subcontext():
    class Outer(Config):
        cache: CacheConfig
        strict: StrictConfig

    errors = Outer({"strict_token": "t"}).validate()
    assert len(errors) == 1
    assert "$.cache" in errors[0]


def test_all_phases_run():
    errors = StrictConfig({"extra": 1}).validate()
    assert errors == [
        "Attribute $.token is required.",
        "Unknown key received: 'extra' for $",
    ]


def test_coercion_failure_aborts_validation():
    with pytest.raises(CoercionError):
        AppConfig({"workers": "many"}).validate()


def test_validate_is_idempotent():
    cfg = StrictConfig({"extra": 1, "name": 7})
    first = cfg.validate()
    assert cfg.validate() == first


def test_custom_context_is_used_in_messages():
    errors = StrictConfig().validate(("settings",))
    assert errors == ["Attribute settings.token is required."]


def test_dump_forces_resolution():
    cfg = AppConfig({"WORKERS": "4"})
    assert cfg.dump()["workers"] == 4
    assert cfg.get("workers") == 4
