"""Attribute：加载、校验、导出、示例值。"""

from datetime import date
from typing import Literal

import pytest

from flatpack import Attribute, CoercionError
from tests.schemas import DatabaseConfig


def test_load_uses_default_for_missing_value():
    attr = Attribute(int, default=5)
    assert attr.load(None) == 5
    assert Attribute(int).load(None) is None


def test_load_coerces_env_style_strings():
    assert Attribute(int).load("42") == 42
    assert Attribute(bool).load("true") is True
    assert Attribute(bool).load("0") is False
    assert Attribute(float).load("1.5") == 1.5
    assert Attribute(str).load(5) == "5"


def test_load_decodes_json_for_container_types():
    assert Attribute(list[int]).load("[1, 2]") == [1, 2]
    assert Attribute(dict[str, int]).load('{"a": "1"}') == {"a": 1}


def test_default_is_copied_on_each_load():
    attr = Attribute(list[str], default=[])
    first = attr.load(None)
    first.append("x")
    assert attr.load(None) == []


def test_load_failure_raises_coercion_error_with_context():
    with pytest.raises(CoercionError) as exc_info:
        Attribute(int).load("many", ("$", "workers"))
    assert "$.workers" in str(exc_info.value)
    assert exc_info.value.value == "many"


def test_nested_config_type_loads_mapping_and_json():
    attr = Attribute(DatabaseConfig)
    assert attr.config_type is DatabaseConfig
    assert attr.load({"host": "x"}).host == "x"
    assert attr.load('{"port": "7"}').port == 7


def test_nested_config_type_rejects_non_mapping():
    attr = Attribute(DatabaseConfig)
    with pytest.raises(CoercionError):
        attr.load("not json")
    with pytest.raises(CoercionError):
        attr.load(5)


def test_optional_types_are_unwrapped():
    attr = Attribute(bool | None)
    assert attr.is_boolean
    assert attr.nullable
    assert Attribute(DatabaseConfig | None).config_type is DatabaseConfig


def test_validate_required_and_values():
    assert Attribute(str, required=True).validate(None, ("$", "token")) == ["Attribute $.token is required."]
    assert Attribute(str).validate(None) == []

    attr = Attribute(int, values=(1, 2))
    assert attr.validate(1) == []
    errors = attr.validate(3, ("$", "workers"))
    assert errors == ["Attribute $.workers: 3 is not within the allowed values=[1, 2]"]


def test_validate_reports_wrong_type():
    errors = Attribute(int).validate("3", ("$", "port"))
    assert len(errors) == 1
    assert "wrong type" in errors[0]


def test_dump_produces_json_primitives():
    assert Attribute(date).dump(date(2024, 1, 2)) == "2024-01-02"
    assert Attribute(int).dump(None) is None


def test_example_priorities():
    assert Attribute(str, example="sample").example(("$", "name")) == "sample"
    assert Attribute(str, example=lambda ctx: ctx[-1].upper()).example(("$", "name")) == "NAME"
    assert Attribute(int, default=3).example() == 3
    assert Attribute(str, values=("ro", "rw")).example() == "ro"
    assert Attribute(str).example(("$", "host")) == "host"
    assert Attribute(Literal["a", "b"]).example() == "a"


def test_nested_example_builds_config():
    example = Attribute(DatabaseConfig).example(("$", "database"))
    assert isinstance(example, DatabaseConfig)
    assert example.host == "localhost"
    assert Attribute(DatabaseConfig | None).example() is None
