"""
属性解析模块 (attribute.py)

模块职责：
    Attribute 是配置类中"一个键"的声明：它知道这个键的类型、默认值、是否必填、
    允许的取值范围，并负责把原始值（通常是环境变量里的字符串）转换成声明的类型。

    Config 只通过以下接口与 Attribute 交互：
    - load(value, context)      原始值 → 类型化的值，失败时抛出 CoercionError
    - validate(value, context)  类型化的值 → 错误字符串列表
    - dump(value)               类型化的值 → 可 JSON 序列化的基本类型
    - example(context)          生成示例值

    类型转换委托给 Pydantic 的 TypeAdapter（宽松模式），因此 "5" → 5、
    "true" → True 这类环境变量常见的转换都是开箱即用的。

在架构中的位置：
    Attribute 同时是一个描述符（descriptor）。声明在配置类上之后，
    cfg.host 会转发到 cfg.get("host")，cfg.host = "x" 会转发到 cfg.set("host", "x")。
    这样访问器在类定义时只生成一次，而不是每个实例都动态生成方法。

对于 Java 开发者：
    - Attribute 类似于带 @Value 注解的字段 + 一个 Converter
    - 描述符协议类似于为每个字段自动生成 getter/setter
"""

import copy
from dataclasses import is_dataclass
from enum import Enum
from functools import cached_property
from types import NoneType, UnionType
from typing import Any, Literal, Union, get_args, get_origin

from loguru import logger
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from flatpack.context import Context, as_context, humanize_context
from flatpack.errors import CoercionError


class _Missing:
    """哨兵类型：区分"没有提供默认值"和"默认值就是 None"。"""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

# 环境变量里的数字也允许加载为 str 类型
_ADAPTER_CONFIG = ConfigDict(coerce_numbers_to_str=True)

# 这些容器类型收到字符串时按 JSON 解码（与 pydantic-settings 处理复杂字段的方式一致）
_JSON_ORIGINS = (list, dict, set, frozenset, tuple)


def _unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """拆出 Optional[X] / X | None 中的 X，返回 (内部类型, 是否可为 None)。"""
    if get_origin(tp) in (Union, UnionType):
        args = get_args(tp)
        inner = [a for a in args if a is not NoneType]
        nullable = len(inner) != len(args)
        if len(inner) == 1:
            return inner[0], nullable
        return tp, nullable
    return tp, False


def _config_base() -> type:
    # 延迟导入，避免与 config.py 循环依赖
    from flatpack.config import Config
    return Config


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    return errors[0].get("msg", str(exc))


def _placeholder(tp: Any, context: Context) -> Any:
    """
    按类型生成一个占位示例值（用于 Config.example）。

    返回值始终会再经过 Attribute.load()，所以这里只需要给出"能被转换"的原始值。
    """
    name = context[-1] if context else "value"
    base = get_origin(tp) or tp
    if base is bool:
        return True
    if base is int:
        return len(name)
    if base is float:
        return float(len(name))
    if base is str:
        return name
    if base is Literal:
        return get_args(tp)[0]
    if base in (list, set, frozenset):
        return []
    if base is dict:
        return {}
    if isinstance(base, type) and issubclass(base, Enum):
        return next(iter(base))
    return None


class Attribute:
    """
    配置键的声明，兼任 Config 上的访问器描述符。

    用法:
        class DatabaseConfig(Config):
            host: str = "localhost"
            port: int = Attribute(default=5432, description="TCP 端口")
            mode = Attribute(str, values=("ro", "rw"), required=True)

    参数:
        type: 声明类型。可以是 Pydantic 能理解的任意类型，也可以是另一个 Config 子类（嵌套配置）。
              通过类型注解声明时可以省略。
        default: 原始值缺失（None）时使用的默认值
        required: 为 True 时，解析结果为 None 会在 validate() 中报错
        values: 允许的取值集合
        description: 说明文字（CLI 展示用）
        example: 示例值，或接收上下文并返回示例值的函数
    """

    def __init__(
        self,
        type: Any = None,
        *,
        default: Any = MISSING,
        required: bool = False,
        values: Any = None,
        description: str = "",
        example: Any = MISSING,
    ):
        self.type = type
        self.default = default
        self.required = required
        self.values = tuple(values) if values is not None else None
        self.description = description
        self._example = example
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"Attribute({self.type_name}, name={self.name!r}, default={self.default!r})"

    # ------------------------------------------------------------------
    # 描述符协议：cfg.key / cfg.key = value
    # ------------------------------------------------------------------

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self  # 通过类访问时返回声明本身，如 DatabaseConfig.host
        return instance.get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.set(self.name, value, context=("assignment", f"of({self.name})"))

    # ------------------------------------------------------------------
    # 类型信息
    # ------------------------------------------------------------------

    @property
    def inner_type(self) -> Any:
        """去掉 Optional 包装后的类型。"""
        return _unwrap_optional(self.type)[0]

    @property
    def nullable(self) -> bool:
        return _unwrap_optional(self.type)[1]

    @property
    def config_type(self) -> type | None:
        """如果声明类型是 Config 子类（嵌套配置），返回该类；否则返回 None。"""
        inner = self.inner_type
        if isinstance(inner, type) and issubclass(inner, _config_base()):
            return inner
        return None

    @property
    def is_boolean(self) -> bool:
        return self.inner_type is bool

    @property
    def type_name(self) -> str:
        tp = self.type
        if tp is None:
            return "Any"
        if get_origin(tp) is not None:
            return repr(tp)
        return getattr(tp, "__name__", repr(tp))

    @cached_property
    def adapter(self) -> TypeAdapter:
        """该属性类型对应的 Pydantic TypeAdapter（首次使用时构建并缓存）。"""
        tp = Any if self.type is None else self.type
        # BaseModel / dataclass 自带配置，不能再传 config
        if isinstance(tp, type) and (issubclass(tp, BaseModel) or is_dataclass(tp)):
            return TypeAdapter(tp)
        return TypeAdapter(tp, config=_ADAPTER_CONFIG)

    def _decodes_json(self) -> bool:
        inner = self.inner_type
        base = get_origin(inner) or inner
        if base in _JSON_ORIGINS:
            return True
        return isinstance(base, type) and issubclass(base, BaseModel)

    # ------------------------------------------------------------------
    # 解析接口：load / validate / dump / example
    # ------------------------------------------------------------------

    def load(self, value: Any, context: Any = None) -> Any:
        """
        将原始值加载为声明的类型。

        处理顺序：
        1. value 为 None 时使用默认值；没有默认值则直接返回 None（必填检查留给 validate）
        2. 嵌套配置类型交给 ConfigClass.load()
        3. 其余类型交给 Pydantic 做宽松转换；容器类型收到字符串时按 JSON 解码

        异常:
            CoercionError: 无法转换时抛出
        """
        context = as_context(context)
        if value is None:
            if self.default is MISSING or self.default is None:
                return None
            value = copy.deepcopy(self.default)

        config_type = self.config_type
        if config_type is not None:
            return config_type.load(value, context)

        try:
            if isinstance(value, str) and self._decodes_json():
                return self.adapter.validate_json(value)
            return self.adapter.validate_python(value)
        except ValidationError as e:
            raise CoercionError(value, self.type_name, context, _first_error(e)) from e

    def validate(self, value: Any, context: Any = None) -> list[str]:
        """
        校验已加载的值，返回错误信息列表（空列表表示通过）。

        检查项：必填、取值范围、基本类型匹配；嵌套配置递归调用其 validate()。
        """
        context = as_context(context)
        where = humanize_context(context)
        errors: list[str] = []

        if value is None:
            if self.required:
                errors.append(f"Attribute {where} is required.")
            return errors

        if self.values is not None and value not in self.values:
            errors.append(
                f"Attribute {where}: {value!r} is not within the allowed values={list(self.values)!r}"
            )

        if isinstance(value, _config_base()):
            errors.extend(value.validate(context))
            return errors

        inner = self.inner_type
        if isinstance(inner, type) and get_origin(inner) is None and inner is not Any:
            if not isinstance(value, inner):
                errors.append(
                    f"Attribute {where} received value of the wrong type: "
                    f"got {type(value).__name__}, expected {self.type_name}"
                )
        return errors

    def dump(self, value: Any, mode: str = "json") -> Any:
        """将类型化的值导出为基本类型（嵌套配置递归导出）。"""
        if value is None:
            return None
        if isinstance(value, _config_base()):
            return value.dump(mode=mode)
        return self.adapter.dump_python(value, mode=mode)

    def example(self, context: Any = None) -> Any:
        """
        生成该属性的示例值。

        优先级：嵌套配置递归生成 > 显式 example > 默认值 > 允许值中的第一个 > 按类型生成占位值
        可空的嵌套配置不生成示例（返回 None），自引用的 schema 因此不会无限递归。
        """
        context = as_context(context)
        config_type = self.config_type
        if config_type is not None:
            return None if self.nullable else config_type.example(context)

        if self._example is not MISSING:
            raw = self._example(context) if callable(self._example) else self._example
            return self.load(raw, context)
        if self.default is not MISSING:
            return self.load(None, context)
        if self.values:
            return self.load(self.values[0], context)
        return self.load(_placeholder(self.inner_type, context), context)


class BooleanPredicate:
    """
    布尔键的谓词访问器：cfg.is_<key>。

    等价于 bool(cfg.get(key))。键缺失或转换失败都视为 False，永远不会抛出异常。
    """

    def __init__(self, key: str):
        self.key = key

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        try:
            return bool(instance.get(self.key))
        except CoercionError as e:
            logger.debug(f"Predicate is_{self.key} treated as False: {e}")
            return False
