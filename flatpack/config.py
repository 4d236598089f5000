"""
扁平键配置模型 (config.py)
=========================
本模块实现 flatpack 的核心：从一个"扁平"的键值映射（例如环境变量）
解析出一棵带类型的嵌套配置树。

整体流程：
    原始扁平映射 ──构造──▶ Config 实例（只保存 raw，不做任何转换）
                   │
                   ▼ 首次读取某个键 cfg.database
         ┌─────────┴──────────┐
    嵌套配置类型            叶子类型
    raw["database"]        fetch(key) → Attribute.load()
    + subselect("database")
    → 子 Config 实例
                   │
                   ▼
         结果写入缓存 _contents，后续读取直接返回

键的匹配规则：
    - fetch(): 先精确匹配，找不到再做大小写不敏感的匹配（DATABASE_HOST 也能命中 database_host）
    - subselect(): 用 "<前缀><分隔符>" 截取子映射，DATABASE_HOST=x 对嵌套的 database 配置来说就是 host=x
    - 扁平键优先级高于显式子映射：{"database": {"host": "a"}, "database_host": "b"} 解析出 host == "b"

声明方式（与 Pydantic 模型一致，类型注解 + 默认值）：
    class DatabaseConfig(Config):
        host: str = "localhost"
        port: int = 5432

    class AppConfig(Config, allow_extra=False):
        debug: bool = False
        database: DatabaseConfig

    cfg = AppConfig(os.environ)
    cfg.database.port  # DATABASE_PORT=6543 → 6543

对于 Java 开发者：
    - 类似 Spring Boot 的 relaxed binding：SPRING_DATASOURCE_URL 绑定到 spring.datasource.url
    - 区别是这里的绑定是惰性的：只有真正读取某个键时才会做类型转换
"""

import copy
import inspect
import json
import re
import typing
from typing import Any, ClassVar, Iterator, Mapping

from loguru import logger

from flatpack.attribute import MISSING, Attribute, BooleanPredicate
from flatpack.context import (
    DEFAULT_ROOT_CONTEXT,
    Context,
    as_context,
    generate_subcontext,
    humanize_context,
)
from flatpack.errors import CoercionError, InvalidKeyType, SchemaError, UndefinedKey
from flatpack.requirement import Requirement


def _own_type_hints(cls: type) -> dict[str, Any]:
    """
    返回类自身（不含父类）声明的类型注解，字符串形式的前向引用会被解析。

    解析时把类自己的名字放进局部命名空间，因此 child: "Node" 这样的自引用是合法的。
    """
    try:
        return inspect.get_annotations(cls, eval_str=True, locals={cls.__name__: cls})
    except NameError as e:
        raise SchemaError(f"Cannot resolve annotations of {cls.__name__}: {e}") from e


_RESERVED: frozenset[str] | None = None


def _reserved_names() -> frozenset[str]:
    """Config 自身的公开方法/属性名，配置键不能与之重名。"""
    global _RESERVED
    if _RESERVED is None:
        _RESERVED = frozenset(n for n in dir(Config) if not n.startswith("_"))
    return _RESERVED


class Config:
    """
    扁平键配置的基类。

    类级别（Schema）：
        attributes:   键名 → Attribute，按声明顺序排列，继承父类的声明
        separator:    扁平键的分隔符，默认 "_"；子类定义时从父类复制一份快照
        allow_extra:  是否允许出现未声明的原始键，每个子类默认 True
        requirements: 跨字段约束列表（Requirement）

    实例级别：
        _raw:      原始扁平映射（构造时复制一份，由实例独占）
        _contents: 已解析值的缓存，键一旦进入缓存就不会再重新解析，直到 merge()
    """

    separator: ClassVar[str] = "_"
    allow_extra: ClassVar[bool] = True
    requirements: ClassVar[tuple[Requirement, ...]] = ()
    attributes: ClassVar[dict[str, Attribute]] = {}

    def __init_subclass__(cls, separator: str | None = None, allow_extra: bool | None = None, **kwargs: Any):
        """
        子类定义时编译 Schema。

        参数（类关键字参数）:
            separator: 覆盖分隔符，如 class App(Config, separator="__")
            allow_extra: 覆盖是否允许多余的键
        """
        super().__init_subclass__(**kwargs)
        parent = next(base for base in cls.__mro__[1:] if issubclass(base, Config))

        # 分隔符是定义时的快照：之后修改父类的 separator 不会影响已定义的子类
        if separator is not None:
            cls.separator = separator
        elif "separator" not in cls.__dict__:
            cls.separator = parent.separator

        if allow_extra is not None:
            cls.allow_extra = allow_extra
        elif "allow_extra" not in cls.__dict__:
            cls.allow_extra = True

        if "requirements" in cls.__dict__:
            cls.requirements = tuple(cls.__dict__["requirements"])

        cls.attributes = cls._compile_attributes(dict(parent.attributes))

    @classmethod
    def _compile_attributes(cls, attributes: dict[str, Attribute]) -> dict[str, Attribute]:
        hints = _own_type_hints(cls)
        names = list(hints)
        # 未加注解的 Attribute 声明，以及对继承键默认值的直接覆盖（port = 6543）
        names += [
            n for n, v in cls.__dict__.items()
            if n not in hints and (isinstance(v, Attribute) or n in attributes)
        ]

        reserved = _reserved_names()
        for name in names:
            hint = hints.get(name, MISSING)
            if typing.get_origin(hint) is ClassVar:
                continue
            if name in reserved:
                raise SchemaError(f"{cls.__name__}.{name} shadows a Config member and cannot be used as a key")
            if hint is MISSING and name in attributes:
                hint = attributes[name].type

            value = cls.__dict__.get(name, MISSING)
            if isinstance(value, Attribute):
                attribute = value
                if attribute.type is None and hint is not MISSING:
                    attribute.type = hint
            elif name in attributes and name not in hints:
                # 只覆盖默认值（port = 6543）：沿用父类声明的取值范围、必填等约束
                attribute = copy.copy(attributes[name])
                attribute.default = value
            else:
                attribute = Attribute(None if hint is MISSING else hint, default=value)

            attribute.name = name
            setattr(cls, name, attribute)
            attributes[name] = attribute

        # 布尔键额外提供 is_<key> 谓词访问器
        for name, attribute in attributes.items():
            predicate = f"is_{name}"
            if attribute.is_boolean and predicate not in attributes and not hasattr(cls, predicate):
                setattr(cls, predicate, BooleanPredicate(name))

        return attributes

    # ------------------------------------------------------------------
    # 构造
    # ------------------------------------------------------------------

    def __init__(self, data: Mapping[str, Any] | None = None):
        self.validate_data(data)
        if data is not None and not hasattr(data, "keys"):
            raise TypeError(f"{type(self).__name__} expects a mapping, got {type(data).__name__}")
        self._raw: dict[str, Any] = dict(data) if data is not None else {}
        self._contents: dict[str, Any] = {}

    @classmethod
    def validate_data(cls, data: Any) -> None:
        """原始映射的所有键都必须是字符串；没有 keys() 的输入（如 None）跳过检查。"""
        if not hasattr(data, "keys"):
            return
        for key in data.keys():
            if not isinstance(key, str):
                raise InvalidKeyType(key)

    @classmethod
    def load(cls, value: Any, context: Any = None) -> "Config":
        """
        将任意原始值加载为该配置类的实例（嵌套配置的解析入口）。

        支持：None、Config 实例、映射、JSON 对象字符串。
        传入 Config 实例时按其 raw 构造新实例，调用方持有的对象不会被修改。

        异常:
            CoercionError: 值无法解释为映射
        """
        context = as_context(context)
        if value is None:
            return cls()
        if isinstance(value, Config):
            return cls(value.raw)
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise CoercionError(value, cls.__name__, context, f"invalid JSON: {e}") from e
        if not isinstance(value, Mapping):
            raise CoercionError(value, cls.__name__, context, "expected a mapping")
        return cls(value)

    @classmethod
    def example(cls, context: Any = None, **values: Any) -> "Config":
        """
        生成示例实例。

        未在 values 中给出的键使用 Attribute.example() 生成；
        生成的值同时写入缓存和 raw，使 fetch() 也能看到它们。
        """
        context = as_context(context)
        for name in values:
            if name not in cls.attributes:
                raise UndefinedKey(name, generate_subcontext(context, name))

        contents: dict[str, Any] = {}
        for name, attribute in cls.attributes.items():
            sub_context = generate_subcontext(context, name)
            if name in values:
                contents[name] = attribute.load(values[name], sub_context)
            else:
                contents[name] = attribute.example(sub_context)

        instance = cls(dict(contents))
        instance._contents = contents
        return instance

    # ------------------------------------------------------------------
    # 读取 / 写入
    # ------------------------------------------------------------------

    @staticmethod
    def default_context(key: str) -> Context:
        return generate_subcontext(DEFAULT_ROOT_CONTEXT, key)

    def get(self, key: str, context: Any = None, attribute: Attribute | None = None) -> Any:
        """
        读取某个键的类型化值（带缓存）。

        参数:
            key: 键名
            context: 错误上下文，默认 ("$", key)
            attribute: 覆盖 schema 中声明的 Attribute

        异常:
            UndefinedKey: 键未声明
            CoercionError: 原始值无法转换（由 Attribute 抛出，原样向上传播）
        """
        if attribute is None:
            attribute = self.attributes.get(key)
        if context is None:
            context = self.default_context(key)
        if attribute is None:
            raise UndefinedKey(key, context)

        if key in self._contents:
            return self._contents[key]

        value = self._get(key, attribute, context)
        self._contents[key] = value
        return value

    def _get(self, key: str, attribute: Attribute, context: Any) -> Any:
        if attribute.config_type is not None:
            top = self.fetch(key)
            selected = self.subselect(key)
            # 可空的嵌套配置在既没有子映射也没有扁平键时解析为 None，自引用的 schema 因此不会无限展开
            if top is None and not selected and attribute.nullable:
                return None
            nested = attribute.load({} if top is None else top, context)
            # 扁平键优先：子映射中仅大小写不同的同名键也要让位（{"port": 1} 与 DATABASE_PORT=2）
            shadowed = {k.casefold() for k in selected}
            for raw_key in [k for k in nested.raw if k.casefold() in shadowed and k not in selected]:
                del nested.raw[raw_key]
            return nested.merge(selected)

        # 缺失的叶子键交给 Attribute 处理默认值和必填
        return attribute.load(self.fetch(key), context)

    def set(self, key: str, value: Any, context: Any = None) -> Any:
        """
        写入某个键：先经 Attribute 转换，再同时写入缓存和 raw。

        异常:
            UndefinedKey: 键未声明
            CoercionError: 值无法转换
        """
        attribute = self.attributes.get(key)
        if attribute is None:
            raise UndefinedKey(key, (str(key),))
        if context is None:
            context = self.default_context(key)

        loaded = attribute.load(value, context)
        self._contents[key] = loaded
        self._raw[key] = loaded
        return loaded

    def fetch(self, key: str, default: Any = None) -> Any:
        """
        在 raw 中查找键：先精确匹配，再按迭代顺序做大小写不敏感匹配（第一个命中者优先）。

        返回:
            找到的原始值；找不到时返回 default
        """
        if key in self._raw:
            return self._raw[key]

        wanted = str(key).casefold()
        for raw_key, value in self._raw.items():
            if str(raw_key).casefold() == wanted:
                return value
        return default

    def subselect(self, prefix: str) -> dict[str, Any]:
        """
        截取所有以 "<prefix><separator>" 开头的键（大小写不敏感），去掉前缀后组成新映射。

        例: separator="_" 时，{"db_host": "h", "db_port": 5} 的 subselect("db")
            → {"host": "h", "port": 5}
        """
        pattern = re.compile(
            rf"^{re.escape(str(prefix))}{re.escape(self.separator)}(.*)$",
            re.IGNORECASE | re.DOTALL,
        )
        selected: dict[str, Any] = {}
        for raw_key, value in self._raw.items():
            match = pattern.match(str(raw_key))
            if match:
                selected[match.group(1)] = value
        return selected

    def merge(self, other: "Mapping[str, Any] | Config") -> "Config":
        """
        将另一个映射合并进 raw（同名键覆盖），并清空整个缓存。

        返回:
            self，便于链式调用
        """
        if isinstance(other, Config):
            other = other.raw
        self.validate_data(other)
        if self._contents:
            logger.debug(f"Merging {len(other)} key(s) into {type(self).__name__}, dropping {len(self._contents)} cached value(s)")
        self._contents = {}
        self._raw.update(other)
        return self

    # ------------------------------------------------------------------
    # 映射风格的访问接口
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __iter__(self) -> Iterator[str]:
        return iter(self.attributes)

    def __len__(self) -> int:
        return len(self.attributes)

    def __contains__(self, key: object) -> bool:
        return key in self.attributes

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._raw!r})"

    @property
    def raw(self) -> dict[str, Any]:
        """原始扁平映射。"""
        return self._raw

    def items(self) -> Iterator[tuple[str, Any]]:
        """按声明顺序产出 (键名, 已解析值)，会触发尚未解析的键的加载。"""
        for name in self.attributes:
            yield name, self.get(name)

    # ------------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------------

    def validate(self, context: Any = DEFAULT_ROOT_CONTEXT) -> list[str]:
        """
        校验整棵配置树，返回所有错误信息（空列表表示有效）。

        三个阶段依次执行，不会因前一阶段有错误而短路：
        1. validate_attributes:   逐键解析并调用 Attribute.validate
        2. validate_requirements: 跨字段约束
        3. validate_keys:         多余键检查（allow_extra=False 时）

        注意：阶段 1 会强制解析每个键，如果某个原始值无法转换，
        CoercionError 会直接抛出并中止本次校验。
        """
        context = as_context(context)
        errors = (
            self.validate_attributes(context)
            + self.validate_requirements(context)
            + self.validate_keys(context)
        )
        logger.debug(f"Validated {type(self).__name__} at {humanize_context(context)}: {len(errors)} error(s)")
        return errors

    def validate_attributes(self, context: Any) -> list[str]:
        errors: list[str] = []
        for name, attribute in self.attributes.items():
            sub_context = generate_subcontext(context, name)
            value = self.get(name, context=sub_context)
            errors.extend(attribute.validate(value, sub_context))
        return errors

    def validate_requirements(self, context: Any) -> list[str]:
        errors: list[str] = []
        for requirement in self.requirements:
            errors.extend(requirement.validate(self._contents, context))
        return errors

    def validate_keys(self, context: Any) -> list[str]:
        if self.allow_extra:
            return []
        declared = {str(k) for k in self.attributes}
        where = humanize_context(context)
        return [
            f"Unknown key received: {key!r} for {where}"
            for key in (str(k) for k in self._raw)
            if key not in declared
        ]

    # ------------------------------------------------------------------
    # 导出
    # ------------------------------------------------------------------

    def dump(self, mode: str = "json") -> dict[str, Any]:
        """
        导出为基本类型的嵌套字典。

        导出前先调用 validate()，强制所有键走一遍惰性加载，
        保证导出的是转换后的值，而不是 raw 中未转换的字符串。
        """
        self.validate()
        return {
            name: attribute.dump(self._contents.get(name), mode=mode)
            for name, attribute in self.attributes.items()
        }

    def pretty_print(self, context: tuple[str, ...] = ()) -> list[str]:
        """把配置树展开为 "a.b.c=值" 形式的行列表。"""
        lines: list[str] = []
        for name, value in self.items():
            sub_context = (*context, name)
            if isinstance(value, Config):
                lines.extend(value.pretty_print(context=sub_context))
            else:
                lines.append(f"{'.'.join(sub_context)}={value!r}")
        return lines
