"""
异常定义模块 (errors.py)

模块职责：
    定义 flatpack 的异常层级。结构性错误（键类型非法、未声明的键、类型转换失败）
    会立即抛给调用方；而声明式校验错误（必填缺失、需求不满足、多余的键）
    只以字符串列表的形式由 Config.validate() 返回，不会抛出。

异常层级：
    FlatpackError
    ├── InvalidKeyType    - 原始映射中存在非字符串键（构造时）
    ├── UndefinedKey      - get/set 引用了 schema 中未声明的键
    ├── CoercionError     - 原始值无法转换为声明的类型
    ├── SchemaError       - 配置类声明本身不合法
    └── ValidationFailed  - 严格加载模式下校验报告非空
"""

from typing import Any, Iterable

from flatpack.context import humanize_context


class FlatpackError(Exception):
    """flatpack 所有异常的基类。"""


class InvalidKeyType(FlatpackError, TypeError):
    """原始映射的键必须是字符串。"""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"keys must be strings, got {type(key).__name__}: {key!r}")


class UndefinedKey(FlatpackError, KeyError):
    """
    访问了 schema 中没有声明的键。

    同时继承 KeyError，因此 cfg["missing"] 的行为与普通映射一致。
    """

    def __init__(self, key: Any, context: Iterable[str] | None = None):
        self.key = key
        self.context = tuple(context) if context is not None else ()
        super().__init__(key)

    def __str__(self) -> str:
        # KeyError 默认的 __str__ 会给消息再套一层引号
        where = humanize_context(self.context) if self.context else "<unknown>"
        return f"Undefined key {self.key!r} for {where}"


class CoercionError(FlatpackError, ValueError):
    """原始值无法加载为属性声明的类型。"""

    def __init__(self, value: Any, type_name: str, context: Iterable[str], detail: str = ""):
        self.value = value
        self.type_name = type_name
        self.context = tuple(context)
        message = f"Error loading {value!r} as {type_name} for {humanize_context(self.context)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SchemaError(FlatpackError, TypeError):
    """配置类的声明不合法（如键名与 Config 自身的方法冲突）。"""


class ValidationFailed(FlatpackError):
    """严格模式加载时，校验报告中存在错误。"""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        summary = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            summary += f" (and {len(self.errors) - 5} more)"
        super().__init__(f"Configuration is invalid: {summary}")
