"""
跨字段需求模块 (requirement.py)

模块职责：
    Requirement 描述"多个键之间"的约束，例如"host 和 socket 二选一"、
    "至少配置一个 api_key"。它不关心单个键的类型，只看解析后的值是否存在（非 None）。

    与 Attribute.validate 一样，Requirement.validate 返回错误字符串列表，而不是抛出异常。

用法:
    class CacheConfig(Config):
        url: str | None = None
        host: str | None = None
        requirements = [Requirement.exactly(1).of("url", "host")]
"""

from typing import Any, Mapping

from flatpack.context import humanize_context


class Requirement:
    """
    跨字段约束。

    支持的类型（kind）：
    - all:       所有键都必须存在
    - exclusive: 最多只能有一个键存在
    - at_least:  至少 n 个键存在
    - at_most:   至多 n 个键存在
    - exactly:   恰好 n 个键存在
    """

    def __init__(self, kind: str, keys: tuple[str, ...] = (), count: int | None = None):
        self.kind = kind
        self.keys = tuple(keys)
        self.count = count

    def __repr__(self) -> str:
        return f"Requirement({self.describe()})"

    # ------------------------------------------------------------------
    # 构造方法
    # ------------------------------------------------------------------

    @classmethod
    def all(cls, *keys: str) -> "Requirement":
        return cls("all", keys)

    @classmethod
    def exclusive(cls, *keys: str) -> "Requirement":
        return cls("exclusive", keys)

    @classmethod
    def at_least(cls, count: int) -> "Requirement":
        return cls("at_least", count=count)

    @classmethod
    def at_most(cls, count: int) -> "Requirement":
        return cls("at_most", count=count)

    @classmethod
    def exactly(cls, count: int) -> "Requirement":
        return cls("exactly", count=count)

    def of(self, *keys: str) -> "Requirement":
        """为计数类需求指定参与计数的键：Requirement.at_least(1).of("a", "b")。"""
        return Requirement(self.kind, keys, self.count)

    # ------------------------------------------------------------------

    def describe(self) -> str:
        keys = list(self.keys)
        if self.kind == "all":
            return f"all of {keys}"
        if self.kind == "exclusive":
            return f"exclusive {keys}"
        return f"{self.kind.replace('_', ' ')} {self.count} of {keys}"

    def validate(self, values: Mapping[str, Any], context: Any = None) -> list[str]:
        """
        对已解析的值集合执行约束检查。

        参数:
            values: 键名 → 已解析值（通常是 Config 的缓存）
            context: 错误上下文

        返回:
            list[str]: 错误信息列表，空列表表示满足
        """
        where = humanize_context(context)
        found = [k for k in self.keys if values.get(k) is not None]
        n = len(found)

        if self.kind == "all":
            return [
                f"Key {k} is required for {where}."
                for k in self.keys if k not in found
            ]
        if self.kind == "exclusive":
            if n > 1:
                return [f"keys {found!r} are mutually exclusive for {where}."]
            return []
        if self.kind == "at_least" and n < self.count:
            return [
                f"At least {self.count} keys out of {list(self.keys)!r} are required "
                f"to be passed in for {where}. Found {found!r}"
            ]
        if self.kind == "at_most" and n > self.count:
            return [
                f"At most {self.count} keys out of {list(self.keys)!r} can be passed in "
                f"for {where}. Found {found!r}"
            ]
        if self.kind == "exactly" and n != self.count:
            return [
                f"Exactly {self.count} of the following keys {list(self.keys)!r} are required "
                f"for {where}. Found {n} instead: {found!r}"
            ]
        return []
