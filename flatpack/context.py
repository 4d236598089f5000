"""
错误上下文模块 (context.py)

模块职责：
    错误上下文（context）是一个有序的路径片段元组，如 ("$", "database", "host")。
    它在 get/set/validate 的每一层递归中向下传递，只用于生成人类可读的错误信息。

    - DEFAULT_ROOT_CONTEXT：根上下文，固定为 ("$",)
    - generate_subcontext()：在父上下文后追加一个键名
    - humanize_context()：把上下文渲染成 "$.database.host" 形式
"""

from typing import Iterable

Context = tuple[str, ...]

# 根上下文，所有默认路径都从这里开始
DEFAULT_ROOT_CONTEXT: Context = ("$",)


def as_context(context: str | Iterable[str] | None) -> Context:
    """把 None / 字符串 / 任意可迭代对象统一为元组形式的上下文。"""
    if context is None:
        return DEFAULT_ROOT_CONTEXT
    if isinstance(context, str):
        return (context,)
    return tuple(str(part) for part in context)


def generate_subcontext(context: str | Iterable[str] | None, key: str) -> Context:
    """
    生成子上下文：在父上下文末尾追加当前键名。

    参数:
        context: 父上下文
        key: 当前键名

    返回:
        新的上下文元组（父上下文不会被修改）
    """
    return as_context(context) + (str(key),)


def humanize_context(context: str | Iterable[str] | None) -> str:
    """将上下文渲染为点号分隔的路径，例: ("$", "db", "port") → "$.db.port"。"""
    parts = as_context(context)
    if not parts:
        return ""
    return ".".join(parts)
