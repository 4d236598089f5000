"""
配置加载工具模块 (loader.py)
==========================
本模块负责把外部来源组装成 Config 实例：
- 环境变量：可按前缀截取，如 MYAPP_DATABASE_HOST → DATABASE_HOST
- JSON 配置文件：可选地将 camelCase 键名转换为 snake_case
- 合并顺序：文件 < 环境变量（环境变量覆盖文件中的同名键，大小写不敏感）

对于 Java 开发者：
- 类似于 Spring Boot 的 application.json + 环境变量覆盖机制
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Mapping, TypeVar

from loguru import logger

from flatpack.config import Config
from flatpack.errors import ValidationFailed

C = TypeVar("C", bound=Config)


def load_env(
    environ: Mapping[str, str] | None = None,
    prefix: str | None = None,
    separator: str = "_",
) -> dict[str, str]:
    """
    读取环境变量。

    参数:
        environ: 环境变量映射，为 None 时使用 os.environ
        prefix: 只保留 "<prefix><separator>" 开头的变量，并去掉该前缀（大小写不敏感）
        separator: 前缀与键名之间的分隔符

    返回:
        环境变量的副本（dict）
    """
    env = dict(os.environ if environ is None else environ)
    if not prefix:
        return env

    pattern = re.compile(rf"^{re.escape(prefix)}{re.escape(separator)}(.*)$", re.IGNORECASE | re.DOTALL)
    selected = {}
    for key, value in env.items():
        match = pattern.match(key)
        if match:
            selected[match.group(1)] = value
    return selected


def load_file(path: Path | str, camel_case: bool = False) -> dict[str, Any]:
    """
    从 JSON 文件读取配置映射。

    参数:
        path: 文件路径
        camel_case: 为 True 时把文件中的 camelCase 键名递归转换为 snake_case

    异常:
        json.JSONDecodeError: 文件不是合法 JSON
        ValueError: 顶层不是 JSON 对象
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Top-level value in {path} must be a JSON object, got {type(data).__name__}")
    return convert_keys(data) if camel_case else data


def load_config(
    config_cls: type[C],
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    prefix: str | None = None,
    strict: bool = False,
    camel_case: bool = False,
) -> C:
    """
    组装配置实例：先读 JSON 文件，再用环境变量覆盖。

    加载流程：
    1. 读取 JSON 文件（文件不存在时跳过；解析失败时降级为空配置并记录警告，strict 模式下直接抛出）
    2. 读取环境变量（按 prefix 截取，分隔符使用 config_cls.separator）
    3. 删除文件中与环境变量大小写不敏感同名的键，保证环境变量优先
    4. 构造 Config 并合并环境变量
    5. strict 模式下执行 validate()，有错误则抛出 ValidationFailed

    参数:
        config_cls: 目标配置类
        path: 可选的 JSON 配置文件路径
        environ: 环境变量映射，为 None 时使用 os.environ
        prefix: 环境变量前缀
        strict: 是否在加载后立即校验
        camel_case: JSON 文件是否使用 camelCase 键名

    返回:
        config_cls 的实例
    """
    data: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if path.exists():
            try:
                data = load_file(path, camel_case=camel_case)
                logger.debug(f"Loaded {len(data)} key(s) from {path}")
            except (json.JSONDecodeError, ValueError) as e:
                if strict:
                    raise
                # 配置文件损坏时降级为空配置，而非直接报错退出
                logger.warning(f"Failed to load config from {path}: {e}")
        else:
            logger.debug(f"Config file {path} not found, skipping")

    env = load_env(environ, prefix=prefix, separator=config_cls.separator)
    overridden = {key.casefold() for key in env}
    data = {k: v for k, v in data.items() if str(k).casefold() not in overridden}

    config = config_cls(data).merge(env)
    logger.info(f"Loaded {config_cls.__name__} ({len(data)} file key(s), {len(env)} env key(s))")

    if strict:
        errors = config.validate()
        if errors:
            raise ValidationFailed(errors)
    return config


def save_config(config: Config, path: Path | str, camel_case: bool = False) -> None:
    """
    将配置实例导出为 JSON 文件。

    保存流程：
    1. config.dump()（会先触发 validate，保证导出的是转换后的值）
    2. 可选地将键名转换为 camelCase
    3. 写入 JSON 文件（带缩进格式化），自动创建父目录
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.dump()
    if camel_case:
        data = convert_to_camel(data)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Saved {type(config).__name__} to {path}")


def convert_keys(data: Any) -> Any:
    """
    递归地将字典中所有 camelCase 键名转换为 snake_case。

    示例: {"maxTokens": 8192} → {"max_tokens": 8192}
    """
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """递归地将字典中所有 snake_case 键名转换为 camelCase。"""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """
    将 camelCase 字符串转换为 snake_case。
    例: "maxTokens" → "max_tokens", "apiBase" → "api_base"

    已经是全大写的环境变量风格键（DATABASE_HOST）原样保留。
    """
    if name.isupper():
        return name
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0 and name[i - 1] != "_":
            result.append("_")  # 在大写字母前插入下划线
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """
    将 snake_case 字符串转换为 camelCase。
    例: "max_tokens" → "maxTokens", "api_base" → "apiBase"
    """
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
