"""
flatpack - 扁平键 → 嵌套类型化配置树

模块概述：
    flatpack 把一个扁平的键值映射（最常见的就是环境变量）解析成一棵带类型的配置树：

        DATABASE_HOST=db.local  DATABASE_PORT=6543  DEBUG=true
                         │
                         ▼
        cfg.database.host == "db.local"
        cfg.database.port == 6543
        cfg.debug is True

    - 配置类声明方式与 Pydantic 模型一致（类型注解 + 默认值）
    - 值在首次读取时才转换并缓存
    - validate() 一次性收集整棵树的所有错误
"""

from loguru import logger

from flatpack.attribute import Attribute
from flatpack.config import Config
from flatpack.context import DEFAULT_ROOT_CONTEXT, generate_subcontext, humanize_context
from flatpack.errors import (
    CoercionError,
    FlatpackError,
    InvalidKeyType,
    SchemaError,
    UndefinedKey,
    ValidationFailed,
)
from flatpack.loader import load_config, load_env, load_file, save_config
from flatpack.requirement import Requirement

# 版本号，遵循语义化版本规范（主版本.次版本.修订号）
__version__ = "0.1.0"

# 作为库使用时默认静默，CLI 通过 --logs 打开
logger.disable("flatpack")

__all__ = [
    "Attribute",
    "CoercionError",
    "Config",
    "DEFAULT_ROOT_CONTEXT",
    "FlatpackError",
    "InvalidKeyType",
    "Requirement",
    "SchemaError",
    "UndefinedKey",
    "ValidationFailed",
    "generate_subcontext",
    "humanize_context",
    "load_config",
    "load_env",
    "load_file",
    "save_config",
]
