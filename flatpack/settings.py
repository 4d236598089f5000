"""
工具自身的设置 (settings.py)

flatpack CLI 自己的默认参数也从环境变量读取（前缀 FLATPACK_），
例如 FLATPACK_ENV_PREFIX=MYAPP 等价于每次都传 --prefix MYAPP。
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """flatpack CLI 的设置。命令行参数优先于这里的值。"""

    env_prefix: str = ""  # 读取环境变量时使用的前缀（不含分隔符）
    config_file: str | None = None  # 默认加载的 JSON 配置文件
    log_level: str = Field(default="INFO", description="--logs 打开时的日志级别")

    model_config = SettingsConfigDict(
        env_prefix="FLATPACK_",
        extra="ignore",
    )
