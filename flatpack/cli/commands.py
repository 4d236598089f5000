"""
CLI 命令模块 - flatpack 的命令行命令定义。

本模块使用 Typer 框架定义以下命令（TARGET 形如 "myapp.settings:AppConfig"）：
- show：以表格形式展示解析后的扁平配置
- check：校验配置，有错误时以退出码 1 结束
- example：输出配置类的示例 JSON

技术栈：
- Typer：CLI 框架（基于 Click，支持类型注解自动生成帮助文档）
- Rich：终端美化输出（表格、颜色）
"""

import importlib
import json
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from flatpack import __version__
from flatpack.config import Config
from flatpack.errors import FlatpackError
from flatpack.loader import load_config
from flatpack.settings import Settings

# 创建 Typer 应用实例（CLI 根命令）
app = typer.Typer(
    name="flatpack",
    help="flatpack - flat keys into typed, nested configuration",
    no_args_is_help=True,  # 无参数时显示帮助信息
)

console = Console()  # Rich 控制台实例，用于美化输出


def version_callback(value: bool):
    """版本号回调：当用户传入 --version 参数时，打印版本号并退出。"""
    if value:
        console.print(f"flatpack v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show flatpack runtime logs"),
):
    """flatpack CLI 根命令回调。处理全局选项（--version、--logs）。"""
    if logs:
        settings = Settings()
        logger.remove()
        logger.add(sys.stderr, level=settings.log_level.upper())
        logger.enable("flatpack")
    else:
        logger.disable("flatpack")


def _resolve_target(target: str) -> type[Config]:
    """把 "package.module:ClassName" 解析为 Config 子类。"""
    module_name, _, class_name = target.partition(":")
    if not module_name or not class_name:
        raise typer.BadParameter(f"expected 'module:Class', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import {module_name!r}: {e}") from e

    config_cls = getattr(module, class_name, None)
    if not (isinstance(config_cls, type) and issubclass(config_cls, Config)):
        raise typer.BadParameter(f"{target!r} is not a flatpack Config class")
    return config_cls


def _load(target: str, prefix: str | None, file: str | None, camel_case: bool) -> Config:
    """按命令行参数（缺省时取 FLATPACK_* 设置）加载配置。"""
    settings = Settings()
    config_cls = _resolve_target(target)
    return load_config(
        config_cls,
        path=file if file is not None else settings.config_file,
        prefix=prefix if prefix is not None else (settings.env_prefix or None),
        camel_case=camel_case,
    )


TARGET_ARG = typer.Argument(..., help="Config class as 'module:Class'")
PREFIX_OPT = typer.Option(None, "--prefix", "-p", help="Environment variable prefix, e.g. MYAPP")
FILE_OPT = typer.Option(None, "--file", "-f", help="JSON config file to load before the environment")
CAMEL_OPT = typer.Option(False, "--camel-case", help="The JSON file uses camelCase keys")


@app.command()
def show(
    target: str = TARGET_ARG,
    prefix: str = PREFIX_OPT,
    file: str = FILE_OPT,
    camel_case: bool = CAMEL_OPT,
):
    """
    展示解析后的配置。

    以表格形式列出每个叶子键的完整路径（如 database.port）和转换后的值。
    """
    try:
        config = _load(target, prefix, file, camel_case)
        lines = config.pretty_print()
    except FlatpackError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title=type(config).__name__)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for line in lines:
        key, _, value = line.partition("=")
        table.add_row(escape(key), escape(value))
    console.print(table)


@app.command()
def check(
    target: str = TARGET_ARG,
    prefix: str = PREFIX_OPT,
    file: str = FILE_OPT,
    camel_case: bool = CAMEL_OPT,
):
    """校验配置。有错误时逐条打印并以退出码 1 结束。"""
    try:
        config = _load(target, prefix, file, camel_case)
        errors = config.validate()
    except FlatpackError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if errors:
        for error in errors:
            console.print(f"[red]✗[/red] {escape(error)}")
        console.print(f"\n[red]{len(errors)} error(s)[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] {type(config).__name__} is valid")


@app.command()
def example(target: str = TARGET_ARG):
    """输出配置类的示例值（JSON）。"""
    config_cls = _resolve_target(target)
    try:
        data = config_cls.example().dump()
    except FlatpackError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(data))
