"""CLI - 注册表查询命令"""

from __future__ import annotations

import click

from pkgdocs.cli import _load
from pkgdocs.core.config import DEFAULT_CONFIG_FILE, RunContext
from pkgdocs.core.docs.resolver import resolve
from pkgdocs.core.exceptions import PkgDocsError


def register(group: click.Group) -> None:
    group.add_command(list_packages)
    group.add_command(resolve_package)


@click.command(name="list")
@click.argument("registry", required=False)
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
def list_packages(registry: str | None, config_path: str) -> None:
    """列出注册表中的所有包（含停用条目）"""
    try:
        _, reg = _load(config_path, registry)
    except PkgDocsError as e:
        raise click.ClickException(str(e)) from e
    if not reg:
        click.echo("注册表为空。")
        return
    for d in reg:
        kind = "extension" if d.is_extension else "solver"
        flags = " html" if d.has_rich_content else ""
        state = "" if d.enabled else "  [停用]"
        click.echo(
            f"  {d.name:26s} {d.revision or '-':42s} "
            f"[{kind:9s}] ({d.owner}){flags}{state}"
        )


@click.command(name="resolve")
@click.argument("name")
@click.argument("registry", required=False)
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
def resolve_package(name: str, registry: str | None, config_path: str) -> None:
    """输出单个包的拉取地址（不下载）"""
    try:
        cfg, reg = _load(config_path, registry)
        desc = reg.get(name)
        if desc is None:
            raise click.ClickException(f"包 '{name}' 不在注册表中")
        if not desc.enabled:
            raise click.ClickException(f"包 '{name}' 已停用")
        location = resolve(desc, RunContext.from_config(cfg, reg).template)
    except PkgDocsError as e:
        raise click.ClickException(str(e)) from e
    click.echo(location.url)
