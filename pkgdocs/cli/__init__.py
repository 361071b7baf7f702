"""pkgdocs 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import click

from pkgdocs import __version__
from pkgdocs.core.config import Config
from pkgdocs.core.docs.models import Registry
from pkgdocs.core.docs.registry import read_registry
from pkgdocs.utils.logger import setup_logging_from_env


def _load(config_path: str, registry_path: str | None) -> tuple[Config, Registry]:
    """加载配置与注册表（两者的错误都以 PkgDocsError 抛出）"""
    cfg = Config.from_file(config_path)
    registry = read_registry(
        registry_path or cfg.registry,
        default_owner=cfg.default_owner,
        reject_movable_revisions=cfg.reject_movable_revisions,
    )
    return cfg, registry


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """pkgdocs - 外部包文档聚合工具"""
    setup_logging_from_env()


# 注册各领域子命令
from pkgdocs.cli.cmd_run import register as _reg_run  # noqa: E402
from pkgdocs.cli.cmd_registry import register as _reg_registry  # noqa: E402

_reg_run(main)
_reg_registry(main)
