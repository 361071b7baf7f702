"""CLI - 聚合运行命令"""

from __future__ import annotations

import click

from pkgdocs.cli import _load
from pkgdocs.core.aggregator import AggregationReport, Aggregator
from pkgdocs.core.config import DEFAULT_CONFIG_FILE, RunContext
from pkgdocs.core.docs.models import ErrorRecord
from pkgdocs.core.exceptions import AggregationIncomplete, PkgDocsError
from pkgdocs.core.writer import check_output_dir, write_docs


def register(group: click.Group) -> None:
    group.add_command(run)


def _echo_errors(errors: tuple[ErrorRecord, ...]) -> None:
    click.echo(f"\n失败的包 ({len(errors)}):")
    for e in errors:
        click.echo(f"  [{e.status.value:15s}] {e.name}: {e.reason}")


def _echo_summary(report: AggregationReport, output: str) -> None:
    m = report.manifest
    click.echo(
        f"已生成 {m.size} 个页面 -> {output} "
        f"(solvers {len(m.solvers)}, extensions {len(m.extensions)}, "
        f"耗时 {report.elapsed:.1f}秒)"
    )
    if report.disabled:
        click.echo(f"停用跳过 ({len(report.disabled)}): {', '.join(report.disabled)}")
    if m.errors:
        _echo_errors(m.errors)


@click.command()
@click.argument("registry", required=False)
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option("--strict/--no-strict", default=None, help="任一包失败即整体失败（默认读取配置）")
@click.option("--concurrency", "-j", type=click.IntRange(min=1), default=None, help="最大并发拉取数")
@click.option("--output", "-o", default=None, help="生成文档目录")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              help="运行级超时（秒）")
def run(
    registry: str | None, config_path: str, strict: bool | None,
    concurrency: int | None, output: str | None, timeout: float | None,
) -> None:
    """拉取注册表中的包文档并生成文档树"""
    try:
        cfg, reg = _load(config_path, registry)
        registry_path = registry or cfg.registry
        out = output or cfg.output_dir
        # 先检查输出目录，避免拉取完成后才发现无法写出
        check_output_dir(out, registry_path)
        ctx = RunContext.from_config(
            cfg, reg, strict=strict, max_concurrency=concurrency, run_timeout=timeout,
        )
        report = Aggregator(ctx).run()
        write_docs(report.manifest, out, ctx.template, registry_path=registry_path)
    except AggregationIncomplete as e:
        _echo_errors(e.errors)
        raise click.ClickException(str(e)) from e
    except PkgDocsError as e:
        raise click.ClickException(str(e)) from e
    except OSError as e:
        raise click.ClickException(f"写出文档失败: {e}") from e

    _echo_summary(report, out)
