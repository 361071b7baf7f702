"""生成文档树写出

输出结构:

    <output_dir>/
        manifest.yml          # solvers / extensions / errors，供站点生成器消费
        packages/<name>.md    # 每个成功聚合的包一页

每页开头插入 Documenter 的 @meta 块，EditURL 指向上游固定版本的源文件；
has_html 的包把原始 HTML 段落包进 @raw html 围栏，原样透传给站点。

先在 output_dir 同级的临时目录里写完整棵树，最后整体替换，
写出失败时不会留下半成品。已有的输出目录只有在看起来是上次生成的结果时才会被替换。
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from pkgdocs.core.docs.models import AssemblyManifest, ManifestEntry
from pkgdocs.core.docs.resolver import DEFAULT_TEMPLATE, UrlTemplate, edit_url
from pkgdocs.core.exceptions import ConfigError
from pkgdocs.utils.yaml_io import atomic_write, dump_generated

logger = logging.getLogger(__name__)

PAGES_DIR = "packages"
MANIFEST_FILE = "manifest.yml"

_FENCE = "```"
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


def _is_indented_code(line: str) -> bool:
    return line.startswith(("    ", "\t")) and bool(line.strip())


def wrap_raw_html(markdown: str) -> str:
    """把代码之外、以 '<' 开头的连续行包进 ```@raw html 围栏

    ``` 与 ~~~ 围栏代码块、缩进代码块内的行原样保留；
    已开始的 HTML 段落内的缩进行仍属于该段落。
    """
    out: list[str] = []
    html_block: list[str] = []
    fence = ""

    def flush() -> None:
        if html_block:
            out.append(f"{_FENCE}@raw html")
            out.extend(html_block)
            out.append(_FENCE)
            html_block.clear()

    for line in markdown.splitlines():
        m = _FENCE_RE.match(line)
        if fence:
            # 关闭围栏须与开启围栏同字符且不短于它
            if m and m.group(1).startswith(fence) and not line[m.end():].strip():
                fence = ""
            out.append(line)
        elif m:
            flush()
            fence = m.group(1)
            out.append(line)
        elif line.lstrip().startswith("<") and (html_block or not _is_indented_code(line)):
            html_block.append(line)
        else:
            flush()
            out.append(line)
    flush()
    return "\n".join(out) + "\n"


def render_page(entry: ManifestEntry, template: UrlTemplate = DEFAULT_TEMPLATE) -> str:
    desc = entry.descriptor
    body = wrap_raw_html(entry.content) if desc.has_rich_content else entry.content
    if not body.endswith("\n"):
        body += "\n"
    meta = f'{_FENCE}@meta\nEditURL = "{edit_url(desc, template)}"\n{_FENCE}\n\n'
    return meta + body


def _manifest_data(manifest: AssemblyManifest, template: UrlTemplate) -> dict:
    def section(entries: tuple[ManifestEntry, ...]) -> list[dict[str, str]]:
        return [
            {
                "title": e.title,
                "path": f"{PAGES_DIR}/{e.title}.md",
                "revision": e.descriptor.revision,
                "source": edit_url(e.descriptor, template),
            }
            for e in entries
        ]

    return {
        "solvers": section(manifest.solvers),
        "extensions": section(manifest.extensions),
        "errors": [e.to_dict() for e in manifest.errors],
    }


def check_output_dir(output_dir: str | Path, registry_path: str | Path | None = None) -> Path:
    """确认 output_dir 可被整体替换，返回其绝对路径

    只允许替换不存在的目录、空目录或上次运行生成的目录
    （仅含 manifest.yml 与 packages/）。

    Raises:
        ConfigError: 输出目录是当前目录或注册表所在目录（或二者的上级），
            或已有与生成结果无关的内容
    """
    out = Path(output_dir).resolve()
    cwd = Path.cwd().resolve()
    if out == cwd or out in cwd.parents:
        raise ConfigError(f"输出目录不能是当前目录或其上级: {output_dir}")
    if registry_path is not None:
        reg = Path(registry_path).resolve()
        if out == reg or out in reg.parents:
            raise ConfigError(f"输出目录包含注册表文件 {registry_path}: {output_dir}")
    if not out.exists():
        return out
    if not out.is_dir():
        raise ConfigError(f"输出路径已存在且不是目录: {output_dir}")
    names = {p.name for p in out.iterdir()}
    if names and (MANIFEST_FILE not in names or not names <= {MANIFEST_FILE, PAGES_DIR}):
        raise ConfigError(f"输出目录含有非生成内容，拒绝覆盖: {output_dir}")
    return out


def write_docs(
    manifest: AssemblyManifest,
    output_dir: str | Path,
    template: UrlTemplate = DEFAULT_TEMPLATE,
    *,
    registry_path: str | Path | None = None,
) -> list[Path]:
    """写出生成的文档树，返回最终的页面路径列表（按 manifest 顺序）

    Raises:
        ConfigError: 输出目录不可替换，见 check_output_dir
    """
    target = check_output_dir(output_dir, registry_path)
    out = Path(output_dir)
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}.", dir=str(target.parent)))
    try:
        pages: list[Path] = []
        for entry in (*manifest.solvers, *manifest.extensions):
            rel = Path(PAGES_DIR) / f"{entry.title}.md"
            atomic_write(staging / rel, render_page(entry, template))
            pages.append(out / rel)
        dump_generated(staging / MANIFEST_FILE, _manifest_data(manifest, template))

        if target.exists():
            shutil.rmtree(target)
        os.replace(staging, target)
    except Exception:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.info("已写出 %d 个页面 -> %s", len(pages), out)
    return pages
