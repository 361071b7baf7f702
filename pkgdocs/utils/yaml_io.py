"""配置读取与生成文件写出

pkgdocs 只在两处接触 YAML：读取 pkgdocs.yml 配置（必须是映射），
写出 manifest.yml（带"自动生成"文件头）。页面等文本文件同样经由
atomic_write 写入，读者不会看到写了一半的文件。
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

GENERATED_HEADER = "# 由 pkgdocs 自动生成，请勿手工修改\n"


def atomic_write(path: Path, content: str) -> None:
    """先写同目录临时文件再 rename；父目录不存在时自动创建"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def load_mapping(path: str | Path) -> dict[str, Any]:
    """读取顶层为映射的 YAML 文件

    文件不存在或内容为空时返回空字典。

    Raises:
        ValueError: 顶层不是映射（例如误写成列表）
        yaml.YAMLError: YAML 语法错误
        OSError: 读取失败
    """
    p = Path(path)
    if not p.exists():
        return {}
    with open(p, encoding="utf-8-sig") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"顶层必须是映射，实际为 {type(data).__name__}")
    return data


def dump_generated(path: str | Path, data: Any) -> None:
    """以 YAML 写出生成数据：保持键顺序、保留中文，文件头标明自动生成"""
    body = yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    atomic_write(Path(path), GENERATED_HEADER + body)
