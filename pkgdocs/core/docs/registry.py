"""包注册表解析与加载

职责:
- 解析 TOML 注册表文本，包括被注释掉的条目（解析为 enabled=False）
- 将原始条目校验为不可变的 PackageDescriptor 集合（load_descriptors）

注册表格式:

    [HiGHS]
        rev = "v1.5.1"
    [SDDP]
        user = "odow"
        rev = "v1.5.0"
        has_html = true
        extension = true
    # [Tulip]
    #   user = "ds4dm"

紧跟在代码行、空行或另一个被注释条目之后的 "# [Name]" 视为停用条目；
出现在说明性注释段落中的 "# [Name]"（如文件头的格式说明）忽略。
"""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from pkgdocs.core.docs.models import (
    DEFAULT_FILENAME,
    DEFAULT_OWNER,
    PackageDescriptor,
    Registry,
)
from pkgdocs.core.exceptions import ConfigError, MalformedRegistry

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"""^\s*\[\s*(?:"([^"]+)"|([^\[\]\s]+))\s*\]""")
_COMMENTED_HEADER_RE = re.compile(r"^\s*#\s*\[\s*([A-Za-z0-9_.\-]+)\s*\]\s*$")
_COMMENTED_KEY_RE = re.compile(r"^\s*#\s*([A-Za-z_][A-Za-z0-9_]*\s*=.*)$")

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9_\-][A-Za-z0-9_.\-]*$")
_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")
_SHA_RE = re.compile(r"^[0-9a-f]{7,40}$")

# 注册表键 -> (描述符字段, 类型)
_FIELDS: dict[str, tuple[str, type]] = {
    "user": ("owner", str),
    "rev": ("revision", str),
    "extension": ("is_extension", bool),
    "has_html": ("has_rich_content", bool),
    "filename": ("target_filename", str),
}


@dataclass(frozen=True)
class RawEntry:
    """注册表中的原始条目（未校验）"""

    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    line: int = 0


def parse_registry_text(text: str) -> list[RawEntry]:
    """解析注册表文本，按声明顺序返回原始条目

    Raises:
        MalformedRegistry: TOML 语法错误或顶层出现非表条目
    """
    text = text.removeprefix("\ufeff")
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise MalformedRegistry(f"注册表 TOML 解析失败: {e}") from e

    lines = text.splitlines()
    positions: dict[str, int] = {}
    for lineno, line in enumerate(lines, start=1):
        m = _HEADER_RE.match(line)
        if m:
            positions.setdefault(m.group(1) or m.group(2), lineno)

    entries: list[RawEntry] = []
    for name, body in data.items():
        if not isinstance(body, dict):
            raise MalformedRegistry(f"顶层条目 '{name}' 必须是表 [{name}]")
        entries.append(RawEntry(
            name=name, fields=body, line=positions.get(name, len(lines) + 1),
        ))

    entries.extend(_scan_disabled(lines))
    entries.sort(key=lambda e: e.line)
    return entries


def _scan_disabled(lines: list[str]) -> list[RawEntry]:
    """扫描被注释掉的条目"""
    found: list[RawEntry] = []
    prev_kind = "blank"
    current: tuple[str, int] | None = None
    body: list[str] = []

    def close() -> None:
        if current is not None:
            name, lineno = current
            found.append(RawEntry(
                name=name, fields=_parse_disabled_body(name, body),
                enabled=False, line=lineno,
            ))

    for lineno, line in enumerate(lines, start=1):
        header = _COMMENTED_HEADER_RE.match(line)
        if header and prev_kind != "comment":
            close()
            current, body = (header.group(1), lineno), []
            prev_kind = "disabled"
            continue
        key = _COMMENTED_KEY_RE.match(line)
        if current is not None and key:
            body.append(key.group(1))
            continue

        close()
        current, body = None, []
        stripped = line.strip()
        if not stripped:
            prev_kind = "blank"
        elif stripped.startswith("#"):
            prev_kind = "comment"
        else:
            prev_kind = "code"
    close()
    return found


def _parse_disabled_body(name: str, body: list[str]) -> dict[str, Any]:
    if not body:
        return {}
    try:
        parsed = tomllib.loads("\n".join(body))
    except tomllib.TOMLDecodeError:
        logger.debug("停用条目 %s 的注释内容无法解析，忽略字段", name)
        return {}
    return parsed


def is_pinned_revision(revision: str) -> bool:
    """提交哈希或带数字的版本标签视为固定引用；main / master 等分支名不是"""
    return bool(_SHA_RE.match(revision)) or any(c.isdigit() for c in revision)


def _coerce_fields(entry: RawEntry) -> dict[str, Any]:
    """将注册表键映射为描述符字段并做类型校验

    停用条目只作为意图记录，字段错误仅记录日志。
    """
    kwargs: dict[str, Any] = {}
    for key, value in entry.fields.items():
        if key not in _FIELDS:
            logger.warning("包 '%s' 含未识别的键 '%s'，已忽略", entry.name, key)
            continue
        attr, expected = _FIELDS[key]
        valid = isinstance(value, expected) and (expected is not str or value.strip())
        if not valid:
            msg = (
                f"包 '{entry.name}' 的 '{key}' 必须是"
                f"{'布尔值' if expected is bool else '非空字符串'}: {value!r}"
            )
            if entry.enabled:
                raise MalformedRegistry(msg)
            logger.debug("%s（停用条目，忽略）", msg)
            continue
        kwargs[attr] = value.strip() if expected is str else value
    return kwargs


def _validate_enabled(
    desc: PackageDescriptor, reject_movable_revisions: bool,
) -> None:
    if not desc.revision:
        raise MalformedRegistry(f"包 '{desc.name}' 缺少必填字段 'rev'")
    if not _SAFE_NAME_RE.match(desc.owner):
        raise MalformedRegistry(f"包 '{desc.name}' 的 'user' 包含非法字符: {desc.owner}")
    for label, value in (("rev", desc.revision), ("filename", desc.target_filename)):
        if not _SAFE_REF_RE.match(value) or ".." in value.split("/"):
            raise MalformedRegistry(f"包 '{desc.name}' 的 '{label}' 包含非法字符: {value}")
    if not is_pinned_revision(desc.revision):
        msg = (
            f"包 '{desc.name}' 的 rev '{desc.revision}' 看起来是可移动引用（分支名），"
            "应使用提交哈希或标签"
        )
        if reject_movable_revisions:
            raise MalformedRegistry(msg)
        logger.warning(msg)


def load_descriptors(
    raw_entries: Iterable[RawEntry],
    *,
    default_owner: str = DEFAULT_OWNER,
    reject_movable_revisions: bool = False,
) -> Registry:
    """将原始条目加载为 Registry，不做任何网络或文件 IO

    Raises:
        MalformedRegistry: 启用条目缺少 rev、名称重复或字段非法
    """
    # 页面按包名落盘，大小写不敏感的文件系统上仅大小写不同的包名会互相覆盖
    seen: dict[str, str] = {}
    descriptors: list[PackageDescriptor] = []
    for entry in raw_entries:
        folded = entry.name.casefold()
        if folded in seen:
            prior = seen[folded]
            if prior == entry.name:
                raise MalformedRegistry(f"包名重复: '{entry.name}'")
            raise MalformedRegistry(f"包名仅大小写不同: '{prior}' 与 '{entry.name}'")
        seen[folded] = entry.name
        if not _SAFE_NAME_RE.match(entry.name):
            raise MalformedRegistry(f"包名包含非法字符: '{entry.name}'")

        kwargs: dict[str, Any] = {
            "owner": default_owner, "target_filename": DEFAULT_FILENAME,
        }
        kwargs.update(_coerce_fields(entry))
        desc = PackageDescriptor(name=entry.name, enabled=entry.enabled, **kwargs)
        if desc.enabled:
            _validate_enabled(desc, reject_movable_revisions)
        descriptors.append(desc)

    registry = Registry(tuple(descriptors))
    logger.info(
        "已加载 %d 个包（启用 %d，停用 %d）",
        len(registry), len(registry.enabled()), len(registry.disabled()),
    )
    return registry


def read_registry(
    path: str | Path,
    *,
    default_owner: str = DEFAULT_OWNER,
    reject_movable_revisions: bool = False,
) -> Registry:
    """读取注册表文件并加载描述符"""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8-sig")
    except FileNotFoundError as e:
        raise ConfigError(f"注册表文件不存在: {p}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"读取注册表失败: {p}: {e}") from e
    return load_descriptors(
        parse_registry_text(text),
        default_owner=default_owner,
        reject_movable_revisions=reject_movable_revisions,
    )
