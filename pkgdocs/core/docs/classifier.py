"""分类器 - 将拉取结果归入 solvers / extensions，或记为错误"""

from __future__ import annotations

import logging

from pkgdocs.core.docs.models import (
    Classification,
    ErrorRecord,
    FetchResult,
    FetchStatus,
    Outcome,
    PackageDescriptor,
)

logger = logging.getLogger(__name__)


def _decode_text(content: bytes | None) -> tuple[str | None, str]:
    """校验内容为非空文本；返回 (文本, 失败原因)"""
    if not content or not content.strip():
        return None, "内容为空"
    if b"\x00" in content:
        return None, "内容为二进制（含 NUL 字节）"
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        return None, f"内容不是 UTF-8 文本: {e.reason} (位置 {e.start})"
    return text.removeprefix("\ufeff"), ""


def classify(desc: PackageDescriptor, result: FetchResult) -> Outcome:
    """对单个包的拉取结果分类

    非 SUCCESS 一律记为错误；SUCCESS 但内容为空或为二进制时降级为 INVALID。
    """
    if result.status is not FetchStatus.SUCCESS:
        return ErrorRecord(name=desc.name, status=result.status, reason=result.reason)

    text, problem = _decode_text(result.content)
    if text is None:
        logger.warning("内容校验失败: %s - %s", desc.name, problem)
        return ErrorRecord(name=desc.name, status=FetchStatus.INVALID, reason=problem)

    return Classification(descriptor=desc, section=desc.section, text=text)
