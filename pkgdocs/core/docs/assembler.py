"""汇编器 - 按注册表声明顺序合并分类结果为 AssemblyManifest"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from pkgdocs.core.docs.models import (
    SECTION_EXTENSIONS,
    AssemblyManifest,
    Classification,
    ErrorRecord,
    FetchStatus,
    ManifestEntry,
    Outcome,
    PackageDescriptor,
)
from pkgdocs.core.exceptions import AggregationIncomplete

logger = logging.getLogger(__name__)


def assemble(
    descriptors: Iterable[PackageDescriptor],
    outcomes: Mapping[str, Outcome],
    *,
    strict: bool = False,
) -> AssemblyManifest:
    """合并分类结果

    只处理启用的描述符，顺序与注册表声明一致（与拉取完成顺序无关）。
    缺少分类结果的包记为 TRANSIENT_ERROR，不会被静默丢弃。

    Raises:
        AggregationIncomplete: strict=True 且错误列表非空
    """
    solvers: list[ManifestEntry] = []
    extensions: list[ManifestEntry] = []
    errors: list[ErrorRecord] = []

    for desc in descriptors:
        if not desc.enabled:
            continue
        outcome = outcomes.get(desc.name)
        if outcome is None:
            errors.append(ErrorRecord(
                name=desc.name, status=FetchStatus.TRANSIENT_ERROR, reason="未完成拉取",
            ))
        elif isinstance(outcome, Classification):
            entry = ManifestEntry(title=desc.name, content=outcome.text, descriptor=desc)
            (extensions if outcome.section == SECTION_EXTENSIONS else solvers).append(entry)
        else:
            errors.append(outcome)

    manifest = AssemblyManifest(
        solvers=tuple(solvers), extensions=tuple(extensions), errors=tuple(errors),
    )
    logger.info(
        "汇编完成: solvers %d, extensions %d, 失败 %d",
        len(solvers), len(extensions), len(errors),
    )
    if strict and errors:
        raise AggregationIncomplete(manifest.errors)
    return manifest
