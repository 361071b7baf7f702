"""文档聚合器 - 串联 解析 -> 并发拉取 -> 分类 -> 汇编

拉取是唯一会阻塞的阶段：每个启用的包一个任务，提交到线程池，
由共享的 FetchLimiter 限制在途请求数。运行级超时到达后取消未开始的任务，
并通知在途任务停止重试；已完成的结果保留，未完成的记为 TRANSIENT_ERROR。

结果先按包名收集，再由 assemble 按注册表声明顺序输出，
因此生成内容与拉取完成顺序无关。

用法:
    from pkgdocs.core.aggregator import Aggregator

    report = Aggregator(context).run()
    report.manifest.solvers
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable

from pkgdocs.core.config import RunContext
from pkgdocs.core.docs.assembler import assemble
from pkgdocs.core.docs.classifier import classify
from pkgdocs.core.docs.fetcher import Fetcher
from pkgdocs.core.docs.models import (
    AssemblyManifest,
    FetchResult,
    FetchStatus,
    PackageDescriptor,
)
from pkgdocs.core.docs.resolver import resolve
from pkgdocs.core.exceptions import ValidationError
from pkgdocs.core.limiter import FetchLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationReport:
    """一次运行的结果"""

    manifest: AssemblyManifest
    results: dict[str, FetchResult] = field(default_factory=dict)
    disabled: tuple[str, ...] = ()
    elapsed: float = 0.0


class Aggregator:
    """文档聚合流水线

    fetcher / limiter 可注入，测试时替换为假 transport 与假时钟。
    """

    def __init__(
        self,
        context: RunContext,
        fetcher: Fetcher | None = None,
        limiter: FetchLimiter | None = None,
    ) -> None:
        self.context = context
        self.fetcher = fetcher or Fetcher(
            retry=context.retry, timeout=context.request_timeout,
        )
        self.limiter = limiter or FetchLimiter(context.max_concurrency)

    def _fetch_one(self, desc: PackageDescriptor, cancel: threading.Event) -> FetchResult:
        try:
            location = resolve(desc, self.context.template)
        except (ValueError, ValidationError) as e:
            return FetchResult(descriptor=desc, status=FetchStatus.INVALID, reason=str(e))

        with self.limiter.slot(desc.name):
            if cancel.is_set():
                return FetchResult(
                    descriptor=desc, status=FetchStatus.TRANSIENT_ERROR,
                    reason="运行超时，已取消",
                )
            return self.fetcher.fetch(location, cancel=cancel)

    def fetch_all(self, descriptors: Iterable[PackageDescriptor]) -> dict[str, FetchResult]:
        """并发拉取所有启用的包，返回 {name: FetchResult}

        停用的包不解析、不拉取；每个启用的包恰好产生一个结果。
        """
        enabled = [d for d in descriptors if d.enabled]
        results: dict[str, FetchResult] = {}
        if not enabled:
            return results

        cancel = threading.Event()
        workers = min(len(enabled), self.context.max_concurrency)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pkgdocs-fetch")
        try:
            futures = {executor.submit(self._fetch_one, d, cancel): d for d in enabled}
            try:
                for future in as_completed(futures, timeout=self.context.run_timeout):
                    desc = futures[future]
                    result = future.result()
                    results[desc.name] = result
                    logger.info(
                        "完成: %s -> %s (%d 次请求)", desc.name, result.status.value, result.attempts,
                        extra={"package": desc.name, "status": result.status.value},
                    )
            except TimeoutError:
                cancel.set()
                pending = [d for d in enabled if d.name not in results]
                logger.error(
                    "运行超时 (%.1f 秒)，取消 %d 个未完成的拉取: %s",
                    self.context.run_timeout, len(pending), ", ".join(d.name for d in pending),
                )
                for future, desc in futures.items():
                    if desc.name in results:
                        continue
                    future.cancel()
                    results[desc.name] = FetchResult(
                        descriptor=desc, status=FetchStatus.TRANSIENT_ERROR,
                        reason="运行超时，已取消",
                    )
        finally:
            # 超时后不等待在途请求，它们受单请求超时约束，结果被丢弃
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def run(self) -> AggregationReport:
        """执行完整流水线

        Raises:
            AggregationIncomplete: 严格模式且存在失败的包
        """
        start = time.monotonic()
        registry = self.context.registry
        logger.info(
            "开始聚合: %d 个包 (并发 %d, 严格模式 %s)",
            len(registry.enabled()), self.context.max_concurrency, self.context.strict,
        )
        results = self.fetch_all(registry)
        outcomes = {name: classify(r.descriptor, r) for name, r in results.items()}
        manifest = assemble(registry, outcomes, strict=self.context.strict)
        elapsed = time.monotonic() - start
        if manifest.errors:
            logger.warning(
                "聚合汇总: %d 成功, %d 失败 (%s)",
                manifest.size, len(manifest.errors),
                ", ".join(e.name for e in manifest.errors),
            )
        return AggregationReport(
            manifest=manifest,
            results=results,
            disabled=tuple(d.name for d in registry.disabled()),
            elapsed=elapsed,
        )
