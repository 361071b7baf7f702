"""远端文件拉取器

职责:
- 通过可替换的 transport 拉取单个文件（默认 urllib，单请求超时有上限）
- 按 RetryPolicy 对瞬时错误做退避重试
- 将 HTTP 结果映射为 FetchStatus，整包拉取要么完整成功要么失败

状态映射:
  - 2xx 且长度与 Content-Length 一致  -> SUCCESS
  - 404 / 410                         -> NOT_FOUND（不重试，通常是文件改名或引用失效）
  - 网络错误 / 可重试状态码            -> 重试，耗尽后 TRANSIENT_ERROR
  - 其他状态码                        -> TRANSIENT_ERROR（不重试）
"""

from __future__ import annotations

import http.client
import logging
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Callable

from pkgdocs import __version__
from pkgdocs.core.docs.models import FetchLocation, FetchResult, FetchStatus

logger = logging.getLogger(__name__)

NOT_FOUND_STATUSES = frozenset((404, 410))
RETRYABLE_STATUSES = frozenset((408, 425, 429, 500, 502, 503, 504))


@dataclass(frozen=True)
class HttpResponse:
    """transport 返回的完整响应"""

    status: int
    body: bytes = b""
    content_length: int | None = None


# transport 策略：接受 (url, timeout)，返回完整响应；网络层错误抛出 OSError
Transport = Callable[[str, float], HttpResponse]


def urllib_transport(url: str, timeout: float) -> HttpResponse:
    """默认 transport - urllib.request，读取完整响应体"""
    req = urllib.request.Request(url, headers={"User-Agent": f"pkgdocs/{__version__}"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:  # nosec B310
            body = resp.read()
            length = resp.headers.get("Content-Length")
            return HttpResponse(
                status=resp.status,
                body=body,
                content_length=int(length) if length and length.isdigit() else None,
            )
    except urllib.error.HTTPError as e:
        e.close()
        return HttpResponse(status=e.code)
    except http.client.HTTPException as e:
        # IncompleteRead 等不属于 OSError，统一按连接错误处理
        raise ConnectionError(f"响应不完整: {url} - {e!r}") from e


@dataclass(frozen=True)
class RetryPolicy:
    """重试策略：最大尝试次数、指数退避、可重试状态码"""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_factor: float = 2.0
    max_backoff: float = 30.0
    retryable_statuses: frozenset[int] = RETRYABLE_STATUSES

    def delay(self, attempt: int) -> float:
        """第 attempt 次（从 1 开始）失败后的等待秒数"""
        return min(self.max_backoff, self.backoff_base * self.backoff_factor ** (attempt - 1))

    def schedule(self) -> list[float]:
        """各次重试前的等待序列"""
        return [self.delay(a) for a in range(1, self.max_attempts)]

    def is_retryable(self, status: int) -> bool:
        return status in self.retryable_statuses


class Fetcher:
    """单文件拉取器 - 带重试，transport 与 sleep 可注入"""

    def __init__(
        self,
        transport: Transport | None = None,
        retry: RetryPolicy | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.transport = transport or urllib_transport
        self.retry = retry or RetryPolicy()
        self.timeout = timeout
        self._sleep = sleep

    def _wait(self, delay: float, cancel: threading.Event | None) -> None:
        if self._sleep is not None:
            self._sleep(delay)
        elif cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)

    def _attempt(self, location: FetchLocation) -> tuple[FetchStatus | None, bytes | None, str]:
        """执行一次请求；返回 (终态或 None, 内容, 原因)，None 表示可重试"""
        try:
            resp = self.transport(location.url, self.timeout)
        except OSError as e:
            return None, None, f"网络错误: {e}"

        if 200 <= resp.status < 300:
            if resp.content_length is not None and len(resp.body) != resp.content_length:
                return None, None, (
                    f"响应不完整: 收到 {len(resp.body)} 字节，声明 {resp.content_length} 字节"
                )
            return FetchStatus.SUCCESS, resp.body, ""
        if resp.status in NOT_FOUND_STATUSES:
            return FetchStatus.NOT_FOUND, None, f"HTTP {resp.status}: {location.url}"
        if self.retry.is_retryable(resp.status):
            return None, None, f"HTTP {resp.status}"
        return FetchStatus.TRANSIENT_ERROR, None, f"HTTP {resp.status}: {location.url}"

    def fetch(
        self, location: FetchLocation, cancel: threading.Event | None = None,
    ) -> FetchResult:
        """拉取单个文件，永不抛出网络异常，结果体现在 FetchResult.status"""
        desc = location.descriptor
        reason = ""
        attempts = 0
        for attempt in range(1, self.retry.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                return FetchResult(
                    descriptor=desc, status=FetchStatus.TRANSIENT_ERROR,
                    reason=f"已取消: {reason or '运行超时'}", attempts=attempts,
                )
            attempts = attempt
            logger.debug("拉取 %s (第 %d 次): %s", desc.name, attempt, location.url)
            status, content, reason = self._attempt(location)
            if status is not None:
                if status is not FetchStatus.SUCCESS:
                    logger.warning(
                        "拉取失败: %s - %s", desc.name, reason,
                        extra={"package": desc.name, "status": status.value},
                    )
                return FetchResult(
                    descriptor=desc, status=status, content=content,
                    reason=reason, attempts=attempt,
                )
            if attempt < self.retry.max_attempts:
                delay = self.retry.delay(attempt)
                logger.warning(
                    "拉取 %s 出错，%.1f 秒后重试 (%d/%d): %s",
                    desc.name, delay, attempt, self.retry.max_attempts, reason,
                    extra={"package": desc.name, "attempt": attempt},
                )
                self._wait(delay, cancel)

        logger.error(
            "拉取失败，已重试 %d 次: %s - %s", attempts, desc.name, reason,
            extra={"package": desc.name, "status": FetchStatus.TRANSIENT_ERROR.value},
        )
        return FetchResult(
            descriptor=desc, status=FetchStatus.TRANSIENT_ERROR,
            reason=f"重试 {attempts} 次后仍失败: {reason}", attempts=attempts,
        )
